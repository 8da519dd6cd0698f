from typing import Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from .config import get_settings

METER_NAME = "timekeeping"


def configure_metrics(otlp_endpoint: Optional[str] = None) -> None:
    settings = get_settings()
    resource = Resource.create({"service.name": "timekeeping", "deployment.env": settings.env})
    endpoint = otlp_endpoint or settings.otlp_endpoint
    metric_reader = None
    if endpoint:
        metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint))
    provider_kwargs = {"resource": resource}
    if metric_reader:
        provider_kwargs["metric_readers"] = [metric_reader]
    meter_provider = MeterProvider(**provider_kwargs)
    metrics.set_meter_provider(meter_provider)


def get_meter() -> metrics.Meter:
    return metrics.get_meter(METER_NAME)
