import sentry_sdk

from timekeeping.core.config import Settings, get_settings


def configure_error_monitoring(settings: Settings | None = None) -> bool:
    """Start Sentry when a DSN is configured; returns whether reporting is active."""
    settings = settings or get_settings()
    if not settings.sentry_dsn:
        return False
    sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.0)
    sentry_sdk.set_tag("service", "timekeeping")
    return True


def report_failure(exc: BaseException, command: str) -> None:
    sentry_sdk.capture_exception(exc, tags={"command": command})
