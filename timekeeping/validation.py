"""Acceptance rules for new and edited time entries.

Every rule that can refuse an entry has its own failure type carrying the data
needed to explain the refusal (remaining headroom, the limit in force, the
missing fields). Refusals are returned, not raised.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import date, time
from typing import ClassVar, Collection, Iterable, List, Mapping, Optional, Tuple

from .core.logging import get_logger
from .core.observability import get_meter
from .models import ActivityKind, ApprovalStatus, TimeEntry
from .overtime import week_bounds
from .schedule import ScheduleConfig

logger = get_logger(__name__)
failure_counter = get_meter().create_counter(
    "timekeeping.validation.failures",
    description="Time entries refused at submission, by reason",
)

HOUR_GRANULARITY = 0.5
LOCKED_STATUSES = (ApprovalStatus.APPROVED, ApprovalStatus.APPROVED_NORMAL_ONLY)


@dataclass(frozen=True)
class ValidationFailure:
    reason: ClassVar[str] = "invalid"

    @property
    def message(self) -> str:
        return "The entry could not be accepted."


@dataclass(frozen=True)
class MissingField(ValidationFailure):
    reason: ClassVar[str] = "missing_field"
    field: str

    @property
    def message(self) -> str:
        return f"{self.field.replace('_', ' ').capitalize()} is required."


@dataclass(frozen=True)
class AreaMismatch(ValidationFailure):
    reason: ClassVar[str] = "area_mismatch"
    client_key: str
    area_name: str

    @property
    def message(self) -> str:
        return f"Area {self.area_name!r} is not assigned to client {self.client_key!r}."


@dataclass(frozen=True)
class FutureDate(ValidationFailure):
    reason: ClassVar[str] = "future_date"
    work_date: date
    today: date

    @property
    def message(self) -> str:
        return f"Hours cannot be recorded for {self.work_date.isoformat()}, which is in the future."


@dataclass(frozen=True)
class EntryLocked(ValidationFailure):
    reason: ClassVar[str] = "entry_locked"
    status: ApprovalStatus

    @property
    def message(self) -> str:
        return "This entry has already been approved and can no longer be edited."


@dataclass(frozen=True)
class InvalidRange(ValidationFailure):
    reason: ClassVar[str] = "invalid_range"
    start_time: time
    end_time: time

    @property
    def message(self) -> str:
        return (
            f"End time {self.end_time.strftime('%H:%M')} must be after "
            f"start time {self.start_time.strftime('%H:%M')}."
        )


@dataclass(frozen=True)
class InvalidHours(ValidationFailure):
    reason: ClassVar[str] = "invalid_hours"
    hours: float

    @property
    def message(self) -> str:
        return f"{self.hours:g}h is not valid; record hours in steps of {HOUR_GRANULARITY:g}h."


@dataclass(frozen=True)
class DayClosed(ValidationFailure):
    reason: ClassVar[str] = "day_closed"
    work_date: date

    @property
    def message(self) -> str:
        return f"{self.work_date.strftime('%A')} is closed for entries."


@dataclass(frozen=True)
class DailyLimitExceeded(ValidationFailure):
    reason: ClassVar[str] = "daily_limit_exceeded"
    limit: float
    used: float
    requested: float
    remaining: float

    @property
    def message(self) -> str:
        return f"Daily limit exceeded, {self.remaining:g}h remaining (limit: {self.limit:g}h)."


@dataclass(frozen=True)
class WeeklyLimitExceeded(ValidationFailure):
    reason: ClassVar[str] = "weekly_limit_exceeded"
    limit: float
    used: float
    requested: float
    remaining: float

    @property
    def message(self) -> str:
        return f"Weekly limit exceeded, {self.remaining:g}h remaining this week (limit: {self.limit:g}h)."


@dataclass(frozen=True)
class EvidenceMissing(ValidationFailure):
    reason: ClassVar[str] = "evidence_missing"
    missing: Tuple[str, ...]

    @property
    def message(self) -> str:
        return f"On-site entries require {' and '.join(self.missing)}."


@dataclass(frozen=True)
class ValidationResult:
    entry: Optional[TimeEntry] = None
    failure: Optional[ValidationFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class EntryValidator:
    def __init__(self, schedule: ScheduleConfig, client_areas: Mapping[str, Collection[str]]) -> None:
        self.schedule = schedule
        self.client_areas = client_areas

    def validate(
        self,
        candidate: TimeEntry,
        existing: Iterable[TimeEntry],
        *,
        today: date,
        auto_approve_by: Optional[int] = None,
    ) -> ValidationResult:
        """Accept or refuse ``candidate`` against the employee's recorded entries.

        A candidate with an ``id`` is an edit: the stored copy of that entry is
        left out of the daily and weekly totals. ``auto_approve_by`` is the
        coordinator id when the caller's policy approves the entry on entry.
        """
        others: List[TimeEntry] = []
        previous: Optional[TimeEntry] = None
        for entry in existing:
            if entry.employee_id != candidate.employee_id:
                continue
            if candidate.id is not None and entry.id == candidate.id:
                previous = entry
                continue
            others.append(entry)

        failure, hours = self._check(candidate, previous, others, today)
        if failure is not None:
            logger.info(
                "entry_rejected",
                reason=failure.reason,
                employee_id=candidate.employee_id,
                work_date=candidate.work_date.isoformat(),
            )
            failure_counter.add(1, {"reason": failure.reason})
            return ValidationResult(failure=failure)

        accepted = replace(
            candidate,
            client_key=candidate.client_key.strip(),
            area_name=candidate.area_name.strip(),
            description=candidate.description.strip() if candidate.description else candidate.description,
            hours=hours,
            approval_status=ApprovalStatus.APPROVED if auto_approve_by is not None else ApprovalStatus.PENDING,
            approver_id=auto_approve_by,
        )
        return ValidationResult(entry=accepted)

    def _check(
        self,
        candidate: TimeEntry,
        previous: Optional[TimeEntry],
        others: List[TimeEntry],
        today: date,
    ) -> Tuple[Optional[ValidationFailure], float]:
        client = (candidate.client_key or "").strip()
        area = (candidate.area_name or "").strip()
        if not client:
            return MissingField("client_key"), 0.0
        if not area:
            return MissingField("area_name"), 0.0
        allowed = {name.strip() for name in self.client_areas.get(client, ())}
        if area not in allowed:
            return AreaMismatch(client, area), 0.0

        if candidate.work_date > today:
            return FutureDate(candidate.work_date, today), 0.0
        if previous is not None and previous.approval_status in LOCKED_STATUSES:
            return EntryLocked(previous.approval_status), 0.0

        if candidate.uses_time_range:
            if candidate.end_time <= candidate.start_time:
                return InvalidRange(candidate.start_time, candidate.end_time), 0.0
            hours = candidate.derived_hours()
            if hours <= 0:
                return InvalidRange(candidate.start_time, candidate.end_time), 0.0
            if not (candidate.description or "").strip():
                return MissingField("description"), hours
        elif candidate.start_time is not None or candidate.end_time is not None:
            return MissingField("end_time" if candidate.end_time is None else "start_time"), 0.0
        else:
            hours = candidate.hours
            if hours < HOUR_GRANULARITY or not _on_granularity(hours):
                return InvalidHours(hours), 0.0

        counted = [e for e in others if e.approval_status is not ApprovalStatus.REJECTED]

        daily_limit = self.schedule.daily_limit_for(candidate.work_date)
        if daily_limit is not None:
            if daily_limit == 0:
                return DayClosed(candidate.work_date), hours
            used = round(sum(e.derived_hours() for e in counted if e.work_date == candidate.work_date), 2)
            if round(used + hours, 2) > daily_limit:
                return DailyLimitExceeded(daily_limit, used, hours, _headroom(daily_limit, used)), hours

        weekly_limit = self.schedule.weekly_limit()
        week_start, week_end = week_bounds(candidate.work_date)
        used = round(sum(e.derived_hours() for e in counted if week_start <= e.work_date <= week_end), 2)
        if round(used + hours, 2) > weekly_limit:
            return WeeklyLimitExceeded(weekly_limit, used, hours, _headroom(weekly_limit, used)), hours

        if candidate.activity_kind is ActivityKind.ON_SITE:
            missing = []
            if candidate.location is None:
                missing.append("location")
            if not candidate.signature:
                missing.append("signature")
            if missing:
                return EvidenceMissing(tuple(missing)), hours

        return None, hours


def _on_granularity(hours: float) -> bool:
    steps = hours / HOUR_GRANULARITY
    return abs(steps - round(steps)) < 1e-9


def _headroom(limit: float, used: float) -> float:
    return round(max(limit - used, 0.0), 2)
