from __future__ import annotations
from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Optional, Tuple


class StoreError(Exception):
    """Raised by entry and settings stores when a record cannot be read or written."""


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPROVED_NORMAL_ONLY = "approved_normal_only"

    @classmethod
    def from_code(cls, code: int | None) -> "ApprovalStatus":
        """Translate the legacy integer status column (missing means pending)."""
        if code is None:
            return cls.PENDING
        try:
            return _STATUS_BY_CODE[int(code)]
        except KeyError:
            raise ValueError(f"Unknown approval status code {code!r}") from None

    @property
    def code(self) -> int:
        return _CODE_BY_STATUS[self]

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalStatus.PENDING


_STATUS_BY_CODE = {
    0: ApprovalStatus.PENDING,
    1: ApprovalStatus.APPROVED,
    2: ApprovalStatus.REJECTED,
    3: ApprovalStatus.APPROVED_NORMAL_ONLY,
}
_CODE_BY_STATUS = {status: code for code, status in _STATUS_BY_CODE.items()}


class ActivityKind(str, Enum):
    REMOTE = "remote"
    ON_SITE = "on_site"


@dataclass
class TimeEntry:
    employee_id: int
    client_key: str
    area_name: str
    work_date: date
    hours: float = 0.0
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    description: Optional[str] = None
    activity_kind: ActivityKind = ActivityKind.REMOTE
    location: Optional[Tuple[float, float]] = None
    signature: Optional[str] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    approver_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def uses_time_range(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def derived_hours(self) -> float:
        if not self.uses_time_range:
            return self.hours
        minutes = minutes_of_day(self.end_time) - minutes_of_day(self.start_time)
        return round(minutes / 60, 2)


@dataclass(frozen=True)
class OvertimeSplit:
    normal_minutes: int
    overtime_minutes: int
    total_minutes: int

    @property
    def normal_hours(self) -> float:
        return round(self.normal_minutes / 60, 2)

    @property
    def overtime_hours(self) -> float:
        return round(self.overtime_minutes / 60, 2)

    @property
    def total_hours(self) -> float:
        return round(self.total_minutes / 60, 2)


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string, tolerating the JSON quoting the settings API returns."""
    text = value.strip().strip('"').strip()
    try:
        hour, minute = text.split(":")[:2]
        return time(int(hour), int(minute))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid time of day {value!r}") from None
