from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import ApprovalStatus, TimeEntry
from .overtime import month_bounds, split_entry, week_bounds
from .schedule import ScheduleConfig

APPROVED_STATUSES = (ApprovalStatus.APPROVED, ApprovalStatus.APPROVED_NORMAL_ONLY)


class DayStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MIXED = "mixed"


@dataclass(frozen=True)
class EntryContribution:
    hours: float
    approved: float
    pending: float
    rejected: float
    normal: float
    overtime: float


@dataclass
class StatusTotals:
    total_hours: float = 0.0
    approved_hours: float = 0.0
    pending_hours: float = 0.0
    rejected_hours: float = 0.0
    normal_hours: float = 0.0
    overtime_hours: float = 0.0
    entries: int = 0

    def add(self, part: EntryContribution) -> None:
        self.total_hours += part.hours
        self.approved_hours += part.approved
        self.pending_hours += part.pending
        self.rejected_hours += part.rejected
        self.normal_hours += part.normal
        self.overtime_hours += part.overtime
        self.entries += 1

    def rounded(self) -> "StatusTotals":
        return StatusTotals(
            total_hours=round(self.total_hours, 2),
            approved_hours=round(self.approved_hours, 2),
            pending_hours=round(self.pending_hours, 2),
            rejected_hours=round(self.rejected_hours, 2),
            normal_hours=round(self.normal_hours, 2),
            overtime_hours=round(self.overtime_hours, 2),
            entries=self.entries,
        )


@dataclass
class Summary:
    group_by: str
    key: Any
    totals: StatusTotals
    by_client: Dict[str, StatusTotals] = field(default_factory=dict)


@dataclass
class EmployeeMonth:
    employee_id: int
    total_hours: float
    entries: int
    complete: bool


@dataclass
class OvertimeRow:
    employee_id: int
    area_name: str
    normal_hours: float
    overtime_hours: float
    total_hours: float


def contribution(entry: TimeEntry, schedule: ScheduleConfig) -> EntryContribution:
    """How much of ``entry`` lands in each bucket.

    Approved-without-overtime entries pay their normal portion and count the
    rest as rejected.
    """
    split = split_entry(entry, schedule)
    normal = split.normal_minutes / 60
    overtime = split.overtime_minutes / 60
    hours = entry.derived_hours()
    status = entry.approval_status

    if status is ApprovalStatus.APPROVED:
        return EntryContribution(hours, hours, 0.0, 0.0, normal, overtime)
    if status is ApprovalStatus.REJECTED:
        return EntryContribution(hours, 0.0, 0.0, hours, normal, overtime)
    if status is ApprovalStatus.APPROVED_NORMAL_ONLY:
        approved = min(normal, hours)
        return EntryContribution(hours, approved, 0.0, hours - approved, normal, overtime)
    return EntryContribution(hours, 0.0, hours, 0.0, normal, overtime)


GROUP_KEYS: Dict[str, Callable[[TimeEntry], Any]] = {
    "day": lambda entry: entry.work_date,
    "week": lambda entry: week_bounds(entry.work_date)[0],
    "month": lambda entry: (entry.work_date.year, entry.work_date.month),
    "client": lambda entry: entry.client_key,
    "employee": lambda entry: entry.employee_id,
}


def summarize(entries: Iterable[TimeEntry], group_by: str, schedule: ScheduleConfig) -> List[Summary]:
    """Group entries and total them by status and by client, ordered by group key."""
    try:
        key_for = GROUP_KEYS[group_by]
    except KeyError:
        raise ValueError(f"Unknown grouping {group_by!r}; expected one of {', '.join(GROUP_KEYS)}") from None

    totals: Dict[Any, StatusTotals] = defaultdict(StatusTotals)
    by_client: Dict[Any, Dict[str, StatusTotals]] = defaultdict(lambda: defaultdict(StatusTotals))
    for entry in entries:
        part = contribution(entry, schedule)
        key = key_for(entry)
        totals[key].add(part)
        by_client[key][entry.client_key].add(part)

    return [
        Summary(
            group_by=group_by,
            key=key,
            totals=bucket.rounded(),
            by_client={client: client_totals.rounded() for client, client_totals in sorted(by_client[key].items())},
        )
        for key, bucket in sorted(totals.items(), key=lambda item: item[0])
    ]


def total(entries: Iterable[TimeEntry], schedule: ScheduleConfig) -> StatusTotals:
    bucket = StatusTotals()
    for entry in entries:
        bucket.add(contribution(entry, schedule))
    return bucket.rounded()


def weekly_summaries(entries: Iterable[TimeEntry], schedule: ScheduleConfig) -> List[Summary]:
    return summarize(entries, "week", schedule)


def daily_summaries(entries: Iterable[TimeEntry], schedule: ScheduleConfig) -> List[Summary]:
    return summarize(entries, "day", schedule)


def entries_on(entries: Iterable[TimeEntry], day: date) -> List[TimeEntry]:
    return [entry for entry in entries if entry.work_date == day]


def pending_count(entries: Iterable[TimeEntry], day: date) -> int:
    return sum(1 for entry in entries_on(entries, day) if entry.approval_status is ApprovalStatus.PENDING)


def day_status(entries: Iterable[TimeEntry]) -> Optional[DayStatus]:
    statuses = [entry.approval_status for entry in entries]
    if not statuses:
        return None
    has_approved = any(status in APPROVED_STATUSES for status in statuses)
    has_rejected = any(status is ApprovalStatus.REJECTED for status in statuses)
    if has_approved and has_rejected:
        return DayStatus.MIXED
    if any(status is ApprovalStatus.PENDING for status in statuses):
        return DayStatus.PENDING
    if has_rejected:
        return DayStatus.REJECTED
    return DayStatus.APPROVED


def monthly_employee_totals(
    entries: Iterable[TimeEntry],
    year: int,
    month: int,
    target_hours: float = 170.0,
) -> List[EmployeeMonth]:
    start, end = month_bounds(year, month)
    hours: Dict[int, float] = defaultdict(float)
    counts: Dict[int, int] = defaultdict(int)
    for entry in entries:
        if start <= entry.work_date <= end:
            hours[entry.employee_id] += entry.derived_hours()
            counts[entry.employee_id] += 1

    rows = [
        EmployeeMonth(
            employee_id=employee_id,
            total_hours=round(value, 2),
            entries=counts[employee_id],
            complete=round(value, 2) >= target_hours,
        )
        for employee_id, value in hours.items()
    ]
    return sorted(rows, key=lambda row: row.total_hours, reverse=True)


def overtime_report(
    entries: Iterable[TimeEntry],
    schedule: ScheduleConfig,
    start: date,
    end: date,
    area: str | None = None,
) -> List[OvertimeRow]:
    """Normal and overtime hours per employee between ``start`` and ``end``, most overtime first."""
    normal: Dict[int, float] = defaultdict(float)
    overtime: Dict[int, float] = defaultdict(float)
    worked: Dict[int, float] = defaultdict(float)
    areas: Dict[int, str] = {}
    for entry in entries:
        if not (start <= entry.work_date <= end):
            continue
        if area is not None and entry.area_name != area:
            continue
        split = split_entry(entry, schedule)
        normal[entry.employee_id] += split.normal_minutes / 60
        overtime[entry.employee_id] += split.overtime_minutes / 60
        worked[entry.employee_id] += split.total_minutes / 60
        areas.setdefault(entry.employee_id, entry.area_name)

    rows = [
        OvertimeRow(
            employee_id=employee_id,
            area_name=areas[employee_id],
            normal_hours=round(normal[employee_id], 2),
            overtime_hours=round(overtime[employee_id], 2),
            total_hours=round(worked[employee_id], 2),
        )
        for employee_id in worked
    ]
    return sorted(rows, key=lambda row: row.overtime_hours, reverse=True)
