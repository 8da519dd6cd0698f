from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, List, Optional, Tuple

from .core.logging import get_logger
from .core.observability import get_meter
from .models import ApprovalStatus, StoreError, TimeEntry
from .overtime import split_entry, week_bounds
from .schedule import ScheduleConfig

logger = get_logger(__name__)
transition_counter = get_meter().create_counter(
    "timekeeping.approval.transitions",
    description="Approval status changes applied to time entries",
)

APPROVER_TARGETS = (
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.APPROVED_NORMAL_ONLY,
)


@dataclass(frozen=True)
class IllegalTransition:
    entry_id: Optional[int]
    from_status: ApprovalStatus
    to_status: ApprovalStatus
    reason: str

    @property
    def message(self) -> str:
        return f"Cannot move entry {self.entry_id} from {self.from_status.value} to {self.to_status.value}: {self.reason}"


@dataclass(frozen=True)
class TransitionResult:
    entry: TimeEntry
    error: Optional[IllegalTransition] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkReport:
    target: ApprovalStatus
    succeeded: List[TimeEntry] = field(default_factory=list)
    failed: List[Tuple[TimeEntry, str]] = field(default_factory=list)
    skipped: List[TimeEntry] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class ApprovalStateMachine:
    def __init__(self, schedule: ScheduleConfig) -> None:
        self.schedule = schedule

    def check(self, entry: TimeEntry, target: ApprovalStatus, approver_id: int) -> Optional[IllegalTransition]:
        """Return why ``approver_id`` may not move ``entry`` to ``target``, or ``None``."""

        def illegal(reason: str) -> IllegalTransition:
            return IllegalTransition(entry.id, entry.approval_status, target, reason)

        if target not in APPROVER_TARGETS:
            return illegal("not an approval decision")
        if entry.id is None:
            return illegal("entry has not been saved")
        if entry.approval_status is not ApprovalStatus.PENDING:
            return illegal("entry is no longer pending")
        if approver_id == entry.employee_id:
            return illegal("entries cannot be approved by their owner")
        if target is ApprovalStatus.APPROVED_NORMAL_ONLY and split_entry(entry, self.schedule).overtime_minutes <= 0:
            return illegal("entry has no overtime")
        return None

    def transition(self, entry: TimeEntry, target: ApprovalStatus, approver_id: int) -> TransitionResult:
        error = self.check(entry, target, approver_id)
        if error is not None:
            logger.info(
                "transition_refused",
                entry_id=entry.id,
                from_status=entry.approval_status.value,
                to_status=target.value,
                reason=error.reason,
            )
            return TransitionResult(entry=entry, error=error)

        updated = replace(entry, approval_status=target, approver_id=approver_id)
        logger.info(
            "entry_transitioned",
            entry_id=entry.id,
            from_status=entry.approval_status.value,
            to_status=target.value,
            approver_id=approver_id,
        )
        transition_counter.add(1, {"to_status": target.value})
        return TransitionResult(entry=updated)

    def approve(self, entry: TimeEntry, approver_id: int) -> TransitionResult:
        return self.transition(entry, ApprovalStatus.APPROVED, approver_id)

    def reject(self, entry: TimeEntry, approver_id: int) -> TransitionResult:
        return self.transition(entry, ApprovalStatus.REJECTED, approver_id)

    def approve_normal_only(self, entry: TimeEntry, approver_id: int) -> TransitionResult:
        return self.transition(entry, ApprovalStatus.APPROVED_NORMAL_ONLY, approver_id)

    @staticmethod
    def resubmit(entry: TimeEntry) -> TimeEntry:
        """Return an edited entry to the queue, clearing the previous decision."""
        return replace(entry, approval_status=ApprovalStatus.PENDING, approver_id=None)

    def bulk_transition(
        self,
        entries: Iterable[TimeEntry],
        target: ApprovalStatus,
        approver_id: int,
        *,
        start: date,
        end: date,
    ) -> BulkReport:
        """Apply ``target`` to every pending entry dated within ``start``..``end``.

        Entries outside the range are ignored, already decided ones are listed
        as skipped, and each pending entry succeeds or fails on its own.
        """
        report = BulkReport(target=target)
        for entry in entries:
            if not (start <= entry.work_date <= end):
                continue
            if entry.approval_status is not ApprovalStatus.PENDING:
                report.skipped.append(entry)
                continue
            result = self.transition(entry, target, approver_id)
            if result.ok:
                report.succeeded.append(result.entry)
            else:
                report.failed.append((entry, result.error.reason))
        logger.info(
            "bulk_transition",
            to_status=target.value,
            start=start.isoformat(),
            end=end.isoformat(),
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            skipped=len(report.skipped),
        )
        return report

    def bulk_for_day(self, entries: Iterable[TimeEntry], day: date, target: ApprovalStatus, approver_id: int) -> BulkReport:
        return self.bulk_transition(entries, target, approver_id, start=day, end=day)

    def bulk_for_week(self, entries: Iterable[TimeEntry], anchor: date, target: ApprovalStatus, approver_id: int) -> BulkReport:
        start, end = week_bounds(anchor)
        return self.bulk_transition(entries, target, approver_id, start=start, end=end)

    def approve_day(self, entries: Iterable[TimeEntry], day: date, approver_id: int) -> BulkReport:
        return self.bulk_for_day(entries, day, ApprovalStatus.APPROVED, approver_id)

    def reject_day(self, entries: Iterable[TimeEntry], day: date, approver_id: int) -> BulkReport:
        return self.bulk_for_day(entries, day, ApprovalStatus.REJECTED, approver_id)

    def approve_week(self, entries: Iterable[TimeEntry], anchor: date, approver_id: int) -> BulkReport:
        return self.bulk_for_week(entries, anchor, ApprovalStatus.APPROVED, approver_id)

    def reject_week(self, entries: Iterable[TimeEntry], anchor: date, approver_id: int) -> BulkReport:
        return self.bulk_for_week(entries, anchor, ApprovalStatus.REJECTED, approver_id)


def persist_bulk(report: BulkReport, store) -> BulkReport:
    """Write each decided entry through ``store`` as its own unit of work.

    Entries the store refuses move from ``succeeded`` to ``failed`` so the
    caller can retry exactly that subset.
    """
    persisted = BulkReport(target=report.target, failed=list(report.failed), skipped=list(report.skipped))
    for entry in report.succeeded:
        try:
            saved = store.update(
                entry.id,
                {"approval_status": entry.approval_status, "approver_id": entry.approver_id},
            )
        except StoreError as exc:
            logger.warning("bulk_persist_failed", entry_id=entry.id, error=str(exc))
            persisted.failed.append((entry, str(exc)))
            continue
        persisted.succeeded.append(saved)
    return persisted
