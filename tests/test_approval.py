from dataclasses import replace
from datetime import date, time

from timekeeping.approval import ApprovalStateMachine, BulkReport, persist_bulk
from timekeeping.models import ApprovalStatus, StoreError, TimeEntry
from timekeeping.schedule import ScheduleConfig

TUESDAY = date(2024, 3, 12)
APPROVER = 50


def build_machine() -> ApprovalStateMachine:
    return ApprovalStateMachine(ScheduleConfig())


def entry(entry_id: int, work_date: date = TUESDAY, status: ApprovalStatus = ApprovalStatus.PENDING, **kwargs) -> TimeEntry:
    values = dict(
        id=entry_id,
        employee_id=7,
        client_key="C1",
        area_name="Operations",
        work_date=work_date,
        hours=2.0,
        approval_status=status,
    )
    values.update(kwargs)
    return TimeEntry(**values)


def overtime_entry(entry_id: int) -> TimeEntry:
    return entry(entry_id, hours=11.0, start_time=time(7, 0), end_time=time(18, 0), description="Shutdown")


def test_pending_entry_can_be_approved():
    result = build_machine().approve(entry(1), APPROVER)

    assert result.ok
    assert result.entry.approval_status is ApprovalStatus.APPROVED
    assert result.entry.approver_id == APPROVER


def test_pending_entry_can_be_rejected():
    result = build_machine().reject(entry(1), APPROVER)

    assert result.entry.approval_status is ApprovalStatus.REJECTED


def test_transition_does_not_mutate_input():
    original = entry(1)
    build_machine().approve(original, APPROVER)

    assert original.approval_status is ApprovalStatus.PENDING


def test_terminal_states_cannot_transition():
    machine = build_machine()
    for status in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.APPROVED_NORMAL_ONLY):
        result = machine.reject(entry(1, status=status), APPROVER)

        assert not result.ok
        assert result.error.from_status is status
        assert result.entry.approval_status is status


def test_normal_only_requires_overtime():
    machine = build_machine()

    refused = machine.approve_normal_only(entry(1, start_time=time(8, 0), end_time=time(10, 0)), APPROVER)
    accepted = machine.approve_normal_only(overtime_entry(2), APPROVER)

    assert refused.error.reason == "entry has no overtime"
    assert accepted.entry.approval_status is ApprovalStatus.APPROVED_NORMAL_ONLY


def test_normal_only_from_terminal_state_is_refused():
    result = build_machine().approve_normal_only(replace(overtime_entry(1), approval_status=ApprovalStatus.APPROVED), APPROVER)

    assert not result.ok


def test_owner_cannot_decide_own_entry():
    result = build_machine().approve(entry(1), approver_id=7)

    assert not result.ok
    assert "owner" in result.error.message


def test_unsaved_entry_cannot_be_decided():
    assert not build_machine().approve(entry(None), APPROVER).ok


def test_pending_is_not_an_approval_decision():
    assert not build_machine().transition(entry(1), ApprovalStatus.PENDING, APPROVER).ok


def test_resubmit_returns_entry_to_pending():
    decided = entry(1, status=ApprovalStatus.REJECTED, approver_id=APPROVER)

    resubmitted = ApprovalStateMachine.resubmit(decided)

    assert resubmitted.approval_status is ApprovalStatus.PENDING
    assert resubmitted.approver_id is None
    assert build_machine().approve(resubmitted, APPROVER).ok


def test_bulk_day_approval_touches_only_pending_entries():
    entries = [entry(i) for i in range(1, 6)] + [
        entry(6, status=ApprovalStatus.APPROVED),
        entry(7, status=ApprovalStatus.APPROVED),
        entry(8, work_date=date(2024, 3, 13)),
    ]

    report = build_machine().approve_day(entries, TUESDAY, APPROVER)

    assert [e.id for e in report.succeeded] == [1, 2, 3, 4, 5]
    assert all(e.approval_status is ApprovalStatus.APPROVED for e in report.succeeded)
    assert [e.id for e in report.skipped] == [6, 7]
    assert report.failed == []
    assert report.complete


def test_bulk_week_rejection_covers_monday_to_sunday():
    entries = [
        entry(1, work_date=date(2024, 3, 11)),
        entry(2, work_date=date(2024, 3, 17)),
        entry(3, work_date=date(2024, 3, 18)),
    ]

    report = build_machine().reject_week(entries, TUESDAY, APPROVER)

    assert [e.id for e in report.succeeded] == [1, 2]
    assert all(e.approval_status is ApprovalStatus.REJECTED for e in report.succeeded)


def test_bulk_failures_do_not_block_other_entries():
    entries = [overtime_entry(1), entry(2, start_time=time(8, 0), end_time=time(9, 0)), overtime_entry(3)]

    report = build_machine().bulk_for_day(entries, TUESDAY, ApprovalStatus.APPROVED_NORMAL_ONLY, APPROVER)

    assert [e.id for e in report.succeeded] == [1, 3]
    assert [(e.id, reason) for e, reason in report.failed] == [(2, "entry has no overtime")]
    assert not report.complete


class FlakyStore:
    def __init__(self, broken_ids):
        self.broken_ids = set(broken_ids)
        self.updates = []

    def update(self, entry_id, changes):
        if entry_id in self.broken_ids:
            raise StoreError(f"Time entry {entry_id} not found")
        self.updates.append((entry_id, changes))
        return entry(entry_id, status=changes["approval_status"], approver_id=changes["approver_id"])


def test_persist_bulk_isolates_store_failures():
    report = build_machine().approve_day([entry(1), entry(2), entry(3)], TUESDAY, APPROVER)
    store = FlakyStore(broken_ids=[2])

    persisted = persist_bulk(report, store)

    assert [e.id for e in persisted.succeeded] == [1, 3]
    assert [(e.id, reason) for e, reason in persisted.failed] == [(2, "Time entry 2 not found")]
    assert [update[0] for update in store.updates] == [1, 3]


def test_persist_bulk_keeps_transition_failures():
    report = BulkReport(target=ApprovalStatus.APPROVED, failed=[(entry(9), "entry is no longer pending")])

    persisted = persist_bulk(report, FlakyStore(broken_ids=[]))

    assert persisted.failed == report.failed
