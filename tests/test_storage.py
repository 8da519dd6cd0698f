from __future__ import annotations

from datetime import date, time

import pytest
from sqlalchemy.pool import StaticPool

from timekeeping.models import ActivityKind, ApprovalStatus, StoreError, TimeEntry
from timekeeping.schedule import ScheduleConfig
from timekeeping.storage import open_stores


@pytest.fixture
def stores():
    return open_stores("sqlite://", poolclass=StaticPool)


def sample_entry(**kwargs) -> TimeEntry:
    values = dict(
        employee_id=7,
        client_key="C1",
        area_name="Operations",
        work_date=date(2024, 3, 12),
        hours=3.5,
        start_time=time(8, 0),
        end_time=time(11, 30),
        description="Inspection",
    )
    values.update(kwargs)
    return TimeEntry(**values)


def test_create_assigns_id_and_round_trips_fields(stores):
    entries, _ = stores

    created = entries.create(
        sample_entry(activity_kind=ActivityKind.ON_SITE, location=(4.61, -74.08), signature="blob://sig/1")
    )

    assert created.id is not None
    fetched = entries.get(created.id)
    assert fetched == created
    assert fetched.location == (4.61, -74.08)
    assert fetched.activity_kind is ActivityKind.ON_SITE
    assert fetched.approval_status is ApprovalStatus.PENDING


def test_update_changes_status_and_approver(stores):
    entries, _ = stores
    created = entries.create(sample_entry())

    updated = entries.update(created.id, {"approval_status": ApprovalStatus.APPROVED_NORMAL_ONLY, "approver_id": 50})

    assert updated.approval_status is ApprovalStatus.APPROVED_NORMAL_ONLY
    assert updated.approver_id == 50
    assert entries.get(created.id).approval_status is ApprovalStatus.APPROVED_NORMAL_ONLY


def test_update_of_missing_entry_raises_store_error(stores):
    entries, _ = stores

    with pytest.raises(StoreError):
        entries.update(404, {"approver_id": 1})


def test_update_refuses_unknown_fields(stores):
    entries, _ = stores
    created = entries.create(sample_entry())

    with pytest.raises(StoreError):
        entries.update(created.id, {"aprobado": 1})


def test_list_for_employee_orders_by_date(stores):
    entries, _ = stores
    entries.create(sample_entry(work_date=date(2024, 3, 14)))
    entries.create(sample_entry(work_date=date(2024, 3, 11)))
    entries.create(sample_entry(employee_id=8))

    listed = entries.list_for_employee(7)

    assert [e.work_date for e in listed] == [date(2024, 3, 11), date(2024, 3, 14)]


def test_list_for_coordinator_follows_client_assignment(stores):
    entries, _ = stores
    entries.register_area("C1", "Operations", coordinator_id=50)
    entries.register_area("C1", "Maintenance", coordinator_id=50)
    entries.register_area("C2", "Logistics", coordinator_id=60)
    entries.create(sample_entry())
    entries.create(sample_entry(client_key="C2", area_name="Logistics"))

    listed = entries.list_for_coordinator(50)

    assert [e.client_key for e in listed] == ["C1"]
    assert entries.client_areas() == {"C1": ["Maintenance", "Operations"], "C2": ["Logistics"]}


def test_duplicate_area_registration_is_a_store_error(stores):
    entries, _ = stores
    entries.register_area("C1", "Operations")

    with pytest.raises(StoreError):
        entries.register_area("C1", "Operations")


def test_settings_feed_the_schedule(stores):
    _, settings = stores
    settings.set("weekly_limit", 44)
    settings.set("normal_hours_end", '"18:00"')
    settings.set("weekly_limit", "40")

    schedule = ScheduleConfig.from_settings(settings.all())

    assert settings.get("weekly_limit") == "40"
    assert settings.get("missing") is None
    assert schedule.weekly_limit() == 40.0
    assert schedule.normal_end == time(18, 0)
