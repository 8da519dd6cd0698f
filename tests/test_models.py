from datetime import date, time

import pytest

from timekeeping.models import ApprovalStatus, OvertimeSplit, TimeEntry, parse_time


def test_legacy_status_codes_round_trip_to_enum():
    assert ApprovalStatus.from_code(None) is ApprovalStatus.PENDING
    assert ApprovalStatus.from_code(0) is ApprovalStatus.PENDING
    assert ApprovalStatus.from_code(1) is ApprovalStatus.APPROVED
    assert ApprovalStatus.from_code(2) is ApprovalStatus.REJECTED
    assert ApprovalStatus.from_code(3) is ApprovalStatus.APPROVED_NORMAL_ONLY
    assert ApprovalStatus.APPROVED_NORMAL_ONLY.code == 3


def test_unknown_status_code_is_refused():
    with pytest.raises(ValueError):
        ApprovalStatus.from_code(7)


def test_derived_hours_use_time_range_when_present():
    entry = TimeEntry(
        employee_id=1,
        client_key="C1",
        area_name="Ops",
        work_date=date(2024, 3, 5),
        hours=99,
        start_time=time(8, 0),
        end_time=time(12, 20),
    )

    assert entry.uses_time_range
    assert entry.derived_hours() == 4.33


def test_derived_hours_fall_back_to_supplied_hours():
    entry = TimeEntry(employee_id=1, client_key="C1", area_name="Ops", work_date=date(2024, 3, 5), hours=2.5)

    assert not entry.uses_time_range
    assert entry.derived_hours() == 2.5


def test_overtime_split_rounds_hours_at_the_boundary():
    split = OvertimeSplit(normal_minutes=100, overtime_minutes=20, total_minutes=120)

    assert split.normal_hours == 1.67
    assert split.overtime_hours == 0.33
    assert split.total_hours == 2.0


def test_parse_time_strips_json_quotes():
    assert parse_time('"07:30"') == time(7, 30)
    assert parse_time(" 16:45:00 ") == time(16, 45)


@pytest.mark.parametrize("value", ["7h30", "", "25:00", "ab:cd"])
def test_parse_time_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        parse_time(value)
