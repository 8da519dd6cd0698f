from datetime import date, time

import pytest

from timekeeping.models import TimeEntry
from timekeeping.overtime import month_bounds, split_entry, split_interval, week_bounds
from timekeeping.schedule import ScheduleConfig

TUESDAY = date(2024, 3, 5)
FRIDAY = date(2024, 3, 8)
SATURDAY = date(2024, 3, 9)
SUNDAY = date(2024, 3, 10)


def test_weekday_entry_spanning_both_edges_of_the_window():
    split = split_interval(time(7, 0), time(18, 0), TUESDAY, ScheduleConfig())

    assert split.normal_hours == 10.0
    assert split.overtime_hours == 1.0
    assert split.total_hours == 11.0


def test_saturday_uses_its_own_window():
    split = split_interval(time(8, 0), time(14, 0), SATURDAY, ScheduleConfig())

    assert split.normal_hours == 4.0
    assert split.overtime_hours == 2.0


def test_friday_window_ends_early():
    split = split_interval(time(15, 0), time(18, 0), FRIDAY, ScheduleConfig())

    assert split.normal_minutes == 90
    assert split.overtime_minutes == 90


def test_sunday_is_always_overtime():
    schedule = ScheduleConfig.from_settings({"normal_hours_start": "00:00", "normal_hours_end": "23:59"})
    split = split_interval(time(9, 0), time(12, 0), SUNDAY, schedule)

    assert split.normal_minutes == 0
    assert split.overtime_minutes == 180


def test_interval_outside_window_is_all_overtime():
    split = split_interval(time(18, 0), time(21, 0), TUESDAY, ScheduleConfig())

    assert split.normal_minutes == 0
    assert split.overtime_minutes == 180


def test_end_before_start_is_read_as_crossing_midnight():
    split = split_interval(time(22, 0), time(2, 0), TUESDAY, ScheduleConfig())

    assert split.total_minutes == 240
    assert split.normal_minutes == 0
    assert split.overtime_minutes == 240


@pytest.mark.parametrize(
    "start,end,day",
    [
        (time(6, 15), time(9, 45), TUESDAY),
        (time(12, 0), time(17, 0), FRIDAY),
        (time(11, 0), time(13, 30), SATURDAY),
        (time(7, 30), time(17, 30), SUNDAY),
        (time(16, 0), time(1, 0), FRIDAY),
        (time(9, 0), time(9, 0), TUESDAY),
    ],
)
def test_split_never_loses_minutes(start, end, day):
    split = split_interval(start, end, day, ScheduleConfig())

    assert split.normal_minutes >= 0
    assert split.overtime_minutes >= 0
    assert split.normal_minutes + split.overtime_minutes == split.total_minutes


def test_entry_without_time_range_is_all_normal():
    entry = TimeEntry(employee_id=1, client_key="C1", area_name="Ops", work_date=SUNDAY, hours=3.5)

    split = split_entry(entry, ScheduleConfig())

    assert split.normal_minutes == 210
    assert split.overtime_minutes == 0


def test_week_bounds_run_monday_to_sunday():
    assert week_bounds(SUNDAY) == (date(2024, 3, 4), date(2024, 3, 10))
    assert week_bounds(date(2024, 3, 4)) == (date(2024, 3, 4), date(2024, 3, 10))


def test_month_bounds_handle_december():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2024, 12) == (date(2024, 12, 1), date(2024, 12, 31))
