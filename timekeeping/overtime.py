from __future__ import annotations
from datetime import date, time, timedelta
from typing import Tuple

from .models import OvertimeSplit, TimeEntry, minutes_of_day
from .schedule import ScheduleConfig

MINUTES_PER_DAY = 24 * 60


def split_interval(start: time, end: time, work_date: date, schedule: ScheduleConfig) -> OvertimeSplit:
    """Split a worked interval into normal and overtime minutes.

    An end before the start is read as a shift running past midnight; only the
    part of it that overlaps the work date's window counts as normal time.
    """
    start_min = minutes_of_day(start)
    total = minutes_of_day(end) - start_min
    if total < 0:
        total += MINUTES_PER_DAY

    window = schedule.window_for(work_date)
    if window is None:
        return OvertimeSplit(normal_minutes=0, overtime_minutes=total, total_minutes=total)

    win_start, win_end = (minutes_of_day(t) for t in window)
    overlap_start = max(start_min, win_start)
    overlap_end = min(start_min + total, win_end)
    normal = max(0, overlap_end - overlap_start)
    overtime = max(0, total - normal)
    return OvertimeSplit(normal_minutes=normal, overtime_minutes=overtime, total_minutes=total)


def split_entry(entry: TimeEntry, schedule: ScheduleConfig) -> OvertimeSplit:
    """Split an entry; entries recorded as a bare hour count are all normal time."""
    if entry.uses_time_range:
        return split_interval(entry.start_time, entry.end_time, entry.work_date, schedule)
    minutes = round(entry.hours * 60)
    return OvertimeSplit(normal_minutes=minutes, overtime_minutes=0, total_minutes=minutes)


def week_bounds(anchor: date) -> Tuple[date, date]:
    start = anchor - timedelta(days=anchor.weekday())
    end = start + timedelta(days=6)
    return start, end


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1) - timedelta(days=1)
    else:
        end = date(year, month + 1, 1) - timedelta(days=1)
    return start, end
