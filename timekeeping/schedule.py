from __future__ import annotations
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .core.logging import get_logger
from .core.observability import get_meter
from .models import parse_time

logger = get_logger(__name__)
fallback_counter = get_meter().create_counter(
    "timekeeping.schedule.fallbacks",
    description="Schedule settings resolved to their built-in default",
)

# Calendar day-of-week numbering used for window lookups.
SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)
DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

DEFAULT_NORMAL_START = time(7, 30)
DEFAULT_NORMAL_END = time(17, 30)
DEFAULT_FRIDAY_END = time(16, 30)
DEFAULT_SATURDAY_START = time(7, 30)
DEFAULT_SATURDAY_END = time(12, 0)
DEFAULT_WEEKLY_LIMIT = 42.0

TIME_SETTINGS = {
    "normal_hours_start": ("normal_start", DEFAULT_NORMAL_START),
    "normal_hours_end": ("normal_end", DEFAULT_NORMAL_END),
    "normal_hours_end_friday": ("friday_end", DEFAULT_FRIDAY_END),
    "saturday_hours_start": ("saturday_start", DEFAULT_SATURDAY_START),
    "saturday_hours_end": ("saturday_end", DEFAULT_SATURDAY_END),
}
WEEKLY_LIMIT_KEY = "weekly_limit"
DAILY_MAXIMUM_KEYS = {f"max_hours_{name}": day for day, name in enumerate(DAY_NAMES)}

Window = Tuple[time, time]


class MalformedSetting(ValueError):
    def __init__(self, key: str, value: Any) -> None:
        super().__init__(f"Setting {key!r} has unusable value {value!r}")
        self.key = key
        self.value = value


def calendar_day_of_week(work_date: date) -> int:
    """Return the day of week with Sunday as 0 and Saturday as 6."""
    return (work_date.weekday() + 1) % 7


@dataclass(frozen=True)
class ScheduleConfig:
    normal_start: time = DEFAULT_NORMAL_START
    normal_end: time = DEFAULT_NORMAL_END
    friday_end: time = DEFAULT_FRIDAY_END
    saturday_start: time = DEFAULT_SATURDAY_START
    saturday_end: time = DEFAULT_SATURDAY_END
    weekly_hours_limit: float = DEFAULT_WEEKLY_LIMIT
    daily_maximums: Tuple[Tuple[int, float], ...] = ()
    fallbacks: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        pairs = self.daily_maximums.items() if isinstance(self.daily_maximums, Mapping) else self.daily_maximums
        object.__setattr__(self, "daily_maximums", tuple(sorted((int(day), float(hours)) for day, hours in pairs)))

    def normal_window(self, day_of_week: int) -> Optional[Window]:
        if not SUNDAY <= day_of_week <= SATURDAY:
            raise ValueError(f"day_of_week must be between 0 and 6, got {day_of_week}")
        if day_of_week == SUNDAY:
            return None
        if day_of_week == SATURDAY:
            return _window(self.saturday_start, self.saturday_end)
        if day_of_week == FRIDAY:
            return _window(self.normal_start, self.friday_end)
        return _window(self.normal_start, self.normal_end)

    def window_for(self, work_date: date) -> Optional[Window]:
        return self.normal_window(calendar_day_of_week(work_date))

    def weekly_limit(self) -> float:
        return self.weekly_hours_limit

    def daily_limit(self, day_of_week: int) -> Optional[float]:
        """Maximum hours for the day, ``None`` when no ceiling is configured and ``0`` for a closed day."""
        return dict(self.daily_maximums).get(day_of_week)

    def daily_limit_for(self, work_date: date) -> Optional[float]:
        return self.daily_limit(calendar_day_of_week(work_date))

    def is_default(self, key: str) -> bool:
        return key in self.fallbacks

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> "ScheduleConfig":
        """Build a schedule from the settings store map, defaulting every absent key."""
        kwargs: Dict[str, Any] = {}
        fallbacks = set()

        for key, (attr, default) in TIME_SETTINGS.items():
            raw = _clean(values.get(key))
            if raw is None:
                _record_fallback(key, default)
                fallbacks.add(key)
                continue
            try:
                kwargs[attr] = parse_time(raw)
            except ValueError:
                raise MalformedSetting(key, values.get(key)) from None

        raw_limit = _clean(values.get(WEEKLY_LIMIT_KEY))
        if raw_limit is None:
            _record_fallback(WEEKLY_LIMIT_KEY, DEFAULT_WEEKLY_LIMIT)
            fallbacks.add(WEEKLY_LIMIT_KEY)
        else:
            kwargs["weekly_hours_limit"] = _parse_hours(WEEKLY_LIMIT_KEY, raw_limit)

        daily: Dict[int, float] = {}
        for key, day in DAILY_MAXIMUM_KEYS.items():
            raw = _clean(values.get(key))
            if raw is not None:
                daily[day] = _parse_hours(key, raw)
        kwargs["daily_maximums"] = daily

        return cls(fallbacks=frozenset(fallbacks), **kwargs)


def _window(start: time, end: time) -> Optional[Window]:
    if end <= start:
        return None
    return start, end


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().strip('"').strip()
    return text or None


def _parse_hours(key: str, raw: str) -> float:
    try:
        hours = float(raw)
    except ValueError:
        raise MalformedSetting(key, raw) from None
    if hours < 0:
        raise MalformedSetting(key, raw)
    return hours


def _record_fallback(key: str, default: Any) -> None:
    logger.debug("schedule_setting_defaulted", key=key, default=str(default))
    fallback_counter.add(1, {"key": key})
