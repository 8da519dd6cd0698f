from .aggregation import Summary, StatusTotals, day_status, summarize
from .approval import ApprovalStateMachine, BulkReport, IllegalTransition, TransitionResult
from .models import ActivityKind, ApprovalStatus, OvertimeSplit, TimeEntry
from .overtime import split_entry, split_interval, week_bounds
from .schedule import ScheduleConfig
from .validation import EntryValidator, ValidationFailure, ValidationResult

__all__ = [
    "ActivityKind",
    "ApprovalStateMachine",
    "ApprovalStatus",
    "BulkReport",
    "EntryValidator",
    "IllegalTransition",
    "OvertimeSplit",
    "ScheduleConfig",
    "StatusTotals",
    "Summary",
    "TimeEntry",
    "TransitionResult",
    "ValidationFailure",
    "ValidationResult",
    "day_status",
    "split_entry",
    "split_interval",
    "summarize",
    "week_bounds",
]
