"""
Pure domain layer.

This module contains immutable value objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock
- I/O
"""

from attendance_kernel.domain.punches import (
    Direction,
    EventKind,
    LabeledPunch,
    MatchResult,
    ProcessedPunches,
    PunchPair,
    RawPunch,
    ScheduleEvent,
    normalize_direction,
)
from attendance_kernel.domain.records import (
    DailyTimeRecord,
    DtrPeriodSummary,
    DtrStatus,
)
from attendance_kernel.domain.schedules import (
    BreakConfig,
    NightDifferentialConfig,
    OvertimeRules,
    ResolvedSchedule,
    ScheduleAssignment,
    ScheduleType,
    ShiftDefinition,
    ShiftWindow,
    TimeRange,
    WorkScheduleConfig,
)

__all__ = [
    "BreakConfig",
    "DailyTimeRecord",
    "Direction",
    "DtrPeriodSummary",
    "DtrStatus",
    "EventKind",
    "LabeledPunch",
    "MatchResult",
    "NightDifferentialConfig",
    "OvertimeRules",
    "ProcessedPunches",
    "PunchPair",
    "RawPunch",
    "ResolvedSchedule",
    "ScheduleAssignment",
    "ScheduleEvent",
    "ScheduleType",
    "ShiftDefinition",
    "ShiftWindow",
    "TimeRange",
    "WorkScheduleConfig",
    "normalize_direction",
]
