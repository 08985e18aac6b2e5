"""
Schedules -- Work schedule configuration value objects.

Responsibility:
    Typed, validated representation of a work schedule (fixed, flexible,
    shifting), its effective-dated assignment to an employee, and the
    concrete date-anchored shift window derived for one work date.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
    Parsing from YAML/JSON lives in attendance_config.loader; expansion into
    events and windows lives in attendance_engines.schedule_expansion.

Invariants enforced:
    - A fixed schedule always has start and end times.
    - A flexible schedule always has core hours or start/end times.
    - A shifting schedule has at least one named shift or start/end times.
    - work_days only contains lowercase English weekday names.
    - Break duration is never negative.

Failure modes:
    - ValueError on construction with any of the above violated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID

VALID_WORK_DAYS = frozenset({
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
})
DEFAULT_WORK_DAYS = frozenset({"monday", "tuesday", "wednesday", "thursday", "friday"})
WEEKDAY_NAMES = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


class ScheduleType(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"
    SHIFTING = "shifting"


@dataclass(frozen=True, slots=True)
class TimeRange:
    """A time-of-day range. ``end`` before ``start`` means it crosses midnight."""

    start: time
    end: time


@dataclass(frozen=True, slots=True)
class BreakConfig:
    start_time: time | None = None
    duration_minutes: int = 0

    def __post_init__(self) -> None:
        if self.duration_minutes < 0:
            raise ValueError("break duration_minutes cannot be negative")

    @property
    def generates_events(self) -> bool:
        return self.start_time is not None and self.duration_minutes > 0


@dataclass(frozen=True, slots=True)
class OvertimeRules:
    daily_threshold_hours: Decimal = Decimal("8")

    def __post_init__(self) -> None:
        if self.daily_threshold_hours < 0:
            raise ValueError("daily_threshold_hours cannot be negative")

    @property
    def threshold_minutes(self) -> int:
        return int(self.daily_threshold_hours * 60)


@dataclass(frozen=True, slots=True)
class NightDifferentialConfig:
    enabled: bool = False
    start_time: time = time(22, 0)
    end_time: time = time(6, 0)
    rate_multiplier: Decimal = Decimal("1.10")

    def __post_init__(self) -> None:
        if self.rate_multiplier < 1:
            raise ValueError("night differential rate_multiplier must be >= 1")


@dataclass(frozen=True, slots=True)
class ShiftDefinition:
    """A named shift of a shifting schedule."""

    name: str
    start_time: time
    end_time: time
    break_config: BreakConfig = field(default_factory=BreakConfig)


@dataclass(frozen=True)
class WorkScheduleConfig:
    """
    A work schedule.

    Contract:
        Describes when an employee is expected to work. The nominal shift is
        ``start_time``..``end_time`` (or a named shift for shifting
        schedules); flexible schedules judge lateness and undertime against
        ``core_hours`` instead.

    Guarantees:
        - Immutable and hashable.
        - Validated on construction (see module invariants).
    """

    schedule_type: ScheduleType = ScheduleType.FIXED
    start_time: time | None = None
    end_time: time | None = None
    work_days: frozenset[str] = DEFAULT_WORK_DAYS
    break_config: BreakConfig = field(default_factory=BreakConfig)
    core_hours: TimeRange | None = None
    flexible_window: TimeRange | None = None
    required_hours_per_day: Decimal | None = None
    overtime_rules: OvertimeRules = field(default_factory=OvertimeRules)
    night_differential: NightDifferentialConfig = field(
        default_factory=NightDifferentialConfig
    )
    shifts: tuple[ShiftDefinition, ...] = ()
    half_day_saturday: bool = False
    saturday_end_time: time | None = None
    name: str = ""
    schedule_id: UUID | None = None

    def __post_init__(self) -> None:
        has_span = self.start_time is not None and self.end_time is not None
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.schedule_type is ScheduleType.FIXED and not has_span:
            raise ValueError("fixed schedule requires start_time and end_time")
        if self.schedule_type is ScheduleType.FLEXIBLE and not (
            has_span or self.core_hours is not None
        ):
            raise ValueError("flexible schedule requires core_hours or start/end times")
        if self.schedule_type is ScheduleType.SHIFTING and not (has_span or self.shifts):
            raise ValueError("shifting schedule requires shifts or start/end times")

        unknown = set(self.work_days) - VALID_WORK_DAYS
        if unknown:
            raise ValueError(
                f"work_days must be drawn from {sorted(VALID_WORK_DAYS)}, "
                f"got {sorted(unknown)}"
            )
        if self.required_hours_per_day is not None and self.required_hours_per_day <= 0:
            raise ValueError("required_hours_per_day must be positive")

        names = [s.name for s in self.shifts]
        if len(names) != len(set(names)):
            raise ValueError("shift names must be unique")

    def shift(self, name: str | None) -> ShiftDefinition | None:
        if name is None:
            return None
        for candidate in self.shifts:
            if candidate.name == name:
                return candidate
        return None


@dataclass(frozen=True)
class ScheduleAssignment:
    """An employee's effective-dated assignment to a work schedule."""

    employee_id: UUID
    schedule: WorkScheduleConfig
    effective_date: date
    end_date: date | None = None
    shift_name: str | None = None
    assignment_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.end_date is not None and self.end_date < self.effective_date:
            raise ValueError("assignment end_date cannot precede effective_date")

    def is_active_on(self, work_date: date) -> bool:
        if self.effective_date > work_date:
            return False
        return self.end_date is None or self.end_date >= work_date


@dataclass(frozen=True)
class ResolvedSchedule:
    """The schedule (and optional shift) that applies on one work date."""

    work_date: date
    config: WorkScheduleConfig
    shift_name: str | None = None
    assignment_id: UUID | None = None

    @property
    def schedule_type(self) -> ScheduleType:
        return self.config.schedule_type

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.work_date.weekday()]


@dataclass(frozen=True, slots=True)
class ShiftWindow:
    """
    Date-anchored shift bounds plus the half-open punch capture window
    ``[capture_start, capture_end)`` owned by this work date.
    """

    work_date: date
    capture_start: datetime
    capture_end: datetime
    start: datetime | None = None
    end: datetime | None = None

    @property
    def crosses_midnight(self) -> bool:
        return self.end is not None and self.end.date() > self.work_date
