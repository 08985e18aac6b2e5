"""
Punches -- Immutable attendance punch value objects.

Responsibility:
    Provides the types that flow through punch processing: the raw device
    punch, the schedule event it may be matched to, the labeled punch that
    leaves matching, and the in/out pairs built from labeled punches.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.
    Imported by attendance_engines and attendance_modules. No outward
    dependencies.

Invariants enforced:
    - Direction is a closed enum (IN / OUT / UNKNOWN); device vocabularies
      are normalized once, at the boundary, by normalize_direction().
    - A LabeledPunch is never UNKNOWN: labeling always assigns IN or OUT.
    - A PunchPair's out, when present, is never before its in.

Failure modes:
    - ValueError on construction of a LabeledPunch with UNKNOWN direction.
    - ValueError on construction of a PunchPair whose out precedes its in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

_ONE_MINUTE = timedelta(minutes=1)


class Direction(str, Enum):
    """Punch direction. UNKNOWN means the device did not tag it."""

    IN = "in"
    OUT = "out"
    UNKNOWN = "unknown"

    @property
    def is_known(self) -> bool:
        return self is not Direction.UNKNOWN


_IN_ALIASES = frozenset({
    "in", "entry", "check-in", "checkin", "1",
    "break_in", "breakin", "break-in", "lunch_in", "lunchin", "4",
})
_OUT_ALIASES = frozenset({
    "out", "exit", "check-out", "checkout", "2",
    "break_out", "breakout", "break-out", "lunch_out", "lunchout", "3",
})


def normalize_direction(raw: Any) -> Direction:
    """Map a device direction tag to a Direction.

    Break/lunch tags collapse onto IN/OUT: leaving for a break is an OUT,
    returning is an IN. Anything unrecognized (including None) is UNKNOWN.
    """
    if isinstance(raw, Direction):
        return raw
    if raw is None:
        return Direction.UNKNOWN
    value = str(raw).strip().lower()
    if value in _IN_ALIASES:
        return Direction.IN
    if value in _OUT_ALIASES:
        return Direction.OUT
    return Direction.UNKNOWN


class EventKind(str, Enum):
    """Kind of scheduled event within a shift."""

    SHIFT_START = "shift_start"
    BREAK_OUT = "break_out"
    BREAK_IN = "break_in"
    SHIFT_END = "shift_end"


@dataclass(frozen=True, slots=True)
class RawPunch:
    """A single attendance scan as delivered by the punch feed."""

    timestamp: datetime
    direction: Direction = Direction.UNKNOWN
    source_id: str | None = None
    punch_id: UUID | None = None

    @classmethod
    def from_device(
        cls,
        timestamp: datetime,
        raw_direction: Any = None,
        source_id: str | None = None,
        punch_id: UUID | None = None,
    ) -> RawPunch:
        """Build a punch from an untyped device direction tag."""
        return cls(
            timestamp=timestamp,
            direction=normalize_direction(raw_direction),
            source_id=source_id,
            punch_id=punch_id,
        )

    @property
    def has_direction(self) -> bool:
        return self.direction.is_known


@dataclass(frozen=True, slots=True)
class ScheduleEvent:
    """An expected punch generated from a work schedule for one work date."""

    timestamp: datetime
    expected_direction: Direction
    kind: EventKind

    def __post_init__(self) -> None:
        if not self.expected_direction.is_known:
            raise ValueError("ScheduleEvent expected_direction must be IN or OUT")


@dataclass(frozen=True, slots=True)
class LabeledPunch:
    """A raw punch with an assigned direction and the event it matched."""

    punch: RawPunch
    direction: Direction
    matched_event: ScheduleEvent | None = None

    def __post_init__(self) -> None:
        if not self.direction.is_known:
            raise ValueError("LabeledPunch direction must be IN or OUT")

    @property
    def timestamp(self) -> datetime:
        return self.punch.timestamp


@dataclass(frozen=True, slots=True)
class PunchPair:
    """A work period: an IN punch and, when closed, its OUT punch."""

    time_in: LabeledPunch
    time_out: LabeledPunch | None = None

    def __post_init__(self) -> None:
        if self.time_out is not None and self.time_out.timestamp < self.time_in.timestamp:
            raise ValueError("PunchPair out cannot precede in")

    @property
    def is_complete(self) -> bool:
        return self.time_out is not None

    @property
    def worked_minutes(self) -> int:
        """Whole minutes between in and out. Open pairs count as zero."""
        if self.time_out is None:
            return 0
        return (self.time_out.timestamp - self.time_in.timestamp) // _ONE_MINUTE


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of matching punches to schedule events."""

    logs: tuple[LabeledPunch, ...]
    dropped: tuple[RawPunch, ...] = ()

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)


@dataclass(frozen=True)
class ProcessedPunches:
    """
    Cleaned, labeled and paired punches for one work date.

    ``pairs`` never contains an open pair other than the last one, and
    ``record_punches`` alternates IN/OUT starting with IN.  The one
    exception is a day whose only surviving punch is an OUT with no IN
    anywhere before or after it: that punch is kept as ``unpaired_out``,
    ``pairs`` is empty, and it still counts as the day's last OUT.
    """

    labeled: tuple[LabeledPunch, ...]
    pairs: tuple[PunchPair, ...]
    dropped: tuple[RawPunch, ...] = ()
    superseded: tuple[LabeledPunch, ...] = ()
    collapsed_count: int = 0
    unpaired_out: LabeledPunch | None = None

    def __post_init__(self) -> None:
        if self.unpaired_out is not None and self.pairs:
            raise ValueError("unpaired_out is only kept when nothing was paired")

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    @property
    def complete_pairs(self) -> tuple[PunchPair, ...]:
        return tuple(p for p in self.pairs if p.is_complete)

    @property
    def has_open_pair(self) -> bool:
        return bool(self.pairs) and not self.pairs[-1].is_complete

    @property
    def missing_time_in(self) -> bool:
        return self.unpaired_out is not None

    @property
    def first_in(self) -> datetime | None:
        if not self.pairs:
            return None
        return self.pairs[0].time_in.timestamp

    @property
    def last_out(self) -> datetime | None:
        for pair in reversed(self.pairs):
            if pair.time_out is not None:
                return pair.time_out.timestamp
        if self.unpaired_out is not None:
            return self.unpaired_out.timestamp
        return None

    @property
    def total_work_minutes(self) -> int:
        return sum(p.worked_minutes for p in self.pairs)

    @property
    def break_minutes(self) -> int:
        """Whole minutes between the out of one pair and the in of the next."""
        total = 0
        for current, following in zip(self.pairs, self.pairs[1:]):
            if current.time_out is not None:
                gap = following.time_in.timestamp - current.time_out.timestamp
                total += max(0, gap // _ONE_MINUTE)
        return total

    @property
    def record_punches(self) -> tuple[LabeledPunch, ...]:
        """Surviving punches in timestamp order, alternating IN/OUT."""
        if self.unpaired_out is not None:
            return (self.unpaired_out,)
        result: list[LabeledPunch] = []
        for pair in self.pairs:
            result.append(pair.time_in)
            if pair.time_out is not None:
                result.append(pair.time_out)
        return tuple(result)

    @property
    def work_periods(self) -> tuple[tuple[datetime, datetime], ...]:
        return tuple(
            (p.time_in.timestamp, p.time_out.timestamp)
            for p in self.complete_pairs
        )
