"""
attendance_engines.time_calculator -- Late, undertime, overtime and night-differential minutes.

Responsibility:
    Derive the four DTR deviation metrics from a day's first IN, last OUT,
    worked periods and resolved schedule.

Architecture position:
    Engines -- pure calculation layer, ZERO I/O.
    Schedule anchoring is delegated to attendance_engines.schedule_expansion.

Invariants enforced:
    - Every function returns a non-negative integer number of minutes.
    - Fractional minutes are truncated, never rounded, so a partial minute
      is never credited or charged.
    - Exactly on time is zero deviation.
    - Flexible schedules are judged against core hours for late/undertime.
      Without core hours, undertime is the shortfall of worked minutes
      against the required minutes.
    - Overtime is credited only when total work exceeds the daily
      threshold, and then equals minutes past the scheduled end.

Failure modes:
    - Missing inputs (no first IN, no last OUT, no schedule bounds) yield 0
      rather than an error.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from attendance_engines.schedule_expansion import (
    expectation_bounds,
    nominal_bounds,
    required_work_minutes,
    time_on_date,
)
from attendance_engines.tracer import traced_engine
from attendance_kernel.domain.schedules import (
    NightDifferentialConfig,
    ResolvedSchedule,
    ScheduleType,
)

_ONE_MINUTE = timedelta(minutes=1)
_ONE_DAY = timedelta(days=1)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, clamped at zero."""
    if end <= start:
        return 0
    return (end - start) // _ONE_MINUTE


@traced_engine("late", "1.0", fingerprint_fields=("first_in", "schedule"))
def calculate_late(first_in: datetime | None, schedule: ResolvedSchedule | None) -> int:
    """Minutes the first IN falls after the expected start."""
    if first_in is None or schedule is None:
        return 0
    bounds = expectation_bounds(schedule)
    if bounds is None:
        return 0
    return minutes_between(bounds[0], first_in)


@traced_engine(
    "undertime", "1.0",
    fingerprint_fields=("last_out", "schedule", "total_work_minutes"),
)
def calculate_undertime(
    last_out: datetime | None,
    schedule: ResolvedSchedule | None,
    total_work_minutes: int | None = None,
) -> int:
    """Minutes the last OUT falls before the expected end.

    A flexible schedule without core hours has no fixed end to leave
    before; given the day's worked minutes, its undertime is the shortfall
    against the required minutes instead.
    """
    if last_out is None or schedule is None:
        return 0
    if (
        total_work_minutes is not None
        and schedule.schedule_type is ScheduleType.FLEXIBLE
        and schedule.config.core_hours is None
    ):
        return max(0, required_work_minutes(schedule) - total_work_minutes)
    bounds = expectation_bounds(schedule)
    if bounds is None:
        return 0
    return minutes_between(last_out, bounds[1])


@traced_engine(
    "overtime", "1.0",
    fingerprint_fields=("last_out", "total_work_minutes", "schedule"),
)
def calculate_overtime(
    last_out: datetime | None,
    total_work_minutes: int,
    schedule: ResolvedSchedule | None,
) -> int:
    """Minutes past the scheduled end, credited only above the daily threshold.

    Working past the scheduled end without exceeding the threshold yields 0.
    """
    if last_out is None or schedule is None:
        return 0
    threshold = schedule.config.overtime_rules.threshold_minutes
    if total_work_minutes <= threshold:
        return 0
    bounds = nominal_bounds(schedule)
    if bounds is None:
        return 0
    return minutes_between(bounds[1], last_out)


def night_windows(
    config: NightDifferentialConfig,
    anchor: date,
) -> tuple[tuple[datetime, datetime], tuple[datetime, datetime]]:
    """The ND window starting on ``anchor`` and the one starting the day before."""

    def window(day: date) -> tuple[datetime, datetime]:
        start = time_on_date(config.start_time, day)
        end = time_on_date(config.end_time, day)
        if end <= start:
            end += _ONE_DAY
        return start, end

    return window(anchor), window(anchor - _ONE_DAY)


def _overlap_minutes(
    period: tuple[datetime, datetime],
    window: tuple[datetime, datetime],
) -> int:
    return minutes_between(max(period[0], window[0]), min(period[1], window[1]))


@traced_engine("night_differential", "1.0", fingerprint_fields=("work_periods", "schedule"))
def calculate_night_differential(
    work_periods: Iterable[tuple[datetime, datetime]],
    schedule: ResolvedSchedule | None,
) -> int:
    """Minutes of work inside the nightly ND window, summed over periods.

    Each period is clipped against the window anchored on its IN date and
    against the previous day's window, which covers a period that starts
    after midnight inside a window that opened the evening before.
    """
    if schedule is None:
        return 0
    config = schedule.config.night_differential
    if not config.enabled:
        return 0

    total = 0
    for period in work_periods:
        if period[1] <= period[0]:
            continue
        covered: set[tuple[datetime, datetime]] = set()
        day = period[0].date()
        # a period spanning several nights touches one window per day
        while datetime.combine(day, datetime.min.time()) < period[1]:
            for window in night_windows(config, day):
                if window not in covered:
                    covered.add(window)
                    total += _overlap_minutes(period, window)
            day += _ONE_DAY
    return total
