"""
Schedule Expansion Engine -- date-anchoring of work schedules.

Responsibility:
    Turn a ResolvedSchedule (schedule config + work date + optional shift)
    into concrete datetimes: nominal shift bounds, flexible core bounds,
    the ordered ScheduleEvents used for punch matching, and the ShiftWindow
    that decides which punches belong to which work date.

Architecture position:
    Engines -- pure calculation layer, ZERO I/O.
    Called by attendance_modules.dtr.schedule_resolver and by the time
    calculators.

Invariants enforced:
    - Cross-midnight: when a shift's end time is not after its start time,
      the end (and any break falling after midnight) is anchored to the
      following calendar date.
    - Break events are generated only when the break has a start time and
      a positive duration, and only when the whole break falls inside the
      shift; otherwise the shift expands to two events.
    - Capture windows are half-open ``[capture_start, capture_end)`` and
      consecutive work dates never overlap, so a punch is claimed by at most
      one work date.
    - An overnight window never reaches past the midpoint between its
      shift end and the next date's shift start, and stops at midnight
      once a closing punch near the scheduled end has been seen.

Failure modes:
    - ValueError from build_shift_window if the previous window does not
      belong to the preceding calendar date.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime, time, timedelta

from attendance_kernel.domain.punches import (
    Direction,
    EventKind,
    RawPunch,
    ScheduleEvent,
)
from attendance_kernel.domain.schedules import (
    BreakConfig,
    ResolvedSchedule,
    ScheduleType,
    ShiftWindow,
)

_ONE_DAY = timedelta(days=1)
_JUST_AFTER = timedelta(microseconds=1)
HALF_DAY_SATURDAY_MINUTES = 240
DEFAULT_REQUIRED_MINUTES = 480


# ---------------------------------------------------------------------------
# Anchoring helpers
# ---------------------------------------------------------------------------


def time_on_date(value: time, work_date: date) -> datetime:
    return datetime.combine(work_date, value)


def _span(start: time, end: time, work_date: date) -> tuple[datetime, datetime]:
    start_dt = time_on_date(start, work_date)
    end_dt = time_on_date(end, work_date)
    if end_dt <= start_dt:
        end_dt += _ONE_DAY
    return start_dt, end_dt


def _shift_times(resolved: ResolvedSchedule) -> tuple[time, time] | None:
    """Start/end time of day: named shift, then schedule span, then core hours."""
    config = resolved.config
    shift = config.shift(resolved.shift_name)
    if shift is not None:
        return shift.start_time, shift.end_time
    if config.start_time is not None and config.end_time is not None:
        return config.start_time, config.end_time
    if config.core_hours is not None:
        return config.core_hours.start, config.core_hours.end
    return None


def is_half_day_saturday(resolved: ResolvedSchedule) -> bool:
    return resolved.weekday_name == "saturday" and resolved.config.half_day_saturday


def nominal_bounds(resolved: ResolvedSchedule) -> tuple[datetime, datetime] | None:
    """Scheduled start and end for the work date, end possibly on date + 1."""
    times = _shift_times(resolved)
    if times is None:
        return None
    start, end = _span(times[0], times[1], resolved.work_date)

    saturday_end = resolved.config.saturday_end_time
    if is_half_day_saturday(resolved) and saturday_end is not None:
        end = time_on_date(saturday_end, resolved.work_date)
        if end <= start:
            end += _ONE_DAY
    return start, end


def core_bounds(resolved: ResolvedSchedule) -> tuple[datetime, datetime] | None:
    core = resolved.config.core_hours
    if core is None:
        return None
    return _span(core.start, core.end, resolved.work_date)


def expectation_bounds(resolved: ResolvedSchedule) -> tuple[datetime, datetime] | None:
    """Bounds that lateness and undertime are judged against.

    Flexible schedules use core hours; everything else uses the nominal shift.
    """
    if resolved.schedule_type is ScheduleType.FLEXIBLE:
        bounds = core_bounds(resolved)
        if bounds is not None:
            return bounds
    return nominal_bounds(resolved)


def is_cross_midnight(resolved: ResolvedSchedule) -> bool:
    bounds = nominal_bounds(resolved)
    return bounds is not None and bounds[1].date() > resolved.work_date


def is_work_day(resolved: ResolvedSchedule) -> bool:
    """Shifting schedules are rostered every day; others follow work_days."""
    if resolved.schedule_type is ScheduleType.SHIFTING:
        return True
    return resolved.weekday_name in resolved.config.work_days


def break_config_for(resolved: ResolvedSchedule) -> BreakConfig:
    shift = resolved.config.shift(resolved.shift_name)
    if shift is not None:
        return shift.break_config
    return resolved.config.break_config


def required_work_minutes(resolved: ResolvedSchedule) -> int:
    """Minutes of work expected on the work date."""
    if is_half_day_saturday(resolved):
        return HALF_DAY_SATURDAY_MINUTES
    config = resolved.config
    if config.required_hours_per_day is not None:
        return int(config.required_hours_per_day * 60)
    bounds = nominal_bounds(resolved)
    if bounds is None:
        return DEFAULT_REQUIRED_MINUTES
    span = (bounds[1] - bounds[0]) // timedelta(minutes=1)
    return max(0, span - break_config_for(resolved).duration_minutes)


def break_bounds(resolved: ResolvedSchedule) -> tuple[datetime, datetime] | None:
    """Scheduled break start/end when it lies strictly inside the shift."""
    brk = break_config_for(resolved)
    bounds = nominal_bounds(resolved)
    if not brk.generates_events or bounds is None:
        return None
    start, end = bounds
    break_start = time_on_date(brk.start_time, resolved.work_date)
    if break_start < start:
        break_start += _ONE_DAY
    break_end = break_start + timedelta(minutes=brk.duration_minutes)
    if not (start < break_start and break_end < end):
        return None
    return break_start, break_end


# ---------------------------------------------------------------------------
# Schedule events
# ---------------------------------------------------------------------------


def build_schedule_events(resolved: ResolvedSchedule) -> tuple[ScheduleEvent, ...]:
    """Ordered expected punches for the work date.

    Flexible schedules expose their core-hours boundaries as the shift
    start/end events.
    """
    bounds = expectation_bounds(resolved)
    if bounds is None:
        return ()
    start, end = bounds

    events = [
        ScheduleEvent(start, Direction.IN, EventKind.SHIFT_START),
        ScheduleEvent(end, Direction.OUT, EventKind.SHIFT_END),
    ]
    brk = break_bounds(resolved)
    if brk is not None and start < brk[0] and brk[1] < end:
        events.append(ScheduleEvent(brk[0], Direction.OUT, EventKind.BREAK_OUT))
        events.append(ScheduleEvent(brk[1], Direction.IN, EventKind.BREAK_IN))

    return tuple(sorted(events, key=lambda e: e.timestamp))


# ---------------------------------------------------------------------------
# Capture windows
# ---------------------------------------------------------------------------


def build_shift_window(
    work_date: date,
    resolved: ResolvedSchedule | None,
    previous: ShiftWindow | None = None,
    *,
    overnight_grace_minutes: int = 120,
    next_start: datetime | None = None,
) -> ShiftWindow:
    """Punch capture window owned by ``work_date``.

    The window opens at midnight, or later when the previous date's
    cross-midnight shift still owns the early hours. It closes at the next
    midnight, or, for a cross-midnight shift, at the shift end plus the
    overnight grace.

    ``next_start`` is the following date's own shift start. When it comes
    before the overnight grace runs out, the two shifts split the gap
    between this end and that start at its midpoint, so a clock-out just
    after the night shift stays here and an early arrival for the next
    shift goes there.
    """
    if previous is not None and previous.work_date != work_date - _ONE_DAY:
        raise ValueError(
            f"previous window is for {previous.work_date}, expected {work_date - _ONE_DAY}"
        )

    day_start = datetime.combine(work_date, time.min)
    next_day = day_start + _ONE_DAY

    capture_start = day_start
    if previous is not None:
        capture_start = max(capture_start, previous.capture_end)

    bounds = nominal_bounds(resolved) if resolved is not None else None
    if bounds is None:
        return ShiftWindow(
            work_date=work_date,
            capture_start=capture_start,
            capture_end=max(next_day, capture_start),
        )

    start, end = bounds
    capture_end = next_day
    if end.date() > work_date:
        capture_end = end + timedelta(minutes=overnight_grace_minutes)
        if next_start is not None and next_start < capture_end:
            capture_end = max(next_day, min(next_start, end + (next_start - end) / 2))

    return ShiftWindow(
        work_date=work_date,
        capture_start=capture_start,
        capture_end=max(capture_end, capture_start),
        start=start,
        end=end,
    )


def claims_punch(window: ShiftWindow, punch: RawPunch) -> bool:
    """True when the punch falls inside the window's half-open capture range."""
    return window.capture_start <= punch.timestamp < window.capture_end


def close_shift_window(
    window: ShiftWindow,
    punches: Iterable[RawPunch],
    *,
    closing_tolerance_minutes: int,
    arrival_tolerance_minutes: int,
    rescan_minutes: int = 0,
) -> ShiftWindow:
    """Stop a cross-midnight window at the punch that closes its shift.

    An overnight shift keeps claiming next-day punches only while it is
    open. It is closed by a punch that is not tagged IN, lies at most
    ``closing_tolerance_minutes`` before the scheduled end, and follows an
    arrival punch (one no earlier than the shift start minus
    ``arrival_tolerance_minutes``). The window then ends just after the
    closing punch and any re-scan of it, but never before midnight.
    """
    if not window.crosses_midnight:
        return window

    owned = sorted(
        (p for p in punches if claims_punch(window, p)),
        key=lambda p: p.timestamp,
    )
    opened = window.start - timedelta(minutes=arrival_tolerance_minutes)
    arrival = next((p.timestamp for p in owned if p.timestamp >= opened), None)
    if arrival is None:
        return window

    earliest = window.end - timedelta(minutes=closing_tolerance_minutes)
    closing = [
        p.timestamp for p in owned
        if p.timestamp > arrival
        and p.direction is not Direction.IN
        and earliest <= p.timestamp <= window.end
    ]
    if not closing:
        return window

    midnight = datetime.combine(window.work_date + _ONE_DAY, time.min)
    cutoff = closing[-1] + timedelta(minutes=rescan_minutes) + _JUST_AFTER
    capture_end = min(window.capture_end, max(midnight, cutoff))
    return replace(window, capture_end=max(capture_end, window.capture_start))
