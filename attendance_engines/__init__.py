"""
Module: attendance_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    attendance_modules.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import attendance_kernel (domain and logging).
    MUST NOT import attendance_modules or attendance_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Work dates and punch timestamps are always explicit parameters.
    - Integer minutes: all durations are truncated whole minutes.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``attendance_engines.tracer``), emitting ATTENDANCE_ENGINE_TRACE log
    records with engine name, version, input fingerprint and duration.
"""

from attendance_engines.period_summary import attendance_rate, summarize_period
from attendance_engines.punch_pairing import PunchPairProcessor
from attendance_engines.schedule_expansion import (
    break_bounds,
    build_schedule_events,
    build_shift_window,
    claims_punch,
    close_shift_window,
    core_bounds,
    expectation_bounds,
    is_cross_midnight,
    is_work_day,
    nominal_bounds,
    required_work_minutes,
)
from attendance_engines.time_calculator import (
    calculate_late,
    calculate_night_differential,
    calculate_overtime,
    calculate_undertime,
    minutes_between,
)
from attendance_engines.tracer import traced_engine

__all__ = [
    "PunchPairProcessor",
    "attendance_rate",
    "break_bounds",
    "build_schedule_events",
    "build_shift_window",
    "calculate_late",
    "calculate_night_differential",
    "calculate_overtime",
    "calculate_undertime",
    "claims_punch",
    "close_shift_window",
    "core_bounds",
    "expectation_bounds",
    "is_cross_midnight",
    "is_work_day",
    "minutes_between",
    "nominal_bounds",
    "required_work_minutes",
    "summarize_period",
    "traced_engine",
]
