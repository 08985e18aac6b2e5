"""
Configuration Loader (``attendance_config.loader``).

Responsibility
--------------
Loads YAML files and parses work schedules, schedule assignments and DTR
settings into typed kernel/module dataclasses.  The same schedule parser
reads the JSON ``time_configuration`` columns persisted by the DTR ORM,
so a schedule has one wire shape whether it comes from a file or a row.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on kernel domain
types and ``attendance_modules.dtr.config`` only; never on engines,
services or the database.

Invariants enforced
-------------------
* Times are ``HH:MM`` or ``HH:MM:SS`` strings.  Unquoted YAML times that
  PyYAML reads as base-60 integers (``17:00`` -> ``1020``) are accepted as
  minutes past midnight.
* ``work_schedule_to_dict`` is the inverse of ``parse_work_schedule``.
* ``compute_checksum`` is deterministic for identical data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Malformed schedule  -> ``InvalidScheduleConfigError`` naming the schedule.
* Unknown or invalid DTR settings  -> ``ValueError`` from ``DtrConfig``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from attendance_kernel.domain.schedules import (
    DEFAULT_WORK_DAYS,
    BreakConfig,
    NightDifferentialConfig,
    OvertimeRules,
    ScheduleAssignment,
    ScheduleType,
    ShiftDefinition,
    TimeRange,
    WorkScheduleConfig,
)
from attendance_kernel.exceptions import InvalidScheduleConfigError
from attendance_kernel.logging_config import get_logger
from attendance_modules.dtr.config import DtrConfig

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_time(value: Any) -> time:
    """Parse a time of day from ``HH:MM[:SS]``, a time, or YAML base-60 minutes."""
    if isinstance(value, time):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse time from {value!r}")
    if isinstance(value, int):
        if not 0 <= value < 24 * 60:
            raise ValueError(f"Cannot parse time from {value!r}")
        return time(value // 60, value % 60)
    if isinstance(value, str):
        return time.fromisoformat(value.strip())
    raise ValueError(f"Cannot parse time from {value!r}")


def _optional_time(value: Any) -> time | None:
    return None if value is None else parse_time(value)


def format_time(value: time | None) -> str | None:
    if value is None:
        return None
    if value.second:
        return value.strftime("%H:%M:%S")
    return value.strftime("%H:%M")


def _parse_range(data: dict[str, Any] | None, start_key: str, end_key: str) -> TimeRange | None:
    if not data:
        return None
    return TimeRange(start=parse_time(data[start_key]), end=parse_time(data[end_key]))


def _parse_break(data: dict[str, Any] | None) -> BreakConfig:
    if not data:
        return BreakConfig()
    return BreakConfig(
        start_time=_optional_time(data.get("start_time")),
        duration_minutes=int(data.get("duration_minutes", 0)),
    )


def _parse_shift(data: dict[str, Any]) -> ShiftDefinition:
    return ShiftDefinition(
        name=data["name"],
        start_time=parse_time(data["start_time"]),
        end_time=parse_time(data["end_time"]),
        break_config=_parse_break(data.get("break")),
    )


def parse_work_schedule(data: dict[str, Any]) -> WorkScheduleConfig:
    """
    Parse a ``WorkScheduleConfig`` from a dict.

    Shape::

        name: Night Shift
        schedule_type: fixed            # fixed | flexible | shifting
        time_configuration:
          start_time: "22:00"
          end_time: "06:00"
          work_days: [monday, tuesday, wednesday, thursday, friday]
          break: {start_time: "02:00", duration_minutes: 60}
          core_hours: {start_time: "10:00", end_time: "15:00"}
          flexible_start_window: {earliest: "06:00", latest: "10:00"}
          required_hours_per_day: 8
          shifts: [{name: A, start_time: "06:00", end_time: "14:00"}]
          half_day_saturday: false
          saturday_end_time: "12:00"
        overtime_rules: {daily_threshold_hours: 8}
        night_differential: {enabled: true, start_time: "22:00",
                             end_time: "06:00", rate_multiplier: 1.10}

    Raises:
        InvalidScheduleConfigError: on any missing or invalid field.
    """
    name = data.get("name")
    try:
        tc = data.get("time_configuration") or {}
        ot = data.get("overtime_rules") or {}
        nd = data.get("night_differential") or {}

        required = tc.get("required_hours_per_day")
        schedule_id = data.get("schedule_id") or data.get("id")

        night = NightDifferentialConfig(
            enabled=bool(nd.get("enabled", False)),
            start_time=parse_time(nd.get("start_time", "22:00")),
            end_time=parse_time(nd.get("end_time", "06:00")),
            rate_multiplier=Decimal(str(nd.get("rate_multiplier", "1.10"))),
        )
        return WorkScheduleConfig(
            schedule_type=ScheduleType(data.get("schedule_type", "fixed")),
            start_time=_optional_time(tc.get("start_time")),
            end_time=_optional_time(tc.get("end_time")),
            work_days=frozenset(
                str(d).lower() for d in tc.get("work_days", DEFAULT_WORK_DAYS)
            ),
            break_config=_parse_break(tc.get("break")),
            core_hours=_parse_range(tc.get("core_hours"), "start_time", "end_time"),
            flexible_window=_parse_range(
                tc.get("flexible_start_window"), "earliest", "latest",
            ),
            required_hours_per_day=Decimal(str(required)) if required is not None else None,
            overtime_rules=OvertimeRules(
                daily_threshold_hours=Decimal(str(ot.get("daily_threshold_hours", "8"))),
            ),
            night_differential=night,
            shifts=tuple(_parse_shift(s) for s in tc.get("shifts", ())),
            half_day_saturday=bool(tc.get("half_day_saturday", False)),
            saturday_end_time=_optional_time(tc.get("saturday_end_time")),
            name=name or "",
            schedule_id=UUID(str(schedule_id)) if schedule_id else None,
        )
    except (KeyError, ValueError, TypeError, ArithmeticError, AttributeError) as exc:
        raise InvalidScheduleConfigError(name, f"{type(exc).__name__}: {exc}") from exc


def _break_to_dict(brk: BreakConfig) -> dict[str, Any]:
    return {
        "start_time": format_time(brk.start_time),
        "duration_minutes": brk.duration_minutes,
    }


def work_schedule_to_dict(config: WorkScheduleConfig) -> dict[str, Any]:
    """Serialize a schedule to the shape ``parse_work_schedule`` reads."""
    tc: dict[str, Any] = {
        "start_time": format_time(config.start_time),
        "end_time": format_time(config.end_time),
        "work_days": sorted(config.work_days),
        "break": _break_to_dict(config.break_config),
        "half_day_saturday": config.half_day_saturday,
        "saturday_end_time": format_time(config.saturday_end_time),
        "shifts": [
            {
                "name": s.name,
                "start_time": format_time(s.start_time),
                "end_time": format_time(s.end_time),
                "break": _break_to_dict(s.break_config),
            }
            for s in config.shifts
        ],
    }
    if config.core_hours is not None:
        tc["core_hours"] = {
            "start_time": format_time(config.core_hours.start),
            "end_time": format_time(config.core_hours.end),
        }
    if config.flexible_window is not None:
        tc["flexible_start_window"] = {
            "earliest": format_time(config.flexible_window.start),
            "latest": format_time(config.flexible_window.end),
        }
    if config.required_hours_per_day is not None:
        tc["required_hours_per_day"] = str(config.required_hours_per_day)

    nd = config.night_differential
    return {
        "name": config.name,
        "schedule_id": str(config.schedule_id) if config.schedule_id else None,
        "schedule_type": config.schedule_type.value,
        "time_configuration": tc,
        "overtime_rules": {
            "daily_threshold_hours": str(config.overtime_rules.daily_threshold_hours),
        },
        "night_differential": {
            "enabled": nd.enabled,
            "start_time": format_time(nd.start_time),
            "end_time": format_time(nd.end_time),
            "rate_multiplier": str(nd.rate_multiplier),
        },
    }


def parse_schedule_assignment(
    data: dict[str, Any],
    schedules: dict[str, WorkScheduleConfig],
) -> ScheduleAssignment:
    """
    Parse a ``ScheduleAssignment`` referencing a schedule by name.

    Raises:
        KeyError: if the referenced schedule is not defined.
        ValueError: if dates or ids cannot be parsed.
    """
    schedule_name = data["schedule"]
    if schedule_name not in schedules:
        raise KeyError(f"Assignment references unknown schedule {schedule_name!r}")
    assignment_id = data.get("assignment_id")
    return ScheduleAssignment(
        employee_id=UUID(str(data["employee_id"])),
        schedule=schedules[schedule_name],
        effective_date=parse_date(data["effective_date"]),
        end_date=parse_date(data["end_date"]) if data.get("end_date") else None,
        shift_name=data.get("shift_name"),
        assignment_id=UUID(str(assignment_id)) if assignment_id else None,
    )


def load_work_schedules(path: Path) -> dict[str, WorkScheduleConfig]:
    """Load the ``schedules`` list of a YAML file, keyed by schedule name."""
    data = load_yaml_file(path)
    schedules: dict[str, WorkScheduleConfig] = {}
    for item in data.get("schedules", []):
        config = parse_work_schedule(item)
        if config.name in schedules:
            raise InvalidScheduleConfigError(config.name, "duplicate schedule name")
        schedules[config.name] = config
    logger.info("work_schedules_loaded", extra={
        "path": str(path),
        "schedule_count": len(schedules),
        "checksum": compute_checksum(data.get("schedules", [])),
    })
    return schedules


def load_schedule_assignments(path: Path) -> list[ScheduleAssignment]:
    """Load ``assignments`` resolved against the ``schedules`` of the same file."""
    data = load_yaml_file(path)
    schedules = load_work_schedules(path)
    assignments = [
        parse_schedule_assignment(item, schedules)
        for item in data.get("assignments", [])
    ]
    logger.info("schedule_assignments_loaded", extra={
        "path": str(path),
        "assignment_count": len(assignments),
    })
    return assignments


def load_dtr_config(path: Path) -> DtrConfig:
    """Load DTR settings from the ``dtr`` mapping of a YAML file."""
    data = load_yaml_file(path)
    return DtrConfig.from_dict(dict(data.get("dtr") or {}))


def compute_checksum(data: Any) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
