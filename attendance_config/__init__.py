"""
attendance_config -- YAML configuration for attendance computation.

Responsibility:
    Parses work schedules, schedule assignments and DTR settings from YAML
    files into typed dataclasses.  The ORM reuses the same schedule parser
    for its JSON columns.

Architecture position:
    Configuration -- sits above ``attendance_kernel`` and beside
    ``attendance_modules``.  The kernel MUST NEVER import from
    ``attendance_config``.
"""

from attendance_config.loader import (
    compute_checksum,
    load_dtr_config,
    load_schedule_assignments,
    load_work_schedules,
    load_yaml_file,
    parse_schedule_assignment,
    parse_work_schedule,
    work_schedule_to_dict,
)

__all__ = [
    "compute_checksum",
    "load_dtr_config",
    "load_schedule_assignments",
    "load_work_schedules",
    "load_yaml_file",
    "parse_schedule_assignment",
    "parse_work_schedule",
    "work_schedule_to_dict",
]
