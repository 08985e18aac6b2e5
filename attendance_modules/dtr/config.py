"""
DTR Configuration Schema.

Defines the tunables of Daily Time Record computation and their defaults.
Actual values are loaded from tenant configuration at runtime
(see attendance_config.loader.load_dtr_config).
"""

from dataclasses import dataclass, fields
from typing import Self

from attendance_kernel.logging_config import get_logger

logger = get_logger("modules.dtr.config")


@dataclass
class DtrConfig:
    """
    Configuration schema for DTR computation.

    Override at instantiation with tenant-specific values:

        config = DtrConfig(
            duplicate_scan_threshold_minutes=3,
            **load_from_database("dtr_settings"),
        )
    """

    # Punch cleaning
    duplicate_scan_threshold_minutes: int = 2
    match_tolerance_minutes: int = 90

    # Cross-midnight claiming: an overnight shift owns next-day punches
    # until its scheduled end plus this grace
    overnight_grace_minutes: int = 120
    # A punch this close before the scheduled end closes an overnight
    # shift; later next-day punches are no longer its to claim
    closing_punch_tolerance_minutes: int = 30

    # Unpunched meal break
    deduct_mandatory_break: bool = True
    long_shift_break_threshold_minutes: int = 300

    def __post_init__(self):
        if self.duplicate_scan_threshold_minutes < 0:
            raise ValueError("duplicate_scan_threshold_minutes cannot be negative")
        if self.duplicate_scan_threshold_minutes > 60:
            raise ValueError("duplicate_scan_threshold_minutes cannot exceed 60")
        if self.match_tolerance_minutes <= 0:
            raise ValueError("match_tolerance_minutes must be positive")
        if self.overnight_grace_minutes < 0:
            raise ValueError("overnight_grace_minutes cannot be negative")
        if self.overnight_grace_minutes >= 24 * 60:
            raise ValueError("overnight_grace_minutes must be less than a day")
        if self.closing_punch_tolerance_minutes < 0:
            raise ValueError("closing_punch_tolerance_minutes cannot be negative")
        if self.long_shift_break_threshold_minutes <= 0:
            raise ValueError("long_shift_break_threshold_minutes must be positive")

        logger.info(
            "dtr_config_initialized",
            extra={
                "duplicate_scan_threshold_minutes": self.duplicate_scan_threshold_minutes,
                "match_tolerance_minutes": self.match_tolerance_minutes,
                "overnight_grace_minutes": self.overnight_grace_minutes,
                "closing_punch_tolerance_minutes": self.closing_punch_tolerance_minutes,
                "deduct_mandatory_break": self.deduct_mandatory_break,
                "long_shift_break_threshold_minutes": self.long_shift_break_threshold_minutes,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("dtr_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from database/file).

        Unknown keys are rejected so a misspelled setting cannot silently
        fall back to its default.
        """
        logger.info(
            "dtr_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown DTR config keys: {sorted(unknown)}")
        return cls(**data)
