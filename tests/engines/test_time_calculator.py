"""
Tests for the time calculators.

Covers:
- Late / undertime against fixed and flexible expectations
- Overtime threshold gating
- Night differential overlap, including windows that cross midnight
"""

from datetime import time
from decimal import Decimal

from attendance_engines.time_calculator import (
    calculate_late,
    calculate_night_differential,
    calculate_overtime,
    calculate_undertime,
    minutes_between,
)
from attendance_kernel.domain.punches import Direction, LabeledPunch, ProcessedPunches, PunchPair
from attendance_kernel.domain.schedules import (
    NightDifferentialConfig,
    OvertimeRules,
    ScheduleType,
    TimeRange,
    WorkScheduleConfig,
)
from tests.factories import FRIDAY, THURSDAY, at, office_schedule, punch, resolved

ND_ON = NightDifferentialConfig(enabled=True)


def _office():
    return resolved(office_schedule(), THURSDAY)


def _nd_office():
    return resolved(office_schedule(night_differential=ND_ON), THURSDAY)


class TestMinutesBetween:

    def test_truncates_seconds(self):
        assert minutes_between(at(THURSDAY, "08:00"), at(THURSDAY, "08:01:59")) == 1

    def test_clamps_negative_to_zero(self):
        assert minutes_between(at(THURSDAY, "09:00"), at(THURSDAY, "08:00")) == 0


class TestLate:

    def test_minutes_after_start(self):
        assert calculate_late(at(THURSDAY, "08:15"), _office()) == 15

    def test_early_arrival_is_not_late(self):
        assert calculate_late(at(THURSDAY, "07:50"), _office()) == 0

    def test_partial_minute_is_not_late(self):
        assert calculate_late(at(THURSDAY, "08:00:59"), _office()) == 0

    def test_missing_inputs(self):
        assert calculate_late(None, _office()) == 0
        assert calculate_late(at(THURSDAY, "09:00"), None) == 0

    def test_flexible_judged_against_core_start(self):
        config = WorkScheduleConfig(
            schedule_type=ScheduleType.FLEXIBLE,
            core_hours=TimeRange(time(10, 0), time(15, 0)),
        )

        assert calculate_late(at(THURSDAY, "09:30"), resolved(config, THURSDAY)) == 0
        assert calculate_late(at(THURSDAY, "10:20"), resolved(config, THURSDAY)) == 20


class TestUndertime:

    def test_minutes_before_end(self):
        assert calculate_undertime(at(THURSDAY, "16:30"), _office()) == 30

    def test_leaving_late_is_not_undertime(self):
        assert calculate_undertime(at(THURSDAY, "17:30"), _office()) == 0

    def test_missing_out(self):
        assert calculate_undertime(None, _office()) == 0

    def test_flexible_without_core_hours_uses_required_minutes(self):
        config = WorkScheduleConfig(
            schedule_type=ScheduleType.FLEXIBLE,
            start_time=time(6, 0),
            end_time=time(18, 0),
            required_hours_per_day=Decimal("8"),
        )
        schedule = resolved(config, THURSDAY)

        assert calculate_undertime(at(THURSDAY, "15:00"), schedule, 450) == 30
        assert calculate_undertime(at(THURSDAY, "15:00"), schedule, 500) == 0

    def test_worked_minutes_ignored_when_end_is_fixed(self):
        assert calculate_undertime(at(THURSDAY, "16:30"), _office(), 60) == 30


class TestOvertime:

    def test_credited_past_end_above_threshold(self):
        assert calculate_overtime(at(THURSDAY, "18:00"), 540, _office()) == 60

    def test_not_credited_at_threshold(self):
        assert calculate_overtime(at(THURSDAY, "18:00"), 480, _office()) == 0

    def test_custom_threshold(self):
        config = office_schedule(overtime_rules=OvertimeRules(Decimal("4")))

        assert calculate_overtime(at(THURSDAY, "17:45"), 300, resolved(config, THURSDAY)) == 45

    def test_no_out(self):
        assert calculate_overtime(None, 600, _office()) == 0


class TestNightDifferential:

    def test_disabled_is_zero(self):
        periods = [(at(THURSDAY, "18:00"), at(FRIDAY, "02:00"))]

        assert calculate_night_differential(periods, _office()) == 0

    def test_clips_evening_period(self):
        periods = [(at(THURSDAY, "18:00"), at(FRIDAY, "02:00"))]

        assert calculate_night_differential(periods, _nd_office()) == 240

    def test_period_after_midnight_uses_previous_night_window(self):
        periods = [(at(FRIDAY, "01:00"), at(FRIDAY, "05:00"))]

        assert calculate_night_differential(periods, _nd_office()) == 240

    def test_day_period_has_no_overlap(self):
        periods = [(at(THURSDAY, "08:00"), at(THURSDAY, "17:00"))]

        assert calculate_night_differential(periods, _nd_office()) == 0

    def test_sums_across_periods(self):
        periods = [
            (at(THURSDAY, "21:00"), at(THURSDAY, "23:00")),
            (at(FRIDAY, "05:00"), at(FRIDAY, "07:00")),
        ]

        assert calculate_night_differential(periods, _nd_office()) == 60 + 60

    def test_window_not_crossing_midnight(self):
        config = office_schedule(night_differential=NightDifferentialConfig(
            enabled=True, start_time=time(0, 0), end_time=time(4, 0),
        ))
        periods = [(at(THURSDAY, "22:00"), at(FRIDAY, "02:00"))]

        assert calculate_night_differential(periods, resolved(config, THURSDAY)) == 120

    def test_work_periods_from_pairs(self):
        pairs = (
            PunchPair(
                LabeledPunch(punch(THURSDAY, "18:00"), Direction.IN),
                LabeledPunch(punch(FRIDAY, "02:00"), Direction.OUT),
            ),
            PunchPair(LabeledPunch(punch(FRIDAY, "03:00"), Direction.IN)),
        )

        periods = ProcessedPunches(labeled=(), pairs=pairs).work_periods

        assert periods == ((at(THURSDAY, "18:00"), at(FRIDAY, "02:00")),)
        assert calculate_night_differential(periods, _nd_office()) == 240
