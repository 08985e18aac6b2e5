"""
Property-based tests for punch processing and capture windows.

Invariants checked against arbitrary punch sets:
- Every collapsed punch is either labeled or dropped, never both
- Record punches alternate IN/OUT starting with IN, in timestamp order,
  unless the day has only an OUT
- A DailyTimeRecord can always be built from the processed punches
- Capture windows of consecutive dates never overlap
"""

from datetime import datetime, time, timedelta
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from attendance_engines.punch_pairing import PunchPairProcessor
from attendance_engines.schedule_expansion import (
    build_schedule_events,
    build_shift_window,
    claims_punch,
)
from attendance_kernel.domain.punches import Direction, RawPunch
from attendance_kernel.domain.records import DailyTimeRecord, DtrStatus
from attendance_kernel.domain.schedules import BreakConfig, WorkScheduleConfig
from tests.factories import FRIDAY, THURSDAY, evening_schedule, office_schedule, resolved

NIGHT = WorkScheduleConfig(
    name="Night",
    start_time=time(22, 0),
    end_time=time(6, 0),
    break_config=BreakConfig(start_time=time(2, 0), duration_minutes=60),
)
SCHEDULES = [office_schedule(), evening_schedule(), NIGHT, None]

_DAY_START = datetime.combine(THURSDAY, time.min)


@composite
def raw_punches(draw, max_size=12, span_minutes=36 * 60):
    """Punches from Thursday 00:00 onward, optionally device-tagged."""
    offsets = draw(st.lists(
        st.integers(min_value=0, max_value=span_minutes * 60 - 1),
        max_size=max_size,
    ))
    directions = draw(st.lists(
        st.sampled_from(list(Direction)), min_size=len(offsets), max_size=len(offsets),
    ))
    return [
        RawPunch(_DAY_START + timedelta(seconds=offset), direction)
        for offset, direction in zip(offsets, directions)
    ]


def _key(punch: RawPunch):
    return (punch.timestamp, punch.direction.value)


def _directions(labeled):
    return [lp.direction for lp in labeled]


FUZZ_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)


class TestMatchingPartition:

    @FUZZ_SETTINGS
    @given(punches=raw_punches(), schedule=st.sampled_from(SCHEDULES[:3]))
    def test_every_punch_labeled_or_dropped(self, punches, schedule):
        processor = PunchPairProcessor()
        collapsed = processor.collapse_duplicate_scans(punches)
        events = build_schedule_events(resolved(schedule, THURSDAY))

        result = processor.match_to_schedule(collapsed, events)

        seen = [lp.punch for lp in result.logs] + list(result.dropped)
        assert sorted(seen, key=_key) == sorted(collapsed, key=_key)

    @FUZZ_SETTINGS
    @given(punches=raw_punches(), schedule=st.sampled_from(SCHEDULES[:3]))
    def test_tagged_punches_keep_their_direction(self, punches, schedule):
        events = build_schedule_events(resolved(schedule, THURSDAY))

        result = PunchPairProcessor().match_to_schedule(punches, events)

        for labeled in result.logs:
            if labeled.punch.has_direction:
                assert labeled.direction is labeled.punch.direction
        assert not any(p.has_direction for p in result.dropped)


class TestProcessedPunches:

    @FUZZ_SETTINGS
    @given(punches=raw_punches(), schedule=st.sampled_from(SCHEDULES))
    def test_record_punches_alternate(self, punches, schedule):
        events = build_schedule_events(resolved(schedule, THURSDAY)) if schedule else None

        processed = PunchPairProcessor().process(punches, events)

        record_punches = processed.record_punches
        if processed.unpaired_out is not None:
            assert processed.pairs == ()
            assert _directions(record_punches) == [Direction.OUT]
            return
        for i, labeled in enumerate(record_punches):
            assert labeled.direction is (Direction.IN if i % 2 == 0 else Direction.OUT)
        stamps = [lp.timestamp for lp in record_punches]
        assert stamps == sorted(stamps)
        ins = sum(1 for lp in record_punches if lp.direction is Direction.IN)
        assert len(record_punches) - ins in (ins, ins - 1)

    @FUZZ_SETTINGS
    @given(punches=raw_punches(), schedule=st.sampled_from(SCHEDULES))
    def test_record_is_always_constructible(self, punches, schedule):
        events = build_schedule_events(resolved(schedule, THURSDAY)) if schedule else None

        processed = PunchPairProcessor().process(punches, events)

        record = DailyTimeRecord(
            employee_id=uuid4(),
            work_date=THURSDAY,
            status=DtrStatus.PRESENT,
            first_in=processed.first_in,
            last_out=processed.last_out,
            punches=processed.record_punches,
            total_work_minutes=processed.total_work_minutes,
            total_break_minutes=processed.break_minutes,
        )
        assert record.total_work_minutes >= 0
        assert processed.collapsed_count + len(processed.labeled) + processed.dropped_count \
            == len(punches)


class TestCaptureWindows:

    @FUZZ_SETTINGS
    @given(
        punches=raw_punches(max_size=20, span_minutes=48 * 60),
        today=st.sampled_from(SCHEDULES),
        tomorrow=st.sampled_from(SCHEDULES),
        grace=st.integers(min_value=0, max_value=600),
    )
    def test_consecutive_windows_never_share_a_punch(self, punches, today, tomorrow, grace):
        friday_schedule = resolved(tomorrow, FRIDAY) if tomorrow else None
        friday_events = build_schedule_events(friday_schedule) if friday_schedule else ()
        thursday = build_shift_window(
            THURSDAY,
            resolved(today, THURSDAY) if today else None,
            overnight_grace_minutes=grace,
            next_start=friday_events[0].timestamp if friday_events else None,
        )
        friday = build_shift_window(
            FRIDAY,
            friday_schedule,
            thursday,
            overnight_grace_minutes=grace,
        )

        assert friday.capture_start >= thursday.capture_end
        for punch in punches:
            assert not (claims_punch(thursday, punch) and claims_punch(friday, punch))
