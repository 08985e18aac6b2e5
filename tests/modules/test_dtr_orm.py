"""
Tests for DTR ORM models and SQLAlchemy repositories (in-memory SQLite).
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from attendance_kernel.domain.punches import Direction, LabeledPunch, RawPunch
from attendance_kernel.domain.records import DailyTimeRecord, DtrStatus
from attendance_kernel.domain.schedules import NightDifferentialConfig
from attendance_modules.dtr.orm import (
    AttendanceLogModel,
    DailyTimeRecordModel,
    EmployeeScheduleAssignmentModel,
    TimeRecordPunchModel,
    WorkScheduleModel,
)
from attendance_modules.dtr.repository import (
    SqlAlchemyAssignmentSource,
    SqlAlchemyDtrStore,
    SqlAlchemyPunchSource,
)
from attendance_modules.dtr.schedule_resolver import ScheduleResolver
from attendance_modules.dtr.service import DtrCalculationService
from tests.factories import FRIDAY, THURSDAY, assign, at, office_schedule, punch


def _record(employee_id, *times):
    """A PRESENT record whose punches alternate IN/OUT at ``times``."""
    labeled = tuple(
        LabeledPunch(punch(THURSDAY, t), Direction.IN if i % 2 == 0 else Direction.OUT)
        for i, t in enumerate(times)
    )
    return DailyTimeRecord(
        employee_id=employee_id,
        work_date=THURSDAY,
        status=DtrStatus.PRESENT,
        first_in=labeled[0].timestamp,
        last_out=labeled[-1].timestamp,
        punches=labeled,
        total_work_minutes=480,
    )


# =============================================================================
# Punch source
# =============================================================================


class TestSqlAlchemyPunchSource:

    def test_fetch_is_half_open_and_ordered(self, session, employee_id):
        source = SqlAlchemyPunchSource(session)
        source.add(employee_id, [
            punch(FRIDAY, "00:00"),
            punch(THURSDAY, "17:02"),
            punch(THURSDAY, "00:00"),
            punch(THURSDAY, "07:58", Direction.IN),
        ])

        result = source.fetch_punches(employee_id, at(THURSDAY, "00:00"), at(FRIDAY, "00:00"))

        assert [p.timestamp for p in result] == [
            at(THURSDAY, "00:00"), at(THURSDAY, "07:58"), at(THURSDAY, "17:02"),
        ]
        assert result[1].direction is Direction.IN
        assert result[0].direction is Direction.UNKNOWN
        assert all(p.punch_id is not None for p in result)

    def test_other_employees_are_excluded(self, session, employee_id):
        source = SqlAlchemyPunchSource(session)
        source.add(uuid4(), [punch(THURSDAY, "08:00")])

        assert source.fetch_punches(employee_id, at(THURSDAY, "00:00"), at(FRIDAY, "00:00")) == []

    def test_device_tags_are_normalized(self, session, employee_id):
        session.add(AttendanceLogModel(
            employee_id=employee_id, timestamp=at(THURSDAY, "08:00"), raw_direction="CheckIn",
        ))
        session.flush()

        result = SqlAlchemyPunchSource(session).fetch_punches(
            employee_id, at(THURSDAY, "00:00"), at(FRIDAY, "00:00"),
        )

        assert result == [RawPunch(
            at(THURSDAY, "08:00"), Direction.IN, punch_id=result[0].punch_id,
        )]


# =============================================================================
# Schedules and assignments
# =============================================================================


class TestSqlAlchemyAssignmentSource:

    def test_schedule_round_trip(self, session):
        source = SqlAlchemyAssignmentSource(session)
        config = office_schedule(night_differential=NightDifferentialConfig(enabled=True))

        stored = source.add_schedule(config)

        assert stored.schedule_id is not None
        model = session.get(WorkScheduleModel, stored.schedule_id)
        assert model.to_dto() == stored
        assert stored.night_differential.enabled

    def test_active_assignments(self, session, employee_id):
        source = SqlAlchemyAssignmentSource(session)
        stored = source.add_schedule(office_schedule())
        source.add_assignment(assign(employee_id, stored, date(2025, 1, 1), end_date=date(2025, 1, 31)))
        current = source.add_assignment(assign(employee_id, stored, date(2025, 2, 1)))

        result = source.assignments_for(employee_id, THURSDAY)

        assert result == [current]
        assert result[0].schedule.name == "Office"

    def test_inactive_schedule_is_ignored(self, session, employee_id):
        source = SqlAlchemyAssignmentSource(session)
        stored = source.add_schedule(office_schedule())
        source.add_assignment(assign(employee_id, stored))
        session.get(WorkScheduleModel, stored.schedule_id).is_active = False
        session.flush()

        assert source.assignments_for(employee_id, THURSDAY) == []

    def test_malformed_schedule_is_skipped_with_warning(
        self, session, employee_id, captured_logs,
    ):
        broken = WorkScheduleModel(
            name="Broken", schedule_type="fixed", time_configuration={"start_time": "25:99"},
        )
        session.add(broken)
        session.flush()
        session.add(EmployeeScheduleAssignmentModel(
            employee_id=employee_id, schedule_id=broken.id, effective_date=date(2025, 1, 1),
        ))
        session.flush()

        result = SqlAlchemyAssignmentSource(session).assignments_for(employee_id, THURSDAY)

        assert result == []
        warnings = [r for r in captured_logs() if r["message"] == "schedule_config_invalid"]
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["schedule_id"] == str(broken.id)

    def test_assignment_requires_persisted_schedule(self, session, employee_id):
        with pytest.raises(ValueError):
            SqlAlchemyAssignmentSource(session).add_assignment(
                assign(employee_id, office_schedule()),
            )


# =============================================================================
# Record store
# =============================================================================


class TestSqlAlchemyDtrStore:

    def test_insert_and_get(self, session, employee_id):
        store = SqlAlchemyDtrStore(session)
        record = _record(employee_id, "08:00", "17:00")

        store.upsert(record)

        assert store.get(employee_id, THURSDAY) == record
        assert store.get(employee_id, FRIDAY) is None

    def test_record_with_only_a_time_out(self, session, employee_id):
        store = SqlAlchemyDtrStore(session)
        time_out = LabeledPunch(punch(THURSDAY, "16:30"), Direction.OUT)
        record = DailyTimeRecord(
            employee_id=employee_id,
            work_date=THURSDAY,
            status=DtrStatus.PRESENT,
            last_out=time_out.timestamp,
            punches=(time_out,),
            undertime_minutes=30,
            needs_review=True,
            review_reason="Missing time-in",
        )

        store.upsert(record)

        assert store.get(employee_id, THURSDAY) == record

    def test_upsert_replaces_record_and_punches(self, session, employee_id):
        store = SqlAlchemyDtrStore(session)
        store.upsert(_record(employee_id, "08:00", "17:00"))
        replacement = _record(employee_id, "08:00", "12:00", "13:00", "17:00")

        store.upsert(replacement)

        assert store.get(employee_id, THURSDAY) == replacement
        record_count = session.scalar(select(func.count()).select_from(DailyTimeRecordModel))
        punch_count = session.scalar(select(func.count()).select_from(TimeRecordPunchModel))
        assert record_count == 1
        assert punch_count == 4

    def test_list_for_period(self, session, employee_id):
        store = SqlAlchemyDtrStore(session)
        store.upsert(_record(employee_id, "08:00", "17:00"))
        store.upsert(DailyTimeRecord(employee_id, FRIDAY, DtrStatus.ABSENT))

        records = store.list_for_period(employee_id, THURSDAY, FRIDAY)

        assert [r.work_date for r in records] == [THURSDAY, FRIDAY]
        assert records[1].punches == ()

    def test_one_record_per_employee_and_date(self, session, employee_id):
        for _ in range(2):
            session.add(DailyTimeRecordModel(
                employee_id=employee_id, work_date=THURSDAY, status="absent",
            ))

        with pytest.raises(IntegrityError):
            session.flush()


# =============================================================================
# End to end
# =============================================================================


class TestServiceWithSqlRepositories:

    def test_calculate_and_persist(self, session, employee_id, dtr_config):
        assignments = SqlAlchemyAssignmentSource(session)
        schedule = assignments.add_schedule(office_schedule())
        assignments.add_assignment(assign(employee_id, schedule))
        punches = SqlAlchemyPunchSource(session)
        punches.add(employee_id, [punch(THURSDAY, "07:58"), punch(THURSDAY, "17:02")])
        store = SqlAlchemyDtrStore(session)
        service = DtrCalculationService(
            resolver=ScheduleResolver(assignments, dtr_config),
            punch_source=punches,
            store=store,
            config=dtr_config,
        )

        record = service.calculate_for_date(employee_id, THURSDAY)

        assert record.status is DtrStatus.PRESENT
        assert record.total_work_minutes == 484
        assert record.schedule_id == schedule.schedule_id
        assert store.get(employee_id, THURSDAY) == record
        assert all(p.punch.punch_id is not None for p in record.punches)

    def test_recompute_after_late_punch(self, session, employee_id, dtr_config):
        assignments = SqlAlchemyAssignmentSource(session)
        assignments.add_assignment(assign(employee_id, assignments.add_schedule(office_schedule())))
        punches = SqlAlchemyPunchSource(session)
        punches.add(employee_id, [punch(THURSDAY, "07:58")])
        service = DtrCalculationService(
            resolver=ScheduleResolver(assignments, dtr_config),
            punch_source=punches,
            store=SqlAlchemyDtrStore(session),
            config=dtr_config,
        )

        first = service.calculate_for_date(employee_id, THURSDAY)
        punches.add(employee_id, [punch(THURSDAY, "17:02")])
        second = service.calculate_for_date(employee_id, THURSDAY)

        assert first.needs_review
        assert not second.needs_review
        assert SqlAlchemyDtrStore(session).get(employee_id, THURSDAY) == second
