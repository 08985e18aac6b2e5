"""
DTR ORM Persistence Models (``attendance_modules.dtr.orm``).

Responsibility:
    SQLAlchemy ORM models that persist raw attendance logs, work schedules,
    employee schedule assignments and computed Daily Time Records.  Each
    ORM class mirrors a domain dataclass and provides ``to_dto()`` /
    ``from_dto()`` conversion.

Architecture position:
    **Modules layer** -- persistence companions to the pure domain types in
    ``attendance_kernel.domain``.  Inherits from ``TrackedBase`` which
    provides id (UUID PK, auto-generated), created_at and updated_at.

Invariants enforced:
    - One record per employee per date (uq_dtr_employee_date).
    - Record punches are owned by their record and replaced with it
      (cascade="all, delete-orphan"), stored with an explicit sequence.
    - Schedule time configuration is stored as JSON in the shape read by
      ``attendance_config.loader.parse_work_schedule``.
    - Enum fields stored as String containing the enum .value string.

Failure modes:
    - IntegrityError on a second record for the same (employee, date).
    - ``InvalidScheduleConfigError`` from ``WorkScheduleModel.to_dto()``
      when the stored JSON no longer parses.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# AttendanceLogModel
# ---------------------------------------------------------------------------

class AttendanceLogModel(TrackedBase):
    """
    ORM model for a raw punch -- one scan from a biometric device or kiosk.

    Contract:
        Rows are append-only input.  ``raw_direction`` keeps the device tag
        as delivered; it is normalized on ``to_dto()``.
    """

    __tablename__ = "attendance_logs"

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    raw_direction: Mapped[str | None] = mapped_column(String(20), nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("idx_attendance_log_employee_time", "employee_id", "timestamp"),
    )

    def to_dto(self):
        from attendance_kernel.domain.punches import RawPunch
        return RawPunch.from_device(
            self.timestamp,
            self.raw_direction,
            source_id=self.source_id,
            punch_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto, employee_id: UUID) -> "AttendanceLogModel":
        return cls(
            id=dto.punch_id,
            employee_id=employee_id,
            timestamp=dto.timestamp,
            raw_direction=dto.direction.value if dto.has_direction else None,
            source_id=dto.source_id,
        )

    def __repr__(self) -> str:
        return (
            f"<AttendanceLogModel employee={self.employee_id} "
            f"at={self.timestamp} direction={self.raw_direction}>"
        )


# ---------------------------------------------------------------------------
# WorkScheduleModel
# ---------------------------------------------------------------------------

class WorkScheduleModel(TrackedBase):
    """
    ORM model for ``WorkScheduleConfig``.

    Contract:
        ``time_configuration``, ``overtime_rules`` and ``night_differential``
        are JSON documents.  Parsing happens on ``to_dto()``, so a malformed
        row fails only the employees it is assigned to.
    """

    __tablename__ = "work_schedules"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    schedule_type: Mapped[str] = mapped_column(String(20), nullable=False, default="fixed")
    time_configuration: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    overtime_rules: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    night_differential: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("name", name="uq_work_schedule_name"),
    )

    def to_dto(self):
        from attendance_config.loader import parse_work_schedule
        return parse_work_schedule({
            "name": self.name,
            "schedule_id": self.id,
            "schedule_type": self.schedule_type,
            "time_configuration": self.time_configuration,
            "overtime_rules": self.overtime_rules,
            "night_differential": self.night_differential,
        })

    @classmethod
    def from_dto(cls, dto) -> "WorkScheduleModel":
        from attendance_config.loader import work_schedule_to_dict
        data = work_schedule_to_dict(dto)
        return cls(
            id=dto.schedule_id,
            name=data["name"],
            schedule_type=data["schedule_type"],
            time_configuration=data["time_configuration"],
            overtime_rules=data["overtime_rules"],
            night_differential=data["night_differential"],
        )

    def __repr__(self) -> str:
        return f"<WorkScheduleModel {self.name} type={self.schedule_type}>"


# ---------------------------------------------------------------------------
# EmployeeScheduleAssignmentModel
# ---------------------------------------------------------------------------

class EmployeeScheduleAssignmentModel(TrackedBase):
    """
    ORM model for ``ScheduleAssignment`` -- an effective-dated link between
    an employee and a work schedule.

    Contract:
        ``end_date`` NULL means open-ended.  Overlap between assignments is
        allowed; the resolver picks the most recent effective date.
    """

    __tablename__ = "employee_schedule_assignments"

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("work_schedules.id"), nullable=False,
    )
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    shift_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    schedule: Mapped["WorkScheduleModel"] = relationship(
        "WorkScheduleModel", lazy="joined",
    )

    __table_args__ = (
        Index("idx_schedule_assignment_employee", "employee_id", "effective_date"),
        Index("idx_schedule_assignment_schedule", "schedule_id"),
    )

    def to_dto(self, schedule=None):
        """Build the assignment; pass ``schedule`` to reuse a parsed config."""
        from attendance_kernel.domain.schedules import ScheduleAssignment
        return ScheduleAssignment(
            employee_id=self.employee_id,
            schedule=schedule if schedule is not None else self.schedule.to_dto(),
            effective_date=self.effective_date,
            end_date=self.end_date,
            shift_name=self.shift_name,
            assignment_id=self.id,
        )

    @classmethod
    def from_dto(cls, dto) -> "EmployeeScheduleAssignmentModel":
        if dto.schedule.schedule_id is None:
            raise ValueError("Assigned schedule must be persisted before the assignment")
        return cls(
            id=dto.assignment_id,
            employee_id=dto.employee_id,
            schedule_id=dto.schedule.schedule_id,
            effective_date=dto.effective_date,
            end_date=dto.end_date,
            shift_name=dto.shift_name,
        )

    def __repr__(self) -> str:
        return (
            f"<EmployeeScheduleAssignmentModel employee={self.employee_id} "
            f"schedule={self.schedule_id} from={self.effective_date}>"
        )


# ---------------------------------------------------------------------------
# DailyTimeRecordModel
# ---------------------------------------------------------------------------

class DailyTimeRecordModel(TrackedBase):
    """
    ORM model for ``DailyTimeRecord`` -- the computed attendance of one
    employee on one work date.

    Contract:
        Rows are overwritten on recomputation, never versioned.  The
        ``punches`` relationship holds the paired IN/OUT sequence.
    """

    __tablename__ = "daily_time_records"

    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    first_in: Mapped[datetime | None] = mapped_column(nullable=True)
    last_out: Mapped[datetime | None] = mapped_column(nullable=True)
    total_work_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    total_break_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    late_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    undertime_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    overtime_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    night_diff_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    needs_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    dropped_punch_count: Mapped[int] = mapped_column(nullable=False, default=0)
    schedule_id: Mapped[UUID | None] = mapped_column(nullable=True)
    shift_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    punches: Mapped[list["TimeRecordPunchModel"]] = relationship(
        "TimeRecordPunchModel",
        back_populates="record",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="TimeRecordPunchModel.sequence",
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "work_date", name="uq_dtr_employee_date"),
        Index("idx_dtr_work_date", "work_date"),
        Index("idx_dtr_status", "status"),
        Index("idx_dtr_needs_review", "needs_review"),
    )

    def to_dto(self):
        from attendance_kernel.domain.records import DailyTimeRecord, DtrStatus
        return DailyTimeRecord(
            employee_id=self.employee_id,
            work_date=self.work_date,
            status=DtrStatus(self.status),
            first_in=self.first_in,
            last_out=self.last_out,
            punches=tuple(p.to_dto() for p in self.punches),
            total_work_minutes=self.total_work_minutes,
            total_break_minutes=self.total_break_minutes,
            late_minutes=self.late_minutes,
            undertime_minutes=self.undertime_minutes,
            overtime_minutes=self.overtime_minutes,
            night_diff_minutes=self.night_diff_minutes,
            needs_review=self.needs_review,
            review_reason=self.review_reason,
            dropped_punch_count=self.dropped_punch_count,
            schedule_id=self.schedule_id,
            shift_name=self.shift_name,
        )

    @classmethod
    def from_dto(cls, dto) -> "DailyTimeRecordModel":
        model = cls(employee_id=dto.employee_id, work_date=dto.work_date)
        model.apply(dto)
        return model

    def apply(self, dto) -> None:
        """Overwrite every computed field and the punch list from ``dto``."""
        self.status = dto.status.value
        self.first_in = dto.first_in
        self.last_out = dto.last_out
        self.total_work_minutes = dto.total_work_minutes
        self.total_break_minutes = dto.total_break_minutes
        self.late_minutes = dto.late_minutes
        self.undertime_minutes = dto.undertime_minutes
        self.overtime_minutes = dto.overtime_minutes
        self.night_diff_minutes = dto.night_diff_minutes
        self.needs_review = dto.needs_review
        self.review_reason = dto.review_reason
        self.dropped_punch_count = dto.dropped_punch_count
        self.schedule_id = dto.schedule_id
        self.shift_name = dto.shift_name
        self.punches = [
            TimeRecordPunchModel.from_dto(punch, sequence=i)
            for i, punch in enumerate(dto.punches)
        ]

    def __repr__(self) -> str:
        return (
            f"<DailyTimeRecordModel employee={self.employee_id} "
            f"date={self.work_date} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# TimeRecordPunchModel
# ---------------------------------------------------------------------------

class TimeRecordPunchModel(TrackedBase):
    """
    ORM model for a labeled punch on a Daily Time Record.

    Contract:
        ``sequence`` is the 0-based position in the alternating IN/OUT
        list.  ``attendance_log_id`` points back at the raw scan when the
        punch came from ``attendance_logs``; it is not a foreign key so
        records can be built from any punch feed.
    """

    __tablename__ = "time_record_punches"

    record_id: Mapped[UUID] = mapped_column(
        ForeignKey("daily_time_records.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    raw_direction: Mapped[str] = mapped_column(String(10), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attendance_log_id: Mapped[UUID | None] = mapped_column(nullable=True)
    event_kind: Mapped[str | None] = mapped_column(String(20), nullable=True)
    event_timestamp: Mapped[datetime | None] = mapped_column(nullable=True)

    record: Mapped["DailyTimeRecordModel"] = relationship(
        "DailyTimeRecordModel", back_populates="punches",
    )

    __table_args__ = (
        Index("idx_time_record_punch_record", "record_id", "sequence"),
    )

    def to_dto(self):
        from attendance_kernel.domain.punches import (
            Direction,
            EventKind,
            LabeledPunch,
            RawPunch,
            ScheduleEvent,
        )
        direction = Direction(self.direction)
        event = None
        if self.event_kind is not None and self.event_timestamp is not None:
            event = ScheduleEvent(self.event_timestamp, direction, EventKind(self.event_kind))
        return LabeledPunch(
            punch=RawPunch(
                timestamp=self.timestamp,
                direction=Direction(self.raw_direction),
                source_id=self.source_id,
                punch_id=self.attendance_log_id,
            ),
            direction=direction,
            matched_event=event,
        )

    @classmethod
    def from_dto(cls, dto, sequence: int) -> "TimeRecordPunchModel":
        event = dto.matched_event
        return cls(
            sequence=sequence,
            timestamp=dto.timestamp,
            direction=dto.direction.value,
            raw_direction=dto.punch.direction.value,
            source_id=dto.punch.source_id,
            attendance_log_id=dto.punch.punch_id,
            event_kind=event.kind.value if event is not None else None,
            event_timestamp=event.timestamp if event is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"<TimeRecordPunchModel #{self.sequence} {self.direction} "
            f"at={self.timestamp}>"
        )
