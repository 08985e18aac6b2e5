"""
DTR Calculation Service (``attendance_modules.dtr.service``).

Responsibility
--------------
Orchestrates Daily Time Record computation for one employee and date:
resolve the schedule, fetch the punches the date owns, clean and label
them, compute the deviation minutes, set review flags, and upsert the
record.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``DtrCalculationService`` is the public
entry point.  It composes the ``ScheduleResolver``, the stateless
``PunchPairProcessor`` and the pure time calculators, and writes through
the ``DtrStore`` port.

Invariants enforced
-------------------
* Idempotence -- the record is a pure function of punches, assignments and
  config; recomputation overwrites the previous record for the same
  ``(employee_id, work_date)``.
* No double counting -- only punches inside the date's capture window are
  used, and capture windows of consecutive dates never overlap.
* Anomalies never block computation; they set ``needs_review``.

Failure modes
-------------
* ``InvalidWorkDateError`` -- work date carries a time component.
* ``ScheduleAmbiguityError`` -- propagated from the resolver, fatal.
* Store errors propagate; the caller's ``session_scope()`` rolls back.

Usage::

    with session_scope() as session:
        service = DtrCalculationService(
            resolver=ScheduleResolver(SqlAlchemyAssignmentSource(session)),
            punch_source=SqlAlchemyPunchSource(session),
            store=SqlAlchemyDtrStore(session),
        )
        record = service.calculate_for_date(employee_id, date(2025, 2, 13))
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from attendance_engines.period_summary import summarize_period
from attendance_engines.punch_pairing import PunchPairProcessor
from attendance_engines.schedule_expansion import (
    break_bounds,
    break_config_for,
    claims_punch,
    is_work_day,
)
from attendance_engines.time_calculator import (
    calculate_late,
    calculate_night_differential,
    calculate_overtime,
    calculate_undertime,
)
from attendance_kernel.domain.punches import ProcessedPunches, RawPunch
from attendance_kernel.domain.records import DailyTimeRecord, DtrPeriodSummary, DtrStatus
from attendance_kernel.domain.schedules import ResolvedSchedule, ShiftWindow
from attendance_kernel.logging_config import LogContext, get_logger
from attendance_modules.dtr.config import DtrConfig
from attendance_modules.dtr.ports import DtrStore, PunchSource
from attendance_modules.dtr.schedule_resolver import ScheduleResolver, require_work_date

logger = get_logger("modules.dtr.service")

REVIEW_NO_SCHEDULE = "No schedule assigned"
REVIEW_REST_DAY = "Work on rest day - overtime pending approval"
REVIEW_MISSING_TIME_OUT = "Missing time-out"
REVIEW_MISSING_TIME_IN = "Missing time-in"


def dropped_reason(count: int) -> str:
    return f"{count} unmatched punch(es) dropped."


def superseded_reason(count: int) -> str:
    return f"{count} repeated punch(es) ignored in pairing."


class DtrCalculationService:
    """
    Daily Time Record calculation.

    Contract:
        Synchronous, no internal suspension points.  Safe to call
        concurrently for different ``(employee_id, work_date)`` pairs;
        the caller serializes calls for the same pair.
    Guarantees:
        - Returns the record that was upserted.
        - All minute fields are non-negative integers.
    Non-goals:
        - Does not open or commit transactions.
        - Does not apply leave or holiday overrides.
    """

    def __init__(
        self,
        resolver: ScheduleResolver,
        punch_source: PunchSource,
        store: DtrStore,
        processor: PunchPairProcessor | None = None,
        config: DtrConfig | None = None,
    ) -> None:
        self._resolver = resolver
        self._punch_source = punch_source
        self._store = store
        self._config = config or DtrConfig.with_defaults()
        self._processor = processor or PunchPairProcessor(
            duplicate_threshold_minutes=self._config.duplicate_scan_threshold_minutes,
            match_tolerance_minutes=self._config.match_tolerance_minutes,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_for_date(self, employee_id: UUID, work_date: date) -> DailyTimeRecord:
        require_work_date(work_date)
        with LogContext.bind(employee_id=str(employee_id), work_date=work_date.isoformat()):
            logger.info("dtr_calculation_started")

            resolved = self._resolver.resolve(employee_id, work_date)
            window = self._capture_window(employee_id, work_date, resolved)
            fetched = self._punch_source.fetch_punches(
                employee_id, window.capture_start, window.capture_end,
            )
            window = self._resolver.close_window(window, fetched)
            punches = [p for p in fetched if claims_punch(window, p)]

            record = self._build_record(employee_id, work_date, resolved, punches)
            self._store.upsert(record)

            logger.info("dtr_calculation_completed", extra={
                "status": record.status.value,
                "punch_count": len(punches),
                "total_work_minutes": record.total_work_minutes,
                "late_minutes": record.late_minutes,
                "undertime_minutes": record.undertime_minutes,
                "overtime_minutes": record.overtime_minutes,
                "night_diff_minutes": record.night_diff_minutes,
                "dropped_punch_count": record.dropped_punch_count,
                "needs_review": record.needs_review,
            })
            return record

    def calculate_for_date_range(
        self, employee_id: UUID, start_date: date, end_date: date,
    ) -> list[DailyTimeRecord]:
        require_work_date(start_date)
        require_work_date(end_date)
        if end_date < start_date:
            raise ValueError(f"end_date {end_date} precedes start_date {start_date}")

        records: list[DailyTimeRecord] = []
        current = start_date
        while current <= end_date:
            records.append(self.calculate_for_date(employee_id, current))
            current += timedelta(days=1)
        return records

    def period_summary(
        self, employee_id: UUID, start_date: date, end_date: date,
    ) -> DtrPeriodSummary:
        """Summarize stored records; dates never computed count as missing."""
        records = []
        current = start_date
        while current <= end_date:
            record = self._store.get(employee_id, current)
            if record is not None:
                records.append(record)
            current += timedelta(days=1)
        return summarize_period(records, start_date, end_date)

    # ------------------------------------------------------------------
    # Capture window
    # ------------------------------------------------------------------

    def _capture_window(
        self,
        employee_id: UUID,
        work_date: date,
        resolved: ResolvedSchedule | None,
    ) -> ShiftWindow:
        """The date's window, opening where the previous overnight shift let go.

        A previous cross-midnight shift that already has its closing punch
        gives its post-midnight tail back to this date.
        """
        previous = self._resolver.previous_window(employee_id, work_date, resolved)
        if previous is not None and previous.crosses_midnight:
            previous_punches = self._punch_source.fetch_punches(
                employee_id, previous.capture_start, previous.capture_end,
            )
            previous = self._resolver.close_window(previous, previous_punches)
        return self._resolver.build_window(employee_id, work_date, resolved, previous)

    # ------------------------------------------------------------------
    # Record assembly
    # ------------------------------------------------------------------

    def _build_record(
        self,
        employee_id: UUID,
        work_date: date,
        resolved: ResolvedSchedule | None,
        punches: list[RawPunch],
    ) -> DailyTimeRecord:
        base = {
            "employee_id": employee_id,
            "work_date": work_date,
            "schedule_id": resolved.config.schedule_id if resolved else None,
            "shift_name": resolved.shift_name if resolved else None,
        }
        rest_day = resolved is not None and not is_work_day(resolved)

        if not punches:
            status = DtrStatus.REST_DAY if rest_day else DtrStatus.ABSENT
            return DailyTimeRecord(status=status, **base)

        if resolved is None or rest_day:
            processed = self._processor.process(punches)
        else:
            processed = self._processor.process(
                punches, self._resolver.schedule_events(resolved),
            )

        total_work = processed.total_work_minutes
        total_break = processed.break_minutes
        late = undertime = overtime = night_diff = 0
        reasons: list[str] = []

        if resolved is None:
            status = DtrStatus.NO_SCHEDULE
            reasons.append(REVIEW_NO_SCHEDULE)
        elif rest_day:
            status = DtrStatus.REST_DAY
            overtime = total_work
            night_diff = calculate_night_differential(processed.work_periods, resolved)
            if total_work > 0:
                reasons.append(REVIEW_REST_DAY)
        else:
            status = DtrStatus.PRESENT
            deduction = self._mandatory_break(processed, resolved)
            total_work = max(0, total_work - deduction)
            total_break += deduction
            late = calculate_late(processed.first_in, resolved)
            undertime = calculate_undertime(processed.last_out, resolved, total_work)
            overtime = calculate_overtime(processed.last_out, total_work, resolved)
            night_diff = calculate_night_differential(processed.work_periods, resolved)

        if processed.dropped_count:
            reasons.append(dropped_reason(processed.dropped_count))
        if processed.superseded:
            reasons.append(superseded_reason(len(processed.superseded)))
        if processed.has_open_pair:
            reasons.append(REVIEW_MISSING_TIME_OUT)
        if processed.missing_time_in:
            reasons.append(REVIEW_MISSING_TIME_IN)

        return DailyTimeRecord(
            status=status,
            first_in=processed.first_in,
            last_out=processed.last_out,
            punches=processed.record_punches,
            total_work_minutes=total_work,
            total_break_minutes=total_break,
            late_minutes=late,
            undertime_minutes=undertime,
            overtime_minutes=overtime,
            night_diff_minutes=night_diff,
            needs_review=bool(reasons),
            review_reason=" ".join(reasons) if reasons else None,
            dropped_punch_count=processed.dropped_count,
            **base,
        )

    def _mandatory_break(self, processed: ProcessedPunches, resolved: ResolvedSchedule) -> int:
        """Unpunched meal break to deduct from a single continuous work period."""
        if not self._config.deduct_mandatory_break:
            return 0
        pairs = processed.pairs
        if len(pairs) != 1 or pairs[0].time_out is None:
            return 0

        brk = break_config_for(resolved)
        if brk.duration_minutes <= 0:
            return 0

        time_in = pairs[0].time_in.timestamp
        time_out = pairs[0].time_out.timestamp
        scheduled = break_bounds(resolved)
        if scheduled is not None:
            spans = time_in < scheduled[0] < time_out
        elif brk.start_time is None:
            spans = pairs[0].worked_minutes > self._config.long_shift_break_threshold_minutes
        else:
            spans = False

        if not spans:
            return 0
        logger.debug("mandatory_break_deducted", extra={
            "break_minutes": brk.duration_minutes,
        })
        return brk.duration_minutes
