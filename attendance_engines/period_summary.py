"""
attendance_engines.period_summary -- Aggregate Daily Time Records over a period.

Responsibility:
    Summarize a run of DailyTimeRecords (one employee or a group) into the
    totals payroll and reporting consumers need: day counts per status,
    attendance rate, minute totals, and days with deviations.

Architecture position:
    Engines -- pure calculation layer, ZERO I/O.
    Records are supplied by the caller; this module never queries storage.

Invariants enforced:
    - Only records whose work_date falls inside [start_date, end_date] count.
    - Attendance rate is present / (present + absent) as a percentage with
      two decimals; a period with no present or absent days rates 100.0.

Failure modes:
    - ValueError if end_date precedes start_date.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from attendance_engines.tracer import traced_engine
from attendance_kernel.domain.records import DailyTimeRecord, DtrPeriodSummary, DtrStatus


def attendance_rate(present_days: int, absent_days: int) -> float:
    work_days = present_days + absent_days
    if work_days == 0:
        return 100.0
    return round(present_days / work_days * 100, 2)


@traced_engine("period_summary", "1.0", fingerprint_fields=("start_date", "end_date"))
def summarize_period(
    records: Iterable[DailyTimeRecord],
    start_date: date,
    end_date: date,
) -> DtrPeriodSummary:
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} precedes start_date {start_date}")

    in_period = [r for r in records if start_date <= r.work_date <= end_date]

    def count(status: DtrStatus) -> int:
        return sum(1 for r in in_period if r.status is status)

    present = count(DtrStatus.PRESENT)
    absent = count(DtrStatus.ABSENT)

    return DtrPeriodSummary(
        start_date=start_date,
        end_date=end_date,
        total_days=(end_date - start_date).days + 1,
        present_days=present,
        absent_days=absent,
        rest_days=count(DtrStatus.REST_DAY),
        no_schedule_days=count(DtrStatus.NO_SCHEDULE),
        attendance_rate=attendance_rate(present, absent),
        total_work_minutes=sum(r.total_work_minutes for r in in_period),
        total_break_minutes=sum(r.total_break_minutes for r in in_period),
        total_late_minutes=sum(r.late_minutes for r in in_period),
        total_undertime_minutes=sum(r.undertime_minutes for r in in_period),
        total_overtime_minutes=sum(r.overtime_minutes for r in in_period),
        total_night_diff_minutes=sum(r.night_diff_minutes for r in in_period),
        late_days=sum(1 for r in in_period if r.late_minutes > 0),
        undertime_days=sum(1 for r in in_period if r.undertime_minutes > 0),
        overtime_days=sum(1 for r in in_period if r.overtime_minutes > 0),
        needs_review_count=sum(1 for r in in_period if r.needs_review),
    )
