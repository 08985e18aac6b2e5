"""
DTR Batch Recomputation (``attendance_modules.dtr.batch``).

Responsibility
--------------
Recompute many ``(employee_id, work_date)`` records in parallel, e.g. after
a punch feed backfill or a schedule change, while guaranteeing that two
computations for the same pair never overlap.

Architecture position
---------------------
**Modules layer** -- drives ``DtrCalculationService`` from a
``ThreadPoolExecutor``.  Each item runs inside its own service scope so a
SQL-backed deployment gets one session and one transaction per item.

Invariants enforced
-------------------
* Per-key serialization -- ``KeyedLockRegistry`` hands out one lock per
  ``(employee_id, work_date)``; distinct keys never contend.
* Item isolation -- a kernel error on one item is recorded as a failure
  and does not abort the batch.
* Duplicate items in one request are computed once.

Failure modes
-------------
* ``RecomputeLockTimeoutError`` -- the pair stayed locked past
  ``lock_timeout``; recorded as a failed item.
* Any ``AttendanceKernelError`` -- recorded as a failed item.
* Any other exception -- propagates from ``recompute()`` after the pool
  has drained; the failing item's transaction has already rolled back.

Usage::

    recomputer = DtrBatchRecomputer(sql_service_scope(), max_workers=8)
    result = recomputer.recompute([(employee_id, date(2025, 2, 13)), ...])
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID, uuid4

from attendance_kernel.domain.records import DailyTimeRecord
from attendance_kernel.exceptions import AttendanceKernelError, RecomputeLockTimeoutError
from attendance_kernel.logging_config import LogContext, get_logger
from attendance_modules.dtr.config import DtrConfig
from attendance_modules.dtr.schedule_resolver import require_work_date
from attendance_modules.dtr.service import DtrCalculationService

logger = get_logger("modules.dtr.batch")

ServiceScope = Callable[[], AbstractContextManager[DtrCalculationService]]


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------

@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyedLockRegistry:
    """
    One mutex per ``(employee_id, work_date)``.

    Entries are created on first use and discarded when the last holder
    or waiter leaves, so the registry does not grow with history.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[tuple[UUID, date], _LockEntry] = {}

    @contextmanager
    def lock(
        self, employee_id: UUID, work_date: date, timeout: float | None = None,
    ) -> Iterator[None]:
        key = (employee_id, work_date)
        with self._guard:
            entry = self._entries.setdefault(key, _LockEntry())
            entry.users += 1

        acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                logger.warning("recompute_lock_timeout", extra={
                    "employee_id": str(employee_id),
                    "work_date": work_date,
                    "timeout_seconds": timeout,
                })
                raise RecomputeLockTimeoutError(employee_id, work_date, timeout)
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BatchItemFailure:
    employee_id: UUID
    work_date: date
    error_code: str
    message: str


@dataclass(frozen=True)
class BatchRecomputeResult:
    """Outcome of one ``recompute()`` call, in request order."""

    batch_id: UUID
    records: tuple[DailyTimeRecord, ...] = ()
    failures: tuple[BatchItemFailure, ...] = ()

    @property
    def succeeded_count(self) -> int:
        return len(self.records)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def is_success(self) -> bool:
        return not self.failures


# ---------------------------------------------------------------------------
# Recomputer
# ---------------------------------------------------------------------------

def sql_service_scope(config: DtrConfig | None = None) -> ServiceScope:
    """Service scope with one ``session_scope()`` transaction per item."""
    from attendance_kernel.db.engine import session_scope
    from attendance_modules.dtr.repository import (
        SqlAlchemyAssignmentSource,
        SqlAlchemyDtrStore,
        SqlAlchemyPunchSource,
    )
    from attendance_modules.dtr.schedule_resolver import ScheduleResolver

    @contextmanager
    def scope() -> Iterator[DtrCalculationService]:
        with session_scope() as session:
            yield DtrCalculationService(
                resolver=ScheduleResolver(SqlAlchemyAssignmentSource(session), config),
                punch_source=SqlAlchemyPunchSource(session),
                store=SqlAlchemyDtrStore(session),
                config=config,
            )

    return scope


class DtrBatchRecomputer:
    """
    Parallel recomputation of Daily Time Records.

    Contract:
        ``service_scope()`` returns a context manager yielding a service
        whose writes are committed when the context exits cleanly.
    Guarantees:
        - Records for the same (employee, date) are never computed
          concurrently, across all batches sharing ``locks``.
        - ``records`` and ``failures`` follow the request order.
    Non-goals:
        - Does not retry failed items.
    """

    def __init__(
        self,
        service_scope: ServiceScope,
        max_workers: int = 4,
        locks: KeyedLockRegistry | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if lock_timeout is not None and lock_timeout < 0:
            raise ValueError("lock_timeout cannot be negative")
        self._service_scope = service_scope
        self._max_workers = max_workers
        self._locks = locks or KeyedLockRegistry()
        self._lock_timeout = lock_timeout

    @property
    def locks(self) -> KeyedLockRegistry:
        return self._locks

    def recompute_one(self, employee_id: UUID, work_date: date) -> DailyTimeRecord:
        require_work_date(work_date)
        with self._locks.lock(employee_id, work_date, self._lock_timeout):
            with self._service_scope() as service:
                return service.calculate_for_date(employee_id, work_date)

    def recompute(self, items: Iterable[tuple[UUID, date]]) -> BatchRecomputeResult:
        batch_id = uuid4()
        unique = list(dict.fromkeys(items))
        for _, work_date in unique:
            require_work_date(work_date)

        logger.info("dtr_batch_started", extra={
            "batch_id": str(batch_id),
            "item_count": len(unique),
            "max_workers": self._max_workers,
        })

        # contextvars do not cross into pool threads; bind per item
        def run(item: tuple[UUID, date]) -> DailyTimeRecord | BatchItemFailure:
            employee_id, work_date = item
            with LogContext.bind(batch_id=str(batch_id)):
                try:
                    return self.recompute_one(employee_id, work_date)
                except AttendanceKernelError as exc:
                    logger.warning("dtr_batch_item_failed", extra={
                        "employee_id": str(employee_id),
                        "work_date": work_date,
                        "error_code": exc.code,
                    })
                    return BatchItemFailure(employee_id, work_date, exc.code, str(exc))

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            futures = [executor.submit(run, item) for item in unique]
            outcomes = [f.result() for f in futures]

        records = tuple(o for o in outcomes if isinstance(o, DailyTimeRecord))
        failures = tuple(o for o in outcomes if isinstance(o, BatchItemFailure))
        logger.info("dtr_batch_completed", extra={
            "batch_id": str(batch_id),
            "succeeded": len(records),
            "failed": len(failures),
        })
        return BatchRecomputeResult(batch_id=batch_id, records=records, failures=failures)
