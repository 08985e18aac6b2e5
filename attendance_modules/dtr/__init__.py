"""
Daily Time Record Module (``attendance_modules.dtr``).

Responsibility
--------------
Turns raw attendance punches and effective-dated work schedules into one
Daily Time Record per employee per date: first in, last out, paired
punches, worked and break minutes, late, undertime, overtime and night
differential minutes, and review flags.

Architecture position
---------------------
**Modules layer** -- ``ScheduleResolver`` and ``DtrCalculationService``
glue the pure engines in ``attendance_engines`` to the collaborator
protocols in ``ports``.  ``repository`` adapts those protocols to the
SQLAlchemy models in ``orm``; ``batch`` recomputes in parallel.

Submodules are imported directly (``from attendance_modules.dtr.service
import DtrCalculationService``) so the ORM is loaded only when needed.
"""
