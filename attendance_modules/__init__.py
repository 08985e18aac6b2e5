"""
Attendance Modules.

Thin orchestration layers over the Attendance Kernel and Engines.

Modules:
- DTR: Daily Time Record computation, persistence and batch recomputation
"""
