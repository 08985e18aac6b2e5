"""
Attendance Kernel

Foundation layer for Daily Time Record computation:
- Immutable punch, schedule and record value objects
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with calculation-scoped context
- SQLAlchemy declarative base and session management
"""

__version__ = "0.1.0"
