"""Pydantic schemas for monitors and run reports."""
from .monitor import (
    LastResult,
    Monitor,
    MonitorRecord,
    Scheme,
)
from .run import (
    RunOutcome,
    RunReport,
    RunStatistics,
    Status,
)

__all__ = [
    "LastResult",
    "Monitor",
    "MonitorRecord",
    "Scheme",
    "RunOutcome",
    "RunReport",
    "RunStatistics",
    "Status",
]
