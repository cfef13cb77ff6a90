"""Run schemas - per-monitor outcomes, run statistics, and the run report."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Status(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    UNKNOWN = "UNKNOWN"
    SKIPPED = "SKIPPED"
    ERROR = "ERROR"


class RunOutcome(BaseModel):
    """Terminal result of processing one monitor in a run. Never persisted."""
    monitor_id: Optional[str] = None
    alias: str = "Unknown"
    status: Status
    response_time_ms: int = 0
    success: bool = False  # True when the result was persisted
    error: Optional[str] = None
    ssl_valid: Optional[bool] = None
    ssl_days_until_expiry: Optional[int] = None


class RunStatistics(BaseModel):
    """Aggregate over every outcome of a run."""
    processed: int = 0
    succeeded: int = 0  # outcomes whose result was persisted
    up: int = 0
    down: int = 0
    unknown: int = 0
    skipped: int = 0
    errors: int = 0
    average_response_time_ms: float = 0.0
    duration_ms: int = 0


class RunReport(BaseModel):
    """Structured result of one run - returned for both success and fatal failure."""
    success: bool
    message: str
    started_at: datetime
    execution_time_ms: int = 0
    statistics: Optional[RunStatistics] = None
    outcomes: List[RunOutcome] = Field(default_factory=list)
    error: Optional[str] = None
