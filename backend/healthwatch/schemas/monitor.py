"""Monitor schemas - the raw store record and the canonical typed monitor."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict


class Scheme(str, Enum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"


class LastResult(BaseModel):
    """Outcome of the most recent check, owned by the check engine."""
    checked_at: Optional[datetime] = None
    status: Optional[str] = None  # UP, DOWN, UNKNOWN
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    ssl: Optional[Dict[str, Any]] = None


class MonitorRecord(BaseModel):
    """A monitor exactly as the store holds it.

    Values may be missing or string-typed; only the normalizer turns a record
    into a :class:`Monitor`.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[Any] = None
    url: Optional[Any] = None
    alias: Optional[Any] = None
    scheme: Optional[Any] = None
    timeout_seconds: Optional[Any] = None
    active: Optional[Any] = None
    created_at: Optional[Any] = None
    last_result: Optional[LastResult] = None


class Monitor(BaseModel):
    """A fully-defaulted, validated monitor."""
    id: str
    url: str
    alias: str
    scheme: Scheme
    timeout_seconds: int
    active: bool
    created_at: datetime
    last_result: Optional[LastResult] = None

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def port(self) -> int:
        """Explicit port from the URL, else the scheme default."""
        port = urlsplit(self.url).port
        if port:
            return port
        return 443 if self.scheme == Scheme.HTTPS else 80
