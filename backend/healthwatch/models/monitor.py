"""Monitor model - endpoint definitions and their last check result."""
import uuid
from sqlalchemy import Column, Integer, String, DateTime, JSON

from ..database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class Monitor(Base):
    """A monitored endpoint, as stored.

    Definition columns hold raw values (rows are written by external tooling and
    may be incomplete or string-typed); the normalizer coerces them before use.
    """

    __tablename__ = "monitors"

    id = Column(String, primary_key=True, default=_new_id)
    url = Column(String, nullable=True)
    alias = Column(String, nullable=True)
    scheme = Column(String, nullable=True)  # HTTP, HTTPS
    timeout_seconds = Column(String, nullable=True)
    active = Column(String, nullable=True)  # "true" / "false"
    created_at = Column(String, nullable=True)  # ISO-8601 or epoch milliseconds

    # Last result - written only by the check engine
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    last_status = Column(String, nullable=True)  # UP, DOWN, UNKNOWN
    last_response_time_ms = Column(Integer, nullable=True)
    last_status_code = Column(Integer, nullable=True)
    last_error = Column(String, nullable=True)
    last_ssl = Column(JSON, nullable=True)  # TLS summary, empty fields dropped
