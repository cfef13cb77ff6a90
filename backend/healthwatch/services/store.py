"""Monitor store - lists monitor definitions and persists check results."""
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import Monitor as MonitorRow
from ..schemas.monitor import LastResult, Monitor, MonitorRecord
from ..utils.db_utils import retry_on_lock
from .http_prober import HttpCheckResult
from .tls_inspector import SslCheckResult

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The store could not be read at all."""


class MonitorStore(Protocol):
    """What the check engine needs from durable storage."""

    async def list_monitors(self) -> List[MonitorRecord]:
        ...

    async def upsert_monitor(self, monitor: Monitor) -> bool:
        ...

    async def update_check_result(
        self, monitor_id: str, http_result: HttpCheckResult, ssl_result: Optional[SslCheckResult] = None
    ) -> bool:
        ...


def ssl_summary(ssl_result: Optional[SslCheckResult]) -> Optional[Dict[str, Any]]:
    """Serializable TLS summary with empty fields dropped."""
    if ssl_result is None:
        return None
    summary = asdict(ssl_result)
    if ssl_result.expires_at is not None:
        summary["expires_at"] = ssl_result.expires_at.isoformat()
    return {key: value for key, value in summary.items() if value not in ("", None)}


def _text(value: Any) -> Optional[str]:
    """Render a raw definition value for the text columns."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class SqlMonitorStore:
    """SQLAlchemy-backed store.

    ``list_monitors`` raises :class:`StoreError` when the database is
    unreachable; writes never raise and report failure as ``False``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _to_record(row: MonitorRow) -> MonitorRecord:
        last_result = None
        if row.last_checked_at is not None:
            last_result = LastResult(
                checked_at=row.last_checked_at,
                status=row.last_status,
                response_time_ms=row.last_response_time_ms,
                status_code=row.last_status_code,
                error=row.last_error,
                ssl=row.last_ssl,
            )
        return MonitorRecord(
            id=row.id,
            url=row.url,
            alias=row.alias,
            scheme=row.scheme,
            timeout_seconds=row.timeout_seconds,
            active=row.active,
            created_at=row.created_at,
            last_result=last_result,
        )

    async def list_monitors(self) -> List[MonitorRecord]:
        """Scan every monitor definition."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(MonitorRow))
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing monitors: {e}")
            raise StoreError(f"Monitor store unavailable: {e.__class__.__name__}") from e
        return [self._to_record(row) for row in rows]

    async def add_record(self, record: MonitorRecord) -> str:
        """Insert a raw definition as-is and return its id."""
        row = MonitorRow(
            url=_text(record.url),
            alias=_text(record.alias),
            scheme=_text(record.scheme),
            timeout_seconds=_text(record.timeout_seconds),
            active=_text(record.active),
            created_at=_text(record.created_at),
        )
        if record.id is not None:
            row.id = str(record.id)
        async with self._session_factory() as session:
            session.add(row)
            await retry_on_lock(session.commit)
            return row.id

    async def upsert_monitor(self, monitor: Monitor) -> bool:
        """Write the definition fields of ``monitor``, keyed by id."""

        async def _write():
            async with self._session_factory() as session:
                row = await session.get(MonitorRow, monitor.id)
                if row is None:
                    row = MonitorRow(id=monitor.id)
                    session.add(row)
                row.url = monitor.url
                row.alias = monitor.alias
                row.scheme = monitor.scheme.value
                row.timeout_seconds = str(monitor.timeout_seconds)
                row.active = _text(monitor.active)
                row.created_at = monitor.created_at.isoformat()
                await session.commit()

        try:
            await retry_on_lock(_write)
        except SQLAlchemyError as e:
            logger.error(f"Error saving monitor {monitor.id}: {e}")
            return False
        logger.debug(f"Monitor {monitor.alias} saved")
        return True

    async def update_check_result(
        self, monitor_id: str, http_result: HttpCheckResult, ssl_result: Optional[SslCheckResult] = None
    ) -> bool:
        """Store the last result for an existing monitor. Missing ids are not created."""
        values = {
            "last_checked_at": datetime.now(timezone.utc),
            "last_status": http_result.status,
            "last_response_time_ms": http_result.response_time_ms,
            "last_status_code": http_result.status_code,
            "last_error": http_result.error_message or None,
            "last_ssl": ssl_summary(ssl_result),
        }

        async def _write() -> int:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(MonitorRow).where(MonitorRow.id == monitor_id).values(**values)
                )
                await session.commit()
                return result.rowcount

        try:
            updated = await retry_on_lock(_write)
        except SQLAlchemyError as e:
            logger.error(f"Error saving result for {monitor_id}: {e}")
            return False
        if not updated:
            logger.warning(f"Monitor {monitor_id} not found; result not saved")
        return bool(updated)
