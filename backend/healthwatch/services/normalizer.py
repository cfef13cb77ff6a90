"""Monitor normalizer - applies defaults to raw store records and validates them."""
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from ..config import Settings, settings
from ..schemas.monitor import Monitor, MonitorRecord, Scheme

logger = logging.getLogger(__name__)

# Whitespace, control characters and URL delimiters never appear in a hostname
_HOST_RE = re.compile(r"^[^\s\x00-\x1f\x7f%<>\"{}|\\^`]+$")


class InvalidMonitor(ValueError):
    """The record cannot be checked (missing or non-HTTP(S) URL)."""

    def __init__(self, message: str, monitor_id: Optional[str] = None, alias: Optional[str] = None):
        super().__init__(message)
        self.monitor_id = monitor_id
        self.alias = alias


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_bool(value: Any) -> bool:
    """Native booleans pass through; only the string "true" is true."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def coerce_timeout(value: Any, config: Settings) -> Tuple[int, bool]:
    """Return (timeout clamped to the configured range, whether anything changed)."""
    changed = False
    if isinstance(value, bool) or _blank(value):
        timeout, changed = config.default_timeout_seconds, True
    elif isinstance(value, int):
        timeout = value
    else:
        text = str(value)
        try:
            timeout = int(text.strip())
            # Only the plain integer form (as the store writes it) is left alone
            changed = text != str(timeout)
        except ValueError:
            timeout, changed = config.default_timeout_seconds, True

    clamped = min(max(timeout, config.min_timeout_seconds), config.max_timeout_seconds)
    return clamped, changed or clamped != timeout


def coerce_timestamp(value: Any, now: datetime) -> Tuple[datetime, bool]:
    """Accepts datetimes, ISO-8601 strings, or epoch milliseconds."""
    if isinstance(value, datetime):
        return (value if value.tzinfo else value.replace(tzinfo=timezone.utc)), False
    if _blank(value) or isinstance(value, bool):
        return now, True
    try:
        if isinstance(value, (int, float)) or str(value).strip().isdigit():
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc), False
        parsed = datetime.fromisoformat(str(value).strip())
    except (ValueError, OverflowError, OSError):
        return now, True
    return (parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)), False


def parse_url(value: Any) -> Tuple[str, Scheme, str]:
    """Return (url, scheme, host) or raise InvalidMonitor."""
    if _blank(value) or not isinstance(value, str):
        raise InvalidMonitor("Monitor has no URL")
    url = value.strip()
    try:
        parts = urlsplit(url)
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        raise InvalidMonitor(f"Invalid URL: {url}")
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise InvalidMonitor(f"Invalid URL: {url}")
    if not _HOST_RE.match(parts.hostname):
        raise InvalidMonitor(f"Invalid URL: {url}")
    # The prober requests through httpx, so its parser has the final say
    try:
        httpx.URL(url)
    except httpx.InvalidURL:
        raise InvalidMonitor(f"Invalid URL: {url}")
    return url, Scheme(parts.scheme.upper()), parts.hostname


def coerce_record(record: MonitorRecord, config: Settings = settings, now: Optional[datetime] = None) -> Tuple[Monitor, bool]:
    """Turn a raw record into a canonical Monitor.

    Returns the monitor and whether any default or coercion was applied.
    Raises InvalidMonitor when the URL is unusable.
    """
    now = now or datetime.now(timezone.utc)
    raw_id = None if _blank(record.id) else str(record.id)
    raw_alias = None if _blank(record.alias) else str(record.alias)
    try:
        url, scheme, host = parse_url(record.url)
    except InvalidMonitor as e:
        e.monitor_id, e.alias = raw_id, raw_alias
        raise

    changed = False

    monitor_id = raw_id
    if monitor_id is None:
        monitor_id, changed = uuid.uuid4().hex, True

    alias = raw_alias
    if alias is None:
        alias, changed = f"Monitor - {host}", True

    if _blank(record.scheme) or str(record.scheme).strip().upper() != scheme.value:
        changed = True

    timeout, timeout_changed = coerce_timeout(record.timeout_seconds, config)
    changed = changed or timeout_changed

    if _blank(record.active):
        active, changed = True, True
    else:
        active = coerce_bool(record.active)
        # "true"/"false" are the stored forms; anything else is rewritten
        if not isinstance(record.active, bool) and record.active not in ("true", "false"):
            changed = True

    created_at, created_changed = coerce_timestamp(record.created_at, now)
    changed = changed or created_changed

    monitor = Monitor(
        id=monitor_id,
        url=url,
        alias=alias,
        scheme=scheme,
        timeout_seconds=timeout,
        active=active,
        created_at=created_at,
        last_result=record.last_result,
    )
    return monitor, changed


async def normalize_monitor(record: MonitorRecord, store, config: Settings = settings) -> Monitor:
    """Coerce ``record`` and write the defaulted monitor back when anything changed.

    A failed write-back is logged; the defaulted monitor is still returned.
    """
    monitor, changed = coerce_record(record, config)
    if changed:
        logger.warning(f"Monitor {monitor.alias} - applying defaults")
        try:
            saved = await store.upsert_monitor(monitor)
        except Exception as e:
            logger.error(f"Error saving defaults for monitor {monitor.id}: {e}")
            saved = False
        if not saved:
            logger.warning(f"Defaults for monitor {monitor.id} were not saved; using them for this run only")
    return monitor
