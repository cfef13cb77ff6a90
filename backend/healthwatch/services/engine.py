"""Check engine - runs the per-monitor pipeline for every monitor concurrently.

Per monitor: normalize -> (skip | probe) -> inspect TLS for HTTPS -> persist -> report.
A failure in one monitor's pipeline becomes that monitor's outcome; only an
unreadable store fails the whole run.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..config import Settings, settings
from ..schemas.monitor import MonitorRecord, Scheme
from ..schemas.run import RunOutcome, RunReport, Status
from .aggregator import aggregate
from .http_prober import HttpProber
from .normalizer import InvalidMonitor, normalize_monitor
from .store import MonitorStore
from .tls_inspector import TlsInspector

logger = logging.getLogger(__name__)


class CheckEngine:
    """Checks every monitor in the store once per ``run_once`` call."""

    def __init__(
        self,
        store: MonitorStore,
        prober: Optional[HttpProber] = None,
        inspector: Optional[TlsInspector] = None,
        config: Settings = settings,
    ):
        self.store = store
        self.config = config
        self.prober = prober or HttpProber(config)
        self.inspector = inspector or TlsInspector(config)

    async def process_monitor(self, record: MonitorRecord) -> RunOutcome:
        """Run one monitor through the pipeline. Never raises."""
        try:
            monitor = await normalize_monitor(record, self.store, self.config)
        except InvalidMonitor as e:
            logger.error(f"Invalid monitor {e.monitor_id or 'N/A'}: {e}")
            return RunOutcome(
                monitor_id=e.monitor_id,
                alias=e.alias or "Unknown",
                status=Status.ERROR,
                error=str(e),
            )
        except Exception as e:
            logger.error(f"Error preparing monitor {record.id}: {e}")
            return RunOutcome(
                monitor_id=None if record.id is None else str(record.id),
                status=Status.ERROR,
                error=str(e) or e.__class__.__name__,
            )

        if not monitor.active:
            logger.info(f"Skipping inactive monitor {monitor.alias}")
            return RunOutcome(monitor_id=monitor.id, alias=monitor.alias, status=Status.SKIPPED)

        logger.info(f"Checking {monitor.alias}")
        try:
            http_result = await self.prober.probe(monitor.url, monitor.timeout_seconds)

            ssl_result = None
            if monitor.scheme == Scheme.HTTPS:
                ssl_result = await self.inspector.inspect(monitor.hostname, monitor.port)

            saved = await self.store.update_check_result(monitor.id, http_result, ssl_result)
            logger.info(f"{monitor.alias}: {http_result.status} ({http_result.response_time_ms}ms)")

            return RunOutcome(
                monitor_id=monitor.id,
                alias=monitor.alias,
                status=Status(http_result.status),
                response_time_ms=http_result.response_time_ms,
                success=saved,
                error=http_result.error_message or None,
                ssl_valid=ssl_result.valid if ssl_result else None,
                ssl_days_until_expiry=ssl_result.days_until_expiry if ssl_result and ssl_result.expires_at else None,
            )
        except Exception as e:
            logger.error(f"{monitor.alias}: {e}")
            return RunOutcome(
                monitor_id=monitor.id,
                alias=monitor.alias,
                status=Status.UNKNOWN,
                error=str(e) or e.__class__.__name__,
            )

    async def _process_all(self, records: List[MonitorRecord]) -> List[RunOutcome]:
        limit = self.config.max_concurrent_checks
        if limit <= 0:
            return list(await asyncio.gather(*[self.process_monitor(r) for r in records]))

        # Use semaphore to limit concurrent checks
        semaphore = asyncio.Semaphore(limit)

        async def check_with_limit(record: MonitorRecord) -> RunOutcome:
            async with semaphore:
                return await self.process_monitor(record)

        return list(await asyncio.gather(*[check_with_limit(r) for r in records]))

    async def run_once(self) -> RunReport:
        """Check every monitor once and report. Always returns a report."""
        started_at = datetime.now(timezone.utc)
        loop = asyncio.get_running_loop()
        start = loop.time()

        def elapsed_ms() -> int:
            return int((loop.time() - start) * 1000)

        logger.info("Starting monitoring run")
        try:
            records = await self.store.list_monitors()
        except Exception as e:
            logger.error(f"Fatal error: {e}")
            return RunReport(
                success=False,
                message="Internal error",
                started_at=started_at,
                execution_time_ms=elapsed_ms(),
                error=str(e),
            )

        if not records:
            logger.info("No monitors found")
            return RunReport(
                success=True,
                message="No monitors found",
                started_at=started_at,
                execution_time_ms=elapsed_ms(),
                statistics=aggregate([], elapsed_ms()),
            )

        outcomes = await self._process_all(records)
        duration = elapsed_ms()
        stats = aggregate(outcomes, duration)

        logger.info(
            f"Run complete: UP:{stats.up} DOWN:{stats.down} UNKNOWN:{stats.unknown} "
            f"SKIPPED:{stats.skipped} ERROR:{stats.errors} ({duration}ms)"
        )
        return RunReport(
            success=True,
            message="Monitoring completed",
            started_at=started_at,
            execution_time_ms=duration,
            statistics=stats,
            outcomes=outcomes,
        )
