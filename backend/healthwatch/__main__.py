"""Command line entry point: ``python -m healthwatch`` performs a single run."""
import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import async_session, close_db, init_db
from .main import configure_logging
from .schemas.run import RunReport
from .services.engine import CheckEngine
from .services.store import SqlMonitorStore

logger = logging.getLogger(__name__)


async def _run_once() -> RunReport:
    try:
        try:
            await init_db()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database unavailable: {e}")
            return RunReport(
                success=False,
                message="Internal error",
                started_at=datetime.now(timezone.utc),
                error=f"Monitor store unavailable: {e.__class__.__name__}",
            )
        engine = CheckEngine(SqlMonitorStore(async_session))
        return await engine.run_once()
    finally:
        await close_db()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="healthwatch", description="Check every registered monitor once.")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else settings.log_level)
    report = asyncio.run(_run_once())
    print(report.model_dump_json(indent=2))
    return 0 if report.success else 1


if __name__ == "__main__":
    sys.exit(main())
