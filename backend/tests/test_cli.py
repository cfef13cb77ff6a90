"""Tests for the single-run command line entry point."""
import json
from datetime import datetime, timezone

import pytest

from healthwatch import __main__ as cli
from healthwatch.schemas.run import RunReport


@pytest.mark.parametrize("success, exit_code", [(True, 0), (False, 1)])
def test_prints_report_and_sets_exit_code(monkeypatch, capsys, success, exit_code) -> None:
    async def fake_run_once() -> RunReport:
        return RunReport(
            success=success,
            message="Monitoring completed" if success else "Internal error",
            started_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )

    monkeypatch.setattr(cli, "_run_once", fake_run_once)

    assert cli.main([]) == exit_code
    report = json.loads(capsys.readouterr().out)
    assert report["success"] is success
