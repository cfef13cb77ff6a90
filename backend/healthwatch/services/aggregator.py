"""Run aggregator - folds per-monitor outcomes into run statistics."""
from typing import Iterable

from ..schemas.run import RunOutcome, RunStatistics, Status

_COUNTERS = {
    Status.UP: "up",
    Status.DOWN: "down",
    Status.UNKNOWN: "unknown",
    Status.SKIPPED: "skipped",
    Status.ERROR: "errors",
}


def aggregate(outcomes: Iterable[RunOutcome], duration_ms: int = 0) -> RunStatistics:
    """Compute run statistics. The result does not depend on outcome order.

    The average response time only covers outcomes where a probe ran, so
    skipped and invalid monitors are left out.
    """
    stats = RunStatistics(duration_ms=duration_ms)
    probed_times = []
    for outcome in outcomes:
        stats.processed += 1
        if outcome.success:
            stats.succeeded += 1
        counter = _COUNTERS[outcome.status]
        setattr(stats, counter, getattr(stats, counter) + 1)
        if outcome.status not in (Status.SKIPPED, Status.ERROR):
            probed_times.append(outcome.response_time_ms)

    if probed_times:
        stats.average_response_time_ms = round(sum(probed_times) / len(probed_times), 2)
    return stats
