"""HTTP prober - one timeout-bounded GET per monitor, classified into UP/DOWN/UNKNOWN."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ..config import Settings, settings
from ..schemas.run import Status
from ..utils.net_errors import classify_transport_error

logger = logging.getLogger(__name__)


@dataclass
class HttpCheckResult:
    """Outcome of one logical probe."""
    status: str  # UP, DOWN, UNKNOWN
    response_time_ms: int = 0
    status_code: int = 0  # 0 when no response was received
    error_message: str = ""


def classify_status_code(status_code: int, reason_phrase: str = "") -> HttpCheckResult:
    """Classify a final HTTP status code (redirects already followed)."""
    if 200 <= status_code < 400:
        return HttpCheckResult(status=Status.UP.value, status_code=status_code)
    if 400 <= status_code < 600:
        error = f"HTTP {status_code} {reason_phrase}".strip()
        return HttpCheckResult(status=Status.DOWN.value, status_code=status_code, error_message=error)
    return HttpCheckResult(
        status=Status.UNKNOWN.value,
        status_code=status_code,
        error_message=f"Unexpected HTTP status {status_code}",
    )


def _elapsed_ms(loop: asyncio.AbstractEventLoop, start: float) -> int:
    return max(0, int((loop.time() - start) * 1000))


class HttpProber:
    """Performs the HTTP GET for a monitor.

    ``probe`` never raises. The whole logical probe, retries included, runs
    against a single deadline of ``timeout_seconds``; a transient failure is
    retried only while the failed attempt used less than
    ``retry_budget_ratio`` of the timeout.
    """

    def __init__(
        self,
        config: Settings = settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self._transport = transport
        self._sleep = sleep

    async def _get(self, url: str, timeout: float) -> httpx.Response:
        # One client per attempt so its sockets are released with it
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={"User-Agent": self.config.user_agent},
        ) as client:
            return await client.get(url)

    async def probe(self, url: str, timeout_seconds: int) -> HttpCheckResult:
        """Probe ``url`` and classify the result."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        retries_left = max(0, self.config.retry_attempts)

        while True:
            start = loop.time()
            remaining = deadline - start
            try:
                response = await asyncio.wait_for(self._get(url, remaining), timeout=remaining)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                elapsed = _elapsed_ms(loop, start)
                if loop.time() < deadline and self._may_retry(retries_left, elapsed, timeout_seconds, deadline):
                    # A socket-level timeout that fired well inside our budget
                    retries_left -= 1
                    logger.debug(f"Timeout probing {url} after {elapsed}ms, retrying")
                    await self._sleep(self.config.retry_delay_seconds)
                    continue
                logger.warning(f"Timeout: {url} after {timeout_seconds}s")
                return HttpCheckResult(
                    status=Status.DOWN.value,
                    response_time_ms=elapsed,
                    error_message=f"Request timeout after {timeout_seconds}s",
                )
            except httpx.TooManyRedirects:
                logger.warning(f"Too many redirects: {url}")
                return HttpCheckResult(
                    status=Status.DOWN.value,
                    response_time_ms=_elapsed_ms(loop, start),
                    error_message="Too many redirects",
                )
            except (httpx.TransportError, OSError) as e:
                elapsed = _elapsed_ms(loop, start)
                error = classify_transport_error(e)
                if error.transient and self._may_retry(retries_left, elapsed, timeout_seconds, deadline):
                    retries_left -= 1
                    logger.debug(f"{error.message} probing {url} after {elapsed}ms, retrying")
                    await self._sleep(self.config.retry_delay_seconds)
                    continue
                logger.warning(f"{error.message}: {url}")
                return HttpCheckResult(
                    status=Status.DOWN.value,
                    response_time_ms=elapsed,
                    error_message=error.message,
                )
            except Exception as e:
                logger.exception(f"Unexpected error probing {url}")
                return HttpCheckResult(
                    status=Status.UNKNOWN.value,
                    response_time_ms=_elapsed_ms(loop, start),
                    error_message=f"Unexpected error: {e.__class__.__name__}",
                )

            result = classify_status_code(response.status_code, response.reason_phrase)
            result.response_time_ms = _elapsed_ms(loop, start)
            if result.status == Status.UP.value:
                logger.debug(f"HTTP OK: {url} ({result.response_time_ms}ms)")
            else:
                logger.warning(f"{result.error_message}: {url}")
            return result

    def _may_retry(self, retries_left: int, elapsed_ms: int, timeout_seconds: int, deadline: float) -> bool:
        if retries_left <= 0:
            return False
        if elapsed_ms >= self.config.retry_budget_ratio * timeout_seconds * 1000:
            return False
        # The backoff itself must fit inside the remaining budget
        remaining = deadline - asyncio.get_running_loop().time()
        return remaining > self.config.retry_delay_seconds
