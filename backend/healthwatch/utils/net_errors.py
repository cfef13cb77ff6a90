"""Classification of transport-level failures.

Classification walks the exception chain (``__cause__``, ``__context__`` and
exception groups) and matches on exception types and errno values, so it does
not depend on the wording of any error message.
"""
import errno
import socket
import ssl
from dataclasses import dataclass
from typing import Iterator

import httpx

DNS_FAILURE = "DNS resolution failed"
CONNECTION_REFUSED = "Connection refused"
CONNECTION_RESET = "Connection reset"
HOST_UNREACHABLE = "Host unreachable"
NETWORK_UNREACHABLE = "Network unreachable"
CONNECTION_TIMEOUT = "Connection timeout"
CONNECTION_FAILED = "Connection failed"
TLS_ERROR = "SSL/TLS error"


@dataclass(frozen=True)
class TransportError:
    """A classified transport failure."""
    message: str
    transient: bool = False


def iter_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and every exception it was raised from, each once."""
    seen = set()
    stack = [exc]
    while stack:
        current = stack.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        # Exception groups (e.g. anyio's "all connection attempts failed")
        stack.extend(reversed(getattr(current, "exceptions", None) or ()))
        stack.append(current.__context__)
        stack.append(current.__cause__)


def _tls_reason(exc: ssl.SSLError) -> str:
    # verify_message and reason are only set on errors raised by the ssl module
    return (
        getattr(exc, "verify_message", None)
        or getattr(exc, "reason", None)
        or exc.__class__.__name__
    )


def _classify_one(exc: BaseException) -> TransportError | None:
    if isinstance(exc, socket.gaierror):
        # EAI_AGAIN is a temporary resolver failure
        return TransportError(DNS_FAILURE, transient=exc.errno == socket.EAI_AGAIN)
    # SSLError is an OSError whose errno is an OpenSSL code; check it first
    if isinstance(exc, ssl.SSLError):
        return TransportError(f"{TLS_ERROR}: {_tls_reason(exc)}")
    if isinstance(exc, ConnectionRefusedError):
        return TransportError(CONNECTION_REFUSED)
    if isinstance(exc, ConnectionResetError):
        return TransportError(CONNECTION_RESET, transient=True)
    if isinstance(exc, (TimeoutError, httpx.TimeoutException)):
        return TransportError(CONNECTION_TIMEOUT, transient=True)
    if isinstance(exc, OSError) and exc.errno is not None:
        if exc.errno == errno.ECONNREFUSED:
            return TransportError(CONNECTION_REFUSED)
        if exc.errno == errno.ECONNRESET:
            return TransportError(CONNECTION_RESET, transient=True)
        if exc.errno == errno.EHOSTUNREACH:
            return TransportError(HOST_UNREACHABLE)
        if exc.errno == errno.ENETUNREACH:
            return TransportError(NETWORK_UNREACHABLE)
        if exc.errno == errno.ETIMEDOUT:
            return TransportError(CONNECTION_TIMEOUT, transient=True)
    return None


def classify_transport_error(exc: BaseException) -> TransportError:
    """Map a transport failure to a stable error string.

    The first recognised exception in the chain wins; anything unrecognised
    is reported as a generic connection failure.
    """
    for current in iter_exception_chain(exc):
        classified = _classify_one(current)
        if classified is not None:
            return classified
    return TransportError(CONNECTION_FAILED)
