"""Services for probing, inspecting, storing, and scheduling checks."""
from .engine import CheckEngine
from .http_prober import HttpCheckResult, HttpProber
from .normalizer import InvalidMonitor
from .scheduler import SchedulerService
from .store import SqlMonitorStore, StoreError
from .tls_inspector import SslCheckResult, TlsInspector

__all__ = [
    "CheckEngine",
    "HttpCheckResult",
    "HttpProber",
    "InvalidMonitor",
    "SchedulerService",
    "SqlMonitorStore",
    "SslCheckResult",
    "StoreError",
    "TlsInspector",
]
