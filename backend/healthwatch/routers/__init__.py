"""API routers."""
from .monitors import router as monitors_router
from .runs import router as runs_router

__all__ = ["monitors_router", "runs_router"]
