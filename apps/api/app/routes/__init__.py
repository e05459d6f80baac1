"""Route modules."""

from .jobs import router as jobs_router
from .system import router as system_router

__all__ = ["jobs_router", "system_router"]
