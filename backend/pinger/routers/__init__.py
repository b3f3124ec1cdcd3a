"""API routers."""
from .targets import router as targets_router, results_router
from .channels import router as channels_router
from .status import router as status_router
from .live import router as live_router

__all__ = ["targets_router", "results_router", "channels_router", "status_router", "live_router"]
