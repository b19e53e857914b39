"""HTTP routes exposing the record store."""

from .app import StoreRuntimeState, create_store_app, create_store_router
from .models import ErrorResponse

__all__ = [
    "ErrorResponse",
    "StoreRuntimeState",
    "create_store_app",
    "create_store_router",
]
