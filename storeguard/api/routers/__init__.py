"""API routers for StoreGuard."""

from . import policy

__all__ = [
    "policy",
]
