"""Principal identification middleware.

StoreGuard runs behind the authentication gateway, which validates the
session and forwards the principal id in a trusted header. This middleware
only copies it onto ``request.state``; it never authenticates.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

PRINCIPAL_HEADER = "X-Principal-Id"


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Expose the forwarded principal id as ``request.state.principal_id``."""

    def __init__(self, app, header_name: str = PRINCIPAL_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        principal_id = request.headers.get(self.header_name)
        request.state.principal_id = principal_id or None
        return await call_next(request)
