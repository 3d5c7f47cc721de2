"""Caller principal middleware using ContextVar.

Authentication itself happens upstream; the gateway forwards the resolved
caller as ``X-User-ID`` and ``X-User-Role`` headers. The principal is
stored in a ContextVar so that routers and services can call
get_current_principal() without explicit parameter passing.
"""

import logging
from contextvars import ContextVar
from dataclasses import dataclass

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from verticals.marketplace.models.schemas import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: int
    role: str = UserRole.CUSTOMER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


# ---------------------------------------------------------------------------
# Context variable — thread/task-safe principal state
# ---------------------------------------------------------------------------

_current_principal: ContextVar[Principal | None] = ContextVar("current_principal", default=None)


def get_current_principal() -> Principal | None:
    """Return the caller for the current request, or None if anonymous."""
    return _current_principal.get()


async def require_principal() -> Principal:
    """FastAPI dependency: the caller, or 401 for anonymous requests."""
    principal = get_current_principal()
    if principal is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return principal


def _parse_principal(request: Request) -> Principal | None:
    raw_id = request.headers.get("X-User-ID")
    if not raw_id:
        return None
    try:
        user_id = int(raw_id)
    except ValueError:
        logger.warning("Ignoring malformed X-User-ID header: %r", raw_id)
        return None
    role = request.headers.get("X-User-Role", UserRole.CUSTOMER.value)
    return Principal(user_id=user_id, role=role)


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class PrincipalMiddleware(BaseHTTPMiddleware):
    """Extract the caller from forwarded identity headers."""

    async def dispatch(self, request: Request, call_next) -> Response:
        token = _current_principal.set(_parse_principal(request))
        try:
            response = await call_next(request)
            return response
        finally:
            _current_principal.reset(token)
