"""Request context management using contextvars.

Provides async-safe storage for request-scoped data (client IP, user agent,
request id) so the audit sink can enrich events without every caller
threading them through.

Usage:
    set_request_context(request_id="abc", ip_address="10.0.0.1")
    ctx = get_request_context()
"""

from contextvars import ContextVar
from dataclasses import dataclass

_current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)
_current_request_id: ContextVar[str | None] = ContextVar(
    "current_request_id", default=None
)
_current_ip_address: ContextVar[str | None] = ContextVar(
    "current_ip_address", default=None
)
_current_user_agent: ContextVar[str | None] = ContextVar(
    "current_user_agent", default=None
)


@dataclass(frozen=True)
class RequestContext:
    """Immutable snapshot of the current request context."""

    user_id: str | None = None
    request_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


def set_request_context(
    *,
    user_id: str | None = None,
    request_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Set the request context for the current task.

    Call from a dependency after authentication. Context is scoped to the
    current async task.

    Args:
        user_id: Authenticated owner id or None.
        request_id: Request id assigned by RequestIDMiddleware.
        ip_address: Optional client IP.
        user_agent: Optional client user agent.
    """
    _current_user_id.set(user_id)
    _current_request_id.set(request_id)
    _current_ip_address.set(ip_address)
    _current_user_agent.set(user_agent)


def clear_request_context() -> None:
    """Clear the request context."""
    _current_user_id.set(None)
    _current_request_id.set(None)
    _current_ip_address.set(None)
    _current_user_agent.set(None)


def get_request_context() -> RequestContext:
    """Return a snapshot of the current request context."""
    return RequestContext(
        user_id=_current_user_id.get(),
        request_id=_current_request_id.get(),
        ip_address=_current_ip_address.get(),
        user_agent=_current_user_agent.get(),
    )
