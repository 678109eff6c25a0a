"""Authentication dependencies: bearer JWT -> Principal.

Tokens are issued elsewhere; this layer only verifies them. The
authenticated owner id is pushed into the request context so audit
entries carry it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from s3manager.domain.exceptions import AuthenticationException, ForbiddenError
from s3manager.infrastructure.security.jwt import verify_token
from s3manager.shared.context import get_request_context, set_request_context

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: owner id plus the admin role flag."""

    user_id: str
    is_admin: bool = False


async def get_current_principal(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> Principal:
    """Verify the bearer token and return the caller.

    Raises:
        AuthenticationException: If the token is missing, invalid or expired.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Not authenticated")
    try:
        claims = verify_token(credentials.credentials)
    except ValueError as e:
        raise AuthenticationException("Could not validate credentials") from e
    principal = Principal(user_id=claims.owner_id, is_admin=claims.is_admin)
    ctx = get_request_context()
    set_request_context(
        user_id=principal.user_id,
        request_id=ctx.request_id or getattr(request.state, "request_id", None),
        ip_address=ctx.ip_address or (request.client.host if request.client else None),
        user_agent=ctx.user_agent or request.headers.get("user-agent"),
    )
    return principal


async def require_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Admin-only routes: 403 for non-admin callers."""
    if not principal.is_admin:
        raise ForbiddenError(message="Admin privileges required")
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(require_admin)]
