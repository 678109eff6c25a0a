"""Bearer token signing and verification.

Tokens are issued by the identity provider; this module verifies them and
reduces the payload to the owner id and admin flag the API needs.
mint_token exists for local tooling and tests.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import JWTError, jwt

from s3manager.core.config import get_settings


@dataclass(frozen=True)
class TokenClaims:
    """Verified token contents."""

    owner_id: str
    is_admin: bool
    expires_at: datetime


def _owner_from(payload: dict[str, Any]) -> str:
    # Older issuers put the owner in "username" rather than "sub".
    owner = payload.get("sub") or payload.get("username")
    return str(owner).strip() if owner else ""


def mint_token(
    owner_id: str,
    *,
    is_admin: bool = False,
    expires_delta: timedelta | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """Sign a token for owner_id with SECRET_KEY.

    Args:
        owner_id: Token subject.
        is_admin: Grants the admin routes.
        expires_delta: Optional TTL; else settings.access_token_expire_minutes.
        extra_claims: Merged into the payload before signing (tests use this
            to drop or override standard claims).
    """
    settings = get_settings()
    ttl = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": owner_id,
        "is_admin": is_admin,
        "exp": datetime.now(UTC) + ttl,
    }
    payload.update(extra_claims or {})
    payload = {k: v for k, v in payload.items() if v is not None}
    encoded = jwt.encode(
        payload,
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    return cast(str, encoded)


def verify_token(token: str) -> TokenClaims:
    """Verify signature and expiry, then extract the owner and admin flag.

    Raises:
        ValueError: If the token is invalid, expired, or names no owner.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
            options={"require_exp": True},
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e!s}") from e
    owner_id = _owner_from(payload)
    if not owner_id:
        raise ValueError("Token names no owner (sub)")
    return TokenClaims(
        owner_id=owner_id,
        is_admin=payload.get("is_admin") is True,
        expires_at=datetime.fromtimestamp(int(payload["exp"]), UTC),
    )
