"""Request ID middleware.

Generates or forwards X-Request-ID, echoes it on the response, and seeds
the request context (request id, client IP, user agent) that the audit
sink reads. Client-provided ids are sanitized to prevent log injection.
Raw ASGI so context variables set here are visible to endpoints.
"""

import re
import uuid
from typing import Callable

from s3manager.shared.context import clear_request_context, set_request_context

REQUEST_ID_MAX_LENGTH = 64
REQUEST_ID_ALLOWED_PATTERN = re.compile(
    r"^[a-zA-Z0-9_-]{1," + str(REQUEST_ID_MAX_LENGTH) + r"}$"
)


def get_header(scope: dict, name: str) -> str | None:
    """Return first header value for name (case-insensitive). Headers are (bytes, bytes)."""
    want = name.lower().encode()
    for k, v in scope.get("headers", []):
        if k.lower() == want:
            return v.decode("utf-8", errors="replace")
    return None


def sanitize_request_id(raw: str | None) -> str:
    """Return raw if valid and safe; otherwise a new UUID."""
    if not raw or not REQUEST_ID_ALLOWED_PATTERN.match(raw.strip()):
        return str(uuid.uuid4())
    return raw.strip()


def _client_ip(scope: dict) -> str | None:
    forwarded = get_header(scope, "x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64] or None
    client = scope.get("client")
    return client[0] if client else None


def RequestIDMiddleware(app: Callable, header_name: str = "X-Request-ID") -> Callable:
    """Add or forward the request id header and populate the request context. Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return
        request_id = sanitize_request_id(get_header(scope, header_name))
        scope.setdefault("state", {})["request_id"] = request_id
        set_request_context(
            request_id=request_id,
            ip_address=_client_ip(scope),
            user_agent=get_header(scope, "user-agent"),
        )

        async def send_wrapper(message: dict) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((header_name.encode(), request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await app(scope, receive, send_wrapper)
        finally:
            clear_request_context()

    return asgi_app
