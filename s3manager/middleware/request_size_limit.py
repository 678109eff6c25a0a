"""Request body size limit middleware.

Rejects requests whose body exceeds max_bytes. A declared Content-Length
over the limit is refused before the body is read; otherwise bytes are
counted as the body streams through, so large uploads are never buffered
here. Raw ASGI.
"""

import json
from typing import Any, Callable

from fastapi import HTTPException

from s3manager.middleware.request_id import get_header


async def _send_413(send: Callable, max_bytes: int, actual: int | None = None) -> None:
    """Send 413 Payload Too Large response."""
    details: dict[str, Any] = {"max_bytes": max_bytes}
    if actual is not None:
        details["content_length"] = actual
    body = json.dumps(
        {
            "error": "PAYLOAD_TOO_LARGE",
            "message": f"Request body must be at most {max_bytes} bytes",
            "details": details,
        }
    ).encode()
    await send({
        "type": "http.response.start",
        "status": 413,
        "headers": [(b"content-type", b"application/json")],
    })
    await send({"type": "http.response.body", "body": body, "more_body": False})


def RequestSizeLimitMiddleware(app: Callable, max_bytes: int) -> Callable:
    """Reject request bodies larger than max_bytes. Raw ASGI."""

    async def asgi_app(scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await app(scope, receive, send)
            return

        content_length = get_header(scope, "content-length")
        if content_length and content_length.isdigit() and int(content_length) > max_bytes:
            await _send_413(send, max_bytes, int(content_length))
            return

        received = 0

        async def counting_receive() -> dict:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > max_bytes:
                    # Raised inside body parsing; FastAPI passes HTTPException through.
                    raise HTTPException(
                        status_code=413,
                        detail=f"Request body must be at most {max_bytes} bytes",
                    )
            return message

        await app(scope, counting_receive, send)

    return asgi_app
