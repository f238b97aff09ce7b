from collections.abc import Callable
from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

OPENAPI_TAGS_METADATA = [
    {
        "name": "health",
        "description": "Unauthenticated liveness check with the service's auth posture.",
    },
    {
        "name": "updates",
        "description": "Signed triggers that pull, build or update the deployed application.",
    },
    {
        "name": "nas",
        "description": "Signed, timestamp-bound deletion of media files under allowed roots.",
    },
    {
        "name": "transcode",
        "description": "HandBrake transcode jobs: submit, cancel and list active jobs.",
    },
]

API_DESCRIPTION = """
## jellytrigger

Signed remote-command triggers that run next to a Jellyfin media library.

### Auth model
Each service verifies an HMAC-SHA256 signature computed over the raw request
body before anything is parsed:

- `X-Update-Signature` (git-pull) and `X-Webhook-Signature` (update webhook):
  `hex(HMAC(secret, body))`, optionally prefixed with `sha256=`.
- `X-Signature` + `X-Timestamp` (NAS delete, transcode in `hmac` mode):
  `hex(HMAC(secret, "<timestamp_ms>:" + body))`, with a five minute window.

A service with no secret configured accepts every request and reports
`"auth": "disabled"` in `/health`.

### Error format
Errors are returned as:

```json
{"error": "Human readable message", "code": "SOME_CODE"}
```
"""

COMMON_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: {
        "description": "Missing headers, bad signature or expired timestamp.",
        "content": {
            "application/json": {
                "example": {"error": "Invalid signature", "code": "UNAUTHORIZED"},
            }
        },
    },
    400: {
        "description": "Body is not a JSON object or lacks required fields.",
        "content": {
            "application/json": {
                "example": {"error": "Invalid JSON", "code": "BAD_REQUEST"},
            }
        },
    },
}

QUEUE_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    503: {
        "description": "Background queue is full.",
        "content": {
            "application/json": {
                "example": {"error": "Too many queued operations", "code": "SERVICE_BUSY", "pending": 16},
            }
        },
    },
}


def install_custom_openapi(app: FastAPI) -> Callable[[], dict[str, Any]]:
    def custom_openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = get_openapi(
            title=app.title,
            version=app.version,
            summary=app.summary,
            description=app.description,
            routes=app.routes,
            tags=OPENAPI_TAGS_METADATA,
            servers=app.servers,
        )
        schema.setdefault("info", {})["x-service"] = getattr(app.state, "service_name", None)

        app.openapi_schema = schema
        return app.openapi_schema

    return custom_openapi
