import json
import logging
from typing import Any

from fastapi import Request

from jellytrigger.core.errors import BadRequest, Expired, Unauthorized
from jellytrigger.core.reason_codes import ReasonCode
from jellytrigger.core.signature import AuthPolicy, verify_signed_request

logger = logging.getLogger("jellytrigger.auth")

_REASON_MESSAGES = {
    ReasonCode.MISSING_HEADERS: "Missing authentication headers",
    ReasonCode.INVALID_TIMESTAMP: "Invalid timestamp",
    ReasonCode.EXPIRED: "Request expired",
    ReasonCode.BAD_SIGNATURE: "Invalid signature",
}


async def read_authenticated_body(request: Request, policy: AuthPolicy) -> bytes:
    """Return the raw request body once its signature checks out.

    The body is read as bytes and verified before any JSON parsing, since the
    signature covers the exact bytes the caller sent.
    """
    raw_body = await request.body()
    signature = request.headers.get(policy.signature_header)
    timestamp = request.headers.get(policy.timestamp_header) if policy.timestamp_header else None

    result = verify_signed_request(
        policy,
        raw_body=raw_body,
        signature=signature,
        timestamp=timestamp,
    )
    if result.ok:
        return raw_body

    logger.warning(
        "request_rejected",
        extra={
            "event_name": "request_rejected",
            "reason": result.reason,
            "path": request.url.path,
            "method": request.method,
        },
    )
    message = _REASON_MESSAGES.get(result.reason or "", "Unauthorized")
    if result.reason == ReasonCode.EXPIRED:
        raise Expired(message)
    raise Unauthorized(message)


def parse_json_object(raw_body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise BadRequest("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise BadRequest("Invalid JSON")
    return payload


def parse_json_object_lenient(raw_body: bytes) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        return parse_json_object(raw_body)
    except BadRequest:
        return {}
