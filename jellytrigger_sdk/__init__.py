from jellytrigger_sdk.canonical import canonicalize, encode_body
from jellytrigger_sdk.client import (
    AsyncTriggerClient,
    TriggerClient,
    build_signed_request,
)
from jellytrigger_sdk.crypto import (
    now_ms,
    sign_body,
    sign_timestamped,
    verify_body_signature,
)

__all__ = [
    "canonicalize",
    "encode_body",
    "now_ms",
    "sign_body",
    "sign_timestamped",
    "verify_body_signature",
    "build_signed_request",
    "TriggerClient",
    "AsyncTriggerClient",
]
