import hashlib
import hmac
import time


def _as_bytes(body: bytes | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def now_ms() -> int:
    return int(time.time() * 1000)


def sign_body(secret: str, body: bytes | str) -> str:
    """Hex HMAC-SHA256 of the exact body bytes (git-pull, update webhook, transcode hmac)."""
    return hmac.new(secret.encode("utf-8"), _as_bytes(body), hashlib.sha256).hexdigest()


def sign_timestamped(secret: str, timestamp_ms: int | str, body: bytes | str) -> str:
    """Hex HMAC-SHA256 of ``"<timestamp_ms>:" + body`` (NAS delete, transcode)."""
    message = f"{timestamp_ms}:".encode() + _as_bytes(body)
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_body_signature(secret: str, body: bytes | str, signature: str) -> bool:
    provided = signature.strip().lower().removeprefix("sha256=")
    return hmac.compare_digest(sign_body(secret, body), provided)
