import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from enum import Enum

from jellytrigger.core.reason_codes import ReasonCode

logger = logging.getLogger("jellytrigger.signature")

DEFAULT_MAX_SKEW_SECONDS = 300


class AuthMode(str, Enum):
    DISABLED = "disabled"
    BODY_HMAC = "body_hmac"
    TIMESTAMPED_HMAC = "timestamped_hmac"
    SHARED_TOKEN = "shared_token"


@dataclass(frozen=True)
class AuthPolicy:
    """How one trigger service authenticates inbound requests.

    ``DISABLED`` is an explicit fail-open posture, only built when no secret is
    configured. It is reported at startup and in ``/health``.
    """

    mode: AuthMode
    secret: str = ""
    signature_header: str = "X-Signature"
    timestamp_header: str | None = None
    require_timestamp: bool = False
    max_skew_seconds: int = DEFAULT_MAX_SKEW_SECONDS

    @classmethod
    def disabled(cls, *, signature_header: str = "X-Signature") -> "AuthPolicy":
        return cls(mode=AuthMode.DISABLED, signature_header=signature_header)

    @classmethod
    def body_hmac(
        cls,
        secret: str | None,
        *,
        signature_header: str,
        timestamp_header: str | None = None,
        require_timestamp: bool = False,
    ) -> "AuthPolicy":
        if not secret:
            return cls.disabled(signature_header=signature_header)
        return cls(
            mode=AuthMode.BODY_HMAC,
            secret=secret,
            signature_header=signature_header,
            timestamp_header=timestamp_header,
            require_timestamp=require_timestamp,
        )

    @classmethod
    def timestamped_hmac(
        cls,
        secret: str,
        *,
        signature_header: str = "X-Signature",
        timestamp_header: str = "X-Timestamp",
        max_skew_seconds: int = DEFAULT_MAX_SKEW_SECONDS,
    ) -> "AuthPolicy":
        if not secret:
            raise ValueError("timestamped HMAC requires a non-empty secret")
        return cls(
            mode=AuthMode.TIMESTAMPED_HMAC,
            secret=secret,
            signature_header=signature_header,
            timestamp_header=timestamp_header,
            require_timestamp=True,
            max_skew_seconds=max_skew_seconds,
        )

    @classmethod
    def shared_token(cls, secret: str | None, *, signature_header: str) -> "AuthPolicy":
        if not secret:
            return cls.disabled(signature_header=signature_header)
        return cls(mode=AuthMode.SHARED_TOKEN, secret=secret, signature_header=signature_header)

    @property
    def enabled(self) -> bool:
        return self.mode is not AuthMode.DISABLED

    @property
    def header_names(self) -> list[str]:
        names = [self.signature_header]
        if self.timestamp_header:
            names.append(self.timestamp_header)
        return names


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: str | None = None


ACCEPTED = VerificationResult(ok=True)


def normalize_signature(signature: str) -> str:
    value = signature.strip()
    if value[:7].lower() == "sha256=":
        value = value[7:]
    return value.lower()


def compute_body_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def compute_timestamped_signature(secret: str, timestamp: str, raw_body: bytes) -> str:
    message = timestamp.encode("utf-8") + b":" + raw_body
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _digest_matches(expected: str, provided: str) -> bool:
    provided_bytes = normalize_signature(provided).encode("ascii", "replace")
    return hmac.compare_digest(expected.encode("ascii"), provided_bytes)


def verify_signed_request(
    policy: AuthPolicy,
    *,
    raw_body: bytes,
    signature: str | None,
    timestamp: str | None = None,
    now_ms: int | None = None,
) -> VerificationResult:
    if policy.mode is AuthMode.DISABLED:
        return ACCEPTED

    if not signature or (policy.require_timestamp and not timestamp):
        return VerificationResult(ok=False, reason=ReasonCode.MISSING_HEADERS)

    if policy.mode is AuthMode.SHARED_TOKEN:
        if hmac.compare_digest(policy.secret.encode("utf-8"), signature.strip().encode("utf-8")):
            return ACCEPTED
        return VerificationResult(ok=False, reason=ReasonCode.BAD_SIGNATURE)

    if policy.mode is AuthMode.BODY_HMAC:
        expected = compute_body_signature(policy.secret, raw_body)
        if _digest_matches(expected, signature):
            return ACCEPTED
        return VerificationResult(ok=False, reason=ReasonCode.BAD_SIGNATURE)

    if timestamp is None:
        return VerificationResult(ok=False, reason=ReasonCode.MISSING_HEADERS)
    try:
        request_ms = int(timestamp.strip())
    except ValueError:
        return VerificationResult(ok=False, reason=ReasonCode.INVALID_TIMESTAMP)

    current_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    # Stale requests are "expired", never "bad signature".
    if abs(current_ms - request_ms) > policy.max_skew_seconds * 1000:
        return VerificationResult(ok=False, reason=ReasonCode.EXPIRED)

    expected = compute_timestamped_signature(policy.secret, timestamp.strip(), raw_body)
    if _digest_matches(expected, signature):
        return ACCEPTED
    return VerificationResult(ok=False, reason=ReasonCode.BAD_SIGNATURE)
