import asyncio
import json

import httpx
import pytest

from jellytrigger.core.signature import (
    AuthPolicy,
    verify_signed_request,
)
from jellytrigger_sdk import (
    AsyncTriggerClient,
    TriggerClient,
    build_signed_request,
    canonicalize,
    sign_body,
    sign_timestamped,
    verify_body_signature,
)

SECRET = "sdk-secret"


def test_canonicalize_is_compact_and_sorted() -> None:
    assert canonicalize({"b": 1, "a": "ø"}) == '{"a":"ø","b":1}'


def test_sign_timestamped_known_vector() -> None:
    assert sign_timestamped("key", 1000, b"{}") == sign_body("key", b"1000:{}")


def test_verify_body_signature_accepts_prefix() -> None:
    body = b'{"updateId":"u"}'
    assert verify_body_signature(SECRET, body, "sha256=" + sign_body(SECRET, body))
    assert not verify_body_signature(SECRET, body, sign_body("other", body))


def test_signed_delete_request_verifies_server_side() -> None:
    request = build_signed_request("nas-delete", {"filePath": "/mnt/a.mkv"}, secret=SECRET, timestamp_ms=5_000)

    headers = request["headers"]
    assert headers["X-Timestamp"] == "5000"
    result = verify_signed_request(
        AuthPolicy.timestamped_hmac(SECRET),
        raw_body=request["body"],
        signature=headers["X-Signature"],
        timestamp=headers["X-Timestamp"],
        now_ms=5_000,
    )
    assert result.ok


def test_git_pull_and_webhook_headers() -> None:
    git_pull = build_signed_request("git-pull", {}, secret=SECRET)
    webhook = build_signed_request("update-webhook", {}, secret=SECRET, timestamp_ms=1)
    unsigned = build_signed_request("git-pull", {}, secret=None)

    assert git_pull["headers"]["X-Update-Signature"] == sign_body(SECRET, b"{}")
    assert webhook["headers"]["X-Webhook-Signature"] == sign_body(SECRET, b"{}")
    assert webhook["headers"]["X-Webhook-Timestamp"] == "1"
    assert set(unsigned["headers"]) == {"Content-Type"}


def test_transcode_token_mode_sends_secret_header() -> None:
    request = build_signed_request("transcode", {"jobId": "j"}, secret=SECRET, transcode_auth_mode="token")

    assert request["headers"]["X-Transcode-Secret"] == SECRET
    assert "X-Signature" not in request["headers"]


def test_sync_client_delete_path() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/delete"
        assert request.headers["X-Signature"] == sign_timestamped(
            SECRET, request.headers["X-Timestamp"], request.content
        )
        path = json.loads(request.content)["filePath"]
        return httpx.Response(200, json={"success": True, "message": "File deleted", "path": path})

    sdk = TriggerClient(base_url="http://nas.test/", secret=SECRET, transport=httpx.MockTransport(handler))

    result = sdk.delete_path("/mnt/data/downloads/foo.mkv")
    assert result["path"] == "/mnt/data/downloads/foo.mkv"


def test_sync_client_health_and_git_pull() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/health":
            return httpx.Response(200, json={"status": "ok", "service": "git-pull", "auth": "disabled"})
        assert json.loads(request.content) == {"updateId": "u-9"}
        return httpx.Response(202, json={"status": "accepted", "message": "Update started", "queued": True})

    sdk = TriggerClient(base_url="http://pull.test", transport=httpx.MockTransport(handler))

    assert sdk.health()["service"] == "git-pull"
    assert sdk.trigger_git_pull("u-9")["queued"] is True


def test_async_client_transcode_and_cancel() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if request.url.path == "/transcode":
            assert body == {"filePath": "/in.mkv", "jobId": "j1", "outputFormat": "h264", "replaceOriginal": False}
            return httpx.Response(202, json={"status": "accepted", "jobId": "j1"})
        assert request.url.path == "/cancel"
        return httpx.Response(200, json={"success": True})

    sdk = AsyncTriggerClient(base_url="http://transcode.test", secret=SECRET, transport=httpx.MockTransport(handler))

    async def run() -> None:
        accepted = await sdk.start_transcode(job_id="j1", file_path="/in.mkv", output_format="h264", replace_original=False)
        cancelled = await sdk.cancel_transcode("j1")
        assert accepted["jobId"] == "j1"
        assert cancelled["success"] is True

    asyncio.run(run())


def test_client_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Invalid signature", "code": "UNAUTHORIZED"})

    sdk = TriggerClient(base_url="http://nas.test", secret="wrong", transport=httpx.MockTransport(handler))

    with pytest.raises(httpx.HTTPStatusError) as exc_info:
        sdk.trigger_update()

    assert exc_info.value.response.status_code == 401
