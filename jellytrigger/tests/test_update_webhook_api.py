from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from jellytrigger.core.config import Settings
from jellytrigger.main import create_app
from jellytrigger.tests.conftest import signed, wait_until
from jellytrigger_sdk.crypto import sign_body

SECRET = "webhook-secret"


@pytest.fixture
def webhook_settings(make_settings: Callable[..., Settings], tmp_path: Path) -> Settings:
    marker = tmp_path / "updated.txt"
    return make_settings(
        webhook_secret=SECRET,
        project_path=str(tmp_path),
        webhook_update_command=f"echo updated > {marker.name}",
    )


def test_signed_webhook_runs_update_command(webhook_settings: Settings, tmp_path: Path) -> None:
    with TestClient(create_app("update-webhook", webhook_settings)) as client:
        response = client.post("/update", **signed("update-webhook", {"ref": "main"}, secret=SECRET))

        assert response.status_code == 202
        payload = response.json()
        assert payload["success"] is True
        assert payload["message"] == "Update triggered"
        assert payload["timestamp"]
        wait_until(lambda: (tmp_path / "updated.txt").exists())

    assert (tmp_path / "updated.txt").read_text().strip() == "updated"


def test_webhook_requires_timestamp_header(webhook_settings: Settings, tmp_path: Path) -> None:
    body = b'{"ref":"main"}'

    with TestClient(create_app("update-webhook", webhook_settings)) as client:
        response = client.post("/update", content=body, headers={"X-Webhook-Signature": sign_body(SECRET, body)})

    assert response.status_code == 401
    assert response.json()["error"] == "Missing authentication headers"
    assert not (tmp_path / "updated.txt").exists()


def test_webhook_rejects_bad_signature(webhook_settings: Settings) -> None:
    with TestClient(create_app("update-webhook", webhook_settings)) as client:
        response = client.post("/update", **signed("update-webhook", {}, secret="wrong"))

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature", "code": "UNAUTHORIZED"}


def test_webhook_health_reports_project_path(webhook_settings: Settings, tmp_path: Path) -> None:
    with TestClient(create_app("update-webhook", webhook_settings)) as client:
        payload = client.get("/health").json()

    assert payload == {
        "status": "ok",
        "service": "update-webhook",
        "auth": "body_hmac",
        "projectPath": str(tmp_path),
    }
