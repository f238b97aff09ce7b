import time
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from jellytrigger.core.config import Settings
from jellytrigger.main import create_app
from jellytrigger.tests.conftest import NAS_SECRET, signed
from jellytrigger_sdk.crypto import sign_timestamped


def test_health_reports_allowed_paths_without_auth(nas_client: TestClient, media_root: Path) -> None:
    response = nas_client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "nas-delete"
    assert payload["auth"] == "timestamped_hmac"
    assert payload["allowedPaths"] == [
        str(media_root / "movies"),
        str(media_root / "shows"),
        str(media_root / "downloads"),
    ]
    assert "timestamp" in payload


def test_delete_signed_file_under_allowed_root(nas_client: TestClient, media_root: Path) -> None:
    target = media_root / "downloads" / "foo.mkv"
    target.write_bytes(b"video")

    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": str(target)}, secret=NAS_SECRET))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "File deleted", "path": str(target)}
    assert not target.exists()


def test_delete_directory_under_allowed_root(nas_client: TestClient, media_root: Path) -> None:
    show = media_root / "shows" / "Show"
    (show / "Season 01").mkdir(parents=True)
    (show / "Season 01" / "S01E01.mkv").write_bytes(b"x")

    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": str(show)}, secret=NAS_SECRET))

    assert response.status_code == 200
    assert not show.exists()


def test_delete_outside_allowed_roots_is_forbidden(nas_client: TestClient, media_root: Path) -> None:
    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": "/etc/passwd"}, secret=NAS_SECRET))

    assert response.status_code == 403
    payload = response.json()
    assert payload["error"] == "Path not in allowed directories"
    assert payload["path"] == "/etc/passwd"
    assert str(media_root / "movies") in payload["allowedPaths"]
    assert Path("/etc/passwd").exists()


def test_delete_traversal_is_evaluated_on_normalized_path(nas_client: TestClient, media_root: Path) -> None:
    victim = media_root / "victim.txt"
    victim.write_text("keep")
    traversal = str(media_root / "movies" / ".." / "victim.txt")

    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": traversal}, secret=NAS_SECRET))

    assert response.status_code == 403
    assert victim.exists()


def test_delete_missing_file_returns_not_found(nas_client: TestClient, media_root: Path) -> None:
    missing = str(media_root / "movies" / "gone.mkv")

    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": missing}, secret=NAS_SECRET))

    assert response.status_code == 404
    assert response.json()["error"] == "File not found"
    assert response.json()["path"] == missing


def test_delete_with_bad_signature_is_unauthorized(nas_client: TestClient, media_root: Path) -> None:
    target = media_root / "movies" / "keep.mkv"
    target.write_bytes(b"x")

    response = nas_client.post("/delete", **signed("nas-delete", {"filePath": str(target)}, secret="wrong"))

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert target.exists()


def test_delete_with_stale_timestamp_is_expired(nas_client: TestClient, media_root: Path) -> None:
    target = media_root / "movies" / "keep.mkv"
    target.write_bytes(b"x")
    stale = int(time.time() * 1000) - 6 * 60 * 1000

    response = nas_client.post(
        "/delete",
        **signed("nas-delete", {"filePath": str(target)}, secret=NAS_SECRET, timestamp_ms=stale),
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Request expired", "code": "EXPIRED"}
    assert target.exists()


def test_delete_without_headers_is_unauthorized(nas_client: TestClient) -> None:
    response = nas_client.post("/delete", json={"filePath": "/mnt/data/movies/x.mkv"})

    assert response.status_code == 401
    assert response.json()["error"] == "Missing authentication headers"


def test_delete_invalid_json_is_bad_request(nas_client: TestClient) -> None:
    ts = int(time.time() * 1000)
    body = b"{not json"
    response = nas_client.post(
        "/delete",
        content=body,
        headers={"X-Signature": sign_timestamped(NAS_SECRET, ts, body), "X-Timestamp": str(ts)},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON"


def test_delete_missing_file_path_is_bad_request(nas_client: TestClient) -> None:
    response = nas_client.post("/delete", **signed("nas-delete", {"path": "/x"}, secret=NAS_SECRET))

    assert response.status_code == 400
    assert response.json()["error"] == "Missing filePath"


def test_options_preflight_answers_no_content(nas_client: TestClient) -> None:
    response = nas_client.options("/delete")

    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert "X-Signature" in response.headers["access-control-allow-headers"]
    assert "X-Timestamp" in response.headers["access-control-allow-headers"]


def test_unknown_route_is_not_found(nas_client: TestClient) -> None:
    response = nas_client.get("/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_startup_refuses_without_secret(make_settings: Callable[..., Settings], media_root: Path) -> None:
    settings = make_settings(nas_movies_path=str(media_root / "movies"))

    with pytest.raises(ValueError):
        with TestClient(create_app("nas-delete", settings)):
            pass


def test_startup_refuses_without_allowed_paths(make_settings: Callable[..., Settings]) -> None:
    settings = make_settings(nas_delete_secret=NAS_SECRET)

    with pytest.raises(ValueError):
        with TestClient(create_app("nas-delete", settings)):
            pass
