import shlex
import sys
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jellytrigger.core.config import Settings
from jellytrigger.main import create_app
from jellytrigger_sdk.client import build_signed_request

NAS_SECRET = "nas-test-secret"
TRANSCODE_SECRET = "transcode-test-secret"

FAKE_ENCODER = """\
import os
import sys
import time

args = sys.argv[1:]
output = args[args.index("-o") + 1]
mode = os.environ.get("FAKE_ENCODER_MODE", "ok")

for percent in ("12.50", "50,00", "99.90"):
    sys.stdout.write(f"Encoding: task 1 of 1, {percent} % (30.00 fps)\\r")
    sys.stdout.flush()

if mode == "fail":
    sys.stdout.write("\\nERROR: simulated encoder failure\\n")
    sys.stdout.flush()
    sys.exit(3)

size = 10 if mode == "small" else 4096
with open(output, "wb") as handle:
    handle.write(b"x" * size)

if mode == "hang":
    time.sleep(60)
"""


@pytest.fixture(autouse=True)
def _keep_pytest_log_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("jellytrigger.observability.logging._LOGGING_CONFIGURED", True)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def factory(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]

    return factory


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "mnt" / "data"
    for name in ("movies", "shows", "downloads"):
        (root / name).mkdir(parents=True)
    return root


@pytest.fixture
def nas_settings(make_settings: Callable[..., Settings], media_root: Path) -> Settings:
    return make_settings(
        nas_delete_secret=NAS_SECRET,
        nas_movies_path=str(media_root / "movies"),
        nas_shows_path=str(media_root / "shows"),
        nas_downloads_path=str(media_root / "downloads"),
    )


@pytest.fixture
def nas_client(nas_settings: Settings) -> Iterator[TestClient]:
    with TestClient(create_app("nas-delete", nas_settings)) as client:
        yield client


@pytest.fixture
def fake_encoder(tmp_path: Path) -> str:
    script = tmp_path / "fake_handbrake.py"
    script.write_text(FAKE_ENCODER)
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


def signed(
    service: str,
    payload: dict[str, Any],
    *,
    secret: str | None,
    timestamp_ms: int | None = None,
) -> dict[str, Any]:
    """Keyword arguments for ``TestClient.post`` carrying a signed body."""
    request = build_signed_request(service, payload, secret=secret, timestamp_ms=timestamp_ms)  # type: ignore[arg-type]
    return {"content": request["body"], "headers": request["headers"]}


def wait_until(predicate: Callable[[], bool], timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.05)
    raise AssertionError("condition not met before timeout")
