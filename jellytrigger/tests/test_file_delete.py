import os
from pathlib import Path

import pytest

from jellytrigger.core.errors import ExecutionFailed, NotFound
from jellytrigger.modules.file_delete.service import delete_path


def test_delete_file_removes_only_that_file(tmp_path: Path) -> None:
    target = tmp_path / "foo.mkv"
    sibling = tmp_path / "foo.srt"
    target.write_bytes(b"video")
    sibling.write_text("subs")

    result = delete_path(str(target))

    assert result.kind == "file"
    assert not target.exists()
    assert sibling.exists()


def test_delete_directory_is_recursive(tmp_path: Path) -> None:
    season = tmp_path / "Show" / "Season 01"
    season.mkdir(parents=True)
    (season / "S01E01.mkv").write_bytes(b"a")
    (season / "S01E02.mkv").write_bytes(b"b")

    result = delete_path(str(tmp_path / "Show"))

    assert result.kind == "directory"
    assert not (tmp_path / "Show").exists()
    assert list(tmp_path.iterdir()) == []


def test_delete_missing_path_raises_not_found_without_mutation(tmp_path: Path) -> None:
    (tmp_path / "keep.mkv").write_bytes(b"keep")

    with pytest.raises(NotFound) as exc_info:
        delete_path(str(tmp_path / "missing.mkv"))

    assert exc_info.value.to_body()["path"] == str(tmp_path / "missing.mkv")
    assert [entry.name for entry in tmp_path.iterdir()] == ["keep.mkv"]


def test_delete_symlink_removes_link_not_target(tmp_path: Path) -> None:
    target_dir = tmp_path / "real"
    target_dir.mkdir()
    (target_dir / "movie.mkv").write_bytes(b"m")
    link = tmp_path / "link"
    os.symlink(target_dir, link)

    delete_path(str(link))

    assert not os.path.lexists(link)
    assert (target_dir / "movie.mkv").exists()


def test_delete_surfaces_os_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "locked.mkv"
    target.write_bytes(b"x")

    def refuse(_: str) -> None:
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("jellytrigger.modules.file_delete.service.os.unlink", refuse)

    with pytest.raises(ExecutionFailed) as exc_info:
        delete_path(str(target))

    body = exc_info.value.to_body()
    assert body["error"] == "Failed to delete file"
    assert "Permission denied" in body["details"]
    assert target.exists()
