import pytest

from clipworker.video.errors import StorageError
from clipworker.video.tempfiles import TempFileScope, unique_token


def test_scope_removes_every_file_on_success(tmp_path):
    with TempFileScope(tmp_path / "uploads") as temp_files:
        a = temp_files.new_path("upload", name="me.png")
        b = temp_files.new_path("resized", ".png")
        a.write_bytes(b"a")
        b.write_bytes(b"b")
    assert list((tmp_path / "uploads").iterdir()) == []


def test_scope_removes_files_when_an_exception_escapes(tmp_path):
    with pytest.raises(RuntimeError):
        with TempFileScope(tmp_path) as temp_files:
            temp_files.new_path("fetched", ".jpg").write_bytes(b"x")
            raise RuntimeError("boom")
    assert list(tmp_path.iterdir()) == []


def test_missing_files_are_ignored(tmp_path):
    with TempFileScope(tmp_path) as temp_files:
        temp_files.new_path("never_written")
        gone = temp_files.new_path("gone")
        gone.write_bytes(b"x")
        gone.unlink()
    assert temp_files.paths == []


def test_same_path_is_tracked_once(tmp_path):
    with TempFileScope(tmp_path) as temp_files:
        path = temp_files.new_path("upload")
        temp_files.track(path)
        temp_files.track(str(path))
        assert temp_files.paths == [path]


def test_delete_failure_is_logged_not_raised(tmp_path, caplog):
    with TempFileScope(tmp_path) as temp_files:
        stuck = temp_files.new_path("stuck")
        stuck.mkdir()  # unlink() on a directory fails
    assert "Failed to delete temp file" in caplog.text
    stuck.rmdir()


def test_only_registered_files_are_touched(tmp_path):
    keep = tmp_path / "keep.png"
    keep.write_bytes(b"keep")
    with TempFileScope(tmp_path) as temp_files:
        temp_files.new_path("upload").write_bytes(b"tmp")
    assert [p.name for p in tmp_path.iterdir()] == ["keep.png"]


def test_paths_never_collide(tmp_path):
    with TempFileScope(tmp_path) as temp_files:
        paths = {temp_files.new_path("upload", name="same.png") for _ in range(200)}
    assert len(paths) == 200
    assert unique_token() != unique_token()


def test_unwritable_directory_is_storage_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_bytes(b"")
    with pytest.raises(StorageError):
        with TempFileScope(blocker / "uploads"):
            pass
