"""Tests for FileCollector and LocalFile."""
import pytest

from fileuploader.orchestrator.file_collector import FileCollector
from fileuploader.services.sources import LocalFile


def _touch(path, content=b"data"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def test_collects_files_and_folders(tmp_path):
    single = _touch(tmp_path / "single.txt")
    folder = tmp_path / "album"
    _touch(folder / "b.jpg")
    _touch(folder / "a.png")
    _touch(folder / "nested" / "c.mp4")

    files = FileCollector.collect_files([single, folder])

    assert [f.name for f in files] == ["single.txt", "a.png", "b.jpg", "c.mp4"]
    assert all(isinstance(f, LocalFile) for f in files)


def test_hidden_entries_skipped_by_default(tmp_path):
    _touch(tmp_path / "visible.txt")
    _touch(tmp_path / ".secret")
    _touch(tmp_path / ".cache" / "blob.bin")

    names = [f.name for f in FileCollector.collect_files([tmp_path])]
    assert names == ["visible.txt"]

    names = sorted(f.name for f in FileCollector.collect_files([tmp_path], include_hidden=True))
    assert names == [".secret", "blob.bin", "visible.txt"]


def test_missing_paths_are_ignored(tmp_path):
    assert FileCollector.collect_files([tmp_path / "nope"]) == []


def test_local_file_from_path(tmp_path):
    path = _touch(tmp_path / "photo.JPG", b"x" * 42)

    local = LocalFile.from_path(path)

    assert local.name == "photo.JPG"
    assert local.size == 42
    assert local.content_type == "image/jpeg"
    assert local.read_bytes() == b"x" * 42
    assert LocalFile.from_path(path, content_type="application/x-raw").content_type == "application/x-raw"


@pytest.mark.asyncio
async def test_local_file_read_chunks(tmp_path):
    path = _touch(tmp_path / "data.bin", bytes(range(10)))

    chunks = [chunk async for chunk in LocalFile.from_path(path).read_chunks(4)]

    assert [len(c) for c in chunks] == [4, 4, 2]
    assert b"".join(chunks) == bytes(range(10))
