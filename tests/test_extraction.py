import zipfile
from pathlib import Path

import pytest

from epubshelf.archive import ArchiveReader
from epubshelf.errors import ExtractionError
from epubshelf.extraction import MARKER_NAME, ExtractionCache

from conftest import sample_files


@pytest.fixture()
def cache(tmp_path: Path) -> ExtractionCache:
    return ExtractionCache(tmp_path / "cache")


@pytest.fixture()
def count_reads(monkeypatch):
    calls = []
    original = ArchiveReader.read

    def counting(self, name):
        calls.append(name)
        return original(self, name)

    monkeypatch.setattr(ArchiveReader, "read", counting)
    return calls


def _assert_mirrors(folder: Path, archive: Path):
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = folder / info.filename
            if info.is_dir():
                assert target.is_dir()
            else:
                assert target.read_bytes() == zf.read(info)


def test_round_trip_and_marker(cache, sample_epub, count_reads):
    folder = cache.ensure_extracted(sample_epub, "book-1")

    assert folder == cache.cache_root / "book-1"
    assert (folder / MARKER_NAME).is_file()
    assert cache.is_extracted("book-1")
    assert (folder / "OEBPS" / "images").is_dir()
    _assert_mirrors(folder, sample_epub)
    assert len(count_reads) == len(sample_files())

    # second call is served from the marker, nothing is read again
    count_reads.clear()
    assert cache.ensure_extracted(sample_epub, "book-1") == folder
    assert count_reads == []


def test_mixed_stored_and_deflate(cache, make_zip):
    archive = make_zip(
        [
            ("docs/", b"", 0),
            ("docs/readme.txt", b"stored text", 0),
            ("docs/big.txt", b"deflated " * 1000, 8),
            ("top.bin", bytes(range(200)), 8),
        ]
    )
    folder = cache.ensure_extracted(archive, "raw")
    assert (folder / "docs").is_dir()
    assert (folder / "docs" / "readme.txt").read_bytes() == b"stored text"
    assert (folder / "docs" / "big.txt").read_bytes() == b"deflated " * 1000
    assert (folder / "top.bin").read_bytes() == bytes(range(200))


def test_partial_tree_without_marker_is_redone(cache, sample_epub):
    folder = cache.folder_for("book-2")
    (folder / "OEBPS").mkdir(parents=True)
    (folder / "OEBPS" / "ch1.xhtml").write_text("half written garbage")
    (folder / "leftover.tmp").write_text("from an older run")

    cache.ensure_extracted(sample_epub, "book-2")

    _assert_mirrors(folder, sample_epub)
    assert not (folder / "leftover.tmp").exists()
    assert (folder / MARKER_NAME).exists()


def test_crash_mid_extraction_leaves_no_marker(cache, sample_epub, monkeypatch):
    original = ArchiveReader.read
    calls = []

    def flaky(self, name):
        calls.append(name)
        if len(calls) == 3:
            raise OSError("disk went away")
        return original(self, name)

    monkeypatch.setattr(ArchiveReader, "read", flaky)
    with pytest.raises(OSError):
        cache.ensure_extracted(sample_epub, "book-3")
    assert not cache.is_extracted("book-3")
    assert cache.folder_for("book-3").exists()

    monkeypatch.setattr(ArchiveReader, "read", original)
    folder = cache.ensure_extracted(sample_epub, "book-3")
    _assert_mirrors(folder, sample_epub)
    assert cache.is_extracted("book-3")


def test_delete(cache, sample_epub):
    cache.ensure_extracted(sample_epub, "book-4")
    cache.delete("book-4")
    assert not cache.folder_for("book-4").exists()
    # nothing there any more: still fine
    cache.delete("book-4")
    cache.delete("never-extracted")


def test_entry_escaping_cache_dir_is_rejected(cache, make_zip, tmp_path: Path):
    archive = make_zip([("ok.txt", b"fine", 0), ("../../evil.txt", b"gotcha", 0)])
    with pytest.raises(ExtractionError):
        cache.ensure_extracted(archive, "evil")
    assert not (tmp_path / "evil.txt").exists()
    assert not cache.is_extracted("evil")


@pytest.mark.parametrize("marker_entry", [MARKER_NAME, "./" + MARKER_NAME, MARKER_NAME + "/"])
def test_entry_named_like_marker_is_rejected(cache, make_zip, monkeypatch, marker_entry):
    archive = make_zip([(marker_entry, b"x", 0), ("a.txt", b"a", 0)])
    original = ArchiveReader.read

    def failing(self, name):
        if name == "a.txt":
            raise OSError("disk went away")
        return original(self, name)

    monkeypatch.setattr(ArchiveReader, "read", failing)
    with pytest.raises(ExtractionError):
        cache.ensure_extracted(archive, "forged")
    assert not cache.is_extracted("forged")


@pytest.mark.parametrize("book_id", ["", "..", "a/b"])
def test_invalid_book_ids(cache, book_id):
    with pytest.raises(ValueError):
        cache.folder_for(book_id)
