"""One-shot extraction of EPUB archives into a per-book cache directory.

Layout::

    <cache_root>/<book_id>/...archive paths...
    <cache_root>/<book_id>/.done

The ``.done`` marker is written after every entry; a directory without it
is incomplete and gets wiped and extracted again from scratch.
"""
from __future__ import annotations

import logging
import posixpath
import shutil
from pathlib import Path

from .archive import ArchiveIndex, ArchiveReader
from .errors import ExtractionError

__all__ = ["ExtractionCache", "MARKER_NAME"]

logger = logging.getLogger(__name__)

MARKER_NAME = ".done"


class ExtractionCache:
    """Extract books under *cache_root*, keyed by their stable id.

    Concurrent calls for the same book id must be serialised by the caller.
    """

    def __init__(self, cache_root: Path | str):
        self.cache_root = Path(cache_root).expanduser()

    def folder_for(self, book_id: str) -> Path:
        book_id = str(book_id)
        if not book_id or book_id in {".", ".."} or "/" in book_id or "\\" in book_id:
            raise ValueError(f"invalid book id: {book_id!r}")
        return self.cache_root / book_id

    def is_extracted(self, book_id: str) -> bool:
        return (self.folder_for(book_id) / MARKER_NAME).exists()

    def ensure_extracted(self, archive_path: Path | str, book_id: str) -> Path:
        """Return the extraction folder of *book_id*, extracting if needed."""
        folder = self.folder_for(book_id)
        if (folder / MARKER_NAME).exists():
            return folder
        if folder.exists():
            logger.info("Discarding incomplete extraction in %s", folder)
            shutil.rmtree(folder)
        self._extract_all(Path(archive_path), folder)
        return folder

    def delete(self, book_id: str) -> None:
        """Remove the cached tree of *book_id*; no-op when absent."""
        folder = self.folder_for(book_id)
        if folder.exists():
            shutil.rmtree(folder)
            logger.info("Removed extraction cache %s", folder)

    # ------------------------------------------------------------------

    def _extract_all(self, archive_path: Path, folder: Path) -> None:
        folder.mkdir(parents=True, exist_ok=True)
        with ArchiveIndex.open(archive_path) as index:
            reader = ArchiveReader(index)
            for name in index:
                dest = folder / _safe_relative(name)
                if name.endswith("/"):
                    dest.mkdir(parents=True, exist_ok=True)
                    continue
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(reader.read(name))
                logger.debug("Extracted %s", name)
            count = len(index)
        # marker last: its presence means every entry above was written
        (folder / MARKER_NAME).write_text("ok")
        logger.info("Extracted %d entries of %s into %s", count, archive_path.name, folder)


def _safe_relative(name: str) -> str:
    """Reject entry names that would escape the extraction folder or forge the marker."""
    normalized = posixpath.normpath(name.replace("\\", "/"))
    if (
        name.startswith(("/", "\\"))
        or normalized == ".."
        or normalized.startswith("../")
        or (len(name) > 1 and name[1] == ":")
    ):
        raise ExtractionError(f"unsafe entry path in archive: {name!r}")
    if normalized == MARKER_NAME:
        raise ExtractionError(f"archive entry {name!r} clashes with the completion marker")
    return normalized
