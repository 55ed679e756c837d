"""Catalog population: importing, deleting and progress bookkeeping."""

from __future__ import annotations

import datetime as _dt
import logging
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .assembler import read_metadata
from .config import LibraryConfig
from .errors import EpubError, NotAnArchiveError
from .extraction import ExtractionCache
from .models import Ebook, get_session, init_db

__all__ = [
    "ImportReport",
    "import_books",
    "delete_book",
    "save_progress",
    "guess_metadata",
    "unique_file_name",
]

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown"
DEFAULT_GENRE = "Unsorted"


@dataclass
class ImportReport:
    imported: List[Ebook] = field(default_factory=list)
    failed: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def guess_metadata(file_name: str) -> Tuple[str, str]:
    """``"Author - Title.epub"`` -> ``(title, author)``."""
    stem = Path(file_name).stem
    parts = [p.strip() for p in stem.split("-", 1)]
    if len(parts) == 2 and all(parts):
        return parts[1], parts[0]
    return stem, UNKNOWN_AUTHOR


def unique_file_name(directory: Path, proposed: str) -> str:
    """Return *proposed* or ``"<stem> (N).<ext>"`` if the name is taken."""
    path = Path(proposed)
    stem = path.stem if path.suffix else path.name
    ext = path.suffix.lstrip(".") or "epub"
    candidate = f"{stem}.{ext}"
    index = 1
    while (directory / candidate).exists():
        index += 1
        candidate = f"{stem} ({index}).{ext}"
    return candidate


def import_books(paths: Iterable[Path | str], config: LibraryConfig) -> ImportReport:
    """Copy each file into the library and add a catalog row.

    Failures are recorded per file; the remaining files are still imported.
    """
    config.ensure_directories()
    init_db(config.db_url)
    report = ImportReport()
    session = get_session()
    try:
        for path in map(Path, paths):
            try:
                book = _import_one(path, config)
            except (EpubError, OSError) as exc:
                logger.warning("Import of %s failed: %s", path, exc)
                report.failed.append((path, str(exc)))
                continue
            copied = [config.ebooks_dir / book.file_name]
            if book.cover_file_name:
                copied.append(config.covers_dir / book.cover_file_name)
            try:
                session.add(book)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                for leftover in copied:
                    leftover.unlink(missing_ok=True)
                logger.error("Import of %s failed: %s", path, exc)
                report.failed.append((path, str(exc)))
                continue
            logger.info("Imported %s as %s (%s)", path.name, book.id, book.title)
            report.imported.append(book)
    finally:
        session.close()
    return report


def _import_one(source: Path, config: LibraryConfig) -> Ebook:
    if not source.is_file():
        raise FileNotFoundError(f"no such file: {source}")
    file_name = unique_file_name(config.ebooks_dir, source.name)
    local = config.ebooks_dir / file_name
    shutil.copyfile(source, local)

    title = author = None
    subjects: List[str] = []
    cover_name = None
    try:
        meta = read_metadata(local)
    except NotAnArchiveError:
        local.unlink(missing_ok=True)
        raise
    except EpubError as exc:
        # unreadable package metadata is not fatal, the filename still names the book
        logger.warning("%s: no package metadata (%s), guessing from file name", source.name, exc)
    else:
        title, author, subjects = meta.title, meta.author, meta.subjects
        if meta.cover_bytes:
            cover_name = f"{uuid.uuid4().hex}.{meta.cover_extension or 'jpg'}"
            try:
                (config.covers_dir / cover_name).write_bytes(meta.cover_bytes)
            except OSError:
                local.unlink(missing_ok=True)
                raise

    if not title or not author:
        guessed_title, guessed_author = guess_metadata(file_name)
        title = title or guessed_title
        author = author or guessed_author

    return Ebook(
        title=title,
        author=author,
        genre=subjects[0] if subjects else DEFAULT_GENRE,
        file_name=file_name,
        cover_file_name=cover_name,
    )


def delete_book(book_id: str, config: LibraryConfig) -> bool:
    """Remove a book with its file, cover and extraction cache."""
    init_db(config.db_url)
    session = get_session()
    try:
        book = session.get(Ebook, book_id)
        if book is None:
            return False
        (config.ebooks_dir / book.file_name).unlink(missing_ok=True)
        if book.cover_file_name:
            (config.covers_dir / book.cover_file_name).unlink(missing_ok=True)
        ExtractionCache(config.cache_dir).delete(book.id)
        session.delete(book)
        session.commit()
    finally:
        session.close()
    logger.info("Deleted book %s", book_id)
    return True


def save_progress(book_id: str, index: int, page: int, config: LibraryConfig) -> Ebook | None:
    init_db(config.db_url)
    session = get_session()
    try:
        book = session.get(Ebook, book_id)
        if book is None:
            return None
        book.last_read_index = max(0, index)
        book.last_read_page = max(0, page)
        book.last_read_at = _dt.datetime.now(_dt.timezone.utc).replace(tzinfo=None)
        session.commit()
        return book
    finally:
        session.close()
