"""Filesystem locations and database URL of a library.

Everything is passed around explicitly as a :class:`LibraryConfig`; tests
point it at a temporary directory.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

__all__ = ["LibraryConfig", "DEFAULT_DATA_DIR", "DATA_DIR_ENV", "DB_URL_ENV"]

DEFAULT_DATA_DIR = Path("~/.epubshelf")
DATA_DIR_ENV = "EPUBSHELF_DATA_DIR"
DB_URL_ENV = "EPUBSHELF_DB_URL"


@dataclass(frozen=True)
class LibraryConfig:
    data_dir: Path
    db_url: str

    @classmethod
    def from_data_dir(cls, data_dir: Path | str, db_url: str | None = None) -> "LibraryConfig":
        data_dir = Path(data_dir).expanduser().resolve()
        return cls(data_dir=data_dir, db_url=db_url or f"sqlite:///{data_dir / 'library.db'}")

    @property
    def ebooks_dir(self) -> Path:
        """Imported EPUB files."""
        return self.data_dir / "ebooks"

    @property
    def covers_dir(self) -> Path:
        return self.data_dir / "covers"

    @property
    def cache_dir(self) -> Path:
        """Root of the extraction cache."""
        return self.data_dir / "extracted"

    def ensure_directories(self) -> None:
        for path in (self.ebooks_dir, self.covers_dir, self.cache_dir):
            path.mkdir(parents=True, exist_ok=True)
