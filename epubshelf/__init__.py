"""epubshelf package - read-only EPUB engine with a small library around it.

This package provides:
    • ArchiveIndex / ArchiveReader – minimal ZIP reader (stored + deflate).
    • assemble_package / read_metadata – EPUB container, OPF and nav parsing.
    • ExtractionCache – one-shot, idempotent extraction of books to disk.
    • SQLAlchemy catalog (epubshelf.models), importer, Flask app, Click CLI.

The core readers do no database or web work, which keeps them easy to test.
"""

__all__ = [
    "ArchiveIndex",
    "ArchiveReader",
    "ExtractionCache",
    "ResolvedPackage",
    "assemble_package",
    "read_metadata",
]

from .archive import ArchiveIndex, ArchiveReader  # noqa: E402
from .assembler import ResolvedPackage, assemble_package, read_metadata  # noqa: E402
from .extraction import ExtractionCache  # noqa: E402
