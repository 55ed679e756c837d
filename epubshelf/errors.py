"""Exceptions raised by the archive and package readers."""
from __future__ import annotations

__all__ = [
    "EpubError",
    "NotAnArchiveError",
    "TruncatedArchiveError",
    "UnsupportedCompressionError",
    "EntryNotFoundError",
    "MissingContainerError",
    "MissingPackageDocumentError",
    "InvalidPackageError",
    "ExtractionError",
]


class EpubError(RuntimeError):
    pass


class NotAnArchiveError(EpubError):
    """Missing or wrong ZIP signature."""


class TruncatedArchiveError(EpubError):
    """Central directory or entry data shorter than declared."""


class UnsupportedCompressionError(EpubError):
    def __init__(self, name: str, method: int):
        super().__init__(f"{name}: unsupported compression method {method}")
        self.name = name
        self.method = method


class EntryNotFoundError(EpubError):
    def __init__(self, name: str):
        super().__init__(f"no such archive entry: {name}")
        self.name = name


class MissingContainerError(EpubError):
    pass


class MissingPackageDocumentError(EpubError):
    pass


class InvalidPackageError(EpubError):
    """Well-formed enough to read but a mandatory element/attribute is absent."""


class ExtractionError(EpubError, OSError):
    """Entry path would land outside the extraction directory."""
