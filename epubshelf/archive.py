"""Minimal read-only ZIP reader, just enough for EPUB containers.

Only the *central directory* is trusted for the list of entries; the
payload of an entry is located through its *local file header*, whose
extra field may have a different length than the central-directory copy.

Supported: stored (0) and deflate (8) entries.  Not supported: ZIP64,
encryption, multi-disk archives.

Example:
>>> with ArchiveIndex.open(Path("book.epub")) as index:
...     data = ArchiveReader(index).read("META-INF/container.xml")
"""
from __future__ import annotations

import enum
import logging
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterator

from .errors import (
    EntryNotFoundError,
    NotAnArchiveError,
    TruncatedArchiveError,
    UnsupportedCompressionError,
)

__all__ = [
    "ArchiveEntry",
    "ArchiveIndex",
    "ArchiveReader",
    "CompressionMethod",
]

logger = logging.getLogger(__name__)

EOCD_SIG = b"PK\x05\x06"
CENTRAL_SIG = b"PK\x01\x02"
LOCAL_SIG = b"PK\x03\x04"

EOCD_SIZE = 22
CENTRAL_HEADER_SIZE = 46
LOCAL_HEADER_SIZE = 30
# EOCD (22 bytes) + longest possible comment (0xFFFF)
MAX_EOCD_SEARCH = EOCD_SIZE + 0xFFFF


def _le16(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 2], "little")


def _le32(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 4], "little")


class CompressionMethod(enum.IntEnum):
    STORED = 0
    DEFLATE = 8


@dataclass(frozen=True)
class ArchiveEntry:
    """One central-directory record."""

    name: str
    compression_method: int
    local_header_offset: int
    compressed_size: int
    uncompressed_size: int

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


class ArchiveIndex:
    """Name -> :class:`ArchiveEntry` map of an open archive.

    The index owns the underlying file handle until :meth:`close` (or the
    end of a ``with`` block).  One handle serves one reader at a time.
    """

    def __init__(self, fh: BinaryIO, entries: Dict[str, ArchiveEntry], path: Path | None = None):
        self._fh = fh
        self.entries = entries
        self.path = path

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, path: Path | str) -> "ArchiveIndex":
        """Open *path* and parse its central directory."""
        path = Path(path)
        fh = path.open("rb")
        try:
            entries = _read_central_directory(fh)
        except BaseException:
            fh.close()
            raise
        logger.debug("Indexed %d entries in %s", len(entries), path)
        return cls(fh, entries, path)

    # ------------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, name: str) -> ArchiveEntry | None:
        return self.entries.get(name)

    def namelist(self) -> list[str]:
        return list(self.entries)

    # ------------------------------------------------------------------
    # Handle management
    # ------------------------------------------------------------------

    @property
    def handle(self) -> BinaryIO:
        return self._fh

    @property
    def closed(self) -> bool:
        return self._fh.closed

    def close(self) -> None:
        self._fh.close()

    def __enter__(self) -> "ArchiveIndex":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ArchiveReader:
    """Reads and decompresses entry payloads of an :class:`ArchiveIndex`."""

    def __init__(self, index: ArchiveIndex):
        self.index = index

    def read(self, name: str) -> bytes:
        entry = self.index.get(name)
        if entry is None:
            raise EntryNotFoundError(name)
        fh = self.index.handle

        fh.seek(entry.local_header_offset)
        header = fh.read(LOCAL_HEADER_SIZE)
        if len(header) < LOCAL_HEADER_SIZE:
            raise TruncatedArchiveError(f"{name}: local header cut short")
        if header[:4] != LOCAL_SIG:
            raise NotAnArchiveError(f"{name}: bad local header signature")
        # the local copy of name/extra lengths decides where the data starts
        name_len = _le16(header, 26)
        extra_len = _le16(header, 28)
        fh.seek(entry.local_header_offset + LOCAL_HEADER_SIZE + name_len + extra_len)
        payload = fh.read(entry.compressed_size)
        if len(payload) < entry.compressed_size:
            raise TruncatedArchiveError(
                f"{name}: expected {entry.compressed_size} bytes, got {len(payload)}"
            )

        if entry.compression_method == CompressionMethod.STORED:
            return payload
        if entry.compression_method == CompressionMethod.DEFLATE:
            return _inflate(name, payload, entry.uncompressed_size)
        raise UnsupportedCompressionError(name, entry.compression_method)


# ----------------------------------------------------------------------
# Internal helpers
# ----------------------------------------------------------------------


def _find_eocd(tail: bytes) -> int | None:
    """Return the offset of the EOCD record within *tail*.

    The record is followed by a comment of variable length, so we scan
    backwards.  A candidate whose comment-length field accounts exactly for
    the remaining bytes is preferred; the same byte pattern can show up
    inside the comment itself.
    """
    first_match = None
    pos = tail.rfind(EOCD_SIG, 0, len(tail) - EOCD_SIZE + 4)
    while pos != -1:
        if pos + EOCD_SIZE <= len(tail):
            if first_match is None:
                first_match = pos
            if pos + EOCD_SIZE + _le16(tail, pos + 20) == len(tail):
                return pos
        pos = tail.rfind(EOCD_SIG, 0, pos)
    return first_match


def _read_central_directory(fh: BinaryIO) -> Dict[str, ArchiveEntry]:
    fh.seek(0, 2)
    size = fh.tell()
    search = min(MAX_EOCD_SEARCH, size)
    fh.seek(size - search)
    tail = fh.read(search)

    eocd_pos = _find_eocd(tail)
    if eocd_pos is None:
        raise NotAnArchiveError("end of central directory record not found")
    eocd = tail[eocd_pos : eocd_pos + EOCD_SIZE]
    cd_size = _le32(eocd, 12)
    cd_offset = _le32(eocd, 16)

    fh.seek(cd_offset)
    cd = fh.read(cd_size)

    entries: Dict[str, ArchiveEntry] = {}
    cursor = 0
    while cursor + CENTRAL_HEADER_SIZE <= len(cd):
        if cd[cursor : cursor + 4] != CENTRAL_SIG:
            break
        name_len = _le16(cd, cursor + 28)
        extra_len = _le16(cd, cursor + 30)
        comment_len = _le16(cd, cursor + 32)
        name_start = cursor + CENTRAL_HEADER_SIZE
        raw_name = cd[name_start : name_start + name_len]
        if len(raw_name) < name_len:
            raise TruncatedArchiveError("central directory entry name cut short")
        try:
            name = raw_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TruncatedArchiveError(f"entry name is not valid UTF-8: {raw_name!r}") from exc
        # later records with the same name replace earlier ones
        entries[name] = ArchiveEntry(
            name=name,
            compression_method=_le16(cd, cursor + 10),
            local_header_offset=_le32(cd, cursor + 42),
            compressed_size=_le32(cd, cursor + 20),
            uncompressed_size=_le32(cd, cursor + 24),
        )
        cursor = name_start + name_len + extra_len + comment_len

    if not entries:
        raise TruncatedArchiveError("central directory holds no entries")
    return entries


def _inflate(name: str, payload: bytes, declared_size: int) -> bytes:
    """Inflate a raw deflate stream, trusting the decoder over *declared_size*.

    Output is produced in rounds: the first round is capped at
    ``max(declared_size, 2 * len(payload))`` and each further round doubles
    the cap until the stream signals its end.
    """
    inflater = zlib.decompressobj(-zlib.MAX_WBITS)
    limit = max(declared_size, len(payload) * 2, 1)
    out = bytearray()
    pending = payload
    try:
        while not inflater.eof:
            chunk = inflater.decompress(pending, limit)
            pending = inflater.unconsumed_tail
            if not chunk and not pending:
                break
            out += chunk
            limit *= 2
    except zlib.error as exc:
        raise TruncatedArchiveError(f"{name}: corrupt deflate data ({exc})") from exc
    if not inflater.eof:
        raise TruncatedArchiveError(f"{name}: deflate stream ended early")
    if declared_size and len(out) != declared_size:
        logger.debug("%s: declared %d bytes, inflated %d", name, declared_size, len(out))
    return bytes(out)
