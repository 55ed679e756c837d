"""Locate the package (OPF) document through ``META-INF/container.xml``."""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Dict

from .archive import ArchiveReader
from .errors import InvalidPackageError, MissingContainerError
from .xmlstream import stream

__all__ = ["CONTAINER_PATH", "locate_package_document", "parse_container", "base_path_of"]

CONTAINER_PATH = "META-INF/container.xml"


@dataclass
class _ContainerContext:
    full_path: str | None = None

    def start(self, name: str, attrs: Dict[str, str]) -> None:
        if self.full_path is None and name.endswith("rootfile"):
            self.full_path = attrs.get("full-path") or attrs.get("fullpath")

    def text(self, data: str) -> None:
        pass

    def end(self, name: str) -> None:
        pass


def parse_container(data: bytes) -> str:
    """Return the ``full-path`` of the first ``rootfile`` element."""
    ctx = _ContainerContext()
    stream(data, ctx, source=CONTAINER_PATH)
    if not ctx.full_path:
        raise InvalidPackageError("container.xml has no rootfile full-path")
    return ctx.full_path


def locate_package_document(reader: ArchiveReader) -> str:
    if CONTAINER_PATH not in reader.index:
        raise MissingContainerError(f"{CONTAINER_PATH} not found")
    return parse_container(reader.read(CONTAINER_PATH))


def base_path_of(opf_path: str) -> str:
    """Directory holding the package document (``""`` at archive root)."""
    return posixpath.dirname(opf_path)
