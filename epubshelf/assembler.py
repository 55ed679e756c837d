"""Assemble a readable package description from an EPUB file.

``assemble_package`` runs the whole chain (container -> OPF -> nav) and
returns the reading order plus table of contents.  ``read_metadata`` stops
after the OPF and only adds the cover bytes, which is all a library
listing needs.
"""
from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

from .archive import ArchiveIndex, ArchiveReader
from .container import base_path_of, locate_package_document
from .errors import EpubError, MissingPackageDocumentError
from .nav import parse_nav
from .package import PackageDocument, PackageMetadata, find_cover_item, parse_package, resolve_href

__all__ = ["ResolvedPackage", "assemble_package", "read_metadata"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedPackage:
    """Reading order and toc of one book; hrefs are relative to ``base_path``."""

    base_path: str
    spine_hrefs: Tuple[str, ...]
    nav_titles: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "nav_titles", MappingProxyType(dict(self.nav_titles)))

    def spine_paths(self) -> List[str]:
        """Spine entries as archive-internal paths."""
        return [resolve_href(self.base_path, href) for href in self.spine_hrefs]

    def title_for(self, href: str) -> str | None:
        """Toc title of a spine href; anchors into the same file also match."""
        if href in self.nav_titles:
            return self.nav_titles[href]
        for target, title in self.nav_titles.items():
            if target.partition("#")[0] == href:
                return title
        return None


def _load_package(reader: ArchiveReader) -> Tuple[str, PackageDocument]:
    opf_path = locate_package_document(reader)
    if opf_path not in reader.index:
        raise MissingPackageDocumentError(f"package document {opf_path!r} not in archive")
    return opf_path, parse_package(reader.read(opf_path), source=opf_path)


def assemble_package(archive_path: Path | str) -> ResolvedPackage:
    with ArchiveIndex.open(archive_path) as index:
        reader = ArchiveReader(index)
        opf_path, doc = _load_package(reader)
        base_path = base_path_of(opf_path)

        dropped = [i for i in doc.spine if i not in doc.manifest]
        if dropped:
            logger.warning("%s: spine ids without manifest item dropped: %s", archive_path, dropped)
        spine_hrefs = tuple(doc.spine_hrefs())

        nav_titles: Dict[str, str] = {}
        nav_item = doc.nav_item()
        if nav_item is not None:
            nav_path = resolve_href(base_path, nav_item.href)
            if nav_path not in index:
                logger.warning("%s: nav document %s missing", archive_path, nav_path)
            else:
                try:
                    nav_data = reader.read(nav_path)
                except EpubError as exc:
                    logger.warning("%s: nav document unreadable, empty toc: %s", archive_path, exc)
                else:
                    nav_titles = parse_nav(nav_data, source=nav_path)
                    # toc hrefs are relative to the nav document, rebase them on the package dir
                    nav_dir = posixpath.dirname(nav_item.href)
                    if nav_dir:
                        nav_titles = {_rebase(nav_dir, href): title for href, title in nav_titles.items()}

    return ResolvedPackage(base_path=base_path, spine_hrefs=spine_hrefs, nav_titles=nav_titles)


def _rebase(nav_dir: str, href: str) -> str:
    path, sep, fragment = href.partition("#")
    rebased = posixpath.normpath(posixpath.join(nav_dir, path)) if path else path
    return rebased + sep + fragment


def read_metadata(archive_path: Path | str) -> PackageMetadata:
    """Title, author, subjects and cover image; spine and nav are skipped."""
    with ArchiveIndex.open(archive_path) as index:
        reader = ArchiveReader(index)
        opf_path, doc = _load_package(reader)
        metadata = doc.metadata

        cover = find_cover_item(doc.manifest, doc.cover_id)
        if cover is not None:
            cover_path = resolve_href(base_path_of(opf_path), cover.href)
            if cover_path not in index:
                logger.warning("%s: cover %s not in archive", archive_path, cover_path)
            else:
                try:
                    metadata.cover_bytes = reader.read(cover_path)
                except EpubError as exc:
                    logger.warning("%s: cover unreadable, skipped: %s", archive_path, exc)
                else:
                    ext = posixpath.splitext(cover.href)[1].lstrip(".")
                    metadata.cover_extension = ext or "jpg"
    return metadata
