"""Parser for the OPF package document: manifest, spine and metadata.

Parsing is a single streaming pass.  Element and attribute names are
matched on their lowercase local name so ``dc:title``, ``opf:item`` and
un-prefixed variants all work.

Example:
>>> doc = parse_package(opf_bytes)
>>> [doc.manifest[i].href for i in doc.spine]
['ch1.xhtml', 'ch2.xhtml']
"""
from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import unquote

from .xmlstream import stream

__all__ = [
    "ManifestItem",
    "PackageMetadata",
    "PackageDocument",
    "parse_package",
    "find_cover_item",
    "resolve_href",
]

COVER_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")


@dataclass(frozen=True)
class ManifestItem:
    id: str
    href: str
    properties: Optional[str] = None
    media_type: Optional[str] = None

    def has_property(self, token: str) -> bool:
        return token in (self.properties or "").split()


@dataclass
class PackageMetadata:
    title: Optional[str] = None
    author: Optional[str] = None
    subjects: List[str] = field(default_factory=list)
    cover_bytes: Optional[bytes] = None
    cover_extension: str = "jpg"


@dataclass
class PackageDocument:
    manifest: Dict[str, ManifestItem]
    spine: List[str]
    metadata: PackageMetadata
    # EPUB 2 ``<meta name="cover" content="...">`` target id, if any
    cover_id: Optional[str] = None

    def spine_hrefs(self) -> List[str]:
        """Spine hrefs in reading order; ids missing from the manifest are skipped."""
        return [self.manifest[i].href for i in self.spine if i in self.manifest]

    def nav_item(self) -> Optional[ManifestItem]:
        return next((item for item in self.manifest.values() if item.has_property("nav")), None)


@dataclass
class _PackageContext:
    manifest: Dict[str, ManifestItem] = field(default_factory=dict)
    spine: List[str] = field(default_factory=list)
    metadata: PackageMetadata = field(default_factory=PackageMetadata)
    cover_id: Optional[str] = None
    _chunks: List[str] = field(default_factory=list)

    def start(self, name: str, attrs: Dict[str, str]) -> None:
        self._chunks.clear()
        if name == "item":
            item_id, href = attrs.get("id"), attrs.get("href")
            if item_id and href:
                self.manifest[item_id] = ManifestItem(
                    id=item_id,
                    href=href,
                    properties=attrs.get("properties"),
                    media_type=attrs.get("media-type"),
                )
        elif name == "itemref":
            idref = attrs.get("idref")
            if idref:
                self.spine.append(idref)
        elif name == "meta" and attrs.get("name", "").lower() == "cover":
            self.cover_id = attrs.get("content") or None

    def text(self, data: str) -> None:
        self._chunks.append(data)

    def end(self, name: str) -> None:
        text = "".join(self._chunks).strip()
        self._chunks.clear()
        if not text:
            return
        if name.endswith("title"):
            self.metadata.title = text
        elif name.endswith("creator") or name == "author":
            self.metadata.author = text
        elif name.endswith("subject"):
            self.metadata.subjects.append(text)


def parse_package(data: bytes, *, source: str = "package document") -> PackageDocument:
    ctx = _PackageContext()
    stream(data, ctx, source=source)
    return PackageDocument(
        manifest=ctx.manifest,
        spine=ctx.spine,
        metadata=ctx.metadata,
        cover_id=ctx.cover_id,
    )


def find_cover_item(
    manifest: Dict[str, ManifestItem], cover_id: Optional[str] = None
) -> Optional[ManifestItem]:
    """Best guess at the cover image, or ``None``.

    In order: an item flagged ``cover-image``; the item named by an EPUB 2
    ``<meta name="cover">``; the first jpg/png whose href mentions "cover".
    """
    for item in manifest.values():
        if item.has_property("cover-image"):
            return item
    if cover_id and cover_id in manifest:
        return manifest[cover_id]
    for item in manifest.values():
        href = item.href.lower()
        if "cover" in href and href.endswith(COVER_IMAGE_EXTENSIONS):
            return item
    return None


def resolve_href(base_path: str, href: str) -> str:
    """Archive path of *href* relative to the package directory *base_path*."""
    href = unquote(href.split("#", 1)[0])
    joined = posixpath.join(base_path, href) if base_path else href
    return posixpath.normpath(joined)
