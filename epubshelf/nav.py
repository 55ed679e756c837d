"""Table of contents from an EPUB 3 navigation document.

Only anchors inside ``<nav epub:type="toc">`` are collected.  EPUB 2 NCX
files are not read; books without a nav document get an empty table.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .xmlstream import stream

__all__ = ["parse_nav"]


@dataclass
class _NavContext:
    titles: Dict[str, str] = field(default_factory=dict)
    stack: List[str] = field(default_factory=list)
    # stack depth of the <nav> that opened the toc region
    toc_depth: Optional[int] = None
    href: Optional[str] = None
    chunks: List[str] = field(default_factory=list)

    @property
    def capturing(self) -> bool:
        return self.toc_depth is not None

    def start(self, name: str, attrs: Dict[str, str]) -> None:
        self.stack.append(name)
        if name == "nav" and not self.capturing and "toc" in attrs.get("type", "").lower():
            self.toc_depth = len(self.stack)
        if self.capturing and name == "a":
            self.href = attrs.get("href")
            self.chunks.clear()

    def text(self, data: str) -> None:
        if self.capturing and self.href is not None:
            self.chunks.append(data)

    def end(self, name: str) -> None:
        if self.capturing and name == "a":
            title = "".join(self.chunks).strip()
            if self.href and title:
                self.titles[self.href] = title
            self.href = None
            self.chunks.clear()
        if self.capturing and name == "nav" and len(self.stack) == self.toc_depth:
            self.toc_depth = None
        if self.stack:
            self.stack.pop()


def parse_nav(data: bytes, *, source: str = "nav document") -> Dict[str, str]:
    """Return ``{href: title}`` for the toc entries of a nav document."""
    ctx = _NavContext()
    stream(data, ctx, source=source)
    return ctx.titles
