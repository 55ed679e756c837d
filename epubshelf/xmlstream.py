"""Streaming XML events with namespace-insensitive names.

EPUB files in the wild mix namespace declarations (and prefixes) freely,
some even use ``epub:type`` without declaring the prefix.  The package
readers therefore never match on qualified names: the document is parsed
without namespace processing and every element and attribute name handed
to a handler is lowercased and stripped of its prefix, e.g.
``dc:Title`` -> ``title`` and ``epub:type`` -> ``type``.

A handler is any object with ``start(name, attrs)``, ``text(data)`` and
``end(name)`` methods; one handler instance holds the state for one
document.
"""
from __future__ import annotations

import logging
from typing import Dict, Protocol
from xml.parsers import expat

__all__ = ["EventHandler", "local_name", "stream"]

logger = logging.getLogger(__name__)


class EventHandler(Protocol):
    def start(self, name: str, attrs: Dict[str, str]) -> None: ...

    def text(self, data: str) -> None: ...

    def end(self, name: str) -> None: ...


def local_name(tag: str) -> str:
    """``prefix:Local`` (or ``{uri}Local``) -> ``local``."""
    if tag.startswith("{"):
        tag = tag.rpartition("}")[2]
    return tag.rpartition(":")[2].lower()


def stream(data: bytes, handler: EventHandler, *, source: str = "<xml>") -> bool:
    """Feed *data* through *handler*.

    Returns ``False`` when the document is not well-formed.  Events seen
    before the syntax error have already been delivered and are kept.
    """
    parser = expat.ParserCreate()
    parser.buffer_text = True

    def on_start(tag, attrib):
        handler.start(local_name(tag), {local_name(k): v for k, v in attrib.items()})

    parser.StartElementHandler = on_start
    parser.EndElementHandler = lambda tag: handler.end(local_name(tag))
    parser.CharacterDataHandler = handler.text
    try:
        parser.Parse(data, True)
    except expat.ExpatError as exc:
        logger.warning("%s: malformed XML, keeping what was parsed (%s)", source, exc)
        return False
    return True
