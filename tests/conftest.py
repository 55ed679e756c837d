"""Pytest configuration and archive fixtures for epubshelf tests."""
from __future__ import annotations

import struct
import sys
import zipfile
import zlib
from pathlib import Path

import pytest

# Ensure project root is importable
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="uid">urn:uuid:1234</dc:identifier>
    <dc:title>The Sample Book</dc:title>
    <dc:creator>Jane Doe</dc:creator>
    <dc:subject>Fiction</dc:subject>
    <dc:subject>Adventure</dc:subject>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="cover" href="images/cover.png" media-type="image/png" properties="cover-image"/>
    <item id="c1" href="ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="c2" href="ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="c3" href="ch3.xhtml" media-type="application/xhtml+xml"/>
    <item id="css" href="style/book.css" media-type="text/css"/>
  </manifest>
  <spine>
    <itemref idref="c1"/>
    <itemref idref="c2"/>
    <itemref idref="c3"/>
  </spine>
</package>
"""

NAV_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head><title>Contents</title></head>
<body>
  <nav epub:type="toc" id="toc">
    <ol>
      <li><a href="ch1.xhtml">Chapter One</a></li>
      <li><a href="ch2.xhtml">Chapter <em>Two</em></a></li>
      <li><a href="ch3.xhtml">Chapter Three</a></li>
    </ol>
  </nav>
  <nav epub:type="landmarks">
    <ol><li><a href="ch1.xhtml">Start of content</a></li></ol>
  </nav>
</body>
</html>
"""

COVER_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def chapter(n: int) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml"><body>'
        f"<h1>Chapter {n}</h1>" + "<p>Lorem ipsum dolor sit amet.</p>" * 50 + "</body></html>"
    )


def sample_files() -> dict:
    return {
        "mimetype": "application/epub+zip",
        "META-INF/container.xml": CONTAINER_XML,
        "OEBPS/content.opf": CONTENT_OPF,
        "OEBPS/nav.xhtml": NAV_XHTML,
        "OEBPS/ch1.xhtml": chapter(1),
        "OEBPS/ch2.xhtml": chapter(2),
        "OEBPS/ch3.xhtml": chapter(3),
        "OEBPS/style/book.css": "body { margin: 0 }",
        "OEBPS/images/cover.png": COVER_PNG,
    }


def write_epub(path: Path, files: dict, dirs: tuple = ()) -> Path:
    """Write *files* ({name: str | bytes}) as an EPUB; ``mimetype`` is stored."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name in dirs:
            zf.writestr(zipfile.ZipInfo(name), b"")
        for name, data in files.items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            method = zipfile.ZIP_STORED if name == "mimetype" else zipfile.ZIP_DEFLATED
            zf.writestr(name, data, compress_type=method)
    return path


def raw_zip(entries, *, comment: bytes = b"", local_extra: bytes = b"") -> bytes:
    """Assemble ZIP bytes by hand.

    *entries* are ``(name, data, method)`` or ``(name, data, method,
    declared_size)`` tuples.  Method 8 deflates, anything else stores the
    data as-is under that method number.  *local_extra* is added only to
    the local headers, the central directory gets no extra field.
    """
    out = bytearray()
    central = bytearray()
    for entry in entries:
        name, data, method = entry[:3]
        declared = entry[3] if len(entry) > 3 else len(data)
        raw_name = name.encode("utf-8")
        if method == 8:
            c = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
            payload = c.compress(data) + c.flush()
        else:
            payload = data
        crc = zlib.crc32(data)
        offset = len(out)
        out += struct.pack(
            "<4s5H3L2H", b"PK\x03\x04", 20, 0, method, 0, 0,
            crc, len(payload), declared, len(raw_name), len(local_extra),
        )
        out += raw_name + local_extra + payload
        central += struct.pack(
            "<4s6H3L5H2L", b"PK\x01\x02", 20, 20, 0, method, 0, 0,
            crc, len(payload), declared, len(raw_name), 0, 0, 0, 0, 0, offset,
        )
        central += raw_name
    cd_offset = len(out)
    out += central
    out += struct.pack(
        "<4s4H2LH", b"PK\x05\x06", 0, 0, len(entries), len(entries),
        len(central), cd_offset, len(comment),
    )
    out += comment
    return bytes(out)


@pytest.fixture()
def sample_epub(tmp_path: Path) -> Path:
    return write_epub(tmp_path / "sample.epub", sample_files(), dirs=("OEBPS/", "OEBPS/images/"))


@pytest.fixture()
def make_epub(tmp_path: Path):
    """Factory: ``make_epub(files, name="book.epub")`` -> path."""

    def _make(files: dict, name: str = "book.epub", dirs: tuple = ()) -> Path:
        return write_epub(tmp_path / name, files, dirs)

    return _make


@pytest.fixture()
def make_zip(tmp_path: Path):
    """Factory writing :func:`raw_zip` output to a file."""

    def _make(entries, name: str = "raw.zip", **kwargs) -> Path:
        path = tmp_path / name
        path.write_bytes(raw_zip(entries, **kwargs))
        return path

    return _make
