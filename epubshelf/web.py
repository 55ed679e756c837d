"""Flask web interface: catalog listing and reading access to extracted books."""
from __future__ import annotations

import logging
import mimetypes

from flask import Flask, abort, jsonify, request, send_file, send_from_directory, url_for

from .assembler import assemble_package
from .config import LibraryConfig
from .errors import EpubError
from .extraction import ExtractionCache
from .importer import save_progress
from .models import Ebook, get_session, init_db
from .package import resolve_href

logger = logging.getLogger(__name__)


def create_app(config: LibraryConfig) -> Flask:
    app = Flask(__name__)
    init_db(config.db_url)
    cache = ExtractionCache(config.cache_dir)

    def _get_book(book_id: str) -> Ebook:
        session = get_session()
        try:
            book = session.get(Ebook, book_id)
        finally:
            session.close()
        if book is None:
            abort(404)
        return book

    @app.errorhandler(EpubError)
    def unreadable_book(exc: EpubError):
        logger.error("%s", exc)
        return jsonify(error=str(exc)), 422

    @app.route("/books")
    def list_books():
        session = get_session()
        try:
            books = session.query(Ebook).order_by(Ebook.date_added.desc()).all()
        finally:
            session.close()
        return jsonify([b.to_dict() for b in books])

    @app.route("/books/<book_id>")
    def book_detail(book_id: str):
        return jsonify(_get_book(book_id).to_dict())

    @app.route("/books/<book_id>/cover")
    def cover(book_id: str):
        book = _get_book(book_id)
        if not book.cover_file_name:
            abort(404)
        path = config.covers_dir / book.cover_file_name
        if not path.exists():
            abort(404)
        mimetype = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        return send_file(path, mimetype=mimetype)

    @app.route("/books/<book_id>/package")
    def package(book_id: str):
        book = _get_book(book_id)
        epub_path = config.ebooks_dir / book.file_name
        if not epub_path.exists():
            abort(404)
        root = cache.ensure_extracted(epub_path, book.id)
        pack = assemble_package(epub_path)

        chapters = []
        for href, path in zip(pack.spine_hrefs, pack.spine_paths()):
            # only spine files that actually made it into the extracted tree
            if not (root / path).is_file():
                continue
            chapters.append(
                {
                    "index": len(chapters),
                    "href": href,
                    "url": url_for("content", book_id=book.id, resource=path),
                    "title": pack.title_for(href),
                }
            )
        toc = [
            {
                "href": href,
                "title": title,
                "url": url_for("content", book_id=book.id, resource=resolve_href(pack.base_path, href)),
            }
            for href, title in pack.nav_titles.items()
        ]
        return jsonify(
            base_path=pack.base_path,
            base_url=url_for("content", book_id=book.id, resource=pack.base_path or "."),
            chapters=chapters,
            toc=toc,
            last_read_index=book.last_read_index,
            last_read_page=book.last_read_page,
        )

    @app.route("/books/<book_id>/content/<path:resource>")
    def content(book_id: str, resource: str):
        book = _get_book(book_id)
        if not cache.is_extracted(book.id):
            abort(404)
        # send_from_directory refuses paths outside the folder
        return send_from_directory(cache.folder_for(book.id), resource)

    @app.route("/books/<book_id>/progress", methods=["POST"])
    def progress(book_id: str):
        payload = request.get_json(silent=True) or {}
        try:
            index = int(payload.get("index", 0))
            page = int(payload.get("page", 0))
        except (TypeError, ValueError):
            abort(400)
        book = save_progress(book_id, index, page, config)
        if book is None:
            abort(404)
        return jsonify(book.to_dict())

    return app
