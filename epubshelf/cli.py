"""Command-line interface for epubshelf."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from .assembler import assemble_package, read_metadata
from .config import DATA_DIR_ENV, DB_URL_ENV, DEFAULT_DATA_DIR, LibraryConfig
from .errors import EpubError
from .extraction import ExtractionCache
from .importer import delete_book, import_books
from .models import Ebook, get_session, init_db

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


@click.group(invoke_without_command=True)
@click.option(
    "--data-dir",
    envvar=DATA_DIR_ENV,
    default=str(DEFAULT_DATA_DIR),
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Library directory (imported books, covers, extraction cache).",
)
@click.option("--db-url", envvar=DB_URL_ENV, default=None, help="SQLAlchemy DB URL.")
@click.pass_context
def cli(ctx, data_dir: Path, db_url: str | None):
    """epubshelf utilities.
    If invoked without a sub-command it starts the web server (same as `run`)."""
    ctx.obj = LibraryConfig.from_data_dir(data_dir, db_url)
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command("inspect", help="Show metadata, spine and toc of an EPUB file.")
@click.argument("epub", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(epub: Path):
    try:
        meta = read_metadata(epub)
        pack = assemble_package(epub)
    except EpubError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Title:    {meta.title or '-'}")
    click.echo(f"Author:   {meta.author or '-'}")
    click.echo(f"Subjects: {', '.join(meta.subjects) or '-'}")
    if meta.cover_bytes:
        click.echo(f"Cover:    {len(meta.cover_bytes)} bytes ({meta.cover_extension})")
    else:
        click.echo("Cover:    -")
    click.echo(f"Base:     {pack.base_path or '.'}")
    click.echo("Spine:")
    for i, href in enumerate(pack.spine_hrefs):
        title = pack.title_for(href)
        click.echo(f"  {i:3d}  {href}" + (f"  [{title}]" if title else ""))
    if pack.nav_titles:
        click.echo("Contents:")
        for href, title in pack.nav_titles.items():
            click.echo(f"  {title}  ->  {href}")


@cli.command("import", help="Import EPUB files into the library.")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
@click.pass_obj
def import_(config: LibraryConfig, files: tuple[Path, ...]):
    report = import_books(files, config)
    for book in report.imported:
        click.echo(f"imported {book.id}  {book.author} - {book.title}")
    for path, message in report.failed:
        click.echo(f"failed   {path}: {message}", err=True)
    click.echo(f"{len(report.imported)} imported, {len(report.failed)} failed.")
    if report.failed:
        sys.exit(1)


@cli.command("list", help="List books in the library.")
@click.pass_obj
def list_(config: LibraryConfig):
    config.ensure_directories()
    init_db(config.db_url)
    session = get_session()
    try:
        books = session.query(Ebook).order_by(Ebook.author, Ebook.title).all()
    finally:
        session.close()
    for book in books:
        click.echo(f"{book.id}  {book.author} - {book.title}  [{book.genre}]")


@cli.command("extract", help="Extract a library book into the cache.")
@click.argument("book_id")
@click.pass_obj
def extract(config: LibraryConfig, book_id: str):
    config.ensure_directories()
    init_db(config.db_url)
    session = get_session()
    try:
        book = session.get(Ebook, book_id)
    finally:
        session.close()
    if book is None:
        raise click.ClickException(f"no book with id {book_id}")
    try:
        folder = ExtractionCache(config.cache_dir).ensure_extracted(
            config.ebooks_dir / book.file_name, book.id
        )
    except EpubError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(str(folder))


@cli.command("delete", help="Delete a book, its files and its extraction cache.")
@click.argument("book_id")
@click.pass_obj
def delete(config: LibraryConfig, book_id: str):
    config.ensure_directories()
    if not delete_book(book_id, config):
        raise click.ClickException(f"no book with id {book_id}")
    click.echo(f"Deleted {book_id}.")


@cli.command("run", help="Run the web server.")
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=5000, type=int)
@click.option("--debug/--no-debug", default=False)
@click.pass_obj
def run(config: LibraryConfig, host: str, port: int, debug: bool):
    """Run the epubshelf web application."""
    from .web import create_app

    config.ensure_directories()
    app = create_app(config)
    click.echo(f"* Serving on http://{host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":  # pragma: no cover
    cli()
