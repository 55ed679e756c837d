"""SQLAlchemy ORM models for the book catalog."""

from __future__ import annotations

import datetime as _dt
import uuid

from sqlalchemy import DateTime, Integer, String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc).replace(tzinfo=None)


class Ebook(Base):
    __tablename__ = "ebooks"

    # stable id, also the extraction cache key
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String, nullable=False)
    author: Mapped[str] = mapped_column(String, nullable=False, default="Unknown")
    genre: Mapped[str] = mapped_column(String, nullable=False, default="Unsorted")
    file_name: Mapped[str] = mapped_column(String, nullable=False)  # inside LibraryConfig.ebooks_dir
    cover_file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    date_added: Mapped[_dt.datetime] = mapped_column(DateTime, default=_now)

    # reading progress
    last_read_index: Mapped[int] = mapped_column(Integer, default=0)
    last_read_page: Mapped[int] = mapped_column(Integer, default=0)
    last_read_at: Mapped[_dt.datetime | None] = mapped_column(DateTime, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "file_name": self.file_name,
            "has_cover": self.cover_file_name is not None,
            "date_added": self.date_added.isoformat() if self.date_added else None,
            "last_read_index": self.last_read_index,
            "last_read_page": self.last_read_page,
            "last_read_at": self.last_read_at.isoformat() if self.last_read_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Ebook {self.id} {self.title!r}>"


# database helpers

_engine = None
_Session = None
_url: str | None = None


def init_db(url: str = "sqlite:///library.db") -> None:
    """Create engine, create tables if not exist, globally store session factory."""
    global _engine, _Session, _url
    if _engine is not None and _url == url:
        return
    _url = url
    _engine = create_engine(url, future=True)
    Base.metadata.create_all(_engine)
    _Session = sessionmaker(_engine, expire_on_commit=False, future=True)


def get_session():
    if _Session is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _Session()
