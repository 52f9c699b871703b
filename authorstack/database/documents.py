"""
Document Store Models

Books live in their own store with JSON-typed attribute columns, separate from
the sales tables. The store is reached through a second Database client.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
import uuid

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from authorstack.database.models import JSONType


class DocumentBase(DeclarativeBase):
    """Base class for document store models"""
    pass


class BookStatus(str, Enum):
    """Book lifecycle"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


def _new_id() -> str:
    return uuid.uuid4().hex


class Book(DocumentBase):
    """A book owned by one author"""
    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    subtitle: Mapped[Optional[str]] = mapped_column(String(500))
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Identifiers
    isbn: Mapped[Optional[str]] = mapped_column(String(20))
    asin: Mapped[Optional[str]] = mapped_column(String(10))
    cover_url: Mapped[Optional[str]] = mapped_column(String(2000))

    genres: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    platforms: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    published_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[BookStatus] = mapped_column(
        SQLEnum(BookStatus, name="book_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BookStatus.DRAFT,
    )
    # "metadata" is reserved on declarative classes
    book_metadata: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "isbn", name="uq_books_user_isbn"),
        UniqueConstraint("user_id", "asin", name="uq_books_user_asin"),
        Index("ix_books_user_created", "user_id", "created_at"),
    )
