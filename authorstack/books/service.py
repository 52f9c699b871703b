"""
Book Service

Book catalogue stored in the document store, with single books cached in
Redis. A book is only visible to the user who owns it.
"""

from typing import List

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authorstack.books.schemas import BookCreate, BookOut, BookUpdate
from authorstack.database.connection import Database
from authorstack.database.documents import Book, BookStatus
from authorstack.errors import AppError, ConflictError, NotFoundError, StoreError
from authorstack.serving.cache import RedisCache

logger = structlog.get_logger(__name__)

# ORM attribute for each API field that differs in name
_FIELD_MAP = {"metadata": "book_metadata"}


def _is_unique_violation(error: IntegrityError) -> bool:
    """True for duplicate-key errors; NOT NULL and CHECK violations are not conflicts"""
    origin = error.orig
    if getattr(origin, "sqlstate", None) == "23505" or getattr(origin, "pgcode", None) == "23505":
        return True
    return "unique" in str(origin).lower()


def _column_values(data: dict) -> dict:
    values = {}
    for field, value in data.items():
        if field == "cover_url" and value is not None:
            value = str(value)
        if field == "platforms" and value is not None:
            value = [getattr(p, "value", p) for p in value]
        values[_FIELD_MAP.get(field, field)] = value
    return values


class BookService:
    """CRUD over the books collection"""

    def __init__(self, database: Database, cache: RedisCache, ttl: int = 300):
        self.db = database
        self.cache = cache
        self.ttl = ttl

    async def _invalidate(self, user_id: str, book_id: str) -> None:
        # Dashboards embed book titles in their top-books list
        await self.cache.delete(self.cache.keys.book(book_id))
        await self.cache.delete_pattern(self.cache.keys.dashboard_pattern(user_id))

    async def create_book(self, user_id: str, data: BookCreate) -> BookOut:
        """
        Create a draft book owned by ``user_id``.

        Raises:
            ConflictError: the user already has a book with this ISBN or ASIN
        """
        book = Book(user_id=user_id, status=BookStatus.DRAFT, **_column_values(data.model_dump()))
        try:
            async with self.db.session() as session:
                session.add(book)
                await session.flush()
                await session.refresh(book)
        except IntegrityError as e:
            if not _is_unique_violation(e):
                logger.error("Create book integrity error", user_id=user_id, error=str(e))
                raise StoreError("Failed to create book", code="BOOK_CREATE_FAILED") from e
            raise ConflictError("Book already exists", details={"isbn": data.isbn, "asin": data.asin}) from e
        except SQLAlchemyError as e:
            logger.error("Create book error", user_id=user_id, error=str(e))
            raise StoreError("Failed to create book", code="BOOK_CREATE_FAILED") from e

        logger.info("Book created", user_id=user_id, book_id=book.id)
        return BookOut.model_validate(book)

    async def get_book(self, user_id: str, book_id: str) -> BookOut:
        """
        Fetch one book (read-through cached).

        Raises:
            NotFoundError: unknown id, or the book belongs to another user
        """
        cache_key = self.cache.keys.book(book_id)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            book = BookOut.model_validate(cached)
        else:
            try:
                async with self.db.session() as session:
                    row = await session.get(Book, book_id)
            except SQLAlchemyError as e:
                logger.error("Get book error", book_id=book_id, error=str(e))
                raise StoreError("Failed to get book", code="BOOK_FETCH_FAILED") from e

            if row is None:
                raise NotFoundError("Book", code="BOOK_NOT_FOUND")

            book = BookOut.model_validate(row)
            await self.cache.set(cache_key, book.model_dump(mode="json"), self.ttl)

        if book.user_id != user_id:
            raise NotFoundError("Book", code="BOOK_NOT_FOUND")
        return book

    async def list_books(self, user_id: str) -> List[BookOut]:
        """All books of the user, newest first"""
        query = (
            select(Book)
            .where(Book.user_id == user_id)
            .order_by(Book.created_at.desc(), Book.id)
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Get books error", user_id=user_id, error=str(e))
            raise StoreError("Failed to get books", code="BOOKS_FETCH_FAILED") from e

        return [BookOut.model_validate(row) for row in rows]

    async def update_book(self, user_id: str, book_id: str, data: BookUpdate) -> BookOut:
        """Apply the fields set on ``data`` and drop the cached copy"""
        changes = _column_values(data.model_dump(exclude_unset=True))
        try:
            async with self.db.session() as session:
                book = await session.get(Book, book_id)
                if book is None or book.user_id != user_id:
                    raise NotFoundError("Book", code="BOOK_NOT_FOUND")
                for attribute, value in changes.items():
                    setattr(book, attribute, value)
                await session.flush()
                await session.refresh(book)
        except AppError:
            raise
        except IntegrityError as e:
            if not _is_unique_violation(e):
                logger.error("Update book integrity error", book_id=book_id, error=str(e))
                raise StoreError("Failed to update book", code="BOOK_UPDATE_FAILED") from e
            raise ConflictError("Book already exists", details={"isbn": data.isbn, "asin": data.asin}) from e
        except SQLAlchemyError as e:
            logger.error("Update book error", book_id=book_id, error=str(e))
            raise StoreError("Failed to update book", code="BOOK_UPDATE_FAILED") from e

        await self._invalidate(user_id, book_id)
        logger.info("Book updated", user_id=user_id, book_id=book_id, fields=sorted(changes))
        return BookOut.model_validate(book)

    async def delete_book(self, user_id: str, book_id: str) -> None:
        try:
            async with self.db.session() as session:
                book = await session.get(Book, book_id)
                if book is None or book.user_id != user_id:
                    raise NotFoundError("Book", code="BOOK_NOT_FOUND")
                await session.delete(book)
        except AppError:
            raise
        except SQLAlchemyError as e:
            logger.error("Delete book error", book_id=book_id, error=str(e))
            raise StoreError("Failed to delete book", code="BOOK_DELETE_FAILED") from e

        await self._invalidate(user_id, book_id)
        logger.info("Book deleted", user_id=user_id, book_id=book_id)
