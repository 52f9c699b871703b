"""
Unit Tests - Book Service
"""
import pytest
from pydantic import ValidationError

from authorstack.books.schemas import BookCreate, BookUpdate
from authorstack.database.documents import BookStatus
from authorstack.errors import ConflictError, NotFoundError


def new_book(**overrides) -> BookCreate:
    data = {
        "title": "The Quiet Shore",
        "author": "A. Writer",
        "isbn": "978-1-23456-789-7",
        "asin": "B0ABCDEFGH",
        "genres": ["literary"],
        "platforms": ["kdp", "gumroad"],
        "metadata": {"series": "Shore", "position": 1},
    }
    data.update(overrides)
    return BookCreate(**data)


class TestBookSchemas:
    """Tests for request validation"""

    def test_rejects_bad_isbn(self):
        """Test ISBN must be digits and dashes"""
        with pytest.raises(ValidationError):
            new_book(isbn="ISBN-ABC")

    def test_rejects_short_asin(self):
        """Test ASIN must be ten characters"""
        with pytest.raises(ValidationError):
            new_book(asin="B0123")

    def test_rejects_unknown_platform(self):
        """Test platforms are restricted to known values"""
        with pytest.raises(ValidationError):
            new_book(platforms=["myspace"])

    def test_rejects_unknown_fields(self):
        """Test unexpected fields are refused"""
        with pytest.raises(ValidationError):
            new_book(owner="someone-else")

    @pytest.mark.parametrize("field", ["title", "author", "genres", "platforms", "metadata", "status"])
    def test_update_rejects_null(self, field):
        """Test required fields may be omitted from an update but not nulled"""
        with pytest.raises(ValidationError):
            BookUpdate(**{field: None})

    def test_update_allows_clearing_optional_fields(self):
        """Test optional fields can be cleared explicitly"""
        update = BookUpdate(subtitle=None, isbn=None)

        assert update.model_dump(exclude_unset=True) == {"subtitle": None, "isbn": None}


class TestBookService:
    """Tests for BookService CRUD"""

    async def test_create_and_get(self, book_service):
        """Test a created book is a draft owned by the caller"""
        created = await book_service.create_book("u1", new_book())

        fetched = await book_service.get_book("u1", created.id)

        assert fetched.id == created.id
        assert fetched.user_id == "u1"
        assert fetched.status == BookStatus.DRAFT
        assert fetched.platforms == ["kdp", "gumroad"]
        assert fetched.metadata == {"series": "Shore", "position": 1}

    async def test_get_is_cached(self, book_service, cache):
        """Test a fetched book is served from its cache key"""
        created = await book_service.create_book("u1", new_book())
        await book_service.get_book("u1", created.id)

        cached = await cache.get(cache.keys.book(created.id))

        assert cached["title"] == "The Quiet Shore"
        assert cached["status"] == "draft"
        assert (await book_service.get_book("u1", created.id)).metadata == {"series": "Shore", "position": 1}

    async def test_duplicate_isbn_conflicts(self, book_service):
        """Test the same ISBN twice for one user is a conflict"""
        await book_service.create_book("u1", new_book())

        with pytest.raises(ConflictError) as exc_info:
            await book_service.create_book("u1", new_book(asin="B0ZZZZZZZZ"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "ALREADY_EXISTS"

    async def test_same_isbn_for_different_users(self, book_service):
        """Test uniqueness is per user"""
        await book_service.create_book("u1", new_book())

        other = await book_service.create_book("u2", new_book())

        assert other.user_id == "u2"

    async def test_unknown_book_not_found(self, book_service):
        """Test an unknown id is a 404"""
        with pytest.raises(NotFoundError) as exc_info:
            await book_service.get_book("u1", "does-not-exist")

        assert exc_info.value.code == "BOOK_NOT_FOUND"

    async def test_foreign_book_not_found(self, book_service):
        """Test another user's book is indistinguishable from a missing one"""
        created = await book_service.create_book("u1", new_book())

        with pytest.raises(NotFoundError):
            await book_service.get_book("u2", created.id)
        with pytest.raises(NotFoundError):
            await book_service.update_book("u2", created.id, BookUpdate(title="Mine"))
        with pytest.raises(NotFoundError):
            await book_service.delete_book("u2", created.id)

    async def test_update_invalidates_cache(self, book_service, cache):
        """Test an update is visible on the next read"""
        created = await book_service.create_book("u1", new_book())
        await book_service.get_book("u1", created.id)

        updated = await book_service.update_book(
            "u1", created.id, BookUpdate(title="The Loud Shore", status=BookStatus.PUBLISHED)
        )

        assert updated.title == "The Loud Shore"
        assert await cache.get(cache.keys.book(created.id)) is None
        fetched = await book_service.get_book("u1", created.id)
        assert fetched.title == "The Loud Shore"
        assert fetched.status == BookStatus.PUBLISHED
        assert fetched.author == "A. Writer"

    async def test_delete(self, book_service, cache):
        """Test a deleted book is gone and uncached"""
        created = await book_service.create_book("u1", new_book())
        await book_service.get_book("u1", created.id)

        await book_service.delete_book("u1", created.id)

        assert await cache.get(cache.keys.book(created.id)) is None
        with pytest.raises(NotFoundError):
            await book_service.get_book("u1", created.id)

    async def test_list_books(self, book_service):
        """Test listing returns only the caller's books"""
        await book_service.create_book("u1", new_book())
        await book_service.create_book("u1", new_book(title="Second", isbn=None, asin=None))
        await book_service.create_book("u2", new_book())

        books = await book_service.list_books("u1")

        assert sorted(b.title for b in books) == ["Second", "The Quiet Shore"]

    async def test_update_clears_optional_field(self, book_service):
        """Test an explicit null clears a nullable field and the book stays readable"""
        created = await book_service.create_book("u1", new_book())

        updated = await book_service.update_book("u1", created.id, BookUpdate(isbn=None))

        assert updated.isbn is None
        assert [b.id for b in await book_service.list_books("u1")] == [created.id]

    async def test_duplicate_isbn_on_update_conflicts(self, book_service):
        """Test an update onto another book's ISBN is a conflict"""
        await book_service.create_book("u1", new_book())
        second = await book_service.create_book("u1", new_book(title="Second", isbn="978-0-00000-000-0", asin=None))

        with pytest.raises(ConflictError):
            await book_service.update_book("u1", second.id, BookUpdate(isbn="978-1-23456-789-7"))

    async def test_changes_drop_cached_dashboards(self, book_service, cache):
        """Test update and delete drop the owner's dashboards, which embed titles"""
        created = await book_service.create_book("u1", new_book())
        await cache.set(cache.keys.dashboard("u1", 7), {"top_books": []}, 60)
        await cache.set(cache.keys.dashboard("u2", 7), {"top_books": []}, 60)

        await book_service.update_book("u1", created.id, BookUpdate(title="Renamed"))

        assert await cache.get(cache.keys.dashboard("u1", 7)) is None
        assert await cache.get(cache.keys.dashboard("u2", 7)) is not None

        await cache.set(cache.keys.dashboard("u1", 30), {"top_books": []}, 60)
        await book_service.delete_book("u1", created.id)

        assert await cache.get(cache.keys.dashboard("u1", 30)) is None
