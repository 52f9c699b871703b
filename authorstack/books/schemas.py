"""
Book Schemas

Request validation for the book catalogue and the response shape.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, AnyHttpUrl, BaseModel, ConfigDict, Field, field_serializer, field_validator

from authorstack.database.documents import BookStatus
from authorstack.database.models import Platform


class BookCreate(BaseModel):
    """Fields accepted when creating a book"""
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1, max_length=500)
    subtitle: Optional[str] = Field(default=None, max_length=500)
    author: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    isbn: Optional[str] = Field(default=None, pattern=r"^[\d-]+$", max_length=20)
    asin: Optional[str] = Field(default=None, min_length=10, max_length=10)
    cover_url: Optional[AnyHttpUrl] = None
    genres: List[str] = Field(default_factory=list, max_length=10)
    platforms: List[Platform] = Field(default_factory=list)
    published_date: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BookUpdate(BaseModel):
    """Partial update; only fields that are set are written"""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    subtitle: Optional[str] = Field(default=None, max_length=500)
    author: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    isbn: Optional[str] = Field(default=None, pattern=r"^[\d-]+$", max_length=20)
    asin: Optional[str] = Field(default=None, min_length=10, max_length=10)
    cover_url: Optional[AnyHttpUrl] = None
    genres: Optional[List[str]] = Field(default=None, max_length=10)
    platforms: Optional[List[Platform]] = None
    published_date: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[BookStatus] = None

    @field_validator("title", "author", "genres", "platforms", "metadata", "status", mode="before")
    @classmethod
    def reject_null(cls, value):
        # Omit the field to leave it unchanged; these columns are never null
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class BookOut(BaseModel):
    """Book as returned by the API and stored in the cache"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    subtitle: Optional[str] = None
    author: str
    description: Optional[str] = None
    isbn: Optional[str] = None
    asin: Optional[str] = None
    cover_url: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    published_date: Optional[datetime] = None
    status: BookStatus
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("book_metadata", "metadata"))
    created_at: datetime
    updated_at: datetime

    @field_serializer("status")
    def serialize_status(self, value: BookStatus) -> str:
        return value.value


class BookListResponse(BaseModel):
    books: List[BookOut]
    total: int
