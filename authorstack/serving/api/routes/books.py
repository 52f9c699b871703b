"""
Books API Endpoints

CRUD for the caller's book catalogue.
"""

from fastapi import APIRouter, Depends, Response

from authorstack.books.schemas import BookCreate, BookListResponse, BookOut, BookUpdate
from authorstack.books.service import BookService
from authorstack.serving.api.dependencies import get_book_service, get_current_user_id

router = APIRouter()


@router.get("", response_model=BookListResponse)
async def list_books(
    user_id: str = Depends(get_current_user_id),
    service: BookService = Depends(get_book_service),
) -> BookListResponse:
    books = await service.list_books(user_id)
    return BookListResponse(books=books, total=len(books))


@router.post("", response_model=BookOut, status_code=201)
async def create_book(
    body: BookCreate,
    user_id: str = Depends(get_current_user_id),
    service: BookService = Depends(get_book_service),
) -> BookOut:
    """Create a draft book. 409 when the ISBN or ASIN is already used."""
    return await service.create_book(user_id, body)


@router.get("/{book_id}", response_model=BookOut)
async def get_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookService = Depends(get_book_service),
) -> BookOut:
    return await service.get_book(user_id, book_id)


@router.put("/{book_id}", response_model=BookOut)
async def update_book(
    book_id: str,
    body: BookUpdate,
    user_id: str = Depends(get_current_user_id),
    service: BookService = Depends(get_book_service),
) -> BookOut:
    return await service.update_book(user_id, book_id, body)


@router.delete("/{book_id}", status_code=204)
async def delete_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookService = Depends(get_book_service),
) -> Response:
    await service.delete_book(user_id, book_id)
    return Response(status_code=204)
