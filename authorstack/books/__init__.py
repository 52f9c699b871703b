"""
Book catalogue
"""
from .schemas import BookCreate, BookUpdate, BookOut, BookListResponse
from .service import BookService

__all__ = ["BookCreate", "BookUpdate", "BookOut", "BookListResponse", "BookService"]
