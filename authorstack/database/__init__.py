"""
Database Module
"""
from .connection import Database
from .models import Base, Platform, SyncStatus
from .documents import Book, BookStatus, DocumentBase

__all__ = [
    "Database",
    "Base",
    "DocumentBase",
    "Platform",
    "SyncStatus",
    "Book",
    "BookStatus",
]
