"""Database module for local SQLite storage."""

from .models import Base, Book, utcnow
from .sqlite import Database

__all__ = [
    "Base",
    "Book",
    "Database",
    "utcnow",
]
