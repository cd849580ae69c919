"""Book catalog module.

Provides functionality for:
- Adding books with unique ISBNs
- Looking books up by id or ISBN
- Updating and deleting books
- Partial-match search with paging
"""

from .manager import BookCatalog
from .schemas import BookCreate, BookFilter, BookUpdate

__all__ = [
    "BookCatalog",
    "BookCreate",
    "BookFilter",
    "BookUpdate",
]
