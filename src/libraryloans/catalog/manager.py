"""Book catalog operations."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..db.models import Book
from ..db.sqlite import Database
from ..errors import ErrorKind, Result
from ..pagination import Page, PageRequest, paginate
from .schemas import BookCreate, BookFilter, BookUpdate

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Book.id,
    "title": Book.title,
    "author": Book.author,
    "isbn": Book.isbn,
}


class BookCatalog:
    """Owns book records and the uniqueness of their ISBNs."""

    def __init__(self, db: Database):
        """Initialize the catalog.

        Args:
            db: Database instance
        """
        self.db = db

    def create_book(self, data: BookCreate) -> Result[Book]:
        """Add a book to the catalog.

        Args:
            data: Book creation data

        Returns:
            Result with the created book, or DUPLICATE_ISBN
        """
        if data is None:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, "Book data is required")

        try:
            with self.db.get_session() as session:
                if self.db.isbn_exists(data.isbn, session):
                    logger.warning("Rejected book with existing ISBN %s", data.isbn)
                    return Result.failure(
                        ErrorKind.DUPLICATE_ISBN, f"ISBN already registered: {data.isbn}"
                    )

                book = Book(title=data.title, author=data.author, isbn=data.isbn)
                session.add(book)
                session.commit()
                session.refresh(book)
                session.expunge(book)
        except IntegrityError:
            # Concurrent insert of the same ISBN won the race
            logger.warning("Rejected book with existing ISBN %s", data.isbn)
            return Result.failure(
                ErrorKind.DUPLICATE_ISBN, f"ISBN already registered: {data.isbn}"
            )

        logger.info("Created book %s (isbn=%s)", book.id, book.isbn)
        return Result.success(book)

    def get_book(self, book_id: int) -> Optional[Book]:
        """Get a book by ID, or None if there is no such book."""
        if book_id is None:
            return None
        return self.db.get_book(book_id)

    def get_book_by_isbn(self, isbn: str) -> Optional[Book]:
        """Get a book by ISBN, or None if there is no such book."""
        if not isbn:
            return None
        return self.db.get_book_by_isbn(isbn)

    def update_book(self, book_id: int, data: BookUpdate) -> Result[Book]:
        """Overwrite a book's title and/or author.

        Args:
            book_id: Book ID
            data: Fields to change

        Returns:
            Result with the updated book, or INVALID_REFERENCE
        """
        if book_id is None or data is None:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, "Book id and data are required")

        with self.db.get_session() as session:
            book = session.get(Book, book_id)
            if not book:
                return Result.failure(ErrorKind.INVALID_REFERENCE, f"No book with id {book_id}")

            update_data = data.model_dump(exclude_unset=True, exclude_none=True)
            for field, value in update_data.items():
                setattr(book, field, value)

            session.commit()
            session.refresh(book)
            session.expunge(book)

        logger.info("Updated book %s", book_id)
        return Result.success(book)

    def delete_book(self, book_id: int) -> Result[None]:
        """Remove a book that has never been loaned.

        Args:
            book_id: Book ID

        Returns:
            Empty result, or INVALID_REFERENCE / BOOK_HAS_LOANS
        """
        if book_id is None:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, "Book id is required")

        with self.db.get_session() as session:
            book = session.get(Book, book_id)
            if not book:
                return Result.failure(ErrorKind.INVALID_REFERENCE, f"No book with id {book_id}")

            if self.db.has_loans_for_book(book_id, session):
                logger.warning("Refused to delete book %s with loan history", book_id)
                return Result.failure(
                    ErrorKind.BOOK_HAS_LOANS, f"Book {book_id} has loan records"
                )

            session.delete(book)

        logger.info("Deleted book %s", book_id)
        return Result.success(None)

    def find_books(
        self,
        criteria: Optional[BookFilter] = None,
        page: Optional[PageRequest] = None,
    ) -> Result[Page[Book]]:
        """List books matching a partial-match filter, one page at a time.

        Args:
            criteria: Fields to match; None or an empty filter matches all books
            page: Page to return (defaults to the first page of 10)

        Returns:
            Result with the page, or INVALID_ARGUMENT for an unknown sort field
        """
        criteria = criteria or BookFilter()
        page = page or PageRequest()

        if page.sort_field and page.sort_field not in SORTABLE_FIELDS:
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT, f"Cannot sort books by '{page.sort_field}'"
            )

        stmt = select(Book)
        if criteria.title:
            stmt = stmt.where(Book.title.icontains(criteria.title, autoescape=True))
        if criteria.author:
            stmt = stmt.where(Book.author.icontains(criteria.author, autoescape=True))
        if criteria.isbn:
            stmt = stmt.where(Book.isbn.icontains(criteria.isbn, autoescape=True))

        with self.db.get_session() as session:
            result = paginate(session, stmt, page, SORTABLE_FIELDS, Book.id.asc())
            session.expunge_all()

        return Result.success(result)
