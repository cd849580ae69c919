"""Pytest configuration and shared fixtures.

This module provides fixtures for testing libraryloans, including an
in-memory database, the catalog and ledger managers, sample books, a
controllable clock and a recording reminder sender.
"""

from datetime import datetime

import pytest

from libraryloans.catalog import BookCatalog, BookCreate
from libraryloans.config import reset_config
from libraryloans.db import Book, Database
from libraryloans.lending import LoanLedger


# ============================================================================
# Helpers
# ============================================================================


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingSender:
    """Reminder sender that keeps every batch it is given."""

    def __init__(self, error: Exception = None):
        self.batches = []
        self.error = error

    def send_reminder(self, message, recipients):
        self.batches.append((message, list(recipients)))
        if self.error:
            raise self.error


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db() -> Database:
    """Create an in-memory database for testing."""
    reset_config()
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def clock() -> FixedClock:
    """A clock fixed at noon on 2024-03-10."""
    return FixedClock(datetime(2024, 3, 10, 12, 0, 0))


@pytest.fixture
def catalog(db: Database) -> BookCatalog:
    """Create a BookCatalog over the test database."""
    return BookCatalog(db)


@pytest.fixture
def ledger(db: Database, catalog: BookCatalog, clock: FixedClock) -> LoanLedger:
    """Create a LoanLedger with the fixed clock."""
    return LoanLedger(db, catalog, clock=clock)


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(title="Clean Code", author="Robert Martin", isbn="9780132350884")


@pytest.fixture
def created_book(catalog: BookCatalog, sample_book_data: BookCreate) -> Book:
    """Create and return a book in the database."""
    return catalog.create_book(sample_book_data).unwrap()


@pytest.fixture
def multiple_books(catalog: BookCatalog) -> list[Book]:
    """Create multiple books in the database."""
    books_data = [
        BookCreate(title="Dune", author="Frank Herbert", isbn="111"),
        BookCreate(title="Dune Messiah", author="Frank Herbert", isbn="222"),
        BookCreate(title="Neuromancer", author="William Gibson", isbn="333"),
        BookCreate(title="Count Zero", author="William Gibson", isbn="444"),
        BookCreate(title="Hyperion", author="Dan Simmons", isbn="555"),
    ]
    return [catalog.create_book(data).unwrap() for data in books_data]
