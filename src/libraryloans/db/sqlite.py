"""SQLite database operations.

Handles database connection, session management, and the primitive
queries the catalog and the ledger are built on.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional, Union

from sqlalchemy import create_engine, event, exists, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, Book

logger = logging.getLogger(__name__)


class Database:
    """Database connection and operations manager.

    One instance is created by whatever wires the application together
    and handed to the managers that use it.
    """

    def __init__(self, db_path: Union[str, Path]):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        event.listen(self.engine, "connect", _enable_foreign_keys)
        # The in-memory database has a single connection; one session at a time
        self._session_lock = threading.RLock() if self._is_memory else nullcontext()
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        # Import lending models to register them with Base
        from ..lending.models import Loan  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        with self._session_lock:
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # ========================================================================
    # Book Queries
    # ========================================================================

    def get_book(self, book_id: int, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_book_by_isbn(
        self, isbn: str, session: Optional[Session] = None
    ) -> Optional[Book]:
        """Get a book by ISBN."""

        def _get(s: Session) -> Optional[Book]:
            stmt = select(Book).where(Book.isbn == isbn)
            return s.execute(stmt).scalar_one_or_none()

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def isbn_exists(self, isbn: str, session: Optional[Session] = None) -> bool:
        """Check whether any book carries this ISBN."""

        def _exists(s: Session) -> bool:
            return bool(s.execute(select(exists().where(Book.isbn == isbn))).scalar())

        if session:
            return _exists(session)
        else:
            with self.get_session() as s:
                return _exists(s)

    # ========================================================================
    # Loan Queries
    # ========================================================================

    def exists_open_loan_for_book(
        self, book_id: int, session: Optional[Session] = None
    ) -> bool:
        """Check whether the book has a loan that is not yet returned."""
        from ..lending.models import Loan

        def _exists(s: Session) -> bool:
            stmt = select(
                exists().where(Loan.book_id == book_id, Loan.returned.is_(False))
            )
            return bool(s.execute(stmt).scalar())

        if session:
            return _exists(session)
        else:
            with self.get_session() as s:
                return _exists(s)

    def has_loans_for_book(self, book_id: int, session: Optional[Session] = None) -> bool:
        """Check whether any loan, open or closed, references the book."""
        from ..lending.models import Loan

        def _exists(s: Session) -> bool:
            return bool(s.execute(select(exists().where(Loan.book_id == book_id))).scalar())

        if session:
            return _exists(session)
        else:
            with self.get_session() as s:
                return _exists(s)

    def find_open_loans_older_than(
        self, cutoff: datetime, session: Optional[Session] = None
    ) -> list:
        """Get open loans made strictly before ``cutoff``, oldest first."""
        from ..lending.models import Loan

        def _get(s: Session) -> list:
            stmt = (
                select(Loan)
                .where(Loan.returned.is_(False), Loan.loan_date < cutoff)
                .order_by(Loan.loan_date, Loan.id)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                loans = _get(s)
                logger.debug("Found %d open loans made before %s", len(loans), cutoff)
                s.expunge_all()
                return loans


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
