"""Loan ledger: creation, return and lookup of loan records."""

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Generator, Iterator, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from ..catalog.manager import BookCatalog
from ..db.models import Book, utcnow
from ..db.sqlite import Database
from ..errors import ErrorKind, Result
from ..pagination import Page, PageRequest, paginate
from .models import Loan
from .schemas import LoanCreate, LoanFilter

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Loan.id,
    "loan_date": Loan.loan_date,
    "customer": Loan.customer,
    "returned": Loan.returned,
}


class BookLocks:
    """Per-book mutexes, created on first use.

    A book's lock lives only while some thread holds or waits on it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, book_id: int) -> Generator[None, None, None]:
        with self._guard:
            lock = self._locks.get(book_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[book_id] = lock
        with lock:
            yield


class LoanLedger:
    """Manages loan records and enforces one open loan per book.

    The check for an open loan and the insert of the new one run under a
    per-book lock held by this ledger. The partial unique index on
    ``loans(book_id) WHERE returned = 0`` rejects a second open loan
    written by any other ledger or process; that rejection is reported
    as BOOK_ALREADY_LOANED as well.
    """

    def __init__(
        self,
        db: Database,
        catalog: Optional[BookCatalog] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the ledger.

        Args:
            db: Database instance
            catalog: Catalog used to resolve ISBNs (built on ``db`` if omitted)
            clock: Source of loan timestamps, naive UTC
        """
        self.db = db
        self.catalog = catalog or BookCatalog(db)
        self.clock = clock
        self._locks = BookLocks()

    # -------------------------------------------------------------------------
    # Loan Creation
    # -------------------------------------------------------------------------

    def create_loan(
        self,
        book_id: int,
        customer: str,
        customer_email: Optional[str] = None,
    ) -> Result[Loan]:
        """Open a loan on a book.

        Args:
            book_id: Book to lend
            customer: Customer name
            customer_email: Address used for overdue reminders

        Returns:
            Result with the new open loan, or INVALID_REFERENCE /
            BOOK_ALREADY_LOANED
        """
        if book_id is None or not customer:
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT, "Book id and customer are required"
            )

        with self._locks.hold(book_id):
            try:
                with self.db.get_session() as session:
                    book = session.get(Book, book_id)
                    if not book:
                        return Result.failure(
                            ErrorKind.INVALID_REFERENCE, f"No book with id {book_id}"
                        )

                    if self.db.exists_open_loan_for_book(book_id, session):
                        logger.warning("Book %s is already on loan", book_id)
                        return Result.failure(
                            ErrorKind.BOOK_ALREADY_LOANED,
                            f"Book already loaned: {book.isbn}",
                        )

                    loan = Loan(
                        book=book,
                        customer=customer,
                        customer_email=customer_email,
                        loan_date=self.clock(),
                        returned=False,
                    )
                    session.add(loan)
                    session.commit()
                    session.refresh(loan)
                    session.expunge(loan)
            except IntegrityError:
                logger.warning("Open loan for book %s was written concurrently", book_id)
                return Result.failure(
                    ErrorKind.BOOK_ALREADY_LOANED, f"Book {book_id} is already loaned"
                )

        logger.info("Created loan %s of book %s for %s", loan.id, book_id, customer)
        return Result.success(loan)

    def create_loan_for_isbn(self, data: LoanCreate) -> Result[Loan]:
        """Open a loan on the book with the requested ISBN.

        Args:
            data: Loan request

        Returns:
            Result with the new loan; INVALID_REFERENCE if no book has the ISBN
        """
        if data is None:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, "Loan data is required")

        book = self.catalog.get_book_by_isbn(data.isbn)
        if not book:
            return Result.failure(
                ErrorKind.INVALID_REFERENCE, f"Book not found for isbn {data.isbn}"
            )
        return self.create_loan(book.id, data.customer, data.customer_email)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: int) -> Optional[Loan]:
        """Get a loan by ID.

        Args:
            loan_id: Loan ID

        Returns:
            Loan or None
        """
        if loan_id is None:
            return None
        with self.db.get_session() as session:
            loan = session.get(Loan, loan_id)
            if loan:
                session.expunge_all()
            return loan

    def exists_open_loan_for_book(self, book_id: int) -> bool:
        """Check whether the book is currently on loan."""
        return self.db.exists_open_loan_for_book(book_id)

    # -------------------------------------------------------------------------
    # Return
    # -------------------------------------------------------------------------

    def return_loan(self, loan_id: int, returned: bool = True) -> Result[Loan]:
        """Set a loan's returned flag.

        Closing an already closed loan is a no-op. Passing ``returned=False``
        reopens a loan, which fails if its book has since been loaned again.

        Args:
            loan_id: Loan ID
            returned: New value of the flag

        Returns:
            Result with the updated loan, or INVALID_REFERENCE /
            BOOK_ALREADY_LOANED
        """
        if loan_id is None or returned is None:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, "Loan id and flag are required")

        current = self.get_loan(loan_id)
        if not current:
            return Result.failure(ErrorKind.INVALID_REFERENCE, f"No loan with id {loan_id}")

        with self._locks.hold(current.book_id):
            try:
                with self.db.get_session() as session:
                    loan = session.get(Loan, loan_id)
                    if not loan:
                        return Result.failure(
                            ErrorKind.INVALID_REFERENCE, f"No loan with id {loan_id}"
                        )

                    if loan.returned == returned:
                        session.expunge_all()
                        return Result.success(loan)

                    if not returned and self.db.exists_open_loan_for_book(
                        loan.book_id, session
                    ):
                        return Result.failure(
                            ErrorKind.BOOK_ALREADY_LOANED,
                            f"Book {loan.book_id} has another open loan",
                        )

                    loan.returned = returned
                    loan.returned_at = self.clock() if returned else None
                    session.commit()
                    session.refresh(loan)
                    session.expunge_all()
            except IntegrityError:
                return Result.failure(
                    ErrorKind.BOOK_ALREADY_LOANED,
                    f"Book {current.book_id} has another open loan",
                )

        logger.info("Loan %s marked returned=%s", loan_id, returned)
        return Result.success(loan)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def find_loans(
        self,
        criteria: Optional[LoanFilter] = None,
        page: Optional[PageRequest] = None,
    ) -> Result[Page[Loan]]:
        """List loans by book ISBN or customer, one page at a time.

        A loan matches if its book's ISBN equals ``criteria.isbn`` or its
        customer contains ``criteria.customer``.

        Args:
            criteria: ISBN and/or customer to match
            page: Page to return

        Returns:
            Result with the page, or INVALID_ARGUMENT for an unknown sort field
        """
        criteria = criteria or LoanFilter()
        page = page or PageRequest()

        if page.sort_field and page.sort_field not in SORTABLE_FIELDS:
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT, f"Cannot sort loans by '{page.sort_field}'"
            )

        predicates = []
        if criteria.isbn:
            predicates.append(
                Loan.book_id.in_(select(Book.id).where(Book.isbn == criteria.isbn))
            )
        if criteria.customer:
            # instr() is case-sensitive, unlike LIKE in SQLite
            predicates.append(func.instr(Loan.customer, criteria.customer) > 0)

        stmt = select(Loan)
        if predicates:
            stmt = stmt.where(or_(*predicates))

        return Result.success(self._page(stmt, page))

    def find_loans_for_book(
        self, book_id: int, page: Optional[PageRequest] = None
    ) -> Result[Page[Loan]]:
        """List the loan history of one book.

        Args:
            book_id: Book ID
            page: Page to return

        Returns:
            Result with the page, or NOT_FOUND if the book does not exist
        """
        page = page or PageRequest()

        if page.sort_field and page.sort_field not in SORTABLE_FIELDS:
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT, f"Cannot sort loans by '{page.sort_field}'"
            )
        if self.catalog.get_book(book_id) is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"No book with id {book_id}")

        stmt = select(Loan).where(Loan.book_id == book_id)
        return Result.success(self._page(stmt, page))

    def find_open_loans_older_than(self, cutoff: datetime) -> Iterator[Loan]:
        """Iterate over open loans made strictly before ``cutoff``.

        The loans are read once when this is called; the returned
        iterator walks that snapshot and cannot be restarted.
        """
        return iter(self.db.find_open_loans_older_than(cutoff))

    def _page(self, stmt, page: PageRequest) -> Page[Loan]:
        with self.db.get_session() as session:
            result = paginate(session, stmt, page, SORTABLE_FIELDS, Loan.id.asc())
            session.expunge_all()
        return result
