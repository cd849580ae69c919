"""SQLAlchemy model for loan records."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Book, utcnow


class Loan(Base):
    """Loan model - one checkout of a book by a customer."""

    __tablename__ = "loans"
    __table_args__ = (
        # At most one open loan per book
        Index(
            "uq_loans_open_book",
            "book_id",
            unique=True,
            sqlite_where=text("returned = 0"),
            postgresql_where=text("returned = false"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    book_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("books.id"), nullable=False, index=True
    )

    customer: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(200))

    loan_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    returned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    returned_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    book: Mapped["Book"] = relationship("Book", lazy="joined")

    def __repr__(self) -> str:
        return f"<Loan(id={self.id}, book_id={self.book_id}, returned={self.returned})>"

    def days_out(self, now: Optional[datetime] = None) -> int:
        """Whole days since the loan was made."""
        return ((now or utcnow()) - self.loan_date).days
