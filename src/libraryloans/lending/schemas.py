"""Pydantic schemas for loans."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LoanCreate(BaseModel):
    """Schema for a loan request that names the book by ISBN."""

    isbn: str = Field(..., min_length=1, max_length=20)
    customer: str = Field(..., min_length=1, max_length=100)
    customer_email: Optional[str] = Field(None, max_length=200)

    @field_validator("isbn", "customer")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank values."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("customer_email")
    @classmethod
    def looks_like_email(cls, v: Optional[str]) -> Optional[str]:
        """Validate the contact address has an @ in it."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        if "@" not in v:
            raise ValueError("customer_email must be an email address")
        return v


class LoanFilter(BaseModel):
    """Filter over loans.

    A loan matches when its book's ISBN equals ``isbn`` or its customer
    contains ``customer`` (case-sensitive). When only one field is given
    only that predicate applies; with neither, every loan matches.
    """

    isbn: Optional[str] = None
    customer: Optional[str] = None
