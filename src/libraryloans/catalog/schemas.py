"""Pydantic schemas for the book catalog."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _strip_not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class BookCreate(BaseModel):
    """Schema for creating a book."""

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=500)
    isbn: str = Field(..., min_length=1, max_length=20)

    @field_validator("title", "author", "isbn")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank values."""
        return _strip_not_blank(v)


class BookUpdate(BaseModel):
    """Schema for updating a book. The ISBN cannot be changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    author: Optional[str] = Field(None, min_length=1, max_length=500)

    @field_validator("title", "author")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        """Strip surrounding whitespace and reject blank values; None keeps the field."""
        if v is None:
            return v
        return _strip_not_blank(v)


class BookFilter(BaseModel):
    """Partial-match filter over books.

    Every populated field must be contained in the matching book's field,
    ignoring case. Fields left as None impose no constraint.
    """

    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
