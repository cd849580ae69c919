"""Tests for paging helpers and result values."""

import pytest
from pydantic import ValidationError

from libraryloans.errors import ErrorKind, LendingError, Result
from libraryloans.pagination import MAX_PAGE, Page, PageRequest


class TestPageRequest:
    """Tests for PageRequest."""

    def test_defaults(self):
        request = PageRequest()
        assert request.page == 0
        assert request.size == 10
        assert request.offset == 0
        assert request.sort_field is None
        assert not request.descending

    def test_offset(self):
        assert PageRequest(page=3, size=7).offset == 21

    def test_sort_parsing(self):
        request = PageRequest(sort="-title")
        assert request.sort_field == "title"
        assert request.descending

    @pytest.mark.parametrize("page,size", [(-1, 10), (0, 0), (0, 1001), (10**18, 1000)])
    def test_invalid_values(self, page: int, size: int):
        with pytest.raises(ValidationError):
            PageRequest(page=page, size=size)

    def test_largest_offset_fits_sqlite_integer(self):
        assert PageRequest(page=MAX_PAGE, size=1000).offset <= 2**63 - 1


class TestPage:
    """Tests for Page properties."""

    @pytest.mark.parametrize(
        "total,size,pages",
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 5, 5)],
    )
    def test_total_pages(self, total: int, size: int, pages: int):
        assert Page(items=[], total=total, page=0, size=size).total_pages == pages

    def test_is_last(self):
        assert Page(items=[1], total=11, page=1, size=10).is_last
        assert not Page(items=[1], total=11, page=0, size=10).is_last


class TestResult:
    """Tests for Result."""

    def test_success(self):
        result = Result.success(5)
        assert result.ok
        assert result.unwrap() == 5

    def test_failure(self):
        result = Result.failure(ErrorKind.NOT_FOUND, "gone")

        assert not result.ok
        assert result.value is None
        with pytest.raises(LendingError, match="gone") as exc:
            result.unwrap()
        assert exc.value.kind == ErrorKind.NOT_FOUND
