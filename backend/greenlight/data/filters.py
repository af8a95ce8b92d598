"""
Pagination and sorting for list queries.

Sort values come from the query string and end up interpolated into SQL
ORDER BY clauses, so they are only ever taken from a fixed safelist.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from ..errors import UnsafeSortError
from ..validator import Validator, permitted_value


@dataclass
class Filters:
    """Page, page size and sort order for a list query.

    Attributes:
        page: 1-based page number
        page_size: Records per page
        sort: Column name, optionally prefixed with "-" for descending
        sort_safelist: Accepted sort values
    """

    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: tuple[str, ...] = field(default_factory=tuple)

    def sort_column(self) -> str:
        """Return the column name for ORDER BY.

        Raises:
            UnsafeSortError: If sort is not in the safelist. Callers must
                validate filters first, so this indicates a programming error.
        """
        if self.sort in self.sort_safelist:
            return self.sort.lstrip("-")
        raise UnsafeSortError(f"unsafe sort parameter: {self.sort}")

    def sort_direction(self) -> str:
        """Return "ASC" or "DESC" depending on the sort prefix."""
        return "DESC" if self.sort.startswith("-") else "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, f: Filters) -> None:
    """Check that page, page_size and sort hold sensible values."""
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= 10_000_000, "page", "must be a maximum of 10 million")

    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= 100, "page_size", "must be a maximum of 100")

    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")


@dataclass
class Metadata:
    """Pagination metadata returned alongside list results.

    All fields are zero when the query matched no records.
    """

    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    def to_dict(self) -> dict[str, int]:
        if self.total_records == 0:
            return {}
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "first_page": self.first_page,
            "last_page": self.last_page,
            "total_records": self.total_records,
        }


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    """Build Metadata for a result set of total_records rows."""
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=math.ceil(total_records / page_size),
        total_records=total_records,
    )
