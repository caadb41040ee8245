"""
Pagination, sorting and result metadata for list endpoints.

Sort columns are checked against an allow-list supplied by each endpoint.
Validation rejects anything outside it, and sort_column() re-checks before
the value is used to build a query.
"""

from dataclasses import dataclass, field
from typing import Tuple
from app.core.validator import Validator, permitted_value

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100
DEFAULT_ORDER_SAFELIST: Tuple[str, ...] = ("asc", "desc")


class UnsafeSortError(AssertionError):
    """An unvalidated sort value reached the query layer."""


@dataclass(frozen=True)
class Filters:
    page: int = 1
    page_size: int = 10
    sort: str = "created_at"
    order: str = "desc"
    sort_safelist: Tuple[str, ...] = ()
    order_safelist: Tuple[str, ...] = field(default=DEFAULT_ORDER_SAFELIST)

    def sort_column(self) -> str:
        if self.sort in self.sort_safelist:
            return self.sort
        raise UnsafeSortError(f"unsafe sort parameter: {self.sort}")

    def sort_ascending(self) -> bool:
        return self.order == "asc"

    def sort_direction(self) -> str:
        return "ASC" if self.sort_ascending() else "DESC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class Metadata:
    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int


def validate_filters(v: Validator, filters: Filters) -> None:
    v.check(filters.page > 0, "page", "must be greater than 0")
    v.check(filters.page <= MAX_PAGE, "page", "must be at most ten million")
    v.check(filters.page_size > 0, "page_size", "must be greater than 0")
    v.check(filters.page_size <= MAX_PAGE_SIZE, "page_size", "must be at most 100")

    v.check(
        permitted_value(filters.sort, *filters.sort_safelist), "sort",
        f'"{filters.sort}" is an invalid sort value, use one of: {", ".join(filters.sort_safelist)}',
    )
    v.check(
        permitted_value(filters.order, *filters.order_safelist), "order",
        f'"{filters.order}" is an invalid order value, use one of: {", ".join(filters.order_safelist)}',
    )


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    """
    Describe one page of a result set.

    An empty result set reports last_page=0, which clients read as "no pages".
    """
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )
