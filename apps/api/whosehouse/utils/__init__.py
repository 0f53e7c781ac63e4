"""Utility modules."""

from whosehouse.utils.normalization import (
    is_valid_email,
    normalize_email,
    normalize_name,
    sanitize_text,
)
from whosehouse.utils.pagination import (
    PaginationParams,
    get_pagination,
    page_count,
    paginate_query,
)

__all__ = [
    # Normalization
    "is_valid_email",
    "normalize_email",
    "normalize_name",
    "sanitize_text",
    # Pagination
    "PaginationParams",
    "get_pagination",
    "page_count",
    "paginate_query",
]
