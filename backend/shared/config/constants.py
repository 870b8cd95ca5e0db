"""
Centralized constants for the backend application.
Avoids magic strings and repeated constants.

Usage:
    from shared.config.constants import SortField, SortOrder, Limits

    if sort_by not in SortField.ALL:
        sort_by = SortField.DEFAULT
"""

from typing import Final

from shared.config.settings import settings


# =============================================================================
# Product listing
# =============================================================================


class SortField:
    """Sort fields accepted by the product listing (API names)."""

    NAME: Final[str] = "name"
    PRICE: Final[str] = "price"
    CREATED_AT: Final[str] = "createdAt"
    UPDATED_AT: Final[str] = "updatedAt"

    ALL: Final[tuple[str, ...]] = (NAME, PRICE, CREATED_AT, UPDATED_AT)
    DEFAULT: Final[str] = CREATED_AT


class SortOrder:
    """Sort directions."""

    ASC: Final[str] = "asc"
    DESC: Final[str] = "desc"

    ALL: Final[tuple[str, ...]] = (ASC, DESC)
    DEFAULT: Final[str] = DESC


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Input bounds shared by the API layer and the services."""

    MIN_PAGE_SIZE: Final[int] = 1
    DEFAULT_PAGE_SIZE: Final[int] = settings.default_page_size
    MAX_PAGE_SIZE: Final[int] = settings.max_page_size
    MAX_SEARCH_TERM_LENGTH: Final[int] = settings.max_search_length
    MAX_CURSOR_LENGTH: Final[int] = 512
