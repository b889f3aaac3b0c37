"""
Helper functions for common operations.

Functions:
    calculate_pagination: Pagination metadata for 1-indexed page windows
    parse_iso_date: Lenient ISO-8601 date parsing for query parameters
    month_label: "YYYY-MM" label for a date
    shift_month: Move a (year, month) pair by a number of months
"""

from __future__ import annotations

import math
from datetime import date, datetime

from core.exceptions import ValidationError


def calculate_pagination(total: int, page: int, per_page: int) -> dict:
    """
    Calculate pagination metadata.

    Unlike a clamping paginator, a page past the end is reported as-is so
    callers can return an empty window with the true total.

    Args:
        total: Total number of items
        page: Requested page number (1-indexed)
        per_page: Items per page

    Returns:
        Dict with offset/limit plus client-facing metadata

    Example:
        calculate_pagination(total=45, page=3, per_page=20)
        # {"total": 45, "page": 3, "per_page": 20, "total_pages": 3,
        #  "offset": 40, "limit": 20, "has_next": False, "has_previous": True}
    """
    if page < 1:
        raise ValidationError("page must be a positive integer", details={"page": page})
    if per_page < 1:
        raise ValidationError(
            "page_size must be a positive integer", details={"page_size": per_page}
        )

    total_pages = math.ceil(total / per_page) if total else 0
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": total_pages,
        "offset": (page - 1) * per_page,
        "limit": per_page,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


def parse_iso_date(value: str | date | None, field_name: str = "date") -> date | None:
    """
    Parse an ISO-8601 date (or datetime) string into a date.

    Returns None for empty input.

    Raises:
        ValidationError: If the value is not a valid ISO-8601 date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(
            f"{field_name} must be an ISO-8601 date (YYYY-MM-DD)",
            details={field_name: value},
        ) from None


def month_label(value: date) -> str:
    """Format a date as a "YYYY-MM" month label."""
    return f"{value.year:04d}-{value.month:02d}"


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """
    Move (year, month) by delta months.

    Example:
        shift_month(2025, 1, -1)  # (2024, 12)
    """
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
