"""
Domain-aware helper functions.

Functions:
    mask_email: Mask an email address for logs
    format_minor_units: Render an integer minor-unit amount for humans
    minor_to_major: Minor units as a bare decimal string
    rows_to_csv: Render dict rows as CSV text
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from typing import Any


def mask_email(email: str | None) -> str:
    """
    Mask email for logging.

    Example:
        mask_email("john.doe@example.com")  # "j***@example.com"
    """
    if not email or "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)
    masked_local = local[0] + "***" if len(local) > 1 else "***"
    return f"{masked_local}@{domain}"


def format_minor_units(amount: int, currency: str = "INR") -> str:
    """
    Format paise/cents as a major-unit string.

    Example:
        format_minor_units(50050, "INR")  # "500.50 INR"
    """
    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(int(amount)), 100)
    return f"{sign}{major}.{minor:02d} {currency.upper()}"


def minor_to_major(amount: int) -> str:
    """
    Major-unit decimal string without the currency code.

    Example:
        minor_to_major(50050)  # "500.50"
    """
    return format_minor_units(amount, "").rstrip()


def rows_to_csv(rows: Iterable[dict[str, Any]], fieldnames: list[str]) -> str:
    """Render dict rows as CSV text with a header line."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return output.getvalue()
