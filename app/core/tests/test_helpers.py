"""
Tests for core helper functions.
"""

from datetime import date, datetime, timezone

import pytest

from core.exceptions import ValidationError
from core.helpers import calculate_pagination, month_label, parse_iso_date, shift_month


class TestCalculatePagination:
    def test_middle_page(self):
        meta = calculate_pagination(total=45, page=2, per_page=20)

        assert meta["offset"] == 20
        assert meta["limit"] == 20
        assert meta["total_pages"] == 3
        assert meta["has_next"] is True
        assert meta["has_previous"] is True

    def test_page_past_end_is_not_clamped(self):
        meta = calculate_pagination(total=5, page=4, per_page=2)

        assert meta["page"] == 4
        assert meta["offset"] == 6
        assert meta["total_pages"] == 3
        assert meta["has_next"] is False

    def test_empty(self):
        assert calculate_pagination(total=0, page=1, per_page=20)["total_pages"] == 0

    @pytest.mark.parametrize("page,per_page", [(0, 20), (1, 0)])
    def test_rejects_non_positive(self, page, per_page):
        with pytest.raises(ValidationError):
            calculate_pagination(total=10, page=page, per_page=per_page)


class TestParseIsoDate:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-06-15", date(2025, 6, 15)),
            ("2025-06-15T10:30:00Z", date(2025, 6, 15)),
            (date(2025, 1, 2), date(2025, 1, 2)),
            (datetime(2025, 1, 2, 5, tzinfo=timezone.utc), date(2025, 1, 2)),
            (None, None),
            ("", None),
        ],
    )
    def test_parses(self, value, expected):
        assert parse_iso_date(value) == expected

    def test_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_iso_date("15/06/2025", "start_date")

        assert exc_info.value.details == {"start_date": "15/06/2025"}


class TestMonths:
    def test_month_label(self):
        assert month_label(date(2025, 3, 31)) == "2025-03"

    @pytest.mark.parametrize(
        "args,expected",
        [((2025, 1, -1), (2024, 12)), ((2025, 12, 1), (2026, 1)), ((2025, 6, -17), (2024, 1)), ((2025, 6, 0), (2025, 6))],
    )
    def test_shift_month(self, args, expected):
        assert shift_month(*args) == expected
