"""
Tests for toolkit helper functions.
"""

import pytest

from toolkit.helpers import format_minor_units, mask_email, minor_to_major, rows_to_csv


class TestMaskEmail:
    @pytest.mark.parametrize(
        "email,expected",
        [
            ("john.doe@example.com", "j***@example.com"),
            ("a@example.com", "***@example.com"),
            ("not-an-email", "***"),
            ("", "***"),
            (None, "***"),
        ],
    )
    def test_mask(self, email, expected):
        assert mask_email(email) == expected


class TestAmounts:
    @pytest.mark.parametrize(
        "amount,expected",
        [(50050, "500.50 INR"), (5, "0.05 INR"), (0, "0.00 INR"), (-1999, "-19.99 INR")],
    )
    def test_format_minor_units(self, amount, expected):
        assert format_minor_units(amount) == expected

    def test_currency_uppercased(self):
        assert format_minor_units(100, "usd") == "1.00 USD"

    def test_minor_to_major(self):
        assert minor_to_major(49900) == "499.00"


class TestRowsToCsv:
    def test_header_and_rows(self):
        text = rows_to_csv(
            [{"id": "rfnd_1", "amount": "100.00"}, {"id": "rfnd_2", "amount": "5.50", "extra": "ignored"}],
            ["id", "amount"],
        )

        assert text.splitlines() == ["id,amount", "rfnd_1,100.00", "rfnd_2,5.50"]

    def test_quotes_commas(self):
        text = rows_to_csv([{"reason": "late, damaged"}], ["reason"])

        assert text.splitlines()[1] == '"late, damaged"'

    def test_empty(self):
        assert rows_to_csv([], ["id"]).splitlines() == ["id"]
