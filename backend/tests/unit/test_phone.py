"""
Tests for Brazilian phone helpers.
"""
import pytest

from imobcrm.services.phone import normalize_phone, format_brazilian_phone, digits_only


class TestNormalizePhone:
    """Tests for portal phone normalization"""

    @pytest.mark.parametrize("kwargs,expected", [
        ({"phone_number": "(48) 99999-8888"}, "5548999998888"),
        ({"ddd": "48", "phone": "99999-8888"}, "5548999998888"),
        ({"phone_number": "+55 48 99999-8888"}, "5548999998888"),
        ({"phone_number": "48 3333-4444"}, "554833334444"),
        ({"phone_number": "12345"}, None),
        ({}, None),
    ])
    def test_normalize(self, kwargs, expected):
        assert normalize_phone(**kwargs) == expected

    def test_phone_number_wins_over_ddd(self):
        assert normalize_phone(ddd="11", phone="988887777", phone_number="48999998888") == "5548999998888"


class TestFormatBrazilianPhone:
    """Tests for display formatting"""

    @pytest.mark.parametrize("raw,expected", [
        ("5548999998888", "+55 (48) 9 9999-8888"),
        ("(48) 99999-8888", "+55 (48) 9 9999-8888"),
        ("4833334444", "+55 (48) 9 3333-4444"),
        ("12345", "12345"),
        ("", ""),
    ])
    def test_format(self, raw, expected):
        assert format_brazilian_phone(raw) == expected

    def test_digits_only(self):
        assert digits_only("+55 (48) 9 9999-8888") == "5548999998888"
        assert digits_only(None) == ""
