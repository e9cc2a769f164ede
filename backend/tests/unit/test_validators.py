"""
Tests for contact field validation.
"""

import pytest

from utils.validators import (
    sanitize_text, validate_email, validate_full_name, validate_phone, validate_phone_optional,
)


class TestEmail:

    def test_normalised(self):
        assert validate_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("value", ["", "   ", "ada", "ada@example", "a da@example.com"])
    def test_rejected(self, value):
        with pytest.raises(ValueError):
            validate_email(value)


class TestPhone:

    def test_valid(self):
        assert validate_phone(" +44 2079460000 ") == "+44 2079460000"

    @pytest.mark.parametrize("value", ["2079460000", "+44-2079460000", "+44 207", "+1234 5551234567"])
    def test_rejected(self, value):
        with pytest.raises(ValueError):
            validate_phone(value)

    def test_optional(self):
        assert validate_phone_optional(None) is None
        assert validate_phone_optional("  ") is None
        assert validate_phone_optional("+1 5551234567") == "+1 5551234567"


class TestFreeText:

    def test_tags_are_stripped(self):
        assert sanitize_text("  <b>Ada</b> Lovelace<script ") == "Ada Lovelace"

    def test_name_required(self):
        with pytest.raises(ValueError):
            validate_full_name("<i></i>")

    def test_name_too_long(self):
        with pytest.raises(ValueError):
            validate_full_name("x" * 256)
