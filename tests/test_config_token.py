"""Tests for ConfigToken."""

import pytest

from config_schema import ConfigToken, ValidationContext, validation_factory


class TestConfigToken:
    """Test the field descriptor."""

    def test_validate_delegates_with_name(self):
        calls = []

        def validation_function(value, name, context):
            calls.append((value, name))
            return value == "ok"

        token = ConfigToken("Status", validation_function, "String: status")
        assert token.validate("ok", ValidationContext())
        assert not token.validate("bad", ValidationContext())
        assert calls == [("ok", "Status"), ("bad", "Status")]

    def test_identity_by_name(self):
        first = ConfigToken("Fruit", validation_factory("string"), "first")
        second = ConfigToken("Fruit", validation_factory("integer"), "second")
        assert first == second
        assert len({first, second}) == 1
        assert first != ConfigToken("Color", validation_factory("string"), "first")

    def test_default(self):
        assert not ConfigToken("A", validation_factory("string"), "").has_default
        token = ConfigToken("B", validation_factory("boolean"), "", False)
        assert token.has_default
        assert token.default_value is False

    def test_str_and_repr(self):
        token = ConfigToken("Fruit", validation_factory("string"), "help")
        assert str(token) == "Fruit"
        assert repr(token) == "ConfigToken('Fruit')"

    def test_bad_arguments(self):
        with pytest.raises(ValueError):
            ConfigToken("", validation_factory("string"), "help")
        with pytest.raises(ValueError):
            ConfigToken("Fruit", "string", "help")
