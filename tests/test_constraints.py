"""Tests for the constraint library."""

import logging
import re
import sys

import pytest

from config_schema import (
    ConfigToken,
    SchemaDefinitionError,
    ValidationContext,
    apply_constraints_to_all_array_values,
    constrain_array_count,
    constrain_json_tokens,
    constrain_numeric_value,
    constrain_property_count,
    constrain_string_values,
    constrain_string_with_regex_exact,
    is_null_or_empty,
    register_type_caster,
    validation_factory,
)
from config_schema.constraints import get_type_caster, registered_types
from config_schema.exceptions import TypeCastError


def run(function, value, name="Token"):
    """Run a validation function in a fresh context and return (result, errors)."""
    context = ValidationContext()
    return function(value, name, context), context.errors


class TestIsNullOrEmpty:
    """Test what counts as an empty value."""

    def test_empty_values(self):
        for value in (None, "", [], {}):
            assert is_null_or_empty(value)

    def test_non_empty_values(self):
        for value in (0, 0.0, False, " ", [None], {"a": None}, "x"):
            assert not is_null_or_empty(value)


class TestTypeCasters:
    """Test the built-in type casters."""

    @pytest.mark.parametrize("type_name,value,expected", [
        ("string", "abc", "abc"),
        ("string", 12, "12"),
        ("string", True, "true"),
        ("integer", 7, 7),
        ("integer", 7.0, 7),
        ("integer", " 42 ", 42),
        ("number", 2.5, 2.5),
        ("number", "2.5", 2.5),
        ("boolean", False, False),
        ("boolean", "TRUE", True),
        ("object", {"a": 1}, {"a": 1}),
        ("array", [1], [1]),
    ])
    def test_successful_casts(self, type_name, value, expected):
        assert get_type_caster(type_name)(value) == expected

    @pytest.mark.parametrize("type_name,value", [
        ("string", {"a": 1}),
        ("string", [1]),
        ("integer", True),
        ("integer", 7.5),
        ("integer", "bleventeen"),
        ("number", False),
        ("number", "eight"),
        ("number", "nan"),
        ("boolean", 1),
        ("boolean", "yes"),
        ("object", [1]),
        ("array", "1, 2"),
    ])
    def test_failed_casts(self, type_name, value):
        with pytest.raises(TypeCastError):
            get_type_caster(type_name)(value)

    @pytest.mark.skipif(not hasattr(sys, "get_int_max_str_digits"), reason="interpreter has no int digit limit")
    def test_integer_text_over_digit_limit(self):
        with pytest.raises(TypeCastError):
            get_type_caster("integer")("9" * 5000)

    def test_unknown_type_is_schema_error(self):
        with pytest.raises(SchemaDefinitionError, match="No type caster registered for type 'date'"):
            validation_factory("date")

    def test_unknown_type_message_lists_known_types(self):
        with pytest.raises(SchemaDefinitionError, match="Known types: array, boolean, integer"):
            validation_factory("date")
        assert registered_types()[:3] == ["array", "boolean", "integer"]

    def test_schema_errors_are_logged(self, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("config_schema.constraints"), "propagate", True)
        with caplog.at_level(logging.ERROR, logger="config_schema.constraints"):
            with pytest.raises(SchemaDefinitionError):
                constrain_numeric_value((5, 1))
        assert "has an upper bound below its lower bound" in caplog.text

    def test_register_custom_caster(self):
        @register_type_caster("percent")
        def _cast_percent(value):
            if isinstance(value, str) and value.endswith("%"):
                return float(value[:-1])
            raise TypeCastError("not a percent")

        ok, errors = run(validation_factory("percent", constrain_numeric_value(0, 100)), "55%", "Share")
        assert ok and errors == []
        ok, errors = run(validation_factory("percent", constrain_numeric_value(0, 100)), "155%", "Share")
        assert not ok
        assert errors == [
            "Token Share with value 155 is invalid. Value must be greater than or equal to 0 and "
            "less than or equal to 100"
        ]


class TestValidationFactory:
    """Test the type-cast wrapper."""

    def test_empty_value(self):
        ok, errors = run(validation_factory("string"), "", "Color")
        assert not ok
        assert errors == ["The value of token Color is empty or null."]

    def test_cast_failure_skips_constraints(self):
        constraint_calls = []

        def constraint(value, name, context):
            constraint_calls.append(value)
            return True

        ok, errors = run(validation_factory("integer", constraint), "bleventeen", "NumberConsumed")
        assert not ok
        assert errors == ["Token NumberConsumed with value bleventeen is an incorrect type. Expected value type: integer"]
        assert constraint_calls == []

    def test_all_constraints_run(self):
        function = validation_factory(
            "string",
            constrain_string_values("Grape", "Apple"),
            constrain_string_with_regex_exact("[a-z]+"),
        )
        ok, errors = run(function, "Melon", "Fruit")
        assert not ok
        assert len(errors) == 2

    def test_constraints_receive_cast_value(self):
        seen = []

        def constraint(value, name, context):
            seen.append(value)
            return True

        ok, _ = run(validation_factory("integer", constraint), "12")
        assert ok
        assert seen == [12]

    def test_non_callable_constraint(self):
        with pytest.raises(SchemaDefinitionError):
            validation_factory("string", "not a function")


class TestStringConstraints:
    """Test enumeration and regex constraints."""

    def test_string_values(self):
        function = constrain_string_values("Grape", "Orange", "Apple")
        assert run(function, "Orange") == (True, [])
        ok, errors = run(function, "Watermelon", "Fruit")
        assert not ok
        assert errors == ["Input Fruit with value Watermelon is not valid. Valid values: Grape, Orange, Apple"]

    def test_regex_exact_match(self):
        function = constrain_string_with_regex_exact(r"[A-Z]{2}")
        assert run(function, "ES")[0]
        assert run(function, "ESFR")[0]  # every character is covered by a match
        ok, errors = run(function, "ES1", "Origin")
        assert not ok
        assert errors == ["Token Origin with value ES1 is not an exact match to pattern [A-Z]{2}"]

    def test_regex_any_of_several_patterns(self):
        function = constrain_string_with_regex_exact(r"\d{4}", re.compile(r"[a-z]+"))
        assert run(function, "2024")[0]
        assert run(function, "spring")[0]
        ok, errors = run(function, "spring2024", "Season")
        assert not ok
        assert errors == [r"Token Season with value spring2024 is not an exact match to any pattern: \d{4} [a-z]+"]

    def test_invalid_regex_is_schema_error(self):
        with pytest.raises(SchemaDefinitionError, match="is not a valid Regex pattern"):
            constrain_string_with_regex_exact("[unclosed")


class TestNumericConstraints:
    """Test the three forms of constrain_numeric_value."""

    def test_lower_bound(self):
        function = constrain_numeric_value(0)
        assert run(function, 0)[0]
        ok, errors = run(function, -3, "NumberConsumed")
        assert not ok
        assert errors == ["Token NumberConsumed with value -3 is less than enforced lower bound 0"]

    def test_lower_and_upper_bound(self):
        function = constrain_numeric_value(0, 5.5)
        assert run(function, 5.5)[0]
        ok, errors = run(function, 9.5, "Weight")
        assert not ok
        assert errors == [
            "Token Weight with value 9.5 is invalid. Value must be greater than or equal to 0 and "
            "less than or equal to 5.5"
        ]

    def test_domains(self):
        function = constrain_numeric_value((0, 5), (10, 15))
        assert run(function, 5)[0]
        assert run(function, 10)[0]
        ok, errors = run(function, 7, "MarketValue")
        assert not ok
        assert errors == [
            "Token MarketValue with value 7 is invalid. Value must fall within one of the following domains, "
            "inclusive: (0, 5) (10, 15)"
        ]

    def test_non_numeric_value(self):
        ok, errors = run(constrain_numeric_value(0), "three", "Count")
        assert not ok
        assert errors == ["Token Count with value three is not a number."]

    @pytest.mark.parametrize("bounds", [(), (1, 2, 3), ("a",), (5, 1), ((5, 1),), ((0, 5), 3), ((0,),)])
    def test_bad_bounds(self, bounds):
        with pytest.raises(SchemaDefinitionError):
            constrain_numeric_value(*bounds)


class TestCountConstraints:
    """Test property and array count constraints."""

    def test_property_count_lower(self):
        ok, errors = run(constrain_property_count(2), {"a": 1}, "Nutrition")
        assert not ok
        assert errors == ["Value of token Nutrition is invalid. Value has 1 properties, but must have at least 2 properties."]

    def test_property_count_range(self):
        function = constrain_property_count(1, 2)
        assert run(function, {"a": 1, "b": 2})[0]
        ok, errors = run(function, {"a": 1, "b": 2, "c": 3}, "Nutrition")
        assert not ok
        assert errors == [
            "Value of token Nutrition is invalid. Value has 3 properties, but must have at least 1 properties "
            "and at most 2 properties."
        ]

    def test_array_count_lower(self):
        ok, errors = run(constrain_array_count(2), [1], "Weights")
        assert not ok
        assert errors == ["Value of token Weights contains 1 values, but must contain at least 2 values."]

    def test_array_count_range(self):
        ok, errors = run(constrain_array_count(1, 4), [1, 2, 3, 4, 5], "Weights")
        assert not ok
        assert errors == ["Value of token Weights contains 5 values, but must contain between 1 and 4 values."]

    def test_bad_count_bounds(self):
        with pytest.raises(SchemaDefinitionError):
            constrain_array_count(-1)
        with pytest.raises(SchemaDefinitionError):
            constrain_property_count(3, 1)


class TestArrayValues:
    """Test per-element array constraints."""

    def test_every_bad_element_is_reported(self):
        function = apply_constraints_to_all_array_values("integer", constrain_numeric_value(0))
        ok, errors = run(function, [1, -2, "x", 3, -4], "Counts")
        assert not ok
        assert errors == [
            "Token in array Counts with value -2 is less than enforced lower bound 0",
            "Value x in array Counts is an incorrect type. Expected value type: integer",
            "Token in array Counts with value -4 is less than enforced lower bound 0",
        ]

    def test_all_elements_valid(self):
        function = apply_constraints_to_all_array_values("string", constrain_string_values("a", "b"))
        assert run(function, ["a", "b", "a"]) == (True, [])

    def test_null_element(self):
        ok, errors = run(apply_constraints_to_all_array_values("number"), [1, None], "Weights")
        assert not ok
        assert errors == ["Value null in array Weights is an incorrect type. Expected value type: number"]


class TestJsonTokens:
    """Test nested object constraints."""

    def test_child_shares_context(self):
        ripe = ConfigToken("Ripe", validation_factory("boolean"), "Bool: ripe")
        function = constrain_json_tokens([ripe])
        context = ValidationContext()
        assert not function({"Ripe": "maybe"}, "FruitProperties", context)
        assert context.errors == [
            "Token Ripe with value maybe is an incorrect type. Expected value type: boolean",
            "Bool: ripe",
            "Validation for Value of token FruitProperties failed.",
        ]
        assert not context.valid

    def test_overlapping_tokens_are_schema_error(self):
        token = ConfigToken("Ripe", validation_factory("boolean"), "Bool: ripe")
        with pytest.raises(SchemaDefinitionError):
            constrain_json_tokens([token], [token])
