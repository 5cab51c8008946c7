"""
Build schemas from declarative JSON definitions.

Host code usually assembles ConfigTokens in Python. The same schema can also
be described as data, which is handy when the schema ships next to the config
it checks:

```json
{
  "required": [
    {"name": "Fruit", "type": "string", "help": "String: the fruit.",
     "constraints": [{"kind": "values", "values": ["Grape", "Orange", "Apple"]}]},
    {"name": "FruitProperties", "type": "object", "help": "Json: properties.",
     "constraints": [{"kind": "object",
                      "required": [{"name": "Ripe", "type": "boolean", "help": "Bool: ripe?"}]}]}
  ],
  "optional": [{"name": "NearestMarket", "type": "string", "help": "String: market.", "default": "Barcelona"}],
  "exclusive": [["NearestMarket", "ClosestMarket"]]
}
```

Constraint kinds map onto `config_schema.constraints`:

| kind | fields | factory |
|---|---|---|
| values | values | constrain_string_values |
| regex | patterns | constrain_string_with_regex_exact |
| numeric | lower[, upper] or domains | constrain_numeric_value |
| property_count | lower[, upper] | constrain_property_count |
| array_count | lower[, upper] | constrain_array_count |
| each | type, constraints | apply_constraints_to_all_array_values |
| object | required, optional, exclusive | constrain_json_tokens |

The definition is checked against DEFINITION_SCHEMA before anything is built;
all problems are reported together in one SchemaDefinitionError.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List

import jsonschema
from jsonschema import Draft202012Validator

from config_schema.config_token import ConfigToken, ValidationFunction
from config_schema.constraints import (
    apply_constraints_to_all_array_values,
    constrain_array_count,
    constrain_json_tokens,
    constrain_numeric_value,
    constrain_property_count,
    constrain_string_values,
    constrain_string_with_regex_exact,
    validation_factory,
)
from config_schema.exceptions import SchemaDefinitionError
from config_schema.schema_controller import SchemaController
from config_schema.schema_logging import create_logger

logger = create_logger(__name__)


_COUNT_BOUNDS = {
    "lower": {"type": "integer", "minimum": 0},
    "upper": {"type": "integer", "minimum": 0},
}

DEFINITION_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "required": {"type": "array", "items": {"$ref": "#/$defs/token"}},
        "optional": {"type": "array", "items": {"$ref": "#/$defs/token"}},
        "exclusive": {"type": "array", "items": {"$ref": "#/$defs/group"}},
    },
    "$defs": {
        "token": {
            "type": "object",
            "additionalProperties": False,
            "required": ["name", "type"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "type": {"type": "string", "minLength": 1},
                "help": {"type": "string"},
                "default": {},
                "constraints": {"type": "array", "items": {"$ref": "#/$defs/constraint"}},
            },
        },
        "group": {
            "type": "array",
            "minItems": 2,
            "items": {
                "anyOf": [
                    {"type": "string", "minLength": 1},
                    {"type": "array", "minItems": 1, "items": {"type": "string", "minLength": 1}},
                ]
            },
        },
        "constraint": {
            "type": "object",
            "required": ["kind"],
            "properties": {
                "kind": {
                    "enum": ["values", "regex", "numeric", "property_count", "array_count", "each", "object"]
                }
            },
            "allOf": [
                {
                    "if": {"properties": {"kind": {"const": "values"}}},
                    "then": {
                        "additionalProperties": False,
                        "required": ["values"],
                        "properties": {
                            "kind": {},
                            "values": {"type": "array", "minItems": 1, "items": {"type": "string"}},
                        },
                    },
                },
                {
                    "if": {"properties": {"kind": {"const": "regex"}}},
                    "then": {
                        "additionalProperties": False,
                        "required": ["patterns"],
                        "properties": {
                            "kind": {},
                            "patterns": {"type": "array", "minItems": 1, "items": {"type": "string"}},
                        },
                    },
                },
                {
                    "if": {"properties": {"kind": {"const": "numeric"}}},
                    "then": {
                        "additionalProperties": False,
                        "properties": {
                            "kind": {},
                            "lower": {"type": "number"},
                            "upper": {"type": "number"},
                            "domains": {
                                "type": "array",
                                "minItems": 1,
                                "items": {
                                    "type": "array",
                                    "minItems": 2,
                                    "maxItems": 2,
                                    "items": {"type": "number"},
                                },
                            },
                        },
                        "oneOf": [{"required": ["lower"]}, {"required": ["domains"]}],
                        "dependentRequired": {"upper": ["lower"]},
                    },
                },
                {
                    "if": {"properties": {"kind": {"enum": ["property_count", "array_count"]}}},
                    "then": {
                        "additionalProperties": False,
                        "required": ["lower"],
                        "properties": {"kind": {}, **_COUNT_BOUNDS},
                    },
                },
                {
                    "if": {"properties": {"kind": {"const": "each"}}},
                    "then": {
                        "additionalProperties": False,
                        "required": ["type"],
                        "properties": {
                            "kind": {},
                            "type": {"type": "string", "minLength": 1},
                            "constraints": {"type": "array", "items": {"$ref": "#/$defs/constraint"}},
                        },
                    },
                },
                {
                    "if": {"properties": {"kind": {"const": "object"}}},
                    "then": {
                        "additionalProperties": False,
                        "required": ["required"],
                        "properties": {
                            "kind": {},
                            "required": {"type": "array", "items": {"$ref": "#/$defs/token"}},
                            "optional": {"type": "array", "items": {"$ref": "#/$defs/token"}},
                            "exclusive": {"type": "array", "items": {"$ref": "#/$defs/group"}},
                        },
                    },
                },
            ],
        },
    },
}

_definition_validator = Draft202012Validator(DEFINITION_SCHEMA)

# Constraint builders registry: kind -> builder(constraint_def) -> validation function
__constraint_builders_registry: Dict[str, Callable[[Dict[str, Any]], ValidationFunction]] = {}


def _register_constraint_builder(kind: str):
    """Decorator to register a builder function for a constraint kind."""
    def decorator(func: Callable[[Dict[str, Any]], ValidationFunction]):
        __constraint_builders_registry[kind] = func
        return func
    return decorator


def _get_constraint_builder(kind: str) -> Callable[[Dict[str, Any]], ValidationFunction]:
    builder = __constraint_builders_registry.get(kind)
    if builder is None:
        message = f"No builder found for constraint kind '{kind}'"
        logger.error(message)
        raise SchemaDefinitionError(message)
    return builder


def _format_validation_error(err: jsonschema.exceptions.ValidationError) -> str:
    loc = ".".join([str(p) for p in err.path])
    if loc:
        return f"{loc}: {err.message}"
    return err.message


def validate_definition(definition: Any) -> None:
    """Raise SchemaDefinitionError listing every problem in a schema definition."""
    errors = sorted(_definition_validator.iter_errors(definition), key=lambda e: [str(p) for p in e.path])
    if errors:
        message = "Invalid schema definition:\n" + "\n".join(_format_validation_error(e) for e in errors)
        logger.error(message)
        raise SchemaDefinitionError(message)


def build_constraint(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return _get_constraint_builder(constraint_def["kind"])(constraint_def)


def build_token(token_def: Dict[str, Any]) -> ConfigToken:
    """Build one ConfigToken from its definition (assumed already validated)."""
    constraints = [build_constraint(c) for c in token_def.get("constraints", [])]
    return ConfigToken(
        token_def["name"],
        validation_factory(token_def["type"], *constraints),
        token_def.get("help", ""),
        token_def.get("default"),
    )


def _build_tokens(token_defs: List[Dict[str, Any]]) -> List[ConfigToken]:
    return [build_token(t) for t in token_defs]


def build_controller(definition: Dict[str, Any], **kwargs: Any) -> SchemaController:
    """Validate a definition and build the SchemaController it describes.

    Keyword arguments are passed to SchemaController (e.g. optional_failure_invalidates).
    """
    validate_definition(definition)
    controller = SchemaController(
        required=_build_tokens(definition.get("required", [])),
        optional=_build_tokens(definition.get("optional", [])),
        exclusive_groups=definition.get("exclusive", []),
        **kwargs,
    )
    logger.debug(
        "Built schema with %d required and %d optional tokens",
        len(controller.required_tokens),
        len(controller.optional_tokens),
    )
    return controller


def load_definition(path: str) -> Dict[str, Any]:
    """Read a JSON schema definition from disk and validate it."""
    with open(path, "r", encoding="utf-8") as f:
        definition = json.load(f)
    validate_definition(definition)
    return definition


# ----------------------------- Constraint builders ----------------------------

@_register_constraint_builder("values")
def _values_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return constrain_string_values(*constraint_def["values"])


@_register_constraint_builder("regex")
def _regex_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return constrain_string_with_regex_exact(*constraint_def["patterns"])


@_register_constraint_builder("numeric")
def _numeric_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    if "domains" in constraint_def:
        return constrain_numeric_value(*[tuple(d) for d in constraint_def["domains"]])
    if "upper" in constraint_def:
        return constrain_numeric_value(constraint_def["lower"], constraint_def["upper"])
    return constrain_numeric_value(constraint_def["lower"])


@_register_constraint_builder("property_count")
def _property_count_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return constrain_property_count(constraint_def["lower"], constraint_def.get("upper"))


@_register_constraint_builder("array_count")
def _array_count_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return constrain_array_count(constraint_def["lower"], constraint_def.get("upper"))


@_register_constraint_builder("each")
def _each_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    constraints = [build_constraint(c) for c in constraint_def.get("constraints", [])]
    return apply_constraints_to_all_array_values(constraint_def["type"], *constraints)


@_register_constraint_builder("object")
def _object_builder(constraint_def: Dict[str, Any]) -> ValidationFunction:
    return constrain_json_tokens(
        _build_tokens(constraint_def["required"]),
        _build_tokens(constraint_def.get("optional", [])),
        constraint_def.get("exclusive", []),
    )
