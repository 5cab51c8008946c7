"""
config_schema: validate JSON-like configuration documents against schemas
assembled from ConfigTokens.

Every problem in a config is collected into one ordered list of readable
messages instead of stopping at the first exception.
"""

from config_schema.config_token import ConfigToken
from config_schema.constraints import (
    apply_constraints_to_all_array_values,
    constrain_array_count,
    constrain_json_tokens,
    constrain_numeric_value,
    constrain_property_count,
    constrain_string_values,
    constrain_string_with_regex_exact,
    register_type_caster,
    validation_factory,
)
from config_schema.engine import MutuallyExclusiveGroup, ValidationContext, is_null_or_empty, validate_level
from config_schema.exceptions import SchemaDefinitionError, TypeCastError
from config_schema.schema_builder import build_controller, build_token, load_definition
from config_schema.schema_controller import SchemaController, ValidationResult

__all__ = [
    "ConfigToken",
    "MutuallyExclusiveGroup",
    "SchemaController",
    "SchemaDefinitionError",
    "TypeCastError",
    "ValidationContext",
    "ValidationResult",
    "apply_constraints_to_all_array_values",
    "build_controller",
    "build_token",
    "constrain_array_count",
    "constrain_json_tokens",
    "constrain_numeric_value",
    "constrain_property_count",
    "constrain_string_values",
    "constrain_string_with_regex_exact",
    "is_null_or_empty",
    "load_definition",
    "register_type_caster",
    "validate_level",
    "validation_factory",
]
__version__ = "0.1.0"
