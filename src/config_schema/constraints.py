"""
Constraint library: predicate factories for ConfigTokens.

Every factory returns a function with the signature
`(value, name, context) -> bool`. On failure the function appends a
human-readable diagnostic to `context` and returns False; it never raises for
bad config data. Bad arguments to a factory (an invalid regex, reversed
bounds, an unknown type name) raise `SchemaDefinitionError` immediately.

`validation_factory` is the entry point for a token: it checks the value is
not empty, casts it with the registered type caster and then runs every
constraint on the cast value. All constraints run so that each violation gets
its own diagnostic.

Type casters are looked up in a registry keyed by type name. Built-ins are
"string", "integer", "number", "boolean", "object" and "array"; hosts add
their own with `register_type_caster`.

Usage:
```python
ConfigToken(
    "MarketValue",
    validation_factory("integer", constrain_numeric_value((0, 5), (10, 15))),
    "Int: Average price of one pound of the fruit.",
)
```
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config_schema.config_token import ConfigToken, ValidationFunction
from config_schema.engine import (
    MutuallyExclusiveGroup,
    ValidationContext,
    check_level_definition,
    is_null_or_empty,
    token_text,
    validate_level,
)
from config_schema.exceptions import SchemaDefinitionError, TypeCastError
from config_schema.schema_logging import create_logger

logger = create_logger(__name__)

NESTED_TOKEN_KIND = "Value of token"

# Type caster registry: type name -> caster(value) -> cast value, raising TypeCastError
_type_caster_registry: Dict[str, Callable[[Any], Any]] = {}


def register_type_caster(type_name: str):
    """Decorator to register a caster function for a type name."""
    def decorator(func: Callable[[Any], Any]):
        if type_name in _type_caster_registry:
            logger.info("Replacing type caster for type '%s'", type_name)
        _type_caster_registry[type_name] = func
        return func
    return decorator


def get_type_caster(type_name: str) -> Callable[[Any], Any]:
    """Get the caster for a type name; unknown names are a schema error."""
    caster = _type_caster_registry.get(type_name)
    if caster is None:
        raise _definition_error(
            f"No type caster registered for type '{type_name}'. Known types: {', '.join(registered_types())}"
        )
    return caster


def registered_types() -> List[str]:
    return sorted(_type_caster_registry)


def _definition_error(message: str) -> SchemaDefinitionError:
    logger.error(message)
    return SchemaDefinitionError(message)


# ----------------------------- Default Casters --------------------------------

_INTEGER_TEXT = re.compile(r"[+-]?\d+")


@register_type_caster("string")
def _cast_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    # scalars read as their JSON text, objects and arrays do not
    if isinstance(value, (bool, int, float)):
        return token_text(value)
    raise TypeCastError(f"cannot read {type(value).__name__} as string")


@register_type_caster("integer")
def _cast_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeCastError("boolean is not an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER_TEXT.fullmatch(value.strip()):
        try:
            return int(value.strip())
        except ValueError:
            # over the interpreter's int string conversion digit limit
            raise TypeCastError(f"cannot read {value[:20]!r}... as integer") from None
    raise TypeCastError(f"cannot read {value!r} as integer")


@register_type_caster("number")
def _cast_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        raise TypeCastError("boolean is not a number")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise TypeCastError(f"{value!r} is not a finite number")
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise TypeCastError(f"cannot read {value!r} as number") from None
        if not math.isfinite(number):
            raise TypeCastError(f"{value!r} is not a finite number")
        return number
    raise TypeCastError(f"cannot read {type(value).__name__} as number")


@register_type_caster("boolean")
def _cast_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise TypeCastError(f"cannot read {value!r} as boolean")


@register_type_caster("object")
def _cast_object(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    raise TypeCastError(f"cannot read {type(value).__name__} as object")


@register_type_caster("array")
def _cast_array(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    raise TypeCastError(f"cannot read {type(value).__name__} as array")


# ----------------------------- Helpers ----------------------------------------

def _format_number(number: Union[int, float]) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_constraints(constraints: Sequence[ValidationFunction]) -> Tuple[ValidationFunction, ...]:
    for constraint in constraints:
        if not callable(constraint):
            raise _definition_error(f"Constraint {constraint!r} is not callable")
    return tuple(constraints)


def _check_count_bounds(lower_bound: int, upper_bound: Optional[int]) -> None:
    for bound in (lower_bound, upper_bound):
        if bound is None:
            continue
        if not isinstance(bound, int) or isinstance(bound, bool) or bound < 0:
            raise _definition_error(f"Count bounds must be non-negative integers, got {bound!r}")
    if upper_bound is not None and upper_bound < lower_bound:
        raise _definition_error(f"Upper bound {upper_bound} is less than lower bound {lower_bound}")


def _require_number(value: Any, name: str, context: ValidationContext) -> bool:
    if _is_number(value):
        return True
    context.add_error(f"Token {name} with value {token_text(value)} is not a number.")
    return False


# ----------------------------- Type cast wrapper ------------------------------

def validation_factory(type_name: str, *constraints: ValidationFunction) -> ValidationFunction:
    """
    Produce the validation function of a ConfigToken.

    The returned function reports empty values, casts the value to `type_name`
    and runs every constraint on the cast value. A failed cast is reported as
    an incorrect type and skips the constraints.

    Args:
        type_name: Registered type name ("string", "integer", "number", "boolean", "object", "array").
        constraints: Functions to execute on the value after the cast succeeds.

    Returns:
        Composite function of the type cast and all passed constraints.
    """
    caster = get_type_caster(type_name)
    constraints = _check_constraints(constraints)

    def validation_function(value: Any, name: str, context: ValidationContext) -> bool:
        if is_null_or_empty(value):
            context.add_error(f"The value of token {name} is empty or null.")
            return False
        try:
            cast_value = caster(value)
        except TypeCastError:
            context.add_error(
                f"Token {name} with value {token_text(value)} is an incorrect type. Expected value type: {type_name}"
            )
            return False
        valid = True
        for constraint in constraints:
            if not constraint(cast_value, name, context):
                valid = False
        return valid

    return validation_function


# ----------------------------- String constraints -----------------------------

def constrain_string_values(*acceptable_values: str) -> ValidationFunction:
    """Value must equal one of `acceptable_values`."""
    if not acceptable_values:
        raise _definition_error("constrain_string_values needs at least one acceptable value")
    acceptable = [str(v) for v in acceptable_values]

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        text = token_text(value)
        if text not in acceptable:
            context.add_error(f"Input {name} with value {text} is not valid. Valid values: {', '.join(acceptable)}")
            return False
        return True

    return constraint


def _compile_pattern(pattern: Union[str, "re.Pattern[str]"]) -> "re.Pattern[str]":
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        raise _definition_error(f"Pattern {pattern} is not a valid Regex pattern.\n{e}") from e


def constrain_string_with_regex_exact(*patterns: Union[str, "re.Pattern[str]"]) -> ValidationFunction:
    """
    The whole value must match at least one pattern.

    A pattern accounts for the value when it matches and removing every match
    leaves nothing behind, so `[a-z]+` accepts "abc" but not "abc1".
    """
    if not patterns:
        raise _definition_error("constrain_string_with_regex_exact needs at least one pattern")
    compiled = [_compile_pattern(p) for p in patterns]

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        text = token_text(value)
        for pattern in compiled:
            if pattern.search(text) and pattern.sub("", text) == "":
                return True
        if len(compiled) == 1:
            context.add_error(
                f"Token {name} with value {text} is not an exact match to pattern {compiled[0].pattern}"
            )
        else:
            context.add_error(
                f"Token {name} with value {text} is not an exact match to any pattern: "
                + " ".join(p.pattern for p in compiled)
            )
        return False

    return constraint


# ----------------------------- Numeric constraints ----------------------------

def _check_domain(domain: Any) -> Tuple[Union[int, float], Union[int, float]]:
    if not isinstance(domain, (tuple, list)) or len(domain) != 2 or not all(_is_number(b) for b in domain):
        raise _definition_error(f"Numeric domains must be (lower_bound, upper_bound) pairs, got {domain!r}")
    lower_bound, upper_bound = domain
    if upper_bound < lower_bound:
        raise _definition_error(f"Domain {domain!r} has an upper bound below its lower bound")
    return lower_bound, upper_bound


def constrain_numeric_value(*bounds: Any) -> ValidationFunction:
    """
    Constrain a numeric value, inclusive.

    - `constrain_numeric_value(lower)`: lower bound only.
    - `constrain_numeric_value(lower, upper)`: lower and upper bound.
    - `constrain_numeric_value((l1, u1), (l2, u2), ...)`: value must fall within
      at least one domain.
    """
    if bounds and all(isinstance(b, (tuple, list)) for b in bounds):
        return _constrain_numeric_domains([_check_domain(d) for d in bounds])
    if not bounds or len(bounds) > 2 or not all(_is_number(b) for b in bounds):
        raise _definition_error(
            f"constrain_numeric_value takes a lower bound, a lower and upper bound, or domain pairs; got {bounds!r}"
        )
    if len(bounds) == 1:
        return _constrain_numeric_lower(bounds[0])
    lower_bound, upper_bound = _check_domain(bounds)
    return _constrain_numeric_range(lower_bound, upper_bound)


def _constrain_numeric_lower(lower_bound: Union[int, float]) -> ValidationFunction:
    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        if not _require_number(value, name, context):
            return False
        if value < lower_bound:
            context.add_error(
                f"Token {name} with value {_format_number(value)} is less than enforced lower bound "
                f"{_format_number(lower_bound)}"
            )
            return False
        return True

    return constraint


def _constrain_numeric_range(lower_bound: Union[int, float], upper_bound: Union[int, float]) -> ValidationFunction:
    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        if not _require_number(value, name, context):
            return False
        if value < lower_bound or value > upper_bound:
            context.add_error(
                f"Token {name} with value {_format_number(value)} is invalid. Value must be greater than or equal to "
                f"{_format_number(lower_bound)} and less than or equal to {_format_number(upper_bound)}"
            )
            return False
        return True

    return constraint


def _constrain_numeric_domains(domains: List[Tuple[Union[int, float], Union[int, float]]]) -> ValidationFunction:
    domains_text = " ".join(f"({_format_number(lower)}, {_format_number(upper)})" for lower, upper in domains)

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        if not _require_number(value, name, context):
            return False
        if any(lower <= value <= upper for lower, upper in domains):
            return True
        context.add_error(
            f"Token {name} with value {_format_number(value)} is invalid. "
            f"Value must fall within one of the following domains, inclusive: {domains_text}"
        )
        return False

    return constraint


# ----------------------------- Object constraints -----------------------------

def _as_exclusive_group(group: Any) -> MutuallyExclusiveGroup:
    if isinstance(group, MutuallyExclusiveGroup):
        return group
    return MutuallyExclusiveGroup(*group)


def constrain_json_tokens(
    required: Iterable[ConfigToken],
    optional: Iterable[ConfigToken] = (),
    exclusive: Iterable[Any] = (),
) -> ValidationFunction:
    """
    Validate a nested object against its own schema level.

    The child level shares the session context, so its diagnostics land in the
    same error list, labelled "Value of token <name>". Returns the child
    level's validity.

    Args:
        required: Tokens the nested object must contain.
        optional: Tokens the nested object may contain.
        exclusive: MutuallyExclusiveGroup instances, or sequences of alternatives.
    """
    required = tuple(required)
    optional = tuple(optional)
    groups = tuple(_as_exclusive_group(g) for g in exclusive)
    check_level_definition(required, optional, groups)

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        return validate_level(context, value, required, optional, groups, name=name, kind=NESTED_TOKEN_KIND)

    return constraint


def constrain_property_count(lower_bound: int, upper_bound: Optional[int] = None) -> ValidationFunction:
    """Object must have at least `lower_bound` (and at most `upper_bound`) properties."""
    _check_count_bounds(lower_bound, upper_bound)

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        count = len(value)
        if upper_bound is None:
            if count < lower_bound:
                context.add_error(
                    f"Value of token {name} is invalid. Value has {count} properties, "
                    f"but must have at least {lower_bound} properties."
                )
                return False
        elif count < lower_bound or count > upper_bound:
            context.add_error(
                f"Value of token {name} is invalid. Value has {count} properties, "
                f"but must have at least {lower_bound} properties and at most {upper_bound} properties."
            )
            return False
        return True

    return constraint


# ----------------------------- Array constraints ------------------------------

def constrain_array_count(lower_bound: int, upper_bound: Optional[int] = None) -> ValidationFunction:
    """Array must contain at least `lower_bound` (and at most `upper_bound`) values."""
    _check_count_bounds(lower_bound, upper_bound)

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        count = len(value)
        if upper_bound is None:
            if count < lower_bound:
                context.add_error(
                    f"Value of token {name} contains {count} values, but must contain at least {lower_bound} values."
                )
                return False
        elif count < lower_bound or count > upper_bound:
            context.add_error(
                f"Value of token {name} contains {count} values, "
                f"but must contain between {lower_bound} and {upper_bound} values."
            )
            return False
        return True

    return constraint


def apply_constraints_to_all_array_values(type_name: str, *constraints: ValidationFunction) -> ValidationFunction:
    """
    Cast every element of an array to `type_name` and run `constraints` on it.

    Every element is checked so each bad one is reported; one bad element
    makes the whole array invalid.
    """
    caster = get_type_caster(type_name)
    constraints = _check_constraints(constraints)

    def constraint(value: Any, name: str, context: ValidationContext) -> bool:
        all_passed = True
        element_name = f"in array {name}"
        for element in value:
            try:
                cast_element = caster(element)
            except TypeCastError:
                context.add_error(
                    f"Value {token_text(element)} in array {name} is an incorrect type. "
                    f"Expected value type: {type_name}"
                )
                all_passed = False
                continue
            for element_constraint in constraints:
                if not element_constraint(cast_element, element_name, context):
                    all_passed = False
        return all_passed

    return constraint
