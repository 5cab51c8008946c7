"""
ConfigToken: the named unit of a schema.

A token corresponds to one key of the user's config. It carries the predicate
used to judge the value found under that key, the help string shown to the
user, and an optional default value.

Tokens only judge values they are handed. Whether a key is present, empty or
needs its default injected is decided by the schema level that owns the token
(see `config_schema.engine.validate_level`).

Example:
```python
from config_schema.constraints import validation_factory, constrain_string_values

fruit = ConfigToken(
    "Fruit",
    validation_factory("string", constrain_string_values("Grape", "Orange", "Apple")),
    "String: the fruit you are eating.",
)
```
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from config_schema.engine import ValidationContext

# Predicate signature shared by tokens and every constraint factory
ValidationFunction = Callable[[Any, str, "ValidationContext"], bool]


class ConfigToken:
    """A named field with a validation function, a help string and an optional default."""

    def __init__(
        self,
        name: str,
        validation_function: ValidationFunction,
        help_string: str,
        default_value: Optional[Any] = None,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("ConfigToken name must be a non-empty string")
        if not callable(validation_function):
            raise ValueError(f"ConfigToken {name}: validation_function must be callable")
        self.name = name
        self.validation_function = validation_function
        self.help_string = help_string
        self.default_value = default_value

    @property
    def has_default(self) -> bool:
        return self.default_value is not None

    def validate(self, value: Any, context: "ValidationContext") -> bool:
        """Run the validation function on a value found in the user config."""
        return self.validation_function(value, self.name, context)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigToken):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"ConfigToken({self.name!r})"

    def __str__(self) -> str:
        return self.name
