"""
SchemaController: host-facing holder of a top-level schema.

A controller keeps the required tokens, optional tokens and mutually
exclusive groups of the top level of a config. Token collections only grow:
subclasses and callers add to them, nothing removes from them.

```python
class FruitConfig(SchemaController):
    def __init__(self):
        super().__init__()
        self.add_required(
            ConfigToken("Fruit", validation_factory("string", constrain_string_values("Grape", "Apple")), "String: ..."),
        )
        self.add_optional(ConfigToken("NearestMarket", validation_factory("string"), "String: ..."))

result = FruitConfig().validate(json.load(f))
if not result.valid:
    print("\\n".join(result.errors))
```

Every call to `validate` runs in its own `ValidationContext`, so one
controller can validate any number of configs one after another. It holds no
per-session state and is not meant to be shared between threads while its
token collections are still being built.
"""

from __future__ import annotations

import copy
import json
import os
from typing import IO, Any, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from config_schema.config_token import ConfigToken
from config_schema.engine import (
    MutuallyExclusiveGroup,
    ValidationContext,
    check_level_definition,
    token_text,
    validate_level,
)
from config_schema.exceptions import SchemaDefinitionError
from config_schema.schema_logging import create_logger

logger = create_logger(__name__)


class ValidationResult(NamedTuple):
    """Outcome of one validation session."""

    valid: bool
    errors: List[str]
    # the validated config with defaults injected
    config: Any


class SchemaController:
    """Required/optional token sets and exclusive groups for the top level of a config."""

    def __init__(
        self,
        required: Iterable[ConfigToken] = (),
        optional: Iterable[ConfigToken] = (),
        exclusive_groups: Iterable[Any] = (),
        *,
        optional_failure_invalidates: bool = True,
    ) -> None:
        """
        Args:
            required: Tokens that must exist in the config.
            optional: Tokens that may exist in the config.
            exclusive_groups: MutuallyExclusiveGroup instances, or sequences of alternatives.
            optional_failure_invalidates: If True (default), an optional token that is present
                but fails validation makes the config invalid. If False it is only reported.
        """
        self.__required: Dict[str, ConfigToken] = {}
        self.__optional: Dict[str, ConfigToken] = {}
        self.__exclusive_groups: List[MutuallyExclusiveGroup] = []
        self.optional_failure_invalidates = optional_failure_invalidates

        self.add_required(*required)
        self.add_optional(*optional)
        for group in exclusive_groups:
            if isinstance(group, MutuallyExclusiveGroup):
                self.add_exclusive_group(group)
            else:
                self.add_exclusive_group(*group)

    # ----------------------------- Token sets ---------------------------------

    @property
    def required_tokens(self) -> Tuple[ConfigToken, ...]:
        return tuple(self.__required.values())

    @property
    def optional_tokens(self) -> Tuple[ConfigToken, ...]:
        return tuple(self.__optional.values())

    @property
    def exclusive_groups(self) -> Tuple[MutuallyExclusiveGroup, ...]:
        return tuple(self.__exclusive_groups)

    def add_required(self, *tokens: ConfigToken) -> None:
        """Merge tokens into the required set."""
        self._merge(self.__required, self.__optional, tokens, "required")

    def add_optional(self, *tokens: ConfigToken) -> None:
        """Merge tokens into the optional set."""
        self._merge(self.__optional, self.__required, tokens, "optional")

    def add_exclusive_group(self, *alternatives: Any) -> MutuallyExclusiveGroup:
        """Declare that at most one of `alternatives` may be supplied.

        Accepts a ready MutuallyExclusiveGroup or the alternatives themselves.
        Every named token must already be registered.
        """
        if len(alternatives) == 1 and isinstance(alternatives[0], MutuallyExclusiveGroup):
            group = alternatives[0]
        else:
            group = MutuallyExclusiveGroup(*alternatives)
        check_level_definition(self.required_tokens, self.optional_tokens, [group])
        self.__exclusive_groups.append(group)
        return group

    @staticmethod
    def _merge(
        target: Dict[str, ConfigToken],
        other: Dict[str, ConfigToken],
        tokens: Iterable[ConfigToken],
        set_name: str,
    ) -> None:
        for token in tokens:
            if not isinstance(token, ConfigToken):
                message = f"Expected ConfigToken, got {type(token).__name__}"
                logger.error(message)
                raise SchemaDefinitionError(message)
            if token.name in other:
                message = f"Token {token.name} cannot be both required and optional"
                logger.error(message)
                raise SchemaDefinitionError(message)
            if token.name in target:
                logger.warning("Token %s is already %s; keeping the first definition", token.name, set_name)
                continue
            target[token.name] = token

    # ----------------------------- Validation ---------------------------------

    def validate(
        self,
        config: Any,
        name: Optional[str] = None,
        kind: Optional[str] = None,
        *,
        in_place: bool = False,
    ) -> ValidationResult:
        """Check a config against the required and optional tokens.

        Args:
            config: Parsed config, normally a dict loaded from JSON.
            name: Optional name of the config. When `name` or `kind` is given, a failed
                validation ends with "Validation for <kind> <name> failed."
            kind: Optional label for the config, e.g. "fruit config".
            in_place: Inject defaults into `config` itself instead of into a copy.

        Returns:
            ValidationResult(valid, errors, config). `config` is the document that
            received default values (the caller's object when `in_place` is True).
        """
        context = ValidationContext(optional_failure_invalidates=self.optional_failure_invalidates)
        document = config if in_place else copy.deepcopy(config)

        logger.debug(
            "Validating %s against %d required and %d optional tokens",
            " ".join(p for p in (kind, name) if p) or "user config",
            len(self.__required),
            len(self.__optional),
        )
        validate_level(
            context,
            document,
            self.required_tokens,
            self.optional_tokens,
            self.__exclusive_groups,
            name=name,
            kind=kind,
        )
        if context.valid:
            logger.debug("Validation passed")
        else:
            logger.debug("Validation failed with %d errors", len(context.errors))
        return ValidationResult(context.valid, list(context.errors), document)

    # ----------------------------- Templates ----------------------------------

    def generate_empty_config(self) -> Dict[str, str]:
        """Build a config mapping every token to its help string."""
        empty_config: Dict[str, str] = {}
        for token in self.required_tokens + self.optional_tokens:
            empty_config[token.name] = token.help_string
        return empty_config

    def write_empty_config(self, destination: Union[str, "os.PathLike[str]", IO[str]]) -> None:
        """Write the empty config as JSON to a file path or a text stream.

        Parent directories of a path are created as needed.
        """
        empty_config = self.generate_empty_config()
        if hasattr(destination, "write"):
            json.dump(empty_config, destination, indent=4)
            destination.write("\n")
            return
        directory = os.path.dirname(os.path.abspath(destination))
        os.makedirs(directory, exist_ok=True)
        with open(destination, "w", encoding="utf-8") as f:
            json.dump(empty_config, f, indent=4)
            f.write("\n")
        logger.info("Wrote empty config to %s", destination)

    def describe(self, config: Dict[str, Any]) -> str:
        """Render "name: value" lines for every token, using defaults for missing optional tokens."""
        lines = []
        for token in self.required_tokens:
            value = token_text(config[token.name]) if token.name in config else ""
            lines.append(f"{token.name}: {value}")
        for token in self.optional_tokens:
            if token.name in config:
                value = token_text(config[token.name])
            elif token.has_default:
                value = token_text(token.default_value)
            else:
                value = ""
            lines.append(f"{token.name}: {value}")
        return "\n".join(lines)
