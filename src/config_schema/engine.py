"""
Recursive validation core.

One call to `validate_level` checks one object layer of a user config against
a schema level: a collection of required tokens, a collection of optional
tokens and zero or more mutually exclusive groups. Nested objects recurse
through `constrain_json_tokens` (see `config_schema.constraints`), which calls
back into `validate_level` with the same `ValidationContext`.

Steps for one level:
1. Required tokens: missing, null/empty, then the token's own validation.
2. Optional tokens: inject the default when missing, otherwise validate.
3. Unrecognized keys: every key not named by a token is an error.
4. Mutually exclusive groups: at most one alternative may be supplied.
5. Summary line "Validation for <kind> <name> failed." when a nested level fails.

There is one error list per session. Nested levels append to it in document
order, so a parent's diagnostics are followed by those of its children.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from config_schema.config_token import ConfigToken
from config_schema.exceptions import SchemaDefinitionError
from config_schema.schema_logging import create_logger

logger = create_logger(__name__)

TOP_LEVEL_SUBJECT = "User config"


class ValidationContext:
    """Error list and validity flag for one validation session.

    Every level of a session writes into the same context. `valid` is sticky:
    once a level fails it stays False for the rest of the session.

    Args:
        inject_defaults: Write defaults of missing optional tokens into the config.
        optional_failure_invalidates: Whether a failing optional token fails its level.
    """

    def __init__(self, inject_defaults: bool = True, optional_failure_invalidates: bool = True) -> None:
        self.errors: List[str] = []
        self.valid: bool = True
        self.inject_defaults = inject_defaults
        self.optional_failure_invalidates = optional_failure_invalidates

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def invalidate(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.errors.append(message)
        self.valid = False

    def __repr__(self) -> str:
        return f"ValidationContext(valid={self.valid}, errors={len(self.errors)})"


TokenRef = Union[str, ConfigToken]


def _token_name(ref: TokenRef) -> str:
    if isinstance(ref, ConfigToken):
        return ref.name
    if isinstance(ref, str) and ref:
        return ref
    message = f"Exclusive group members must be token names or ConfigTokens, got {ref!r}"
    logger.error(message)
    raise SchemaDefinitionError(message)


class MutuallyExclusiveGroup:
    """Alternatives of which at most one may appear in a config.

    Each alternative is a token (or token name) or a sequence of them. An
    alternative is "supplied" when any of its members is present.

        MutuallyExclusiveGroup("NearestMarket", "ClosestMarket")
        MutuallyExclusiveGroup(["Latitude", "Longitude"], "Address")
    """

    def __init__(self, *alternatives: Union[TokenRef, Iterable[TokenRef]]) -> None:
        normalized: List[Tuple[str, ...]] = []
        for alternative in alternatives:
            if isinstance(alternative, (str, ConfigToken)):
                members = (_token_name(alternative),)
            else:
                members = tuple(_token_name(m) for m in alternative)
            if not members:
                message = "Exclusive group alternatives cannot be empty"
                logger.error(message)
                raise SchemaDefinitionError(message)
            normalized.append(members)
        if len(normalized) < 2:
            message = "Exclusive group needs at least two alternatives"
            logger.error(message)
            raise SchemaDefinitionError(message)
        self.alternatives: Tuple[Tuple[str, ...], ...] = tuple(normalized)

    @property
    def names(self) -> List[str]:
        return [name for alternative in self.alternatives for name in alternative]

    def supplied_alternatives(self, keys: Iterable[str]) -> List[List[str]]:
        """Return the present members of every alternative that has any."""
        present_keys = set(keys)
        supplied = []
        for alternative in self.alternatives:
            present = [name for name in alternative if name in present_keys]
            if present:
                supplied.append(present)
        return supplied

    def __repr__(self) -> str:
        return f"MutuallyExclusiveGroup({', '.join(' + '.join(a) for a in self.alternatives)})"


def is_null_or_empty(value: Any) -> bool:
    """None, empty string, empty list and empty object count as empty. 0 and False do not."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


def token_text(value: Any) -> str:
    """Render a config value the way it appears in the user's file."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def check_level_definition(
    required: Sequence[ConfigToken],
    optional: Sequence[ConfigToken],
    exclusive_groups: Sequence[MutuallyExclusiveGroup] = (),
) -> None:
    """Raise SchemaDefinitionError if a level's token collections are inconsistent."""
    required_names = {t.name for t in required}
    optional_names = {t.name for t in optional}
    overlap = required_names & optional_names
    if overlap:
        message = f"Tokens cannot be both required and optional: {sorted(overlap)}"
        logger.error(message)
        raise SchemaDefinitionError(message)
    known = required_names | optional_names
    for group in exclusive_groups:
        unknown = [name for name in group.names if name not in known]
        if unknown:
            message = f"Exclusive group {group!r} names unknown tokens: {unknown}"
            logger.error(message)
            raise SchemaDefinitionError(message)


def validate_level(
    context: ValidationContext,
    config: Dict[str, Any],
    required: Iterable[ConfigToken],
    optional: Iterable[ConfigToken],
    exclusive_groups: Iterable[MutuallyExclusiveGroup] = (),
    name: Optional[str] = None,
    kind: Optional[str] = None,
) -> bool:
    """Validate one object layer of a config.

    Args:
        context: Session context receiving every diagnostic; also carries the
            default-injection and optional-failure policies.
        config: The object to check. Defaults are injected into it in place.
        required: Tokens that must be present and valid.
        optional: Tokens that may be present; their defaults fill gaps.
        exclusive_groups: Groups of which at most one alternative may be supplied.
        name: Name of the token holding this object (nested levels).
        kind: Label placed before the name in messages, e.g. "Value of token".

    Returns:
        True if this level is valid. Failures are also recorded on `context`.
    """
    required = list(required)
    optional = list(optional)
    subject = " ".join(part for part in (kind, name) if part)
    level_valid = True

    def invalidate(message: str) -> None:
        nonlocal level_valid
        level_valid = False
        context.invalidate(message)

    if not isinstance(config, dict):
        invalidate(f"{subject or TOP_LEVEL_SUBJECT} must be a JSON object, got {type(config).__name__}")
        return False

    # keys the user actually wrote, before any default is injected
    supplied_keys = list(config.keys())

    for token in required:
        if token.name not in config:
            invalidate(f"{subject or TOP_LEVEL_SUBJECT} is missing required token {token.name}\n{token.help_string}")
        elif is_null_or_empty(config[token.name]):
            invalidate(f"Value of token {token.name} is null or empty.")
        elif not token.validate(config[token.name], context):
            invalidate(token.help_string)

    for token in optional:
        if token.name not in config:
            if token.has_default and context.inject_defaults:
                config[token.name] = copy.deepcopy(token.default_value)
                logger.debug("Injected default for token %s%s", token.name, f" in {subject}" if subject else "")
        elif not token.validate(config[token.name], context):
            if context.optional_failure_invalidates:
                invalidate(token.help_string)
            else:
                context.add_error(token.help_string)

    known = {t.name for t in required} | {t.name for t in optional}
    for key in supplied_keys:
        if key not in known:
            if subject:
                invalidate(f"{subject} contains unrecognized token: {key}")
            else:
                invalidate(f"User config file contains unrecognized token: {key}")

    for group in exclusive_groups:
        supplied = group.supplied_alternatives(supplied_keys)
        if len(supplied) > 1:
            names = ", ".join(n for present in supplied for n in present)
            invalidate(f"{subject or TOP_LEVEL_SUBJECT} contains mutually exclusive tokens: {names}")

    if not level_valid and subject:
        context.add_error(f"Validation for {subject} failed.")

    return level_valid
