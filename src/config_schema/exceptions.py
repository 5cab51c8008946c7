"""Exceptions raised for broken schemas (never for bad configuration data)."""


class SchemaDefinitionError(ValueError):
    """Raised when host code assembles an invalid schema.

    Bad user data is reported through the validation error list. This error is
    reserved for programmer mistakes such as an invalid regex pattern, an
    unknown type name or overlapping required/optional token names.
    """


class TypeCastError(ValueError):
    """Raised by a type caster when a value cannot be read as the target type."""
