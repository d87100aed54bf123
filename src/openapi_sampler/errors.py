"""Exceptions raised by the schema engine."""

from typing import Any


class SchemaEngineError(Exception):
    """Base class for all engine errors."""


class UnsupportedSchemaError(SchemaEngineError):
    """A schema fragment or node has no compile or flatten rule."""

    def __init__(self, message: str, fragment: Any = None):
        super().__init__(message)
        self.fragment = fragment


class ReferenceNamingExhaustedError(SchemaEngineError):
    """No free component name was found within the probing bound.

    This signals a bug in the naming scheme, not bad user input.
    """


class NonReferencedSchemaConflict(SchemaEngineError):
    """A response schema was written inline where a $ref was expected."""


class DocumentLoadError(SchemaEngineError):
    """A seed document could not be read or parsed."""
