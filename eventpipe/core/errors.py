"""
Exceptions raised by the Record core.

Every error is scoped to a single operation on a single Record and is
reported to the immediate caller, who decides whether to skip, retry or
dead-letter the record.
"""

from typing import Any


class RecordError(Exception):
    """Base class for all Record errors."""


class ParseError(RecordError, ValueError):
    """Raised when raw payload bytes are not valid JSON."""

    def __init__(self, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(message)


class UnknownMetadataKey(RecordError, ValueError):
    """Raised when a reserved key outside the metadata table is pushed."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"invalid metadata field '{key}'")


class InvalidMetadataValueType(RecordError, TypeError):
    """Raised when a reserved key is pushed with a non-string value."""

    def __init__(self, key: str, value: Any):
        self.key = key
        self.value = value
        super().__init__(
            f"bad value {value!r} for '{key}' attribute (expected string)"
        )


class EncodeError(RecordError, ValueError):
    """Raised when a document holds values that cannot be serialized."""
