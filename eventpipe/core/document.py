"""
Semi-structured document model.

A Document wraps a JSON value (dicts keyed by str, lists, str, int, float,
bool or None) and provides the path based accessors the Record core needs.
"""

import copy
import json
import logging
from typing import Any, List, Union

from .errors import EncodeError, ParseError

logger = logging.getLogger(__name__)

# Returned by path lookups to tell "missing" apart from an explicit null.
MISSING = object()


def _reject_constant(name: str):
    raise ValueError(f"'{name}' is not a valid JSON value")


def split_path(key: str) -> List[str]:
    """Splits a dotted key ('a.b.c') into its path segments."""
    return key.split(".")


def canonical_string(value: Any) -> str:
    """
    Converts a JSON value into its canonical string representation.

    Strings are returned as-is, booleans as 'true'/'false', numbers with
    str(), objects and arrays as compact JSON. A missing value or JSON null
    becomes the empty string.
    """
    if value is MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


class Document:
    """
    A tree of JSON values with dotted-path access.

    Attributes:
        data (Any): The underlying JSON value. Defaults to an empty object.
    """

    def __init__(self, data: Any = None):
        self.data = {} if data is None else data

    @classmethod
    def from_bytes(cls, payload: Union[bytes, str]) -> "Document":
        """
        Parses a JSON payload into a Document.

        Raises:
            ParseError: If the payload is not valid UTF-8 encoded JSON.
        """
        try:
            text = payload
            if isinstance(payload, (bytes, bytearray)):
                text = payload.decode("utf-8")
            data = json.loads(text, parse_constant=_reject_constant)
        except (ValueError, TypeError, RecursionError) as e:
            raise ParseError(f"Payload is not valid JSON: {e}", payload) from e
        return cls(data)

    def get(self, key: str, default: Any = MISSING) -> Any:
        """Returns the top-level value stored at `key`."""
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    def check_get(self, key: str) -> bool:
        return isinstance(self.data, dict) and key in self.data

    def get_path(self, path: List[str], default: Any = MISSING) -> Any:
        """
        Walks `path` through nested objects and returns the value found.

        Returns `default` as soon as a segment is absent or an intermediate
        node is not an object.
        """
        node = self.data
        for segment in path:
            if not isinstance(node, dict) or segment not in node:
                return default
            node = node[segment]
        return node

    def set_path(self, path: List[str], value: Any) -> None:
        """
        Sets `value` at `path`, creating intermediate objects as needed.

        Intermediate nodes that are not objects are replaced by empty ones.
        An empty path replaces the whole document.
        """
        if not path:
            self.data = value
            return
        if not isinstance(self.data, dict):
            self.data = {}
        node = self.data
        for segment in path[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[path[-1]] = value

    def extract(self, key: str) -> "Document":
        """
        Returns a deep copy of the top-level field `key` as a new Document.

        An absent field yields an empty Document.
        """
        value = self.get(key)
        if value is MISSING:
            logger.debug(f"Field '{key}' not found, extracting empty document.")
            return Document()
        return Document(copy.deepcopy(value))

    def encode(self) -> bytes:
        """
        Serializes the document to compact UTF-8 JSON.

        Raises:
            EncodeError: If the document holds values JSON cannot represent.
        """
        try:
            text = json.dumps(
                self.data,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError, RecursionError) as e:
            raise EncodeError(f"Document cannot be encoded: {e}") from e
        return text.encode("utf-8")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.data == other.data

    def __repr__(self) -> str:
        return f"Document({self.data!r})"
