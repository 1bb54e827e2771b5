"""
Core data model for the EventPipe pipeline.

A Record is the payload unit that flows from an event source into a document
store. It owns a JSON Document and carries the metadata needed to route and
identify it: its kind, its id, its timestamp and, optionally, the paths used
to derive a snapshot Record from one of its nested objects.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional, Union

from .document import Document, canonical_string, split_path
from .errors import InvalidMetadataValueType, UnknownMetadataKey

logger = logging.getLogger(__name__)

# Keys starting with this character are routed to metadata, never to the
# document.
RESERVED_PREFIX = "_"

# The record type in the document store.
METADATA_TYPE = "_type"

# Dotted path, inside the snapshot document, of the value used as the
# snapshot id.
METADATA_SNAPSHOT_ID = "_snapshot_id"

# Top-level field of the record document extracted as the snapshot document.
METADATA_SNAPSHOT_FIELD = "_snapshot_field"

# Maps each reserved key to the Record attribute it sets.
METADATA_FIELDS = {
    METADATA_TYPE: "kind",
    METADATA_SNAPSHOT_ID: "snapshot_id_path",
    METADATA_SNAPSHOT_FIELD: "snapshot_field_path",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecordEntry(NamedTuple):
    """What a sink persists for a single Record."""

    id: str
    kind: str
    timestamp: datetime
    body: bytes


@dataclass
class Record:
    """
    A self-describing payload with routing metadata.

    Attributes:
        document (Document): The payload body. Never None.
        id (str): Primary key of the record in the document store.
        kind (str): Record type, used by the store as a discriminator.
        timestamp (datetime): Creation time. Defaults to now but may be set to
            the upstream event time.
        snapshot_id_path (str): Dotted path of the snapshot id inside the
            snapshot document.
        snapshot_field_path (str): Field of `document` holding the snapshot.
    """

    document: Document = field(default_factory=Document)
    id: str = ""
    kind: str = ""
    timestamp: datetime = field(default_factory=utc_now)
    snapshot_id_path: str = ""
    snapshot_field_path: str = ""

    def __post_init__(self):
        if self.document is None:
            self.document = Document()
        elif not isinstance(self.document, Document):
            self.document = Document(self.document)

    @classmethod
    def create(cls, kind: str, id: str) -> "Record":
        """Returns an empty Record for that particular kind and id."""
        return cls(document=Document(), id=id, kind=kind)

    @classmethod
    def from_document(
        cls, kind: str, id: str, document: Union[Document, Any]
    ) -> "Record":
        """
        Returns a Record owning `document`.

        A plain JSON value is wrapped in a Document. The caller must not keep
        mutating the document it handed over.
        """
        return cls(document=document, id=id, kind=kind)

    @classmethod
    def from_payload(
        cls, kind: str, id: str, payload: Union[bytes, str]
    ) -> "Record":
        """
        Parses a raw JSON payload into a Record.

        Raises:
            ParseError: If the payload is not valid JSON.
        """
        return cls.from_document(kind, id, Document.from_bytes(payload))

    def encode(self) -> bytes:
        """
        Encodes the document only; metadata travels alongside it.

        Raises:
            EncodeError: If the document cannot be serialized.
        """
        return self.document.encode()

    def has_attribute(self, key: str) -> bool:
        """Checks whether `key` is a top-level field of the document."""
        return self.document.check_get(key)

    def push(self, key: str, value: Any) -> None:
        """
        Sets `key` to `value`.

        Reserved keys update the record metadata. Any other key is split on
        '.' and set in the document, creating intermediate objects.

        Raises:
            UnknownMetadataKey: If a reserved key is not a metadata field.
            InvalidMetadataValueType: If a metadata value is not a string.
        """
        if key.startswith(RESERVED_PREFIX):
            self._push_metadata(key, value)
            return
        self.document.set_path(split_path(key), value)

    def snapshot(self) -> Optional["Record"]:
        """
        Returns the snapshot Record for a Record that models a live event.

        The snapshot document is a copy of the field named by
        `snapshot_field_path`; its id is the value found at
        `snapshot_id_path` within that copy. Kind and timestamp are inherited.
        Returns None when either snapshot path is unset.
        """
        if not self.snapshot_id_path or not self.snapshot_field_path:
            return None

        document = self.document.extract(self.snapshot_field_path)
        snapshot_id = canonical_string(
            document.get_path(split_path(self.snapshot_id_path))
        )
        logger.debug(
            f"Derived snapshot '{snapshot_id}' from field "
            f"'{self.snapshot_field_path}' of {self.kind} record '{self.id}'"
        )
        return Record(
            document=document,
            id=snapshot_id,
            kind=self.kind,
            timestamp=self.timestamp,
        )

    def to_entry(self) -> RecordEntry:
        """
        Builds the tuple handed to a sink.

        Raises:
            EncodeError: If the document cannot be serialized.
        """
        return RecordEntry(
            id=self.id,
            kind=self.kind,
            timestamp=self.timestamp,
            body=self.encode(),
        )

    def _push_metadata(self, key: str, value: Any) -> None:
        target = METADATA_FIELDS.get(key)
        if target is None:
            raise UnknownMetadataKey(key)
        if not isinstance(value, str):
            raise InvalidMetadataValueType(key, value)
        setattr(self, target, value)
        logger.debug(f"Set metadata '{key}' to '{value}'")
