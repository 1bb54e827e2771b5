"""
Annotator components for the EventPipe pipeline.

Annotators run on every loaded Record before it is sunk. They push fields
into the Record, either into its document or, through the reserved keys,
into its metadata.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict

from ..core.document import MISSING, split_path
from ..core.record import (
    METADATA_FIELDS,
    METADATA_SNAPSHOT_FIELD,
    METADATA_SNAPSHOT_ID,
    RESERVED_PREFIX,
    Record,
)

logger = logging.getLogger(__name__)


class BaseAnnotator(ABC):
    """Abstract base class for all annotator components."""

    @abstractmethod
    def annotate(self, record: Record) -> Record:
        """
        Mutates the record in place and returns it.

        Raises:
            RecordError: If a pushed field is rejected by the record.
        """
        pass


class SnapshotAnnotator(BaseAnnotator):
    """
    Marks records of configured kinds as carrying a snapshot.

    Example configuration:

        rules:
          PushEvent: {field: repository, id: id}
          IssuesEvent: {field: issue, id: number}
    """

    def __init__(self, rules: Dict[str, Dict[str, str]]):
        for kind, rule in rules.items():
            if not rule.get("field") or not rule.get("id"):
                raise ValueError(
                    f"Snapshot rule for '{kind}' needs both 'field' and 'id'."
                )
        self.rules = rules
        logger.debug(f"Initialized SnapshotAnnotator for kinds: {sorted(rules)}")

    def annotate(self, record: Record) -> Record:
        rule = self.rules.get(record.kind)
        if rule:
            record.push(METADATA_SNAPSHOT_FIELD, rule["field"])
            record.push(METADATA_SNAPSHOT_ID, rule["id"])
        return record


class DefaultsAnnotator(BaseAnnotator):
    """
    Pushes default values for fields the payload did not populate.

    A reserved key counts as populated when its metadata field is non-empty.
    """

    def __init__(self, fields: Dict[str, Any]):
        self.fields = fields

    def annotate(self, record: Record) -> Record:
        for key, value in self.fields.items():
            if not self._is_set(record, key):
                record.push(key, value)
        return record

    @staticmethod
    def _is_set(record: Record, key: str) -> bool:
        if key.startswith(RESERVED_PREFIX):
            target = METADATA_FIELDS.get(key)
            return bool(target and getattr(record, target))
        if "." not in key:
            return record.has_attribute(key)
        return record.document.get_path(split_path(key)) is not MISSING
