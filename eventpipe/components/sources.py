"""
Data source components for the EventPipe pipeline.

This module contains classes for loading event payloads from various
sources, such as local JSON files and HTTP event feeds. Each source is
responsible for fetching raw payloads and converting them into a list of
Record objects.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..core.document import canonical_string, split_path
from ..core.errors import ParseError
from ..core.record import Record
from ..utils.state_manager import StateManager, content_hash

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO 8601 timestamp, assuming UTC when no offset is given."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BaseSource(ABC):
    """Abstract base class for all data source components."""

    @abstractmethod
    def load_records(self) -> List[Record]:
        """
        Loads payloads from the configured source and returns a list of Records.
        """
        pass

    @abstractmethod
    def update_state(self, processed_records: List[Record]):
        """
        Updates the state of the source after processing.
        """
        pass

    @abstractmethod
    def test_connection(self):
        """
        Tests the connection to the data source to ensure it is accessible.
        """
        pass


class LocalFileSource(BaseSource):
    """
    Loads one Record per JSON payload file on the local filesystem.

    The record id is the file name without extension, unless `id_field`
    names a dotted path inside the payload.
    """

    def __init__(
        self,
        path: str,
        kind: str,
        state_manager: StateManager,
        glob_pattern: str = "*.json",
        id_field: Optional[str] = None,
    ):
        self.path = Path(path)
        self.kind = kind
        self.glob_pattern = glob_pattern
        self.id_field = id_field
        self.state_manager = state_manager
        self._origins: Dict[int, Tuple[str, str]] = {}
        logger.debug(
            f"Initialized LocalFileSource with path='{self.path}' and glob='{self.glob_pattern}'"
        )

    def load_records(self) -> List[Record]:
        logger.info(
            f"Scanning for files in '{self.path}' with pattern '{self.glob_pattern}'."
        )
        if not self.path.is_dir():
            logger.error(f"Source path '{self.path}' is not a valid directory.")
            return []

        all_files = sorted(
            str(f) for f in self.path.glob(self.glob_pattern) if f.is_file()
        )

        records = []
        for file_path in all_files:
            try:
                payload = Path(file_path).read_bytes()
            except IOError as e:
                logger.error(
                    f"Error reading payload file '{file_path}': {e}", exc_info=True
                )
                continue

            fingerprint = content_hash(payload)
            if not self.state_manager.has_changed(file_path, fingerprint):
                continue

            try:
                record = Record.from_payload(
                    self.kind, Path(file_path).stem, payload
                )
            except ParseError as e:
                logger.error(
                    f"Error loading payload file '{file_path}': {e}", exc_info=True
                )
                continue

            if self.id_field:
                record_id = canonical_string(
                    record.document.get_path(split_path(self.id_field))
                )
                if record_id:
                    record.id = record_id
                else:
                    logger.warning(
                        f"Field '{self.id_field}' missing in '{file_path}'. "
                        f"Using file name as id."
                    )

            self._origins[id(record)] = (file_path, fingerprint)
            records.append(record)

        if not records:
            logger.info("No new or changed files detected.")
        else:
            logger.info(f"Loaded {len(records)} new or changed files.")
        return records

    def update_state(self, processed_records: List[Record]):
        for record in processed_records:
            origin = self._origins.pop(id(record), None)
            if origin:
                file_path, fingerprint = origin
                self.state_manager.update_item_state(file_path, fingerprint)

    def test_connection(self):
        logger.info(
            f"Testing connection for LocalFileSource at path: {self.path}"
        )
        if not self.path.exists():
            raise FileNotFoundError(
                f"Source path '{self.path}' does not exist."
            )
        if not self.path.is_dir():
            raise NotADirectoryError(
                f"Source path '{self.path}' is not a directory."
            )
        logger.info("Connection to LocalFileSource successful.")


class WebSource(BaseSource):
    """
    Loads Records from an HTTP endpoint returning a JSON array of events,
    such as the GitHub events API.

    Each event becomes a Record whose kind, id and timestamp are read from
    the configured fields. The event time replaces the local processing
    time when it can be parsed.
    """

    def __init__(
        self,
        url: str,
        kind_field: str = "type",
        id_field: str = "id",
        timestamp_field: Optional[str] = "created_at",
        token: Optional[str] = None,
        timeout: int = 10,
        state_manager: Optional[StateManager] = None,
    ):
        self.url = url
        self.kind_field = kind_field
        self.id_field = id_field
        self.timestamp_field = timestamp_field
        self.timeout = timeout
        self.state_manager = state_manager
        self.headers = {
            "Accept": "application/json",
            "User-Agent": "eventpipe",
        }
        if token:
            self.headers["Authorization"] = f"token {token}"

    def load_records(self) -> List[Record]:
        logger.info(f"Fetching events from URL: {self.url}")
        try:
            response = requests.get(self.url, timeout=self.timeout, headers=self.headers)
            response.raise_for_status()
            events = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Failed to fetch events from URL '{self.url}': {e}",
                exc_info=True,
            )
            return []
        except ValueError as e:
            logger.error(f"Response from '{self.url}' is not valid JSON: {e}")
            return []

        if isinstance(events, dict):
            events = [events]
        if not isinstance(events, list):
            logger.warning(f"Unexpected payload from '{self.url}'. Expected a list of events.")
            return []

        records = []
        for event in events:
            record = self._to_record(event)
            if record is None:
                continue
            if self.state_manager and not self.state_manager.has_changed(
                self._item_id(record), record.id
            ):
                logger.debug(f"Event '{record.id}' already processed. Skipping.")
                continue
            records.append(record)

        logger.info(f"Fetched {len(records)} new events from '{self.url}'.")
        return records

    def _to_record(self, event: Any) -> Optional[Record]:
        record = Record.from_document("", "", event)
        kind = canonical_string(record.document.get_path(split_path(self.kind_field)))
        record_id = canonical_string(record.document.get_path(split_path(self.id_field)))
        if not kind or not record_id:
            logger.warning(
                f"Skipping event without '{self.kind_field}' or '{self.id_field}' field."
            )
            return None
        record.kind = kind
        record.id = record_id

        if self.timestamp_field:
            timestamp = parse_timestamp(
                record.document.get_path(split_path(self.timestamp_field), None)
            )
            if timestamp:
                record.timestamp = timestamp
        return record

    def _item_id(self, record: Record) -> str:
        return f"{self.url}#{record.id}"

    def update_state(self, processed_records: List[Record]):
        if not self.state_manager:
            return
        for record in processed_records:
            self.state_manager.update_item_state(self._item_id(record), record.id)

    def test_connection(self):
        logger.info(f"Testing connection for WebSource at URL: {self.url}")
        try:
            response = requests.head(self.url, timeout=5, headers=self.headers)
            response.raise_for_status()
            logger.info("Connection to WebSource successful.")
        except requests.exceptions.RequestException as e:
            raise ConnectionError(
                f"Failed to connect to URL: {self.url}"
            ) from e
