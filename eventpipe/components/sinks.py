"""
Data sink components for the EventPipe pipeline.

This module provides classes for writing the final Records (and their
snapshots) to a document store. A sink only ever sees the persistence tuple
of each record: its id, kind, timestamp and encoded document.
"""

from abc import ABC, abstractmethod
import json
import logging
from pathlib import Path
from typing import List

import redis

from ..core.record import RecordEntry

logger = logging.getLogger(__name__)


class BaseSink(ABC):
    """Abstract base class for all data sink components."""

    @abstractmethod
    def sink(self, entries: List[RecordEntry]):
        """
        Takes a list of record entries and saves them to the destination.

        Args:
            entries (List[RecordEntry]): The (id, kind, timestamp, body)
                tuples of the records to persist.
        """
        pass

    @abstractmethod
    def test_connection(self):
        """
        Tests the connection to the data sink to ensure it is accessible.

        Raises:
            Exception: If the connection test fails.
        """
        pass


class JSONLinesSink(BaseSink):
    """
    A sink that appends one JSON object per record to a local file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        logger.debug(f"Initialized JSONLinesSink with path='{self.path}'")

    def sink(self, entries: List[RecordEntry]):
        if not entries:
            logger.warning("No records provided to sink. Aborting.")
            return

        logger.info(f"Sinking {len(entries)} records to '{self.path}'")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            for entry in entries:
                line = {
                    "id": entry.id,
                    "kind": entry.kind,
                    "timestamp": entry.timestamp.isoformat(),
                    "document": json.loads(entry.body),
                }
                f.write(json.dumps(line, ensure_ascii=False) + "\n")
        logger.info(f"✅ Wrote {len(entries)} records to '{self.path}'.")

    def test_connection(self):
        logger.info(f"Testing JSONLinesSink at path: {self.path}")
        parent = self.path.parent
        if parent.exists() and not parent.is_dir():
            raise NotADirectoryError(f"Sink parent '{parent}' is not a directory.")
        logger.info("JSONLinesSink is writable.")


class RedisSink(BaseSink):
    """
    A sink that stores each record as a Redis hash keyed by kind and id.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        key_prefix: str = "eventpipe:",
    ):
        self.key_prefix = key_prefix
        self.client = redis.Redis(host=host, port=port, db=db)
        logger.debug(f"Initialized RedisSink at {host}:{port}/{db}")

    def key_for(self, entry: RecordEntry) -> str:
        return f"{self.key_prefix}{entry.kind}:{entry.id}"

    def sink(self, entries: List[RecordEntry]):
        if not entries:
            logger.warning("No records provided to sink. Aborting.")
            return

        logger.info(f"Sinking {len(entries)} records to Redis")
        try:
            pipe = self.client.pipeline()
            for entry in entries:
                pipe.hset(
                    self.key_for(entry),
                    mapping={
                        "id": entry.id,
                        "kind": entry.kind,
                        "timestamp": entry.timestamp.isoformat(),
                        "body": entry.body,
                    },
                )
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Error writing records to Redis: {e}", exc_info=True)
            raise ConnectionError(f"Could not write to Redis: {e}") from e
        logger.info(f"✅ Stored {len(entries)} records in Redis.")

    def test_connection(self):
        logger.info("Testing connection to Redis sink")
        try:
            self.client.ping()
            logger.info("Connection to Redis successful.")
        except redis.exceptions.RedisError as e:
            raise ConnectionError("Failed to connect to Redis") from e
