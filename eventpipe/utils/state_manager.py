"""
State management for the EventPipe pipeline.

The state remembers which source items (payload files, feed events) have
already been turned into stored records, together with a fingerprint of the
content that was stored. Sources compute the fingerprint when they load an
item and hand the same value back once the item's records are sunk, so an
item that changes in between is picked up again on the next run.
"""

import json
import hashlib
from pathlib import Path
from typing import Dict, Optional
import logging
from datetime import datetime, timezone
from abc import ABC, abstractmethod
import redis

logger = logging.getLogger(__name__)


def _empty_state() -> Dict:
    return {"processed_items": {}, "last_run_timestamp": None}


def content_hash(payload: bytes) -> str:
    """Returns the fingerprint stored for a raw payload."""
    return hashlib.sha256(payload).hexdigest()


class BaseStateManager(ABC):
    """
    An abstract base class for all state storage backends.
    """

    @abstractmethod
    def load_state(self) -> Dict:
        """Load state from storage."""
        pass

    @abstractmethod
    def save_state(self, state: Dict):
        """Saves the given state to storage."""
        pass


class JSONStateManager(BaseStateManager):
    """
    Keeps the pipeline state in a local JSON file.
    """

    def __init__(self, path: str = ".eventpipe_state.json"):
        self.state_file_path = Path(path)

    def load_state(self) -> Dict:
        if not self.state_file_path.exists():
            logger.debug("No state file yet. Starting with an empty state.")
            return _empty_state()

        logger.debug(f"Loading state from '{self.state_file_path}'")
        try:
            with open(self.state_file_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            logger.error("Error loading state file. Starting fresh.", exc_info=True)
            return _empty_state()

    def save_state(self, state: Dict):
        logger.debug(f"Saving state to '{self.state_file_path}'")
        try:
            with open(self.state_file_path, "w") as f:
                json.dump(state, f, indent=4)
            logger.info(f"Pipeline state saved to '{self.state_file_path}'.")
        except IOError as e:
            logger.error(f"Error saving state file: {e}", exc_info=True)


class RedisStateManager(BaseStateManager):
    """
    Keeps the pipeline state as a JSON string under a single Redis key.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        state_key: str = "eventpipe_state",
    ):
        self.state_key = state_key
        try:
            self.redis_client = redis.Redis(
                host=host, port=port, db=db, decode_responses=True
            )
            self.redis_client.ping()
            logger.info(f"Connected to Redis state store at {host}:{port}")
        except redis.exceptions.ConnectionError as e:
            logger.error(f"Error connecting to Redis: {e}", exc_info=True)
            raise

    def load_state(self) -> Dict:
        logger.debug(f"Loading state from Redis key '{self.state_key}'")
        try:
            existing_state = self.redis_client.get(self.state_key)
        except redis.exceptions.RedisError as e:
            logger.error(f"Error loading state from Redis: {e}", exc_info=True)
            return _empty_state()
        return json.loads(existing_state) if existing_state else _empty_state()

    def save_state(self, state: Dict):
        logger.debug(f"Saving state to Redis key '{self.state_key}'")
        try:
            self.redis_client.set(self.state_key, json.dumps(state))
            logger.info(f"Pipeline state saved to Redis key '{self.state_key}'.")
        except redis.exceptions.RedisError as e:
            logger.error(f"Error saving state to Redis: {e}", exc_info=True)


# A registry mapping 'type' strings to their corresponding state backends.
STATE_BACKEND_REGISTRY = {"json": JSONStateManager, "redis": RedisStateManager}


class StateManager:
    """
    Tracks processed source items through a storage backend.

    Items are identified by a source-defined id (a file path, a feed URL plus
    event id) and a fingerprint supplied by the source: a content hash for
    files, the event id for feed events.
    """

    def __init__(self, backend: Optional[BaseStateManager] = None):
        self.backend = backend or JSONStateManager()
        self.state = self.backend.load_state()
        self.state.setdefault("processed_items", {})
        self.state.setdefault("last_run_timestamp", None)

    @property
    def processed_items(self) -> Dict[str, str]:
        return self.state["processed_items"]

    def save(self):
        self.backend.save_state(self.state)

    def has_changed(self, item_id: str, fingerprint: str) -> bool:
        """
        Checks whether an item is new or differs from what was last stored.

        Args:
            item_id (str): The source-defined identifier of the item.
            fingerprint (str): The fingerprint of the item as loaded now.

        Returns:
            bool: True if the item was never processed or its fingerprint differs.
        """
        changed = self.processed_items.get(item_id) != fingerprint
        if changed:
            logger.debug(f"Change detected for item '{item_id}'.")
        return changed

    def update_item_state(self, item_id: str, fingerprint: str):
        """
        Records that `item_id` was stored with the given fingerprint.

        The fingerprint must be the one computed when the item was loaded,
        not recomputed afterwards.
        """
        self.processed_items[item_id] = fingerprint
        logger.debug(f"Updated state for item '{item_id}'.")

    def get_last_run_timestamp(self) -> Optional[str]:
        return self.state.get("last_run_timestamp")

    def update_run_timestamp(self):
        self.state["last_run_timestamp"] = datetime.now(timezone.utc).isoformat()


def build_state_manager(state_config: Optional[Dict] = None) -> StateManager:
    """
    Creates a StateManager from the `state` section of the configuration.

    Raises:
        ValueError: If the state backend type is unknown.
    """
    state_config = state_config or {}
    backend_type = state_config.get("type") or "json"
    backend_class = STATE_BACKEND_REGISTRY.get(backend_type)
    if not backend_class:
        raise ValueError(f"'{backend_type}' is not a valid state backend type.")
    logger.debug(f"Using state backend '{backend_class.__name__}'")
    return StateManager(backend=backend_class(**state_config.get("config", {})))
