"""
Core pipeline orchestration module.

This module defines the main function `run_pipeline` that reads a YAML configuration,
builds the necessary components (source, annotators, sink), and executes the
pipeline that turns raw event payloads into stored records and snapshots.
"""

import logging
from typing import List, Tuple

from ..utils.config import load_config
from ..utils.state_manager import StateManager, build_state_manager
from .errors import RecordError
from .factory import (
    build_component,
    SOURCE_REGISTRY,
    ANNOTATOR_REGISTRY,
    SINK_REGISTRY,
)
from .record import Record, RecordEntry

logger = logging.getLogger(__name__)


def _build_components(config: dict, state_manager: StateManager) -> tuple:
    """Builds all pipeline components based on the configuration."""
    logger.info("Building pipeline components...")
    try:
        source_config = dict(config["source"])
        source_config["config"] = {
            **(source_config.get("config") or {}),
            "state_manager": state_manager,
        }
        source = build_component(source_config, SOURCE_REGISTRY)
        annotators = [
            build_component(annotator_config, ANNOTATOR_REGISTRY)
            for annotator_config in config.get("annotators") or []
        ]
        sink = build_component(config["sink"], SINK_REGISTRY)
        logger.info("All components built successfully.")
        return source, annotators, sink
    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Error building components: {e}", exc_info=True)
        raise


def process_records(
    records: List[Record], annotators: list
) -> Tuple[List[Record], List[RecordEntry]]:
    """
    Annotates records and collects the entries to persist.

    Each record contributes its own entry and, when it carries snapshot
    metadata, the entry of its snapshot. A record that fails annotation or
    encoding is logged and dropped without affecting the others.

    Returns:
        The records that were processed and the entries to sink.
    """
    processed, entries = [], []
    for record in records:
        try:
            for annotator in annotators:
                annotator.annotate(record)
            record_entries = [record.to_entry()]

            snapshot = record.snapshot()
            if snapshot is not None:
                if snapshot.id:
                    record_entries.append(snapshot.to_entry())
                else:
                    logger.warning(
                        f"Snapshot of {record.kind} record '{record.id}' has no id "
                        f"at '{record.snapshot_id_path}'. Skipping snapshot."
                    )
        except RecordError as e:
            logger.error(
                f"Error processing {record.kind} record '{record.id}': {e}",
                exc_info=True,
            )
            continue

        processed.append(record)
        entries.extend(record_entries)
    return processed, entries


def run_pipeline(config_path: str):
    """
    Runs the entire record pipeline based on a configuration file.
    """
    logger.info(f"EventPipe pipeline starting with config: {config_path}")

    try:
        config = load_config(config_path)
        if not config:
            logger.error("Configuration is empty. Aborting pipeline.")
            return

        state_manager = build_state_manager(config.get("state"))
        source, annotators, sink = _build_components(config, state_manager)

        logger.info(f"Loading records from source: {source.__class__.__name__}")
        records = source.load_records()
        if not records:
            logger.info("No new or modified records to process. Pipeline finished.")
            return
        logger.info(f"Loaded {len(records)} new/modified records.")

        processed, entries = process_records(records, annotators)
        logger.info(
            f"Processed {len(processed)} records into {len(entries)} entries."
        )
        if not entries:
            logger.info("No entries were created. Nothing to sink.")
            return

        logger.info(f"Sinking data to: {sink.__class__.__name__}")
        sink.sink(entries)

        logger.info("Updating state for processed records...")
        source.update_state(processed)
        state_manager.update_run_timestamp()
        state_manager.save()

        logger.info("EventPipe pipeline completed successfully.")

    except (FileNotFoundError, ValueError, KeyError, ConnectionError) as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}", exc_info=True)
