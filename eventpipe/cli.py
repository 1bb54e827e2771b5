"""
Command-Line Interface for EventPipe.
"""

import typer
import logging
from pathlib import Path
import json
from typing import Optional
from typing_extensions import Annotated

from .utils.config import load_config
from .utils.state_manager import build_state_manager
from .core.pipeline import run_pipeline
from .core.factory import (
    SOURCE_REGISTRY,
    ANNOTATOR_REGISTRY,
    SINK_REGISTRY,
    build_component,
)
from .core.errors import RecordError
from .core.record import (
    METADATA_SNAPSHOT_FIELD,
    METADATA_SNAPSHOT_ID,
    Record,
    RecordEntry,
)


logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="A pipeline that turns event payloads into stored records.")

STATE_FILE = Path(".eventpipe_state.json")

DEFAULT_YAML_CONTENT = """# Default EventPipe Pipeline Configuration
source:
  type: local_files
  config:
    path: ./events
    glob_pattern: "*.json"
    kind: push_event

annotators:
  - type: snapshot
    config:
      rules:
        push_event:
          field: repository
          id: id

sink:
  type: jsonl
  config:
    path: ./store/records.jsonl

state:
  type: json
  config:
    path: .eventpipe_state.json
"""


def _entry_to_dict(entry: RecordEntry) -> dict:
    return {
        "id": entry.id,
        "kind": entry.kind,
        "timestamp": entry.timestamp.isoformat(),
        "document": json.loads(entry.body),
    }


@app.command()
def run(
    config_path: str = typer.Option(
        "pipeline.yaml",
        "-c",
        help="Path to the pipeline's YAML configuration file.",
    )
):
    """Runs the EventPipe record pipeline."""
    run_pipeline(config_path=config_path)


@app.command()
def init():
    """Initializes a new EventPipe project."""
    logger.info("Initializing new EventPipe project...")
    Path("events").mkdir(exist_ok=True)
    logger.info("Created 'events' directory.")

    config_file = Path("pipeline.yaml")
    if config_file.exists():
        logger.warning("'pipeline.yaml' already exists.")
    else:
        config_file.write_text(DEFAULT_YAML_CONTENT.strip() + "\n")
        logger.info("Created default 'pipeline.yaml'.")

    logger.info("Project initialized.")


@app.command()
def status(
    config_path: str = typer.Option("pipeline.yaml", "-c", help="Config path."),
):
    """Shows the items tracked by the configured state backend."""
    try:
        config = load_config(config_path)
    except SystemExit:
        logger.warning(f"Could not load '{config_path}'. Using the default state file.")
        config = {}

    try:
        state_manager = build_state_manager(config.get("state"))
    except Exception as e:
        logger.error(f"Could not open pipeline state: {e}", exc_info=True)
        raise typer.Exit(code=1)

    processed_items = state_manager.processed_items
    if not processed_items:
        logger.info("No items have been processed yet.")
    else:
        print("\n--- Tracked Items ---")
        for item_id in sorted(processed_items.keys()):
            print(f"  - {item_id}")
        print("---------------------")
    last_run = state_manager.get_last_run_timestamp()
    if last_run:
        print(f"Last run: {last_run}")


@app.command(name="list-components")
def list_components():
    """Lists all available components."""
    logger.info("Listing available components...")

    def print_registry(title, registry):
        print(f"\n--- {title} ---")
        for name in sorted(registry.keys()):
            print(f"  - {name}")

    print_registry("Sources", SOURCE_REGISTRY)
    print_registry("Annotators", ANNOTATOR_REGISTRY)
    print_registry("Sinks", SINK_REGISTRY)


@app.command(name="test-connection")
def test_connection(
    component: Annotated[
        str, typer.Argument(help="Component to test (source or sink)")
    ],
    config_path: str = typer.Option("pipeline.yaml", "-c", help="Config path."),
):
    """Tests the connection for a specified component."""
    logger.info(f"Testing connection for '{component}'...")
    try:
        config = load_config(config_path)
        if component == "source":
            source_config = dict(config["source"])
            source_config["config"] = {
                **(source_config.get("config") or {}),
                "state_manager": build_state_manager(config.get("state")),
            }
            comp_obj = build_component(source_config, SOURCE_REGISTRY)
        elif component == "sink":
            comp_obj = build_component(config["sink"], SINK_REGISTRY)
        else:
            logger.error(f"Unknown component: '{component}'")
            raise typer.Exit(code=1)
        comp_obj.test_connection()
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Connection test failed: {e}", exc_info=True)
        raise typer.Exit(code=1)


@app.command()
def inspect(
    payload_path: Annotated[
        str, typer.Argument(help="Path to a JSON payload file.")
    ],
    kind: str = typer.Option(..., "--kind", "-k", help="Record kind."),
    record_id: Optional[str] = typer.Option(
        None, "--id", help="Record id. Defaults to the file name."
    ),
    snapshot_field: Optional[str] = typer.Option(
        None, "--snapshot-field", help="Field extracted as the snapshot."
    ),
    snapshot_id: Optional[str] = typer.Option(
        None, "--snapshot-id", help="Dotted path of the snapshot id."
    ),
):
    """Prints the record built from a payload file, and its snapshot."""
    path = Path(payload_path)
    try:
        record = Record.from_payload(kind, record_id or path.stem, path.read_bytes())
        if snapshot_field:
            record.push(METADATA_SNAPSHOT_FIELD, snapshot_field)
        if snapshot_id:
            record.push(METADATA_SNAPSHOT_ID, snapshot_id)

        output = {"record": _entry_to_dict(record.to_entry()), "snapshot": None}
        snapshot = record.snapshot()
        if snapshot is not None:
            output["snapshot"] = _entry_to_dict(snapshot.to_entry())
    except (RecordError, IOError) as e:
        logger.error(f"Could not inspect '{path}': {e}")
        raise typer.Exit(code=1)

    print(json.dumps(output, indent=2, ensure_ascii=False))


@app.command()
def clean(
    config_path: str = typer.Option("pipeline.yaml", "-c", help="Config file."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
):
    """Removes the state file and the JSON lines store."""
    logger.info("Starting cleanup...")
    if not yes and not typer.confirm("Are you sure?"):
        logger.info("Aborting cleanup.")
        return

    try:
        config = load_config(config_path)
    except SystemExit:
        logger.warning(f"Could not load '{config_path}'. Cleaning defaults only.")
        config = {}

    state_config = config.get("state") or {}
    state_file = STATE_FILE
    if state_config.get("type", "json") == "json":
        state_file = Path(state_config.get("config", {}).get("path", STATE_FILE))
    if state_file.exists():
        state_file.unlink()
        logger.info(f"Deleted state file: {state_file}")

    sink_config = config.get("sink") or {}
    if sink_config.get("type") == "jsonl":
        sink_path = Path(sink_config.get("config", {}).get("path", ""))
        if sink_path.is_file():
            sink_path.unlink()
            logger.info(f"Deleted sink file: {sink_path}")

    logger.info("Cleanup complete.")


if __name__ == "__main__":
    app()
