"""
Configuration file for pytest.

This file adds the project's root directory to the Python path so that
pytest can find the 'eventpipe' package without needing to install it.
"""

import sys
from pathlib import Path

import pytest

# Add the project root directory to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from eventpipe.core.record import Record  # noqa: E402


@pytest.fixture
def push_event_record():
    """A live push event whose repository can be snapshotted."""
    return Record.from_document(
        "push_event",
        "1",
        {"repository": {"id": 42}, "ref": "refs/heads/main"},
    )
