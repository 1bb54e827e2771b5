from pydantic import BaseModel
from typing import Dict, Any, List


class ComponentConfig(BaseModel):
    """A model for a single component's configuration (source, sink, etc.)"""

    type: str
    config: Dict[str, Any] = {}


class StateConfig(BaseModel):
    """Where processed items are tracked between runs."""

    type: str = "json"
    config: Dict[str, Any] = {}


class PipelineConfig(BaseModel):
    """The top-level model for the entire pipeline.yaml configuration."""

    source: ComponentConfig
    annotators: List[ComponentConfig] = []
    sink: ComponentConfig
    state: StateConfig = StateConfig()
