"""Configuration package."""

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.config.queue import QueueSettings, queue_settings
from app.config.settings import (
    Settings,
    get_settings,
    load_yaml_config,
    settings,
    yaml_config,
)

__all__ = [
    # Pipeline settings
    "pipeline_settings",
    "PipelineSettings",
    # Queue/worker settings
    "queue_settings",
    "QueueSettings",
    # Application settings
    "Settings",
    "get_settings",
    "load_yaml_config",
    "settings",
    "yaml_config",
]
