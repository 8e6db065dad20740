# src/graphsink/core/__init__.py
"""Core infrastructure: Configuration, Logging, Cypher helpers."""

from graphsink.core.config import (
    BatchSettings,
    CdcSettings,
    CdcSourceIdSettings,
    CypherBindingSettings,
    ErrorSettings,
    GraphSinkSettings,
    PatternSettings,
    StrategySettings,
    TopicListSettings,
    load_settings,
    settings_from_properties,
)
from graphsink.core.logging import configure_logging, get_logger

__all__ = [
    "BatchSettings",
    "CdcSettings",
    "CdcSourceIdSettings",
    "CypherBindingSettings",
    "ErrorSettings",
    "GraphSinkSettings",
    "PatternSettings",
    "StrategySettings",
    "TopicListSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
    "settings_from_properties",
]
