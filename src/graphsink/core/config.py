# src/graphsink/core/config.py
"""
Configuration schema and loading for graphsink.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction and handed to the
strategy resolver as a single value.

Two entry points:
- load_settings(path): YAML file plus GRAPHSINK_* environment overrides
- settings_from_properties(mapping): flat connector-style keys such as
  ``neo4j.cypher.topic.<topic>``
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from graphsink.contracts.enums import ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import SinkConfigurationError


def _split_topics(value: Any) -> Any:
    """Accept ``"a, b"`` as well as ``["a", "b"]``; trim and drop blanks."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list | tuple):
        return [str(item).strip() for item in value if str(item).strip()]
    return value


class TopicListSettings(BaseModel):
    """Strategy configured by topic membership.

    Example YAML:
        cud:
          topics: [orders, customers]
    """

    model_config = {"frozen": True, "extra": "forbid"}

    topics: list[str] = Field(default_factory=list, description="Topics handled by this strategy")

    @field_validator("topics", mode="before")
    @classmethod
    def split_topics(cls, v: Any) -> Any:
        return _split_topics(v)


class CdcSourceIdSettings(TopicListSettings):
    """CDC source-id strategy: entities are correlated through a synthetic label/property.

    Example YAML:
        cdc_source_id:
          topics: [people]
          label_name: SourceEvent
          property_name: sourceId
    """

    label_name: str = Field(default="SourceEvent", min_length=1, description="Label added to every replicated node")
    property_name: str = Field(default="sourceId", min_length=1, description="Property holding the source element id")


class StrategySettings(BaseModel):
    """Per-topic strategy configuration.

    The six sources are mutually exclusive per topic. Checking that is the
    resolver's job, so the error can name every offending topic at once.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    cypher: dict[str, str] = Field(default_factory=dict, description="topic -> Cypher statement")
    node_pattern: dict[str, str] = Field(default_factory=dict, description="topic -> node pattern")
    relationship_pattern: dict[str, str] = Field(default_factory=dict, description="topic -> relationship pattern")
    cdc_source_id: CdcSourceIdSettings = Field(default_factory=CdcSourceIdSettings)
    cdc_schema: TopicListSettings = Field(default_factory=TopicListSettings)
    cud: TopicListSettings = Field(default_factory=TopicListSettings)

    def topic_sources(self) -> list[tuple[SinkStrategy, frozenset[str]]]:
        """Configured topics per strategy, in resolution priority order."""
        return [
            (SinkStrategy.CYPHER, frozenset(self.cypher)),
            (SinkStrategy.NODE_PATTERN, frozenset(self.node_pattern)),
            (SinkStrategy.RELATIONSHIP_PATTERN, frozenset(self.relationship_pattern)),
            (SinkStrategy.CDC_SOURCE_ID, frozenset(self.cdc_source_id.topics)),
            (SinkStrategy.CDC_SCHEMA, frozenset(self.cdc_schema.topics)),
            (SinkStrategy.CUD, frozenset(self.cud.topics)),
        ]

    def configured_topics(self) -> frozenset[str]:
        topics: set[str] = set()
        for _, members in self.topic_sources():
            topics |= members
        return frozenset(topics)


class CypherBindingSettings(BaseModel):
    """Names under which message parts are exposed to Cypher statements.

    A binding set to null (or an empty string) is not exposed.
    ``bind_value_as_event`` additionally exposes the value as ``event``.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    bind_timestamp_as: str | None = "__timestamp"
    bind_header_as: str | None = "__header"
    bind_key_as: str | None = "__key"
    bind_value_as: str | None = "__value"
    bind_value_as_event: bool = True

    @field_validator("bind_timestamp_as", "bind_header_as", "bind_key_as", "bind_value_as", mode="before")
    @classmethod
    def blank_is_disabled(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_something_bound(self) -> "CypherBindingSettings":
        """At least one part of the message must reach the statement."""
        if not self.bind_value_as_event and not any(
            (self.bind_timestamp_as, self.bind_header_as, self.bind_key_as, self.bind_value_as)
        ):
            raise ValueError("at least one cypher binding must be enabled")
        return self


class PatternSettings(BaseModel):
    """Property write mode for pattern strategies.

    merge properties: SET x += props (keep properties not in the message)
    replace (default): SET x = props (drop properties not in the message)
    """

    model_config = {"frozen": True, "extra": "forbid"}

    node_merge_properties: bool = False
    relationship_merge_properties: bool = False


class BatchSettings(BaseModel):
    """Size-based chunking for the cypher, pattern and CUD strategies."""

    model_config = {"frozen": True, "extra": "forbid"}

    size: int = Field(default=1000, gt=0, description="Maximum messages per transaction group")
    timeout_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Poll window for the caller's batching loop (0 = no wait)",
    )


class ErrorSettings(BaseModel):
    """Per-message error policy."""

    model_config = {"frozen": True, "extra": "forbid"}

    policy: ErrorPolicy = Field(default=ErrorPolicy.FAIL, description="fail: raise; skip: exclude and report")


class CdcSettings(BaseModel):
    """Options shared by both CDC strategies."""

    model_config = {"frozen": True, "extra": "forbid"}

    enforce_sequence_order: bool = Field(
        default=True,
        description="Fail when seq does not increase within one source transaction",
    )


class GraphSinkSettings(BaseModel):
    """Top-level graphsink configuration.

    This is the single source of truth handed to the strategy resolver.
    All settings are validated and frozen after construction.

    Example YAML:
        topics: [people, knows]
        strategies:
          node_pattern:
            people: "(:Person{!id, name, surname})"
          relationship_pattern:
            knows: "(:Person{!from})-[:KNOWS{since}]->(:Person{!to})"
        batch:
          size: 500
        errors:
          policy: skip
    """

    model_config = {"frozen": True, "extra": "forbid"}

    topics: list[str] = Field(description="Topics declared for consumption")
    strategies: StrategySettings = Field(default_factory=StrategySettings)
    cypher_bindings: CypherBindingSettings = Field(default_factory=CypherBindingSettings)
    patterns: PatternSettings = Field(default_factory=PatternSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    errors: ErrorSettings = Field(default_factory=ErrorSettings)
    cdc: CdcSettings = Field(default_factory=CdcSettings)

    @field_validator("topics", mode="before")
    @classmethod
    def split_topics(cls, v: Any) -> Any:
        return _split_topics(v)

    @field_validator("topics")
    @classmethod
    def validate_topics_not_empty(cls, v: list[str]) -> list[str]:
        """At least one topic is required."""
        if not v:
            raise ValueError("At least one topic is required")
        return v


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Unset variables without a default are left as written.
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path) -> GraphSinkSettings:
    """Load settings from a YAML file with environment variable overrides.

    Precedence:
    1. Environment variables (GRAPHSINK_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: GRAPHSINK_BATCH__SIZE for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="GRAPHSINK",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf upper-cases top-level keys and adds its own bookkeeping keys
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return GraphSinkSettings(**raw_config)


# =============================================================================
# Flat connector properties
# =============================================================================

TOPICS = "topics"
CYPHER_TOPIC_PREFIX = "neo4j.cypher.topic."
PATTERN_NODE_TOPIC_PREFIX = "neo4j.pattern.node.topic."
PATTERN_RELATIONSHIP_TOPIC_PREFIX = "neo4j.pattern.relationship.topic."
CDC_SOURCE_ID_TOPICS = "neo4j.cdc.source-id.topics"
CDC_SOURCE_ID_LABEL_NAME = "neo4j.cdc.source-id.label-name"
CDC_SOURCE_ID_PROPERTY_NAME = "neo4j.cdc.source-id.property-name"
CDC_SCHEMA_TOPICS = "neo4j.cdc.schema.topics"
CDC_ENFORCE_SEQUENCE_ORDER = "neo4j.cdc.enforce-sequence-order"
CUD_TOPICS = "neo4j.cud.topics"
BATCH_SIZE = "neo4j.batch-size"
BATCH_TIMEOUT_MSECS = "neo4j.batch-timeout"
PATTERN_NODE_MERGE_PROPERTIES = "neo4j.pattern.node.merge-properties"
PATTERN_RELATIONSHIP_MERGE_PROPERTIES = "neo4j.pattern.relationship.merge-properties"
ERRORS_POLICY = "neo4j.errors.policy"

# flat key -> CypherBindingSettings field
_CYPHER_BINDING_KEYS: dict[str, str] = {
    "neo4j.cypher.bind-timestamp-as": "bind_timestamp_as",
    "neo4j.cypher.bind-header-as": "bind_header_as",
    "neo4j.cypher.bind-key-as": "bind_key_as",
    "neo4j.cypher.bind-value-as": "bind_value_as",
    "neo4j.cypher.bind-value-as-event": "bind_value_as_event",
}


def _topic_suffixed(properties: Mapping[str, Any], prefix: str) -> dict[str, str]:
    return {key[len(prefix) :]: str(value) for key, value in properties.items() if key.startswith(prefix) and len(key) > len(prefix)}


def settings_from_properties(properties: Mapping[str, Any]) -> GraphSinkSettings:
    """Build settings from flat connector-style key/value properties.

    Keys that belong to other layers (driver, transport) are ignored.

    Raises:
        SinkConfigurationError: If the properties do not form valid settings
    """
    cdc_source_id: dict[str, Any] = {"topics": properties.get(CDC_SOURCE_ID_TOPICS)}
    if CDC_SOURCE_ID_LABEL_NAME in properties:
        cdc_source_id["label_name"] = properties[CDC_SOURCE_ID_LABEL_NAME]
    if CDC_SOURCE_ID_PROPERTY_NAME in properties:
        cdc_source_id["property_name"] = properties[CDC_SOURCE_ID_PROPERTY_NAME]

    patterns = {}
    if PATTERN_NODE_MERGE_PROPERTIES in properties:
        patterns["node_merge_properties"] = properties[PATTERN_NODE_MERGE_PROPERTIES]
    if PATTERN_RELATIONSHIP_MERGE_PROPERTIES in properties:
        patterns["relationship_merge_properties"] = properties[PATTERN_RELATIONSHIP_MERGE_PROPERTIES]

    batch: dict[str, Any] = {}
    if BATCH_SIZE in properties:
        batch["size"] = properties[BATCH_SIZE]
    try:
        if BATCH_TIMEOUT_MSECS in properties:
            batch["timeout_seconds"] = float(properties[BATCH_TIMEOUT_MSECS]) / 1000
    except (TypeError, ValueError) as e:
        raise SinkConfigurationError(f"Invalid value for {BATCH_TIMEOUT_MSECS}: {properties[BATCH_TIMEOUT_MSECS]!r}") from e

    raw: dict[str, Any] = {
        "topics": properties.get(TOPICS),
        "strategies": {
            "cypher": _topic_suffixed(properties, CYPHER_TOPIC_PREFIX),
            "node_pattern": _topic_suffixed(properties, PATTERN_NODE_TOPIC_PREFIX),
            "relationship_pattern": _topic_suffixed(properties, PATTERN_RELATIONSHIP_TOPIC_PREFIX),
            "cdc_source_id": cdc_source_id,
            "cdc_schema": {"topics": properties.get(CDC_SCHEMA_TOPICS)},
            "cud": {"topics": properties.get(CUD_TOPICS)},
        },
        "cypher_bindings": {field: properties[key] for key, field in _CYPHER_BINDING_KEYS.items() if key in properties},
        "patterns": patterns,
        "batch": batch,
    }
    if ERRORS_POLICY in properties:
        raw["errors"] = {"policy": str(properties[ERRORS_POLICY]).lower()}
    if CDC_ENFORCE_SEQUENCE_ORDER in properties:
        raw["cdc"] = {"enforce_sequence_order": properties[CDC_ENFORCE_SEQUENCE_ORDER]}

    try:
        return GraphSinkSettings.model_validate(raw)
    except ValidationError as e:
        raise SinkConfigurationError(f"Invalid sink configuration: {e}") from e
