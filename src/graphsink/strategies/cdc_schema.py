# src/graphsink/strategies/cdc_schema.py
"""CDC strategy identifying entities by the key constraints of the source schema.

Change events carry ``keys`` as ``{label: [key map, ...]}``. The first key
map of every label that has one identifies the node; labels are taken in the
order the event lists them. Relationship endpoints are matched, never
created, so they must already exist at the target.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self

from graphsink.contracts.cdc import ChangeEvent, KeyMap, NodeEvent, RelationshipEvent
from graphsink.contracts.enums import CdcOperation, ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import MessageHandlingError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import Query
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.cypher import labels_fragment, property_map, quote
from graphsink.strategies.base import ChangeEventHandler

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings


def node_identity(keys: Mapping[str, list[KeyMap]]) -> tuple[list[str], dict[str, Any]]:
    """Labels and combined key values identifying a node.

    Returns:
        (labels, key values); both empty when no label has a key map
    """
    labels: list[str] = []
    values: dict[str, Any] = {}
    for label, key_maps in keys.items():
        if key_maps and key_maps[0]:
            labels.append(label)
            values.update(key_maps[0])
    return labels, values


class CdcSchemaHandler(ChangeEventHandler):
    """Replays change events keyed on source key constraints."""

    strategy_kind = SinkStrategy.CDC_SCHEMA

    def __init__(
        self,
        topic: str,
        *,
        enforce_sequence_order: bool = True,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(
            topic,
            enforce_sequence_order=enforce_sequence_order,
            error_policy=error_policy,
            error_reporter=error_reporter,
        )

    @classmethod
    def from_settings(
        cls,
        topic: str,
        settings: GraphSinkSettings,
        *,
        error_reporter: ErrorReporter | None = None,
    ) -> Self:
        return cls(
            topic,
            enforce_sequence_order=settings.cdc.enforce_sequence_order,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _convert_event(self, message: SinkMessage, event: ChangeEvent) -> Query:
        if isinstance(event.event, NodeEvent):
            return self._node_query(message, event.event)
        return self._relationship_query(message, event.event)

    def _identified(
        self,
        message: SinkMessage,
        variable: str,
        keys: Mapping[str, list[KeyMap]],
        parameter: str,
        what: str,
    ) -> tuple[str, list[str], dict[str, Any]]:
        labels, values = node_identity(keys)
        if not values:
            raise MessageHandlingError(message, f"{what} has no key properties")
        return f"({variable}{labels_fragment(labels)}{property_map(values, parameter)})", labels, values

    def _node_query(self, message: SinkMessage, event: NodeEvent) -> Query:
        node, key_labels, keys = self._identified(message, "n", event.keys, "$keys", "node event")
        if event.operation == CdcOperation.DELETE:
            return Query(f"MATCH {node}\nDETACH DELETE n", {"keys": keys})

        lines = [f"MERGE {node}"]
        if event.operation == CdcOperation.CREATE:
            assert event.state.after is not None
            properties = dict(event.state.after.properties)
            added = [label for label in event.state.after.labels if label not in key_labels]
            removed: list[str] = []
            lines.append("SET n = $properties")
        else:
            properties = event.state.properties_delta()
            added = [label for label in event.state.labels_added() if label not in key_labels]
            removed = [label for label in event.state.labels_removed() if label not in key_labels]
            lines.append("SET n += $properties")
        if added:
            lines.append(f"SET n{labels_fragment(added)}")
        if removed:
            lines.append(f"REMOVE n{labels_fragment(removed)}")
        return Query("\n".join(lines), {"keys": keys, "properties": properties})

    def _relationship_query(self, message: SinkMessage, event: RelationshipEvent) -> Query:
        source, _, source_keys = self._identified(message, "source", event.start.keys, "$source", "start node")
        target, _, target_keys = self._identified(message, "target", event.end.keys, "$target", "end node")
        rel_keys = dict(event.keys[0]) if event.keys else {}
        rel = f"[r:{quote(event.type)}{property_map(rel_keys, '$keys')}]"
        parameters: dict[str, Any] = {"source": source_keys, "target": target_keys, "keys": rel_keys}

        if event.operation == CdcOperation.DELETE:
            return Query(f"MATCH {source}-{rel}->{target}\nDELETE r", parameters)

        lines = [f"MATCH {source}", f"MATCH {target}", f"MERGE (source)-{rel}->(target)"]
        if event.operation == CdcOperation.CREATE:
            assert event.state.after is not None
            parameters["properties"] = dict(event.state.after.properties)
            lines.append("SET r = $properties")
        else:
            parameters["properties"] = event.state.properties_delta()
            lines.append("SET r += $properties")
        return Query("\n".join(lines), parameters)
