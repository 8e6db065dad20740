# src/graphsink/strategies/node_pattern.py
"""Node pattern strategy.

Each message becomes one node, identified by the pattern's ``!`` properties.
A message with a null value (tombstone) deletes the node it identifies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from graphsink.contracts.enums import ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import MessageHandlingError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.cypher import labels_fragment, property_map
from graphsink.patterns.compiler import NodePattern, compile_node_pattern
from graphsink.patterns.extraction import ExtractionError, extract_node
from graphsink.strategies.base import BatchingHandler, require_document

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings

MERGE = "merge"
DELETE = "delete"


def node_query_text(pattern: NodePattern, *, merge_properties: bool) -> str:
    """Batched upsert/delete statement for one compiled node pattern."""
    node = f"(n{labels_fragment(pattern.labels)}{property_map(pattern.key_names, 'event.keys')})"
    if merge_properties:
        set_clause = "SET n += event.properties"
    else:
        set_clause = "SET n = event.properties\n  SET n += event.keys"
    return (
        "UNWIND $events AS event\n"
        "CALL {\n"
        f"  WITH event\n  WITH event WHERE event.op = '{MERGE}'\n"
        f"  MERGE {node}\n"
        f"  {set_clause}\n"
        "}\n"
        "CALL {\n"
        f"  WITH event\n  WITH event WHERE event.op = '{DELETE}'\n"
        f"  MATCH {node}\n"
        "  DETACH DELETE n\n"
        "}"
    )


class NodePatternHandler(BatchingHandler[dict[str, Any]]):
    """Merges (or deletes) one node per message."""

    strategy_kind = SinkStrategy.NODE_PATTERN

    def __init__(
        self,
        topic: str,
        pattern: str | NodePattern,
        *,
        merge_properties: bool = False,
        batch_size: int = 1000,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(topic, batch_size=batch_size, error_policy=error_policy, error_reporter=error_reporter)
        self.pattern = compile_node_pattern(pattern) if isinstance(pattern, str) else pattern
        self.merge_properties = merge_properties
        self.query_text = node_query_text(self.pattern, merge_properties=merge_properties)

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
            settings.strategies.node_pattern[topic],
            merge_properties=settings.patterns.node_merge_properties,
            batch_size=settings.batch.size,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _convert(self, message: SinkMessage) -> dict[str, Any]:
        value = None if message.value is None else require_document(message)
        try:
            entity = extract_node(self.pattern, message.key, value)
        except ExtractionError as e:
            raise MessageHandlingError(message, str(e)) from e
        if value is None:
            return {"op": DELETE, "keys": entity.keys, "properties": {}}
        return {"op": MERGE, "keys": entity.keys, "properties": entity.properties}

    def _build_group(self, chunk: list[dict[str, Any]]) -> TransactionGroup:
        return [ChangeQuery(tx_id=None, seq=None, query=Query(self.query_text, {"events": chunk}))]
