# src/graphsink/strategies/relationship_pattern.py
"""Relationship pattern strategy.

Each message becomes one relationship between two merged endpoint nodes.
The relationship is keyed on its own identity properties when the pattern
declares any, otherwise on its endpoints and type. A tombstone deletes the
relationship and leaves both endpoints in place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from graphsink.contracts.enums import ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import MessageHandlingError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.cypher import labels_fragment, property_map, quote
from graphsink.patterns.compiler import NodePattern, RelationshipPattern, compile_relationship_pattern
from graphsink.patterns.extraction import ExtractedEntity, ExtractionError, extract_relationship
from graphsink.strategies.base import BatchingHandler, require_document
from graphsink.strategies.node_pattern import DELETE, MERGE

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings


def _node(variable: str, pattern: NodePattern) -> str:
    return f"({variable}{labels_fragment(pattern.labels)}{property_map(pattern.key_names, f'event.{variable}.keys')})"


def _set_clauses(variable: str, source: str, *, merge_properties: bool) -> list[str]:
    if merge_properties:
        return [f"SET {variable} += {source}.properties"]
    return [f"SET {variable} = {source}.properties", f"SET {variable} += {source}.keys"]


def relationship_query_text(
    pattern: RelationshipPattern,
    *,
    node_merge_properties: bool,
    relationship_merge_properties: bool,
) -> str:
    """Batched upsert/delete statement for one compiled relationship pattern."""
    rel = f"[r:{quote(pattern.rel_type)}{property_map(pattern.key_names, 'event.keys')}]"

    merge_lines = [f"MERGE {_node('source', pattern.start)}"]
    if pattern.start.properties:
        merge_lines += _set_clauses("source", "event.source", merge_properties=node_merge_properties)
    merge_lines.append(f"MERGE {_node('target', pattern.end)}")
    if pattern.end.properties:
        merge_lines += _set_clauses("target", "event.target", merge_properties=node_merge_properties)
    merge_lines.append(f"MERGE (source)-{rel}->(target)")
    merge_lines += _set_clauses("r", "event", merge_properties=relationship_merge_properties)

    delete_lines = [
        f"MATCH {_node('source', pattern.start)}-{rel}->{_node('target', pattern.end)}",
        "DELETE r",
    ]

    def subquery(op: str, lines: list[str]) -> str:
        body = "\n".join(f"  {line}" for line in lines)
        return f"CALL {{\n  WITH event\n  WITH event WHERE event.op = '{op}'\n{body}\n}}"

    return "UNWIND $events AS event\n" + subquery(MERGE, merge_lines) + "\n" + subquery(DELETE, delete_lines)


def _entity(entity: ExtractedEntity) -> dict[str, Any]:
    return {"keys": entity.keys, "properties": entity.properties}


class RelationshipPatternHandler(BatchingHandler[dict[str, Any]]):
    """Merges (or deletes) one relationship per message."""

    strategy_kind = SinkStrategy.RELATIONSHIP_PATTERN

    def __init__(
        self,
        topic: str,
        pattern: str | RelationshipPattern,
        *,
        node_merge_properties: bool = False,
        relationship_merge_properties: bool = False,
        batch_size: int = 1000,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(topic, batch_size=batch_size, error_policy=error_policy, error_reporter=error_reporter)
        self.pattern = compile_relationship_pattern(pattern) if isinstance(pattern, str) else pattern
        self.query_text = relationship_query_text(
            self.pattern,
            node_merge_properties=node_merge_properties,
            relationship_merge_properties=relationship_merge_properties,
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
            settings.strategies.relationship_pattern[topic],
            node_merge_properties=settings.patterns.node_merge_properties,
            relationship_merge_properties=settings.patterns.relationship_merge_properties,
            batch_size=settings.batch.size,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _convert(self, message: SinkMessage) -> dict[str, Any]:
        value = None if message.value is None else require_document(message)
        try:
            extracted = extract_relationship(self.pattern, message.key, value)
        except ExtractionError as e:
            raise MessageHandlingError(message, str(e)) from e
        if value is None:
            return {
                "op": DELETE,
                "source": {"keys": extracted.start.keys, "properties": {}},
                "target": {"keys": extracted.end.keys, "properties": {}},
                "keys": extracted.relationship.keys,
                "properties": {},
            }
        return {
            "op": MERGE,
            "source": _entity(extracted.start),
            "target": _entity(extracted.end),
            "keys": extracted.relationship.keys,
            "properties": extracted.relationship.properties,
        }

    def _build_group(self, chunk: list[dict[str, Any]]) -> TransactionGroup:
        return [ChangeQuery(tx_id=None, seq=None, query=Query(self.query_text, {"events": chunk}))]
