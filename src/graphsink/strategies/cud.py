# src/graphsink/strategies/cud.py
"""CUD strategy: messages are explicit create/update/delete instructions.

The descriptor is trusted as written. One query is produced per message and
up to batch_size queries share a transaction group.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from pydantic import ValidationError

from graphsink.contracts.cud import CudNode, CudNodeReference, CudRelationship, parse_cud_descriptor
from graphsink.contracts.enums import CudLookup, CudOperation, SinkStrategy
from graphsink.contracts.errors import MessageHandlingError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.cypher import labels_fragment, property_map, quote
from graphsink.strategies.base import BatchingHandler, describe_validation_error, require_document

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings


def node_query(node: CudNode) -> Query:
    """Build the statement for a node descriptor."""
    labels = labels_fragment(node.labels)
    parameters: dict[str, Any] = {"keys": node.ids, "properties": node.properties}
    if node.op == CudOperation.CREATE:
        text = f"CREATE (n{labels})\nSET n = $properties"
        if node.ids:
            text += "\nSET n += $keys"
        return Query(text, parameters)

    identified = f"(n{labels}{property_map(node.ids, '$keys')})"
    if node.op == CudOperation.MERGE:
        return Query(f"MERGE {identified}\nSET n += $properties", parameters)
    if node.op == CudOperation.UPDATE:
        return Query(f"MATCH {identified}\nSET n += $properties", parameters)
    return Query(f"MATCH {identified}\n{'DETACH DELETE' if node.detach else 'DELETE'} n", {"keys": node.ids})


def _endpoint(variable: str, ref: CudNodeReference) -> str:
    clause = "MERGE" if ref.op == CudLookup.MERGE else "MATCH"
    return f"{clause} ({variable}{labels_fragment(ref.labels)}{property_map(ref.ids, f'${variable}')})"


def relationship_query(relationship: CudRelationship) -> Query:
    """Build the statement for a relationship descriptor."""
    parameters: dict[str, Any] = {
        "source": relationship.from_.ids,
        "target": relationship.to.ids,
        "keys": relationship.ids,
        "properties": relationship.properties,
    }
    lines = [_endpoint("source", relationship.from_), _endpoint("target", relationship.to)]
    rel_type = quote(relationship.rel_type)
    identified = f"(source)-[r:{rel_type}{property_map(relationship.ids, '$keys')}]->(target)"

    if relationship.op == CudOperation.CREATE:
        lines += [f"CREATE (source)-[r:{rel_type}]->(target)", "SET r = $properties"]
        if relationship.ids:
            lines.append("SET r += $keys")
    elif relationship.op == CudOperation.MERGE:
        lines += [f"MERGE {identified}", "SET r += $properties"]
    elif relationship.op == CudOperation.UPDATE:
        lines += [f"MATCH {identified}", "SET r += $properties"]
    else:
        lines += [f"MATCH {identified}", "DELETE r"]
    return Query("\n".join(lines), parameters)


class CudHandler(BatchingHandler[Query]):
    """Executes one operation descriptor per message."""

    strategy_kind = SinkStrategy.CUD

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
            batch_size=settings.batch.size,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _convert(self, message: SinkMessage) -> Query:
        document = require_document(message)
        try:
            descriptor = parse_cud_descriptor(document)
        except ValidationError as e:
            raise MessageHandlingError(message, f"invalid operation descriptor: {describe_validation_error(e)}") from e
        if isinstance(descriptor, CudNode):
            return node_query(descriptor)
        return relationship_query(descriptor)

    def _build_group(self, chunk: list[Query]) -> TransactionGroup:
        return [ChangeQuery(tx_id=None, seq=None, query=query) for query in chunk]
