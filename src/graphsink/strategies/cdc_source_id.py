# src/graphsink/strategies/cdc_source_id.py
"""CDC strategy correlating entities through their source element id.

Every replicated node carries a synthetic label (default ``SourceEvent``)
and a property (default ``sourceId``) holding the element id it had at the
source. Relationships carry the same property. Nothing about the source
schema needs to be known up front.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from graphsink.contracts.cdc import ChangeEvent, NodeEvent, RelationshipEvent
from graphsink.contracts.enums import CdcOperation, ErrorPolicy, SinkStrategy
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import Query
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.cypher import labels_fragment, quote
from graphsink.strategies.base import ChangeEventHandler

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings


class CdcSourceIdHandler(ChangeEventHandler):
    """Replays change events keyed on the source element id."""

    strategy_kind = SinkStrategy.CDC_SOURCE_ID

    def __init__(
        self,
        topic: str,
        *,
        label_name: str = "SourceEvent",
        property_name: str = "sourceId",
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
        self.label_name = label_name
        self.property_name = property_name

    @classmethod
    def from_settings(
        cls,
        topic: str,
        settings: GraphSinkSettings,
        *,
        error_reporter: ErrorReporter | None = None,
    ) -> Self:
        source_id = settings.strategies.cdc_source_id
        return cls(
            topic,
            label_name=source_id.label_name,
            property_name=source_id.property_name,
            enforce_sequence_order=settings.cdc.enforce_sequence_order,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _match(self, variable: str, parameter: str) -> str:
        return f"({variable}:{quote(self.label_name)} {{{quote(self.property_name)}: ${parameter}}})"

    def _convert_event(self, message: SinkMessage, event: ChangeEvent) -> Query:
        if isinstance(event.event, NodeEvent):
            return self._node_query(event.event)
        return self._relationship_query(event.event)

    def _node_query(self, event: NodeEvent) -> Query:
        node = self._match("n", "sourceId")
        if event.operation == CdcOperation.DELETE:
            return Query(f"MATCH {node}\nDETACH DELETE n", {"sourceId": event.element_id})

        lines = [f"MERGE {node}"]
        if event.operation == CdcOperation.CREATE:
            assert event.state.after is not None
            properties = dict(event.state.after.properties)
            added = [label for label in event.state.after.labels if label != self.label_name]
            removed: list[str] = []
            lines += ["SET n = $properties", f"SET n.{quote(self.property_name)} = $sourceId"]
        else:
            properties = event.state.properties_delta()
            properties.pop(self.property_name, None)
            added = [label for label in event.state.labels_added() if label != self.label_name]
            removed = [label for label in event.state.labels_removed() if label != self.label_name]
            lines.append("SET n += $properties")
        if added:
            lines.append(f"SET n{labels_fragment(added)}")
        if removed:
            lines.append(f"REMOVE n{labels_fragment(removed)}")
        return Query("\n".join(lines), {"sourceId": event.element_id, "properties": properties})

    def _relationship_query(self, event: RelationshipEvent) -> Query:
        rel = f"[r:{quote(event.type)} {{{quote(self.property_name)}: $sourceId}}]"
        if event.operation == CdcOperation.DELETE:
            return Query(f"MATCH ()-{rel}->()\nDELETE r", {"sourceId": event.element_id})

        lines = [
            f"MERGE {self._match('source', 'startSourceId')}",
            f"MERGE {self._match('target', 'endSourceId')}",
            f"MERGE (source)-{rel}->(target)",
        ]
        if event.operation == CdcOperation.CREATE:
            assert event.state.after is not None
            properties = dict(event.state.after.properties)
            lines += ["SET r = $properties", f"SET r.{quote(self.property_name)} = $sourceId"]
        else:
            properties = event.state.properties_delta()
            properties.pop(self.property_name, None)
            lines.append("SET r += $properties")
        return Query(
            "\n".join(lines),
            {
                "sourceId": event.element_id,
                "startSourceId": event.start.element_id,
                "endSourceId": event.end.element_id,
                "properties": properties,
            },
        )
