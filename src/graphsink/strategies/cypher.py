# src/graphsink/strategies/cypher.py
"""Cypher template strategy.

The user statement runs once per message inside a batched wrapper:

    UNWIND $events AS message
    WITH message.value AS event, message.timestamp AS __timestamp, ...
    CALL { WITH * <statement> }

so a template such as ``MERGE (p:Person {id: event.id})`` sees the message
value as ``event`` plus whichever bindings are enabled.

The header binding is a name -> value map. When a header name repeats, the
last value wins; the full ordered headers stay available on the message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from graphsink.contracts.enums import ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import SinkConfigurationError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import ErrorReporter
from graphsink.core.config import CypherBindingSettings
from graphsink.strategies.base import BatchingHandler

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings


def _binding_clause(bindings: CypherBindingSettings) -> str:
    parts: list[str] = []
    if bindings.bind_value_as_event:
        parts.append("message.value AS event")
    for field, name in (
        ("timestamp", bindings.bind_timestamp_as),
        ("header", bindings.bind_header_as),
        ("key", bindings.bind_key_as),
        ("value", bindings.bind_value_as),
    ):
        if name is not None:
            parts.append(f"message.{field} AS {name}")
    return ", ".join(parts)


class CypherHandler(BatchingHandler[dict[str, Any]]):
    """Runs a user-supplied Cypher statement for every message."""

    strategy_kind = SinkStrategy.CYPHER

    def __init__(
        self,
        topic: str,
        statement: str,
        *,
        bindings: CypherBindingSettings | None = None,
        batch_size: int = 1000,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(topic, batch_size=batch_size, error_policy=error_policy, error_reporter=error_reporter)
        statement = statement.strip()
        if not statement:
            raise SinkConfigurationError(f"Cypher statement for topic {topic} is empty")
        self.statement = statement
        self.bindings = bindings if bindings is not None else CypherBindingSettings()
        self.query_text = f"UNWIND $events AS message\nWITH {_binding_clause(self.bindings)}\nCALL {{ WITH * {statement} }}"

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
            settings.strategies.cypher[topic],
            bindings=settings.cypher_bindings,
            batch_size=settings.batch.size,
            error_policy=settings.errors.policy,
            error_reporter=error_reporter,
        )

    def _convert(self, message: SinkMessage) -> dict[str, Any]:
        return {
            "timestamp": message.timestamp,
            "header": message.header_map(),
            "key": message.key,
            "value": message.value,
        }

    def _build_group(self, chunk: list[dict[str, Any]]) -> TransactionGroup:
        return [ChangeQuery(tx_id=None, seq=None, query=Query(self.query_text, {"events": chunk}))]
