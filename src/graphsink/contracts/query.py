"""Query values produced by strategy handlers.

These types answer: "What should be written, and in which transaction?"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias


@dataclass(frozen=True)
class Query:
    """A parameterized Cypher statement."""

    text: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChangeQuery:
    """A query tagged with the source transaction it came from.

    tx_id and seq are set only for queries derived from change events. They
    exist for diagnostics; execution order is emission order.
    """

    tx_id: int | None
    seq: int | None
    query: Query


# Applied atomically, in order
TransactionGroup: TypeAlias = list[ChangeQuery]
