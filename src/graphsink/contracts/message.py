# src/graphsink/contracts/message.py
"""Incoming records and the read-only message view handed to strategies.

These types answer: "What arrived from the transport?"

SinkRecord is the raw shape the transport layer delivers. SinkMessage wraps
one record and derives change-event metadata from its value. Neither is ever
mutated after construction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from graphsink.contracts.errors import InvalidStateError


@dataclass(frozen=True)
class SinkRecord:
    """A single record as delivered by the transport for one topic-partition.

    Headers keep delivery order and may repeat a name.
    """

    topic: str
    partition: int
    offset: int
    timestamp: int | None = None
    key: Any = None
    value: Any = None
    headers: tuple[tuple[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SinkRecord:
        """Build a record from its JSON form.

        Headers may be given as a mapping or as a list of [name, value] pairs.
        """
        raw_headers = data.get("headers") or ()
        if isinstance(raw_headers, Mapping):
            headers = tuple((str(name), value) for name, value in raw_headers.items())
        else:
            headers = tuple((str(name), value) for name, value in raw_headers)
        return cls(
            topic=data["topic"],
            partition=int(data.get("partition", 0)),
            offset=int(data["offset"]),
            timestamp=data.get("timestamp"),
            key=data.get("key"),
            value=data.get("value"),
            headers=headers,
        )


class TransactionMetadata(NamedTuple):
    """Source transaction coordinates of a change event."""

    tx_id: int
    seq: int


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class SinkMessage:
    """Read-only view over a SinkRecord.

    A message is a change event when its value is a document carrying a
    transaction id (``txId``), an in-transaction sequence number (``seq``)
    and an ``event`` body. Only change events expose transaction metadata;
    asking a plain message for it is a contract violation.
    """

    record: SinkRecord

    @property
    def topic(self) -> str:
        return self.record.topic

    @property
    def partition(self) -> int:
        return self.record.partition

    @property
    def offset(self) -> int:
        return self.record.offset

    @property
    def timestamp(self) -> int | None:
        return self.record.timestamp

    @property
    def key(self) -> Any:
        return self.record.key

    @property
    def value(self) -> Any:
        return self.record.value

    @property
    def headers(self) -> tuple[tuple[str, Any], ...]:
        return self.record.headers

    def header_map(self) -> dict[str, Any]:
        """Headers as a name -> value mapping (last value wins for repeats)."""
        return dict(self.record.headers)

    @property
    def is_change_event(self) -> bool:
        value = self.record.value
        return (
            isinstance(value, Mapping)
            and _is_int(value.get("txId"))
            and _is_int(value.get("seq"))
            and isinstance(value.get("event"), Mapping)
        )

    def transaction_metadata(self) -> TransactionMetadata:
        """Return (tx_id, seq) for a change event.

        Raises:
            InvalidStateError: If the message is not a change event
        """
        if not self.is_change_event:
            raise InvalidStateError(f"{self} is not a change event")
        return TransactionMetadata(tx_id=self.record.value["txId"], seq=self.record.value["seq"])

    def __str__(self) -> str:
        return (
            f"SinkMessage{{topic={self.topic},partition={self.partition},"
            f"offset={self.offset},timestamp={self.timestamp}}}"
        )
