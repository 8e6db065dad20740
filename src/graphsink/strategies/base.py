# src/graphsink/strategies/base.py
"""Base classes for sink strategy handlers.

A handler turns the messages of ONE topic into an ordered list of
transaction groups. Subclass one of the two grouping bases rather than
SinkStrategyHandler directly:

    BatchingHandler      -- size-based chunking (cypher, patterns, CUD)
    ChangeEventHandler   -- one group per contiguous source transaction (CDC)

Contract for every handler:
    - handle() performs no I/O and keeps no state between calls; calling it
      twice with the same messages yields equal groups.
    - Concatenating the returned groups preserves delivery order.
    - A message that cannot be converted raises MessageHandlingError under
      ErrorPolicy.FAIL, or is reported and left out under ErrorPolicy.SKIP.
    - At most one handle() call per topic runs at a time (caller's duty).

Example:
    class EchoHandler(BatchingHandler[Query]):
        strategy_kind = SinkStrategy.CYPHER

        def _convert(self, message: SinkMessage) -> Query:
            return Query("RETURN $v", {"v": message.value})

        def _build_group(self, chunk: list[Query]) -> TransactionGroup:
            return [ChangeQuery(None, None, query) for query in chunk]
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Self, TypeVar

from pydantic import ValidationError

from graphsink.contracts.cdc import ChangeEvent, parse_change_event
from graphsink.contracts.enums import ErrorPolicy, SinkStrategy
from graphsink.contracts.errors import MessageHandlingError, SequenceOrderError
from graphsink.contracts.message import SinkMessage
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import CollectingErrorReporter, ErrorReporter, RejectedMessage
from graphsink.core.logging import get_logger
from graphsink.strategies.grouping import chunked, first_sequence_violation, group_by_transaction

if TYPE_CHECKING:
    from graphsink.core.config import GraphSinkSettings

logger = get_logger(__name__)

T = TypeVar("T")


def describe_validation_error(error: ValidationError) -> str:
    """One-line summary of a pydantic ValidationError."""
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


def require_document(message: SinkMessage, what: str = "value") -> Mapping[str, Any]:
    """Return the message value as a mapping.

    Raises:
        MessageHandlingError: If the value is not a document
    """
    value = message.value
    if not isinstance(value, Mapping):
        raise MessageHandlingError(message, f"expected a document {what}, got {type(value).__name__}")
    return value


class SinkStrategyHandler(ABC):
    """Converts the messages of one topic into transaction groups.

    Attributes:
        strategy_kind: The strategy this handler implements
        topic: The topic this handler was built for
    """

    strategy_kind: ClassVar[SinkStrategy]

    def __init__(
        self,
        topic: str,
        *,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self.topic = topic
        self.error_policy = error_policy
        self.error_reporter: ErrorReporter = error_reporter if error_reporter is not None else CollectingErrorReporter()

    @classmethod
    @abstractmethod
    def from_settings(
        cls,
        topic: str,
        settings: GraphSinkSettings,
        *,
        error_reporter: ErrorReporter | None = None,
    ) -> Self:
        """Build the handler for one topic from validated settings.

        Raises:
            SinkConfigurationError: If the topic's configuration is unusable
        """
        ...

    def strategy(self) -> SinkStrategy:
        return self.strategy_kind

    @abstractmethod
    def handle(self, messages: Sequence[SinkMessage]) -> list[TransactionGroup]:
        """Convert messages into ordered transaction groups.

        Raises:
            MessageHandlingError: Under ErrorPolicy.FAIL, for the first bad message
            SequenceOrderError: When sequence order is enforced and violated
        """
        ...

    def _reject(self, error: MessageHandlingError) -> None:
        """Apply the error policy to a message that could not be converted."""
        if self.error_policy == ErrorPolicy.FAIL:
            raise error
        logger.warning(
            "Skipping message",
            strategy=self.strategy_kind.value,
            topic=error.sink_message.topic,
            partition=error.sink_message.partition,
            offset=error.sink_message.offset,
            reason=error.reason,
        )
        self.error_reporter.report(RejectedMessage(sink_message=error.sink_message, error=error))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(topic={self.topic!r})"


class BatchingHandler(SinkStrategyHandler, Generic[T]):
    """Handler that chunks converted messages into groups of at most batch_size.

    Rejected messages are removed before chunking, so group sizes count
    only messages that made it into the plan.
    """

    def __init__(
        self,
        topic: str,
        *,
        batch_size: int = 1000,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(topic, error_policy=error_policy, error_reporter=error_reporter)
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    @abstractmethod
    def _convert(self, message: SinkMessage) -> T:
        """Convert one message.

        Raises:
            MessageHandlingError: If the message cannot be converted
        """
        ...

    @abstractmethod
    def _build_group(self, chunk: list[T]) -> TransactionGroup:
        """Build the queries for one chunk of converted messages."""
        ...

    def handle(self, messages: Sequence[SinkMessage]) -> list[TransactionGroup]:
        converted: list[T] = []
        for message in messages:
            try:
                converted.append(self._convert(message))
            except MessageHandlingError as e:
                self._reject(e)
        return [self._build_group(chunk) for chunk in chunked(converted, self.batch_size)]


def _tx_id(message: SinkMessage) -> int:
    return message.transaction_metadata().tx_id


def _seq(message: SinkMessage) -> int:
    return message.transaction_metadata().seq


class ChangeEventHandler(SinkStrategyHandler):
    """Handler for change events: one group per contiguous source transaction.

    Messages that are not change events are rejected before grouping, so
    they never split a transaction run. Sequence order is checked on the
    remaining run and a violation is raised whatever the error policy.
    """

    def __init__(
        self,
        topic: str,
        *,
        enforce_sequence_order: bool = True,
        error_policy: ErrorPolicy = ErrorPolicy.FAIL,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        super().__init__(topic, error_policy=error_policy, error_reporter=error_reporter)
        self.enforce_sequence_order = enforce_sequence_order

    @abstractmethod
    def _convert_event(self, message: SinkMessage, event: ChangeEvent) -> Query:
        """Build the query for one validated change event.

        Raises:
            MessageHandlingError: If the event cannot be applied by this strategy
        """
        ...

    def handle(self, messages: Sequence[SinkMessage]) -> list[TransactionGroup]:
        change_events: list[SinkMessage] = []
        for message in messages:
            if message.is_change_event:
                change_events.append(message)
            else:
                self._reject(MessageHandlingError(message, "not a change event (requires txId, seq and event)"))

        groups: list[TransactionGroup] = []
        for run in group_by_transaction(change_events, _tx_id):
            if self.enforce_sequence_order:
                self._check_sequence(run)
            group: TransactionGroup = []
            for message in run:
                try:
                    group.append(self._change_query(message))
                except MessageHandlingError as e:
                    self._reject(e)
            if group:
                groups.append(group)
        return groups

    def _check_sequence(self, run: list[SinkMessage]) -> None:
        violation = first_sequence_violation(run, _seq)
        if violation is None:
            return
        previous, offending = violation
        raise SequenceOrderError(
            offending,
            f"seq {_seq(offending)} does not follow seq {_seq(previous)} in transaction {_tx_id(offending)}",
        )

    def _change_query(self, message: SinkMessage) -> ChangeQuery:
        try:
            event = parse_change_event(message.value)
        except ValidationError as e:
            raise MessageHandlingError(message, f"malformed change event: {describe_validation_error(e)}") from e
        return ChangeQuery(tx_id=event.tx_id, seq=event.seq, query=self._convert_event(message, event))
