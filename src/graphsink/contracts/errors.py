"""Exception taxonomy for configuration, message handling and execution.

Configuration errors surface at startup and are always fatal. Message
handling errors are subject to the deployment's error policy, except for
sequence-order violations which always propagate. Invalid-state errors are
programming-contract violations and are never swallowed.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graphsink.contracts.message import SinkMessage


def _format_names(names: Iterable[str]) -> str:
    return "[" + ", ".join(sorted(names)) + "]"


# =============================================================================
# Configuration Errors (startup)
# =============================================================================


class SinkConfigurationError(Exception):
    """Raised when the sink configuration cannot produce a valid strategy assignment."""


class UnassignedTopicError(SinkConfigurationError):
    """Raised when a topic matches none of the strategy configuration sources."""

    def __init__(self, topic: str) -> None:
        self.topic = topic
        super().__init__(f"Topic {topic} is not assigned a sink strategy")


class CrossDefinedTopicsError(SinkConfigurationError):
    """Raised when topics are configured under more than one strategy."""

    def __init__(self, topics: Iterable[str]) -> None:
        self.topics = sorted(topics)
        super().__init__(f"The following topics are cross defined: {_format_names(self.topics)}")


class TopicMismatchError(SinkConfigurationError):
    """Raised when declared topics and strategy-configured topics differ."""

    def __init__(self, declared: Iterable[str], configured: Iterable[str]) -> None:
        self.declared = sorted(declared)
        self.configured = sorted(configured)
        super().__init__(f"Topic mismatch: declared={_format_names(self.declared)}, configured={_format_names(self.configured)}")


class PatternSyntaxError(SinkConfigurationError):
    """Raised when a node or relationship pattern string cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid pattern {pattern!r}: {reason}")


# =============================================================================
# Message Handling Errors (per batch)
# =============================================================================


class MessageHandlingError(Exception):
    """Raised when a single message cannot be converted into queries.

    Always identifies the offending message by topic, partition and offset.

    Attributes:
        sink_message: The message that failed
        reason: Human-readable description of the failure
    """

    def __init__(self, sink_message: SinkMessage, reason: str) -> None:
        self.sink_message = sink_message
        self.reason = reason
        super().__init__(
            f"Unable to handle message (topic={sink_message.topic}, partition={sink_message.partition}, "
            f"offset={sink_message.offset}): {reason}"
        )


class SequenceOrderError(MessageHandlingError):
    """Raised when sequence numbers within one source transaction go backwards.

    Delivery order is trusted, never repaired. A violation means the
    transport broke its ordering guarantee, so it is raised regardless of
    the error policy.
    """


class InvalidStateError(Exception):
    """Raised when an accessor is used outside its contract.

    Example: asking a non-change message for its transaction metadata.
    """


# =============================================================================
# Execution Errors (caller side)
# =============================================================================


class TransactionGroupError(Exception):
    """Raised when the executor fails to apply one transaction group.

    Groups before ``index`` were applied; this group and later ones were not.
    """

    def __init__(self, topic: str, index: int, cause: BaseException) -> None:
        self.topic = topic
        self.index = index
        self.cause = cause
        super().__init__(f"Transaction group {index} for topic {topic} failed: {cause}")
