"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core,
patterns, strategies or engine.

Import patterns:
    from graphsink.contracts import SinkMessage, ChangeQuery, SinkStrategy

    # Settings live in core, not here
    from graphsink.core.config import GraphSinkSettings
"""

from graphsink.contracts.enums import (
    CdcOperation,
    CudLookup,
    CudOperation,
    ErrorPolicy,
    SinkStrategy,
)
from graphsink.contracts.errors import (
    CrossDefinedTopicsError,
    InvalidStateError,
    MessageHandlingError,
    PatternSyntaxError,
    SequenceOrderError,
    SinkConfigurationError,
    TopicMismatchError,
    TransactionGroupError,
    UnassignedTopicError,
)
from graphsink.contracts.message import SinkMessage, SinkRecord, TransactionMetadata
from graphsink.contracts.query import ChangeQuery, Query, TransactionGroup
from graphsink.contracts.reporting import CollectingErrorReporter, ErrorReporter, RejectedMessage

__all__ = [
    "CdcOperation",
    "ChangeQuery",
    "CollectingErrorReporter",
    "CrossDefinedTopicsError",
    "CudLookup",
    "CudOperation",
    "ErrorPolicy",
    "ErrorReporter",
    "InvalidStateError",
    "MessageHandlingError",
    "PatternSyntaxError",
    "Query",
    "RejectedMessage",
    "SequenceOrderError",
    "SinkConfigurationError",
    "SinkMessage",
    "SinkRecord",
    "SinkStrategy",
    "TopicMismatchError",
    "TransactionGroup",
    "TransactionGroupError",
    "TransactionMetadata",
    "UnassignedTopicError",
]
