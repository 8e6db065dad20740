"""Batch processing: planning per topic and ordered group execution."""

from graphsink.engine.processor import SinkProcessor, TopicPlan
from graphsink.engine.task import PutSummary, SinkTask, TransactionExecutor

__all__ = [
    "PutSummary",
    "SinkProcessor",
    "SinkTask",
    "TopicPlan",
    "TransactionExecutor",
]
