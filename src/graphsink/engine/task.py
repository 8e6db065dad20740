# src/graphsink/engine/task.py
"""SinkTask - plans a batch and applies it through a TransactionExecutor.

The executor is the seam to the graph driver: it receives one transaction
group at a time and must apply it atomically. Groups are executed strictly
in emission order; the first failure stops the batch.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from graphsink.contracts.errors import TransactionGroupError
from graphsink.contracts.message import SinkRecord
from graphsink.contracts.query import ChangeQuery
from graphsink.contracts.reporting import RejectedMessage
from graphsink.core.logging import get_logger
from graphsink.engine.processor import SinkProcessor

logger = get_logger(__name__)


@runtime_checkable
class TransactionExecutor(Protocol):
    """Applies one transaction group atomically.

    Implementations run every query of the group, in order, inside a single
    database transaction and raise if the transaction does not commit.
    """

    def execute(self, group: Sequence[ChangeQuery]) -> None:
        """Apply the group or raise."""
        ...


@dataclass(frozen=True)
class PutSummary:
    """Outcome of one successful put().

    ``rejected`` holds the messages skipped while planning this batch.
    """

    groups: int = 0
    queries: int = 0
    rejected: tuple[RejectedMessage, ...] = ()


class SinkTask:
    """Plans and executes delivered batches.

    Example:
        task = SinkTask(SinkProcessor(create_handlers(settings)), executor)
        summary = task.put(records)
    """

    def __init__(self, processor: SinkProcessor, executor: TransactionExecutor) -> None:
        self._processor = processor
        self._executor = executor

    def put(self, records: Iterable[SinkRecord]) -> PutSummary:
        """Plan the batch and execute every group in order.

        Planning completes before the first group executes, so a handling
        error leaves the database untouched. Rejections collected while
        planning are drained even when planning raises, so they never carry
        over into the next put.

        Raises:
            MessageHandlingError: From planning under the fail policy
            TransactionGroupError: When the executor fails a group; earlier groups stay applied
        """
        try:
            plans = self._processor.plan(records)
        finally:
            rejected = self._processor.drain_rejections()
        groups = 0
        queries = 0
        for plan in plans:
            for index, group in enumerate(plan.groups):
                try:
                    self._executor.execute(group)
                except Exception as e:
                    logger.error(
                        "Transaction group failed",
                        topic=plan.topic,
                        group_index=index,
                        group_size=len(group),
                        error=str(e),
                    )
                    raise TransactionGroupError(plan.topic, index, e) from e
                groups += 1
                queries += len(group)
        return PutSummary(groups=groups, queries=queries, rejected=rejected)
