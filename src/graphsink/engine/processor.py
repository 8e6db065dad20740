# src/graphsink/engine/processor.py
"""SinkProcessor - routes a delivered batch to the per-topic handlers.

Records are split by topic, keeping first-seen topic order and per-topic
delivery order, then each topic's messages are handed to its handler in a
single call.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from graphsink.contracts.errors import UnassignedTopicError
from graphsink.contracts.message import SinkMessage, SinkRecord
from graphsink.contracts.query import TransactionGroup
from graphsink.contracts.reporting import CollectingErrorReporter, ErrorReporter, RejectedMessage
from graphsink.core.logging import get_logger
from graphsink.strategies.base import SinkStrategyHandler
from graphsink.strategies.resolver import StrategyAssignments

logger = get_logger(__name__)


@dataclass(frozen=True)
class TopicPlan:
    """Transaction groups planned for one topic of a batch."""

    topic: str
    groups: list[TransactionGroup]

    @property
    def query_count(self) -> int:
        return sum(len(group) for group in self.groups)


class SinkProcessor:
    """Plans the writes for a batch of records.

    Example:
        processor = SinkProcessor(create_handlers(settings))
        for plan in processor.plan(records):
            for group in plan.groups:
                executor.execute(group)
    """

    def __init__(
        self,
        assignments: Mapping[str, SinkStrategyHandler],
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self._assignments = assignments
        if error_reporter is None and isinstance(assignments, StrategyAssignments):
            error_reporter = assignments.error_reporter
        self.error_reporter = error_reporter

    def drain_rejections(self) -> tuple[RejectedMessage, ...]:
        """Take the rejections collected since the last drain.

        Only a CollectingErrorReporter holds rejections; any other reporter
        has already received them, so nothing is returned.
        """
        if isinstance(self.error_reporter, CollectingErrorReporter):
            return tuple(self.error_reporter.drain())
        return ()

    def plan(self, records: Iterable[SinkRecord]) -> list[TopicPlan]:
        """Convert a batch of records into per-topic transaction groups.

        Raises:
            UnassignedTopicError: If a record belongs to a topic with no handler
            MessageHandlingError: Propagated from a handler under the fail policy
        """
        by_topic: dict[str, list[SinkMessage]] = {}
        for record in records:
            if record.topic not in self._assignments:
                raise UnassignedTopicError(record.topic)
            by_topic.setdefault(record.topic, []).append(SinkMessage(record))

        plans: list[TopicPlan] = []
        for topic, messages in by_topic.items():
            handler = self._assignments[topic]
            plan = TopicPlan(topic=topic, groups=handler.handle(messages))
            logger.debug(
                "Planned topic batch",
                topic=topic,
                strategy=handler.strategy().value,
                messages=len(messages),
                groups=len(plan.groups),
                queries=plan.query_count,
            )
            plans.append(plan)
        return plans
