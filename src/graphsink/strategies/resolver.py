# src/graphsink/strategies/resolver.py
"""Strategy resolution: exactly one handler per declared topic, or fail fast.

Resolution runs once at startup. Checks, in order:

1. No topic is configured under more than one strategy (all offenders are
   reported together).
2. The declared topics equal the strategy-configured topics.
3. Each topic takes the first strategy that claims it, in priority order:
   cypher, node pattern, relationship pattern, CDC source id, CDC schema,
   CUD.

Pattern strings are compiled while handlers are built, so a malformed
pattern also fails here rather than on the first message.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from graphsink.contracts.enums import SinkStrategy
from graphsink.contracts.errors import CrossDefinedTopicsError, TopicMismatchError, UnassignedTopicError
from graphsink.contracts.reporting import CollectingErrorReporter, ErrorReporter
from graphsink.core.config import GraphSinkSettings
from graphsink.core.logging import get_logger
from graphsink.strategies.base import SinkStrategyHandler
from graphsink.strategies.registry import HandlerRegistry

logger = get_logger(__name__)


class StrategyAssignments(Mapping[str, SinkStrategyHandler]):
    """Read-only topic -> handler mapping built by the resolver.

    ``error_reporter`` is the reporter every handler was built with, so a
    caller can collect the messages skipped while handling a batch.
    """

    def __init__(
        self,
        handlers: Mapping[str, SinkStrategyHandler],
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self._handlers = dict(handlers)
        self.error_reporter = error_reporter

    def __getitem__(self, topic: str) -> SinkStrategyHandler:
        return self._handlers[topic]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def handler_for(self, topic: str) -> SinkStrategyHandler:
        """Return the handler for a topic.

        Raises:
            UnassignedTopicError: If the topic was never assigned
        """
        try:
            return self._handlers[topic]
        except KeyError:
            raise UnassignedTopicError(topic) from None

    def strategies(self) -> set[SinkStrategy]:
        """Distinct strategy kinds in use."""
        return {handler.strategy() for handler in self._handlers.values()}

    def __repr__(self) -> str:
        pairs = ", ".join(f"{topic}={handler.strategy()}" for topic, handler in self._handlers.items())
        return f"StrategyAssignments({pairs})"


class StrategyResolver:
    """Assigns one strategy handler to every declared topic.

    Usage:
        resolver = StrategyResolver(settings)
        assignments = resolver.resolve()
        handler = assignments.handler_for("people")
    """

    def __init__(
        self,
        settings: GraphSinkSettings,
        registry: HandlerRegistry | None = None,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self.settings = settings
        if registry is None:
            registry = HandlerRegistry()
            registry.register_builtin_handlers()
        self.registry = registry
        # One reporter shared by all topics
        self.error_reporter: ErrorReporter = error_reporter if error_reporter is not None else CollectingErrorReporter()

    def validate(self) -> None:
        """Check the topic configuration without building handlers.

        Raises:
            CrossDefinedTopicsError: If topics are configured under several strategies
            TopicMismatchError: If declared and configured topics differ
        """
        seen: set[str] = set()
        cross_defined: set[str] = set()
        for _, topics in self.settings.strategies.topic_sources():
            cross_defined |= seen & topics
            seen |= topics
        if cross_defined:
            raise CrossDefinedTopicsError(cross_defined)

        declared = set(self.settings.topics)
        if declared != seen:
            raise TopicMismatchError(declared, seen)

    def topic_strategy(self, topic: str) -> SinkStrategy:
        """Return the first strategy claiming the topic, in priority order.

        Raises:
            UnassignedTopicError: If no strategy claims the topic
        """
        for kind, topics in self.settings.strategies.topic_sources():
            if topic in topics:
                return kind
        raise UnassignedTopicError(topic)

    def configured_strategies(self) -> set[SinkStrategy]:
        """Distinct strategy kinds assigned to the declared topics."""
        return {self.topic_strategy(topic) for topic in self.settings.topics}

    def resolve(self) -> StrategyAssignments:
        """Validate the configuration and build one handler per declared topic.

        Raises:
            SinkConfigurationError: On any configuration problem, including bad patterns
        """
        self.validate()
        handlers: dict[str, SinkStrategyHandler] = {}
        for topic in self.settings.topics:
            kind = self.topic_strategy(topic)
            handler_cls = self.registry.get_handler(kind)
            handlers[topic] = handler_cls.from_settings(topic, self.settings, error_reporter=self.error_reporter)
            logger.info("Resolved sink strategy", topic=topic, strategy=kind.value)
        return StrategyAssignments(handlers, error_reporter=self.error_reporter)


def create_handlers(
    settings: GraphSinkSettings,
    *,
    registry: HandlerRegistry | None = None,
    error_reporter: ErrorReporter | None = None,
) -> StrategyAssignments:
    """Resolve settings into topic -> handler assignments."""
    return StrategyResolver(settings, registry=registry, error_reporter=error_reporter).resolve()


def configured_strategies(settings: GraphSinkSettings) -> set[SinkStrategy]:
    """Distinct strategy kinds a validated configuration uses.

    Raises:
        SinkConfigurationError: If the configuration does not validate
    """
    resolver = StrategyResolver(settings)
    resolver.validate()
    return resolver.configured_strategies()
