# tests/unit/strategies/test_resolver.py
"""Tests for per-topic strategy resolution."""

import pytest


def _settings(topics, **strategies):
    from graphsink.core.config import GraphSinkSettings

    return GraphSinkSettings(topics=topics, strategies=strategies)


ALL_SIX = {
    "cypher": {"t1": "MERGE (:A {id: event.id})"},
    "node_pattern": {"t2": "(:Person{!id})"},
    "relationship_pattern": {"t3": "(:A{!a})-[:R]->(:B{!b})"},
    "cdc_source_id": {"topics": ["t4"]},
    "cdc_schema": {"topics": ["t5"]},
    "cud": {"topics": ["t6"]},
}


class TestStrategyResolver:
    def test_every_topic_gets_exactly_one_handler(self) -> None:
        from graphsink.contracts import SinkStrategy
        from graphsink.strategies import StrategyResolver

        assignments = StrategyResolver(_settings(["t1", "t2", "t3", "t4", "t5", "t6"], **ALL_SIX)).resolve()

        assert {topic: handler.strategy() for topic, handler in assignments.items()} == {
            "t1": SinkStrategy.CYPHER,
            "t2": SinkStrategy.NODE_PATTERN,
            "t3": SinkStrategy.RELATIONSHIP_PATTERN,
            "t4": SinkStrategy.CDC_SOURCE_ID,
            "t5": SinkStrategy.CDC_SCHEMA,
            "t6": SinkStrategy.CUD,
        }
        assert assignments.strategies() == set(SinkStrategy)
        assert all(handler.topic == topic for topic, handler in assignments.items())

    def test_configured_strategies_is_the_distinct_set(self) -> None:
        from graphsink.contracts import SinkStrategy
        from graphsink.strategies import configured_strategies

        settings = _settings(["a", "b", "c"], cud={"topics": ["a", "b"]}, cdc_schema={"topics": ["c"]})
        assert configured_strategies(settings) == {SinkStrategy.CUD, SinkStrategy.CDC_SCHEMA}

    def test_cross_defined_topics_rejected(self) -> None:
        from graphsink.contracts import CrossDefinedTopicsError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["foo", "bar"], cypher={"foo": "RETURN 1"}, cud={"topics": ["foo", "bar"]})
        with pytest.raises(CrossDefinedTopicsError, match=r"The following topics are cross defined: \[foo\]"):
            StrategyResolver(settings).resolve()

    def test_cross_defined_lists_every_offender(self) -> None:
        from graphsink.contracts import CrossDefinedTopicsError
        from graphsink.strategies import StrategyResolver

        settings = _settings(
            ["b", "a"],
            node_pattern={"b": "(:B{!id})", "a": "(:A{!id})"},
            cdc_schema={"topics": ["a"]},
            cud={"topics": ["b"]},
        )
        with pytest.raises(CrossDefinedTopicsError) as exc_info:
            StrategyResolver(settings).resolve()
        assert exc_info.value.topics == ["a", "b"]

    def test_cross_definition_checked_before_mismatch(self) -> None:
        """A cross-defined topic is reported even when it was never declared."""
        from graphsink.contracts import CrossDefinedTopicsError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["a"], cud={"topics": ["a", "x"]}, cdc_schema={"topics": ["x"]})
        with pytest.raises(CrossDefinedTopicsError, match=r"\[x\]"):
            StrategyResolver(settings).resolve()

    def test_declared_topic_without_strategy(self) -> None:
        from graphsink.contracts import TopicMismatchError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["foo", "bar"], cud={"topics": ["foo"]})
        with pytest.raises(TopicMismatchError, match=r"Topic mismatch: declared=\[bar, foo\], configured=\[foo\]"):
            StrategyResolver(settings).resolve()

    def test_configured_topic_not_declared(self) -> None:
        from graphsink.contracts import TopicMismatchError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["foo"], cud={"topics": ["foo", "zzz"]})
        with pytest.raises(TopicMismatchError, match=r"configured=\[foo, zzz\]"):
            StrategyResolver(settings).resolve()

    def test_topic_strategy_unassigned(self) -> None:
        from graphsink.contracts import UnassignedTopicError
        from graphsink.strategies import StrategyResolver

        resolver = StrategyResolver(_settings(["foo"], cud={"topics": ["foo"]}))
        with pytest.raises(UnassignedTopicError, match="Topic bar is not assigned a sink strategy"):
            resolver.topic_strategy("bar")

    def test_bad_pattern_fails_resolution(self) -> None:
        from graphsink.contracts import PatternSyntaxError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["people"], node_pattern={"people": "(:Person{name})"})
        with pytest.raises(PatternSyntaxError):
            StrategyResolver(settings).resolve()

    def test_relationship_pattern_under_node_key_fails(self) -> None:
        from graphsink.contracts import PatternSyntaxError
        from graphsink.strategies import StrategyResolver

        settings = _settings(["people"], node_pattern={"people": "(:A{!a})-[:R]->(:B{!b})"})
        with pytest.raises(PatternSyntaxError, match="expected a node pattern"):
            StrategyResolver(settings).resolve()

    def test_handlers_share_the_resolver_reporter(self) -> None:
        from graphsink.strategies import StrategyResolver

        resolver = StrategyResolver(_settings(["t1", "t2", "t3", "t4", "t5", "t6"], **ALL_SIX))
        assignments = resolver.resolve()
        assert all(handler.error_reporter is resolver.error_reporter for handler in assignments.values())

    def test_resolution_is_logged(self, capsys: pytest.CaptureFixture[str]) -> None:
        import json

        from graphsink.core.logging import configure_logging
        from graphsink.strategies import create_handlers

        configure_logging(json_output=True)
        create_handlers(_settings(["foo"], cud={"topics": ["foo"]}))

        events = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line.strip()]
        assert {"event": "Resolved sink strategy", "topic": "foo", "strategy": "cud"}.items() <= events[-1].items()


class TestStrategyAssignments:
    def test_handler_for_unknown_topic(self) -> None:
        from graphsink.contracts import UnassignedTopicError
        from graphsink.strategies import create_handlers

        assignments = create_handlers(_settings(["foo"], cud={"topics": ["foo"]}))
        with pytest.raises(UnassignedTopicError):
            assignments.handler_for("bar")

    def test_is_read_only_mapping(self) -> None:
        from graphsink.strategies import create_handlers

        assignments = create_handlers(_settings(["foo"], cud={"topics": ["foo"]}))
        assert len(assignments) == 1
        assert list(assignments) == ["foo"]
        with pytest.raises(TypeError):
            assignments["bar"] = assignments["foo"]  # type: ignore[index]
