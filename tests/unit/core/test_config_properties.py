"""Tests for building settings from flat connector properties."""

import pytest


class TestSettingsFromProperties:
    def test_per_topic_strategy_keys(self) -> None:
        from graphsink.core.config import settings_from_properties

        settings = settings_from_properties(
            {
                "topics": "a,b,c,d,e,f",
                "neo4j.cypher.topic.a": "MERGE (:A {id: event.id})",
                "neo4j.pattern.node.topic.b": "(:B{!id})",
                "neo4j.pattern.relationship.topic.c": "(:X{!x})-[:R]->(:Y{!y})",
                "neo4j.cdc.source-id.topics": "d",
                "neo4j.cdc.schema.topics": "e",
                "neo4j.cud.topics": "f",
            }
        )
        strategies = settings.strategies
        assert strategies.cypher == {"a": "MERGE (:A {id: event.id})"}
        assert strategies.node_pattern == {"b": "(:B{!id})"}
        assert strategies.relationship_pattern == {"c": "(:X{!x})-[:R]->(:Y{!y})"}
        assert strategies.cdc_source_id.topics == ["d"]
        assert strategies.cdc_schema.topics == ["e"]
        assert strategies.cud.topics == ["f"]

    def test_tuning_keys(self) -> None:
        from graphsink.contracts import ErrorPolicy
        from graphsink.core.config import settings_from_properties

        settings = settings_from_properties(
            {
                "topics": "a",
                "neo4j.cud.topics": "a",
                "neo4j.batch-size": "10",
                "neo4j.batch-timeout": "2500",
                "neo4j.errors.policy": "SKIP",
                "neo4j.cdc.enforce-sequence-order": "false",
                "neo4j.pattern.node.merge-properties": "true",
                "neo4j.cdc.source-id.label-name": "Replica",
                "neo4j.cypher.bind-header-as": "",
            }
        )
        assert settings.batch.size == 10
        assert settings.batch.timeout_seconds == 2.5
        assert settings.errors.policy == ErrorPolicy.SKIP
        assert settings.cdc.enforce_sequence_order is False
        assert settings.patterns.node_merge_properties is True
        assert settings.strategies.cdc_source_id.label_name == "Replica"
        assert settings.cypher_bindings.bind_header_as is None

    def test_unrelated_keys_ignored(self) -> None:
        from graphsink.core.config import settings_from_properties

        settings = settings_from_properties({"topics": "a", "neo4j.cud.topics": "a", "neo4j.uri": "neo4j://localhost"})
        assert settings.topics == ["a"]

    def test_invalid_values_raise_configuration_error(self) -> None:
        from graphsink.contracts import SinkConfigurationError
        from graphsink.core.config import settings_from_properties

        with pytest.raises(SinkConfigurationError, match="Invalid sink configuration"):
            settings_from_properties({"topics": "a", "neo4j.batch-size": "zero"})

    def test_invalid_timeout_raises_configuration_error(self) -> None:
        from graphsink.contracts import SinkConfigurationError
        from graphsink.core.config import settings_from_properties

        with pytest.raises(SinkConfigurationError, match="neo4j.batch-timeout"):
            settings_from_properties({"topics": "a", "neo4j.batch-timeout": "soon"})

    def test_missing_topics_raise_configuration_error(self) -> None:
        from graphsink.contracts import SinkConfigurationError
        from graphsink.core.config import settings_from_properties

        with pytest.raises(SinkConfigurationError):
            settings_from_properties({"neo4j.cud.topics": "a"})
