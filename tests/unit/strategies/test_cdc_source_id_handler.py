"""Tests for the CDC source-id strategy."""

import pytest


def _handler(**kwargs):
    from graphsink.strategies import CdcSourceIdHandler

    return CdcSourceIdHandler("people", **kwargs)


class TestCdcSourceIdGrouping:
    def test_groups_follow_transaction_runs(self) -> None:
        """Transaction ids [1, 1, 2, 2, 2, 1] give groups of 2, 3 and 1."""
        from tests.factories import change_messages

        groups = _handler().handle(change_messages("people", [1, 1, 2, 2, 2, 1]))
        assert [len(group) for group in groups] == [2, 3, 1]
        assert [[(c.tx_id, c.seq) for c in group] for group in groups] == [
            [(1, 0), (1, 1)],
            [(2, 0), (2, 1), (2, 2)],
            [(1, 0)],
        ]

    def test_sequence_regression_raises(self) -> None:
        from graphsink.contracts import SequenceOrderError
        from tests.factories import message, node_change

        messages = [message("people", node_change(1, 1)), message("people", node_change(1, 0), offset=99)]
        with pytest.raises(SequenceOrderError, match="seq 0 does not follow seq 1 in transaction 1"):
            _handler().handle(messages)

    def test_sequence_violation_raised_even_under_skip(self, reporter) -> None:
        from graphsink.contracts import ErrorPolicy, SequenceOrderError
        from tests.factories import message, node_change

        messages = [message("people", node_change(1, 0)), message("people", node_change(1, 0))]
        with pytest.raises(SequenceOrderError):
            _handler(error_policy=ErrorPolicy.SKIP, error_reporter=reporter).handle(messages)

    def test_sequence_not_checked_when_disabled(self) -> None:
        from tests.factories import message, node_change

        messages = [message("people", node_change(1, 1)), message("people", node_change(1, 0))]
        groups = _handler(enforce_sequence_order=False).handle(messages)
        assert [c.seq for c in groups[0]] == [1, 0]

    def test_non_change_message_rejected(self) -> None:
        from graphsink.contracts import MessageHandlingError
        from tests.factories import message

        with pytest.raises(MessageHandlingError, match="not a change event"):
            _handler().handle([message("people", {"name": "john"})])

    def test_skipped_message_does_not_split_transaction(self, reporter) -> None:
        from graphsink.contracts import ErrorPolicy
        from tests.factories import message, node_change

        messages = [
            message("people", node_change(1, 0)),
            message("people", {"not": "an event"}),
            message("people", node_change(1, 1)),
        ]
        groups = _handler(error_policy=ErrorPolicy.SKIP, error_reporter=reporter).handle(messages)
        assert [len(group) for group in groups] == [2]
        assert len(reporter.rejections) == 1

    def test_malformed_event_chains_validation_error(self) -> None:
        from pydantic import ValidationError

        from graphsink.contracts import MessageHandlingError
        from tests.factories import message, node_change

        payload = node_change(1, 0)
        payload["event"]["operation"] = "x"
        with pytest.raises(MessageHandlingError, match="malformed change event") as exc_info:
            _handler().handle([message("people", payload)])
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_fully_rejected_transaction_leaves_no_empty_group(self, reporter) -> None:
        from graphsink.contracts import ErrorPolicy
        from tests.factories import message, node_change

        payload = node_change(2, 0)
        payload["event"]["operation"] = "x"
        messages = [message("people", node_change(1, 0)), message("people", payload)]
        groups = _handler(error_policy=ErrorPolicy.SKIP, error_reporter=reporter).handle(messages)
        assert [len(group) for group in groups] == [1]


class TestCdcSourceIdNodeQueries:
    def test_create(self) -> None:
        from tests.factories import message, node_change

        payload = node_change(
            1,
            0,
            element_id="4:db:7",
            after={"labels": ["Person", "Employee"], "properties": {"name": "john", "age": 30}},
        )
        [[change]] = _handler().handle([message("people", payload)])
        assert change.query.text == (
            "MERGE (n:`SourceEvent` {`sourceId`: $sourceId})\n"
            "SET n = $properties\n"
            "SET n.`sourceId` = $sourceId\n"
            "SET n:`Person`:`Employee`"
        )
        assert change.query.parameters == {"sourceId": "4:db:7", "properties": {"name": "john", "age": 30}}

    def test_update_applies_delta_and_label_changes(self) -> None:
        from tests.factories import message, node_change

        payload = node_change(
            1,
            0,
            operation="u",
            before={"labels": ["Person", "Temp"], "properties": {"name": "john", "age": 30}},
            after={"labels": ["Person", "Employee"], "properties": {"name": "johnny"}},
        )
        [[change]] = _handler().handle([message("people", payload)])
        assert change.query.text == (
            "MERGE (n:`SourceEvent` {`sourceId`: $sourceId})\nSET n += $properties\nSET n:`Employee`\nREMOVE n:`Temp`"
        )
        assert change.query.parameters["properties"] == {"name": "johnny", "age": None}

    def test_delete(self) -> None:
        from tests.factories import message, node_change

        [[change]] = _handler().handle([message("people", node_change(1, 0, operation="d", element_id="4:db:3"))])
        assert change.query.text == "MATCH (n:`SourceEvent` {`sourceId`: $sourceId})\nDETACH DELETE n"
        assert change.query.parameters == {"sourceId": "4:db:3"}

    def test_custom_label_and_property(self) -> None:
        from tests.factories import message, node_change

        handler = _handler(label_name="Replica", property_name="origin")
        [[change]] = handler.handle([message("people", node_change(1, 0, operation="d"))])
        assert change.query.text.startswith("MATCH (n:`Replica` {`origin`: $sourceId})")


class TestCdcSourceIdRelationshipQueries:
    def test_create(self) -> None:
        from tests.factories import message, relationship_change

        [[change]] = _handler().handle([message("people", relationship_change(1, 0, element_id="5:db:1"))])
        assert change.query.text == (
            "MERGE (source:`SourceEvent` {`sourceId`: $startSourceId})\n"
            "MERGE (target:`SourceEvent` {`sourceId`: $endSourceId})\n"
            "MERGE (source)-[r:`KNOWS` {`sourceId`: $sourceId}]->(target)\n"
            "SET r = $properties\n"
            "SET r.`sourceId` = $sourceId"
        )
        assert change.query.parameters == {
            "sourceId": "5:db:1",
            "startSourceId": "4:db:1",
            "endSourceId": "4:db:2",
            "properties": {"since": 2020},
        }

    def test_delete(self) -> None:
        from tests.factories import message, relationship_change

        [[change]] = _handler().handle([message("people", relationship_change(1, 0, operation="d"))])
        assert change.query.text == "MATCH ()-[r:`KNOWS` {`sourceId`: $sourceId}]->()\nDELETE r"
