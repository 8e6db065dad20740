"""Tests for the CUD strategy."""

import pytest


def _handler(**kwargs):
    from graphsink.strategies import CudHandler

    return CudHandler("ops", **kwargs)


def _single_query(value):
    from tests.factories import message

    [[change]] = _handler().handle([message("ops", value)])
    return change.query


class TestCudNodeQueries:
    def test_create(self) -> None:
        query = _single_query({"type": "node", "op": "create", "labels": ["Person"], "properties": {"name": "a"}})
        assert query.text == "CREATE (n:`Person`)\nSET n = $properties"
        assert query.parameters == {"keys": {}, "properties": {"name": "a"}}

    def test_create_with_ids(self) -> None:
        query = _single_query({"type": "node", "op": "create", "labels": ["Person"], "ids": {"id": 1}})
        assert query.text.endswith("SET n += $keys")

    def test_merge(self) -> None:
        query = _single_query({"type": "node", "op": "merge", "labels": ["Person"], "ids": {"id": 1}, "properties": {"a": 1}})
        assert query.text == "MERGE (n:`Person` {`id`: $keys.`id`})\nSET n += $properties"
        assert query.parameters == {"keys": {"id": 1}, "properties": {"a": 1}}

    def test_update(self) -> None:
        query = _single_query({"type": "node", "op": "update", "labels": ["Person"], "ids": {"id": 1}})
        assert query.text == "MATCH (n:`Person` {`id`: $keys.`id`})\nSET n += $properties"

    @pytest.mark.parametrize(("detach", "clause"), [(True, "DETACH DELETE n"), (False, "DELETE n")])
    def test_delete(self, detach: bool, clause: str) -> None:
        query = _single_query({"type": "node", "op": "delete", "labels": ["Person"], "ids": {"id": 1}, "detach": detach})
        assert query.text == f"MATCH (n:`Person` {{`id`: $keys.`id`}})\n{clause}"
        assert query.parameters == {"keys": {"id": 1}}


class TestCudRelationshipQueries:
    def _descriptor(self, op: str, **overrides):
        descriptor = {
            "type": "relationship",
            "op": op,
            "rel_type": "KNOWS",
            "from": {"labels": ["Person"], "ids": {"id": 1}},
            "to": {"labels": ["Person"], "ids": {"id": 2}},
            "properties": {"since": 2020},
        }
        descriptor.update(overrides)
        return descriptor

    def test_create_with_merged_endpoint(self) -> None:
        to = {"labels": ["Person"], "ids": {"id": 2}, "op": "merge"}
        query = _single_query(self._descriptor("create", to=to))
        assert query.text == (
            "MATCH (source:`Person` {`id`: $source.`id`})\n"
            "MERGE (target:`Person` {`id`: $target.`id`})\n"
            "CREATE (source)-[r:`KNOWS`]->(target)\n"
            "SET r = $properties"
        )
        assert query.parameters == {"source": {"id": 1}, "target": {"id": 2}, "keys": {}, "properties": {"since": 2020}}

    def test_merge_on_relationship_ids(self) -> None:
        query = _single_query(self._descriptor("merge", ids={"rid": 7}))
        assert "MERGE (source)-[r:`KNOWS` {`rid`: $keys.`rid`}]->(target)\nSET r += $properties" in query.text

    def test_update(self) -> None:
        query = _single_query(self._descriptor("update"))
        assert query.text.endswith("MATCH (source)-[r:`KNOWS`]->(target)\nSET r += $properties")

    def test_delete(self) -> None:
        query = _single_query(self._descriptor("delete"))
        assert query.text.endswith("MATCH (source)-[r:`KNOWS`]->(target)\nDELETE r")


class TestCudHandle:
    def test_one_query_per_message_batched(self) -> None:
        from tests.factories import message

        messages = [message("ops", {"type": "node", "op": "merge", "labels": ["P"], "ids": {"id": i}}) for i in range(5)]
        groups = _handler(batch_size=2).handle(messages)
        assert [len(group) for group in groups] == [2, 2, 1]
        assert [c.query.parameters["keys"]["id"] for group in groups for c in group] == [0, 1, 2, 3, 4]
        assert all(c.tx_id is None and c.seq is None for group in groups for c in group)

    def test_invalid_descriptor_fails(self) -> None:
        from pydantic import ValidationError

        from graphsink.contracts import MessageHandlingError
        from tests.factories import message

        with pytest.raises(MessageHandlingError, match="invalid operation descriptor") as exc_info:
            _handler().handle([message("ops", {"type": "node", "op": "explode"})])
        assert isinstance(exc_info.value.__cause__, ValidationError)

    def test_invalid_descriptor_skipped(self, reporter) -> None:
        from graphsink.contracts import ErrorPolicy
        from tests.factories import message

        messages = [
            message("ops", {"type": "node", "op": "update", "labels": ["P"]}),
            message("ops", {"type": "node", "op": "create", "labels": ["P"]}),
        ]
        groups = _handler(error_policy=ErrorPolicy.SKIP, error_reporter=reporter).handle(messages)
        assert [len(group) for group in groups] == [1]
        assert "requires non-empty 'ids'" in reporter.rejections[0].error.reason
