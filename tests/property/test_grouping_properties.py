# tests/property/test_grouping_properties.py
"""Property-based tests for transaction boundary policies.

Both policies must preserve delivery order and never lose an item:
concatenating the groups reproduces the input.
"""

from hypothesis import given
from hypothesis import strategies as st

from graphsink.strategies.grouping import chunked, first_sequence_violation, group_by_transaction
from tests.property.settings import STANDARD_SETTINGS

items = st.lists(st.integers(), max_size=60)
batch_sizes = st.integers(min_value=1, max_value=20)
tx_ids = st.lists(st.integers(min_value=0, max_value=4), max_size=60)


class TestChunkedProperties:
    @given(values=items, size=batch_sizes)
    @STANDARD_SETTINGS
    def test_concatenation_preserves_input(self, values: list[int], size: int) -> None:
        chunks = list(chunked(values, size))
        assert [v for chunk in chunks for v in chunk] == values

    @given(values=items, size=batch_sizes)
    @STANDARD_SETTINGS
    def test_only_last_chunk_may_be_short(self, values: list[int], size: int) -> None:
        chunks = list(chunked(values, size))
        assert all(len(chunk) == size for chunk in chunks[:-1])
        assert all(0 < len(chunk) <= size for chunk in chunks)


class TestGroupByTransactionProperties:
    @given(ids=tx_ids)
    @STANDARD_SETTINGS
    def test_concatenation_preserves_input(self, ids: list[int]) -> None:
        runs = group_by_transaction(list(enumerate(ids)), lambda item: item[1])
        assert [item for run in runs for item in run] == list(enumerate(ids))

    @given(ids=tx_ids)
    @STANDARD_SETTINGS
    def test_runs_are_homogeneous_and_adjacent_runs_differ(self, ids: list[int]) -> None:
        runs = group_by_transaction(ids, lambda tx: tx)
        assert all(len(set(run)) == 1 for run in runs)
        assert all(a[0] != b[0] for a, b in zip(runs, runs[1:], strict=False))

    @given(seqs=st.lists(st.integers(min_value=0, max_value=1000), unique=True, max_size=30))
    @STANDARD_SETTINGS
    def test_sorted_unique_sequences_never_violate(self, seqs: list[int]) -> None:
        assert first_sequence_violation(sorted(seqs), lambda seq: seq) is None
