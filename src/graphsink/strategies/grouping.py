# src/graphsink/strategies/grouping.py
"""Transaction boundary policies shared by the strategy handlers.

Two disciplines, never mixed within one handler:

- Size-based chunking (cypher, pattern and CUD strategies): groups of at most
  N items, FIFO. Items inside a chunk have no ordering dependency on each
  other beyond delivery order.
- Transaction-identity grouping (CDC strategies): a new group starts every
  time the source transaction id changes. A transaction id that reappears
  after a different one starts a NEW group; it is never merged back.

Both preserve input order: concatenating the groups yields the input.
"""

from collections.abc import Callable, Hashable, Iterable, Iterator
from typing import TypeVar

T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Split items into consecutive lists of at most ``size`` items.

    Raises:
        ValueError: If size is not positive
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    chunk: list[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) == size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


def group_by_transaction(items: Iterable[T], tx_id_of: Callable[[T], Hashable]) -> list[list[T]]:
    """Group contiguous runs of items sharing a transaction id.

    Example:
        tx ids [1, 1, 2, 2, 2, 1] -> runs of sizes [2, 3, 1]
    """
    runs: list[list[T]] = []
    current: Hashable = None
    for item in items:
        tx_id = tx_id_of(item)
        if not runs or tx_id != current:
            runs.append([])
            current = tx_id
        runs[-1].append(item)
    return runs


def first_sequence_violation(run: Iterable[T], seq_of: Callable[[T], int]) -> tuple[T, T] | None:
    """Find the first item whose sequence number does not exceed its predecessor's.

    Returns:
        (previous, offending) pair, or None if sequence numbers strictly increase
    """
    previous: T | None = None
    for item in run:
        if previous is not None and seq_of(item) <= seq_of(previous):
            return previous, item
        previous = item
    return None
