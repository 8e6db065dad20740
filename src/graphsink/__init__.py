"""
graphsink: strategy engine for streaming change events into a graph database.

Turns topic-partitioned messages into parameterized Cypher queries, grouped
into transactions that preserve source ordering.
"""

__version__ = "0.1.0"
