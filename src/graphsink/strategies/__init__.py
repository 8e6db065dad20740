"""Strategy handlers, their registry and the per-topic resolver.

Import patterns:
    from graphsink.strategies import StrategyResolver, create_handlers

    assignments = create_handlers(settings)
    groups = assignments.handler_for("people").handle(messages)
"""

from graphsink.strategies.base import BatchingHandler, ChangeEventHandler, SinkStrategyHandler
from graphsink.strategies.cdc_schema import CdcSchemaHandler
from graphsink.strategies.cdc_source_id import CdcSourceIdHandler
from graphsink.strategies.cud import CudHandler
from graphsink.strategies.cypher import CypherHandler
from graphsink.strategies.grouping import chunked, group_by_transaction
from graphsink.strategies.node_pattern import NodePatternHandler
from graphsink.strategies.registry import HandlerRegistry
from graphsink.strategies.relationship_pattern import RelationshipPatternHandler
from graphsink.strategies.resolver import (
    StrategyAssignments,
    StrategyResolver,
    configured_strategies,
    create_handlers,
)

__all__ = [
    "BatchingHandler",
    "CdcSchemaHandler",
    "CdcSourceIdHandler",
    "ChangeEventHandler",
    "CudHandler",
    "CypherHandler",
    "HandlerRegistry",
    "NodePatternHandler",
    "RelationshipPatternHandler",
    "SinkStrategyHandler",
    "StrategyAssignments",
    "StrategyResolver",
    "chunked",
    "configured_strategies",
    "create_handlers",
    "group_by_transaction",
]
