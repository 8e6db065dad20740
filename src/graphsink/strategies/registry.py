# src/graphsink/strategies/registry.py
"""Handler registry for strategy lookup.

Uses pluggy for hook-based registration, so handlers shipped outside this
package can be plugged in the same way as the built-in six.
"""

from typing import Any

import pluggy

from graphsink.contracts.enums import SinkStrategy
from graphsink.strategies.base import SinkStrategyHandler
from graphsink.strategies.hookspecs import PROJECT_NAME, GraphSinkHandlerSpec, hookimpl


class BuiltinHandlers:
    """Hook implementation contributing the built-in handlers."""

    @hookimpl
    def graphsink_get_handlers(self) -> list[type[SinkStrategyHandler]]:
        from graphsink.strategies.cdc_schema import CdcSchemaHandler
        from graphsink.strategies.cdc_source_id import CdcSourceIdHandler
        from graphsink.strategies.cud import CudHandler
        from graphsink.strategies.cypher import CypherHandler
        from graphsink.strategies.node_pattern import NodePatternHandler
        from graphsink.strategies.relationship_pattern import RelationshipPatternHandler

        return [
            CypherHandler,
            NodePatternHandler,
            RelationshipPatternHandler,
            CdcSourceIdHandler,
            CdcSchemaHandler,
            CudHandler,
        ]


class HandlerRegistry:
    """Maps each strategy kind to the handler class implementing it.

    Usage:
        registry = HandlerRegistry()
        registry.register_builtin_handlers()

        handler_cls = registry.get_handler(SinkStrategy.CUD)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(GraphSinkHandlerSpec)
        self._handlers: dict[SinkStrategy, type[SinkStrategyHandler]] = {}

    def register_builtin_handlers(self) -> None:
        """Register the six built-in handlers. Call once at startup."""
        self.register(BuiltinHandlers())

    def register(self, plugin: Any) -> None:
        """Register a hook implementation.

        Raises:
            ValueError: If the plugin provides a strategy kind that is already taken.
                The plugin is unregistered again, leaving the registry unchanged.
        """
        self._pm.register(plugin)
        try:
            self._refresh_cache()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def _refresh_cache(self) -> None:
        new_handlers: dict[SinkStrategy, type[SinkStrategyHandler]] = {}
        for handlers in self._pm.hook.graphsink_get_handlers():
            for cls in handlers:
                kind = cls.strategy_kind
                if kind in new_handlers:
                    raise ValueError(f"Duplicate handler for strategy '{kind}'. Already registered by {new_handlers[kind].__name__}")
                new_handlers[kind] = cls
        self._handlers = new_handlers

    def get_handler(self, kind: SinkStrategy) -> type[SinkStrategyHandler]:
        """Get the handler class for a strategy kind.

        Raises:
            KeyError: If no handler is registered for the kind
        """
        try:
            return self._handlers[kind]
        except KeyError:
            raise KeyError(f"No handler registered for strategy '{kind}'") from None

    def get_handlers(self) -> list[type[SinkStrategyHandler]]:
        """Get all registered handler classes."""
        return list(self._handlers.values())
