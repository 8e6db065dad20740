# src/graphsink/strategies/hookspecs.py
"""pluggy hook specifications for graphsink strategy handlers.

Packages implement these hooks to contribute handler classes. The registry
calls them when it builds its strategy -> handler class table.

Usage (contributing a handler):
    from graphsink.strategies.hookspecs import hookimpl

    class MyHandlers:
        @hookimpl  # NOT @hookspec - that's for defining specs
        def graphsink_get_handlers(self):
            return [MyCypherHandler]

Each strategy kind may be provided by exactly one registered class.
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from graphsink.strategies.base import SinkStrategyHandler

# Project name for pluggy
PROJECT_NAME = "graphsink"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class GraphSinkHandlerSpec:
    """Hook specifications for strategy handlers."""

    @hookspec
    def graphsink_get_handlers(self) -> list[type["SinkStrategyHandler"]]:  # type: ignore[empty-body]
        """Return handler classes.

        Returns:
            List of SinkStrategyHandler subclasses (not instances)
        """
