# src/graphsink/core/cypher.py
"""Cypher text helpers shared by the strategy handlers.

Every label, relationship type and property name that reaches query text is
backtick-quoted, so names coming from messages or patterns can never change
the shape of a statement. Values always travel as parameters.
"""

from collections.abc import Iterable


def quote(name: str) -> str:
    """Quote an identifier (label, type or property name) for Cypher."""
    return "`" + name.replace("`", "``") + "`"


def labels_fragment(labels: Iterable[str]) -> str:
    """Render ``:`A`:`B``` for a label list (empty string for no labels)."""
    return "".join(":" + quote(label) for label in labels)


def property_map(names: Iterable[str], source: str) -> str:
    """Render a property map whose values are read from a parameter expression.

    Example:
        property_map(["id", "tenant"], "event.keys")
        -> "{`id`: event.keys.`id`, `tenant`: event.keys.`tenant`}"
    """
    entries = [f"{quote(name)}: {source}.{quote(name)}" for name in names]
    if not entries:
        return ""
    return " {" + ", ".join(entries) + "}"
