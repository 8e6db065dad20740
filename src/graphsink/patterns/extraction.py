# src/graphsink/patterns/extraction.py
"""Extract identity and property values from messages using compiled patterns.

Messages are flattened first: nested documents become dotted field names
(``{"user": {"id": 1}}`` -> ``{"user.id": 1}``), which is also how nested
values are stored as graph properties. Lists are kept as values.

Identity values are looked up in the message key before the message value.
A missing or null identity value raises ExtractionError; plain properties
that are absent are simply not written.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from graphsink.patterns.compiler import NodePattern, PropertySpec, RelationshipPattern


class ExtractionError(ValueError):
    """Raised when a message lacks a value the pattern requires."""


@dataclass(frozen=True)
class ExtractedEntity:
    """Identity and property values for one graph entity."""

    keys: dict[str, Any]
    properties: dict[str, Any]


@dataclass(frozen=True)
class ExtractedRelationship:
    start: ExtractedEntity
    end: ExtractedEntity
    relationship: ExtractedEntity


def flatten(document: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys."""
    flat: dict[str, Any] = {}
    for name, value in document.items():
        path = f"{prefix}{name}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, prefix=f"{path}."))
        else:
            flat[path] = value
    return flat


def key_document(key: Any, specs: tuple[PropertySpec, ...]) -> dict[str, Any]:
    """Flatten a message key for identity lookup.

    A scalar key stands for the identity value when the pattern declares
    exactly one identity property.
    """
    if isinstance(key, Mapping):
        return flatten(key)
    if key is not None and len(specs) == 1:
        return {specs[0].path: key}
    return {}


def _is_excluded(path: str, excludes: frozenset[str]) -> bool:
    return any(path == excluded or path.startswith(excluded + ".") for excluded in excludes)


def extract_keys(specs: Iterable[PropertySpec], *documents: Mapping[str, Any]) -> dict[str, Any]:
    """Resolve identity values, first document wins.

    Raises:
        ExtractionError: If any identity value is missing or null
    """
    keys: dict[str, Any] = {}
    for spec in specs:
        value = None
        for document in documents:
            if document.get(spec.path) is not None:
                value = document[spec.path]
                break
        if value is None:
            raise ExtractionError(f"missing identity property '{spec.path}'")
        keys[spec.name] = value
    return keys


def extract_properties(
    specs: Iterable[PropertySpec],
    document: Mapping[str, Any],
    *,
    include_all: bool = False,
    excludes: frozenset[str] = frozenset(),
    consumed: Iterable[str] = (),
) -> dict[str, Any]:
    """Resolve plain property values.

    With include_all, every field not consumed elsewhere (identity fields,
    explicitly mapped fields) and not excluded is copied under its own name.
    """
    specs = tuple(specs)
    properties: dict[str, Any] = {}
    if include_all:
        skip = set(consumed) | {spec.path for spec in specs}
        for path, value in document.items():
            if path not in skip and not _is_excluded(path, excludes):
                properties[path] = value
    for spec in specs:
        if spec.path in document:
            properties[spec.name] = document[spec.path]
    return properties


def extract_node(pattern: NodePattern, key: Any, value: Mapping[str, Any] | None) -> ExtractedEntity:
    """Extract a node from a message key and (flattened or raw) value.

    Raises:
        ExtractionError: If an identity value is missing
    """
    key_doc = key_document(key, pattern.keys)
    value_doc = flatten(value) if value is not None else {}
    keys = extract_keys(pattern.keys, key_doc, value_doc)
    properties = extract_properties(
        pattern.properties,
        value_doc,
        include_all=pattern.include_all,
        excludes=pattern.excludes,
        consumed=(spec.path for spec in pattern.keys),
    )
    return ExtractedEntity(keys=keys, properties=properties)


def extract_relationship(pattern: RelationshipPattern, key: Any, value: Mapping[str, Any] | None) -> ExtractedRelationship:
    """Extract both endpoints and the relationship from one message.

    Raises:
        ExtractionError: If an endpoint or relationship identity value is missing
    """
    key_doc = flatten(key) if isinstance(key, Mapping) else {}
    value_doc = flatten(value) if value is not None else {}

    endpoints: list[ExtractedEntity] = []
    consumed: set[str] = set()
    for node in (pattern.start, pattern.end):
        endpoints.append(
            ExtractedEntity(
                keys=extract_keys(node.keys, key_doc, value_doc),
                properties=extract_properties(node.properties, value_doc),
            )
        )
        consumed |= {spec.path for spec in node.keys} | {spec.path for spec in node.properties}

    rel_keys = extract_keys(pattern.keys, key_doc, value_doc)
    consumed |= {spec.path for spec in pattern.keys}
    rel_properties = extract_properties(
        pattern.properties,
        value_doc,
        include_all=pattern.include_all,
        excludes=pattern.excludes,
        consumed=consumed,
    )
    return ExtractedRelationship(
        start=endpoints[0],
        end=endpoints[1],
        relationship=ExtractedEntity(keys=rel_keys, properties=rel_properties),
    )
