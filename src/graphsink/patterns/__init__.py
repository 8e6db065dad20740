"""Declarative node/relationship patterns: compilation and value extraction."""

from graphsink.patterns.compiler import (
    NodePattern,
    Pattern,
    PropertySpec,
    RelationshipPattern,
    compile_node_pattern,
    compile_pattern,
    compile_relationship_pattern,
)
from graphsink.patterns.extraction import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionError,
    extract_node,
    extract_relationship,
    flatten,
)

__all__ = [
    "ExtractedEntity",
    "ExtractedRelationship",
    "ExtractionError",
    "NodePattern",
    "Pattern",
    "PropertySpec",
    "RelationshipPattern",
    "compile_node_pattern",
    "compile_pattern",
    "compile_relationship_pattern",
    "extract_node",
    "extract_relationship",
    "flatten",
]
