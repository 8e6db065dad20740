# src/graphsink/patterns/compiler.py
"""Compiler for declarative node and relationship patterns.

Patterns describe how fields of a message map onto graph entities:

    (:Person:Customer{!id, name, surname})
    (:Person{!id, *, -password})
    (:User{!userId})-[:BOUGHT{price, currency}]->(:Product{!productId})
    (:Product{!productId})<-[:BOUGHT{!orderId}]-(:User{!userId})

Property specs inside braces:
    !name          identity property, used to MERGE
    !name: path    identity property read from another (dotted) field
    name           plain property, SET after MERGE
    name: path     plain property read from another field
    *              every remaining field of the message
    -name          exclude a field (implies *)

Names may be backtick-quoted to use characters outside [A-Za-z0-9_].

Compilation happens once per topic, at resolver time, so a bad pattern fails
startup instead of every message. The compiler is pure: the same string
always yields an equal pattern.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from graphsink.contracts.errors import PatternSyntaxError


@dataclass(frozen=True)
class PropertySpec:
    """Maps a source field (dotted path into the message) onto a property name."""

    name: str
    path: str


@dataclass(frozen=True)
class NodePattern:
    """Compiled node pattern.

    Invariant: at least one label and at least one identity property.
    """

    labels: tuple[str, ...]
    keys: tuple[PropertySpec, ...]
    properties: tuple[PropertySpec, ...] = ()
    include_all: bool = False
    excludes: frozenset[str] = field(default_factory=frozenset)

    @property
    def key_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.keys)


@dataclass(frozen=True)
class RelationshipPattern:
    """Compiled relationship pattern, normalized to start -> end direction.

    Endpoint nodes always carry identity properties; relationship identity
    properties are optional. When present the relationship is merged on
    them, otherwise on its endpoints and type alone.
    """

    start: NodePattern
    rel_type: str
    end: NodePattern
    keys: tuple[PropertySpec, ...] = ()
    properties: tuple[PropertySpec, ...] = ()
    include_all: bool = False
    excludes: frozenset[str] = field(default_factory=frozenset)

    @property
    def key_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.keys)


Pattern = NodePattern | RelationshipPattern


@dataclass
class _PropertyBlock:
    keys: list[PropertySpec] = field(default_factory=list)
    properties: list[PropertySpec] = field(default_factory=list)
    wildcard: bool = False
    excludes: list[str] = field(default_factory=list)


_NAME_START = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_NAME_CHARS = _NAME_START | frozenset("0123456789")


class _PatternParser:
    """Recursive-descent parser over a single pattern string."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0

    # --- scanning helpers ---

    def _error(self, reason: str) -> PatternSyntaxError:
        return PatternSyntaxError(self._text, reason)

    def _skip_ws(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos].isspace():
            self._pos += 1

    def _at_end(self) -> bool:
        self._skip_ws()
        return self._pos >= len(self._text)

    def _accept(self, token: str) -> bool:
        self._skip_ws()
        if self._text.startswith(token, self._pos):
            self._pos += len(token)
            return True
        return False

    def _expect(self, token: str) -> None:
        if not self._accept(token):
            found = self._text[self._pos : self._pos + 10] or "end of pattern"
            raise self._error(f"expected '{token}' at position {self._pos}, found '{found}'")

    def _name(self, what: str) -> str:
        self._skip_ws()
        if self._accept("`"):
            chars: list[str] = []
            while True:
                end = self._text.find("`", self._pos)
                if end < 0:
                    raise self._error(f"unterminated backtick in {what}")
                chars.append(self._text[self._pos : end])
                self._pos = end + 1
                # `` inside a quoted name is an escaped backtick
                if self._text.startswith("`", self._pos):
                    chars.append("`")
                    self._pos += 1
                    continue
                break
            name = "".join(chars)
            if not name:
                raise self._error(f"empty {what}")
            return name
        start = self._pos
        if self._pos < len(self._text) and self._text[self._pos] in _NAME_START:
            self._pos += 1
            while self._pos < len(self._text) and self._text[self._pos] in _NAME_CHARS:
                self._pos += 1
        if self._pos == start:
            raise self._error(f"expected {what} at position {start}")
        return self._text[start : self._pos]

    def _path(self, what: str) -> str:
        parts = [self._name(what)]
        while self._text.startswith(".", self._pos):
            self._pos += 1
            parts.append(self._name(what))
        return ".".join(parts)

    # --- grammar ---

    def _property_spec(self, block: _PropertyBlock) -> None:
        if self._accept("*"):
            block.wildcard = True
            return
        if self._accept("-"):
            block.excludes.append(self._path("excluded property"))
            return
        identity = self._accept("!")
        name = self._path("property name")
        path = self._path("property path") if self._accept(":") else name
        spec = PropertySpec(name=name, path=path)
        (block.keys if identity else block.properties).append(spec)

    def _property_block(self) -> _PropertyBlock:
        block = _PropertyBlock()
        if not self._accept("{"):
            return block
        if self._accept("}"):
            return block
        while True:
            self._property_spec(block)
            if self._accept("}"):
                return block
            self._expect(",")

    def _labels(self) -> list[str]:
        labels: list[str] = []
        # The colon before the first label is optional: Person{!id} == (:Person{!id})
        self._skip_ws()
        if self._accept(":") or (self._pos < len(self._text) and self._text[self._pos] in _NAME_START | {"`"}):
            labels.append(self._name("label"))
            while self._accept(":"):
                labels.append(self._name("label"))
        return labels

    def node(self, *, endpoint: bool) -> NodePattern:
        parenthesized = self._accept("(")
        labels = self._labels()
        block = self._property_block()
        if parenthesized:
            self._expect(")")
        return _build_node(self._text, labels, block, endpoint=endpoint)

    def pattern(self) -> Pattern:
        first = self.node(endpoint=False)
        if self._at_end():
            return first

        if self._accept("<-["):
            reverse = True
        else:
            self._expect("-[")
            reverse = False
        self._expect(":")
        rel_type = self._name("relationship type")
        rel_block = self._property_block()
        self._expect("]-" if reverse else "]->")
        second = self.node(endpoint=True)
        if not self._at_end():
            raise self._error(f"unexpected trailing input at position {self._pos}")

        # The first node was parsed before we knew it was an endpoint
        if first.include_all:
            raise self._error("relationship endpoints cannot use '*' or exclusions")

        start, end = (second, first) if reverse else (first, second)
        _check_block(self._text, rel_block, "relationship")
        return RelationshipPattern(
            start=start,
            rel_type=rel_type,
            end=end,
            keys=tuple(rel_block.keys),
            properties=tuple(rel_block.properties),
            include_all=rel_block.wildcard or bool(rel_block.excludes),
            excludes=frozenset(rel_block.excludes),
        )


def _check_block(text: str, block: _PropertyBlock, what: str) -> None:
    names = [spec.name for spec in block.keys] + [spec.name for spec in block.properties]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise PatternSyntaxError(text, f"duplicate {what} properties: {', '.join(duplicates)}")
    if len(set(block.excludes)) != len(block.excludes):
        raise PatternSyntaxError(text, f"duplicate {what} exclusions")
    if block.excludes and block.properties:
        raise PatternSyntaxError(text, f"{what} cannot mix included and excluded properties")
    key_paths = {spec.path for spec in block.keys}
    clashing = sorted(key_paths & set(block.excludes))
    if clashing:
        raise PatternSyntaxError(text, f"{what} excludes identity properties: {', '.join(clashing)}")


def _build_node(text: str, labels: list[str], block: _PropertyBlock, *, endpoint: bool) -> NodePattern:
    if not labels:
        raise PatternSyntaxError(text, "node requires at least one label")
    if len(set(labels)) != len(labels):
        raise PatternSyntaxError(text, "duplicate node labels")
    if not block.keys:
        raise PatternSyntaxError(text, "node requires at least one identity property (prefixed with '!')")
    if endpoint and (block.wildcard or block.excludes):
        raise PatternSyntaxError(text, "relationship endpoints cannot use '*' or exclusions")
    _check_block(text, block, "node")
    return NodePattern(
        labels=tuple(labels),
        keys=tuple(block.keys),
        properties=tuple(block.properties),
        include_all=block.wildcard or bool(block.excludes),
        excludes=frozenset(block.excludes),
    )


def compile_pattern(text: str) -> Pattern:
    """Compile a node or relationship pattern.

    Raises:
        PatternSyntaxError: If the pattern is malformed or lacks identity properties
    """
    if not text or not text.strip():
        raise PatternSyntaxError(text, "pattern is empty")
    return _PatternParser(text).pattern()


def compile_node_pattern(text: str) -> NodePattern:
    """Compile a pattern that must describe a single node."""
    pattern = compile_pattern(text)
    if not isinstance(pattern, NodePattern):
        raise PatternSyntaxError(text, "expected a node pattern, got a relationship pattern")
    return pattern


def compile_relationship_pattern(text: str) -> RelationshipPattern:
    """Compile a pattern that must describe a relationship between two nodes."""
    pattern = compile_pattern(text)
    if not isinstance(pattern, RelationshipPattern):
        raise PatternSyntaxError(text, "expected a relationship pattern, got a node pattern")
    return pattern
