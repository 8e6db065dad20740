# src/graphsink/contracts/cdc.py
"""Change event payload models.

A change event describes one committed mutation at the source graph:

    {
      "id": "...",
      "txId": 12,
      "seq": 0,
      "event": {
        "eventType": "n",
        "elementId": "4:abc:1",
        "operation": "c",
        "labels": ["Person"],
        "keys": {"Person": [{"name": "john"}]},
        "state": {"before": null, "after": {"labels": ["Person"], "properties": {...}}}
      }
    }

Relationship events use eventType "r" and carry ``type``, ``start`` and
``end`` node references instead of labels.

TRUST BOUNDARY: these payloads come from an external producer, so they are
validated on entry. A ValidationError here becomes a per-message error.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from graphsink.contracts.enums import CdcOperation

KeyMap = dict[str, Any]


class _CdcModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class EntityState(_CdcModel):
    """Labels and properties of an entity at one point in time."""

    labels: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)


class StateChange(_CdcModel):
    """Entity state before and after the mutation."""

    before: EntityState | None = None
    after: EntityState | None = None

    def properties_delta(self) -> dict[str, Any]:
        """Properties to apply with ``SET x += $map``.

        Properties present before but gone after map to None, which removes
        them on the target.
        """
        after = self.after.properties if self.after is not None else {}
        delta = dict(after)
        if self.before is not None:
            for name in self.before.properties:
                if name not in after:
                    delta[name] = None
        return delta

    def labels_added(self) -> list[str]:
        before = set(self.before.labels) if self.before is not None else set()
        after = self.after.labels if self.after is not None else []
        return [label for label in after if label not in before]

    def labels_removed(self) -> list[str]:
        if self.before is None:
            return []
        after = set(self.after.labels) if self.after is not None else set()
        return [label for label in self.before.labels if label not in after]


def _require_after_state(operation: CdcOperation, state: StateChange) -> None:
    if operation in (CdcOperation.CREATE, CdcOperation.UPDATE) and state.after is None:
        raise ValueError(f"operation '{operation.value}' requires an 'after' state")


class NodeReference(_CdcModel):
    """Relationship endpoint as recorded in a relationship event."""

    element_id: str = Field(alias="elementId")
    labels: list[str] = Field(default_factory=list)
    keys: dict[str, list[KeyMap]] = Field(default_factory=dict)


class NodeEvent(_CdcModel):
    event_type: Literal["n"] = Field(alias="eventType")
    element_id: str = Field(alias="elementId")
    operation: CdcOperation
    labels: list[str] = Field(default_factory=list)
    keys: dict[str, list[KeyMap]] = Field(default_factory=dict)
    state: StateChange = Field(default_factory=StateChange)

    @model_validator(mode="after")
    def _check_state(self) -> Self:
        _require_after_state(self.operation, self.state)
        return self


class RelationshipEvent(_CdcModel):
    event_type: Literal["r"] = Field(alias="eventType")
    element_id: str = Field(alias="elementId")
    operation: CdcOperation
    type: str = Field(min_length=1)
    start: NodeReference
    end: NodeReference
    keys: list[KeyMap] = Field(default_factory=list)
    state: StateChange = Field(default_factory=StateChange)

    @model_validator(mode="after")
    def _check_state(self) -> Self:
        _require_after_state(self.operation, self.state)
        return self


class ChangeEvent(_CdcModel):
    """Envelope of a single change event."""

    id: str | None = None
    tx_id: int = Field(alias="txId")
    seq: int
    event: Annotated[NodeEvent | RelationshipEvent, Field(discriminator="event_type")]
    metadata: dict[str, Any] = Field(default_factory=dict)


def parse_change_event(value: Mapping[str, Any]) -> ChangeEvent:
    """Validate a raw change event document.

    Raises:
        pydantic.ValidationError: If the payload is malformed
    """
    return ChangeEvent.model_validate(value)
