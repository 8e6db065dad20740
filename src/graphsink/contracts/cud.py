"""CUD operation descriptor models.

A CUD message is already an explicit instruction, for example:

    {"type": "node", "op": "merge", "labels": ["Person"],
     "ids": {"id": 1}, "properties": {"name": "Alice"}}

    {"type": "relationship", "op": "create", "rel_type": "KNOWS",
     "from": {"labels": ["Person"], "ids": {"id": 1}},
     "to": {"labels": ["Person"], "ids": {"id": 2}, "op": "merge"},
     "properties": {"since": 2020}}

Identity is taken from the descriptor as-is, never inferred.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from graphsink.contracts.enums import CudLookup, CudOperation


class _CudModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class CudNodeReference(_CudModel):
    """Relationship endpoint located by ids, either matched or merged."""

    ids: dict[str, Any] = Field(min_length=1)
    labels: list[str] = Field(default_factory=list)
    op: CudLookup = CudLookup.MATCH

    @field_validator("op", mode="before")
    @classmethod
    def _lowercase_op(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class CudNode(_CudModel):
    type: Literal["node"]
    op: CudOperation
    labels: list[str] = Field(default_factory=list)
    ids: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict)
    detach: bool = False

    @model_validator(mode="after")
    def _check_ids(self) -> Self:
        if self.op != CudOperation.CREATE and not self.ids:
            raise ValueError(f"node operation '{self.op.value}' requires non-empty 'ids'")
        return self


class CudRelationship(_CudModel):
    type: Literal["relationship"]
    op: CudOperation
    rel_type: str = Field(min_length=1)
    from_: CudNodeReference = Field(alias="from")
    to: CudNodeReference
    ids: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_endpoint_lookup(self) -> Self:
        if self.op in (CudOperation.UPDATE, CudOperation.DELETE):
            for side, ref in (("from", self.from_), ("to", self.to)):
                if ref.op == CudLookup.MERGE:
                    raise ValueError(f"relationship operation '{self.op.value}' cannot merge its '{side}' node")
        return self


CudDescriptor = Annotated[CudNode | CudRelationship, Field(discriminator="type")]

_DESCRIPTOR_ADAPTER: TypeAdapter[CudNode | CudRelationship] = TypeAdapter(CudDescriptor)


def parse_cud_descriptor(value: Mapping[str, Any]) -> CudNode | CudRelationship:
    """Validate a raw CUD descriptor.

    ``type`` and ``op`` are matched case-insensitively.

    Raises:
        pydantic.ValidationError: If the descriptor is malformed
    """
    normalized = dict(value)
    for name in ("type", "op"):
        if isinstance(normalized.get(name), str):
            normalized[name] = normalized[name].lower()
    return _DESCRIPTOR_ADAPTER.validate_python(normalized)
