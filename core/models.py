"""Data models shared across the engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, computed_field

from core.errors import SynthesisError


class ResourceStatus(str, Enum):
    PENDING = "pending"
    MATERIALIZING = "materializing"
    MATERIALIZED = "materialized"
    FAILED = "failed"
    SKIPPED = "skipped"


class Reference(BaseModel):
    """Weak link to an output attribute of another resource in the same stack."""

    resource_id: str
    attribute: str

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"${{{self.resource_id}.{self.attribute}}}"


class Join(BaseModel):
    """String assembled from literals and references once they resolve."""

    parts: list[Union[Reference, str]] = Field(default_factory=list)
    separator: str = ""

    model_config = {"frozen": True}


class Resource(BaseModel):
    """Declared unit of infrastructure; immutable once its stack is sealed."""

    logical_id: str = Field(..., description="Identifier unique within the stack")
    kind: str = Field(..., description="Resource kind dispatched to a provider, e.g. function")
    properties: dict[str, Any] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)


class Grant(BaseModel):
    """Least-privilege permission attached once principal and target exist."""

    principal_id: str
    target_id: str
    actions: list[str] = Field(default_factory=list)


class PolicyStatement(BaseModel):
    """IAM policy statement scoped to concrete, already-materialized ARNs."""

    sid: str | None = Field(default=None, alias="Sid")
    effect: str = Field(default="Allow", alias="Effect")
    principal: str | None = Field(default=None, alias="Principal")
    actions: list[str] = Field(default_factory=list, alias="Action")
    resources: list[str] = Field(default_factory=list, alias="Resource")
    conditions: dict[str, Any] = Field(default_factory=dict, alias="Condition")

    model_config = {
        "populate_by_name": True,
        "use_enum_values": True,
    }


class PolicyDoc(BaseModel):
    """Named policy holding every statement attached to one principal."""

    name: str = Field(..., alias="PolicyName")
    principal: str = Field(..., alias="Principal")
    version: str = Field(default="2012-10-17", alias="Version")
    statements: list[PolicyStatement] = Field(default_factory=list, alias="Statement")

    model_config = {
        "populate_by_name": True,
        "use_enum_values": True,
    }

    @computed_field
    @property
    def services(self) -> list[str]:
        """Return unique AWS services referenced in the policy."""
        services: set[str] = set()
        for statement in self.statements:
            for action in statement.actions:
                services.add(action.split(":", 1)[0])
        return sorted(services)


class ResourceRecord(BaseModel):
    """One entry of a synthesized artifact."""

    resource_id: str
    kind: str
    dependencies: list[str] = Field(default_factory=list)
    resolved_properties: dict[str, Any] = Field(default_factory=dict)
    outputs: dict[str, Any] = Field(default_factory=dict)
    status: ResourceStatus = ResourceStatus.PENDING
    attempts: int = 0
    error: Optional[str] = None

    model_config = {"use_enum_values": False}

    @property
    def physical_id(self) -> str | None:
        value = self.outputs.get("id")
        return str(value) if value is not None else None


class SynthesizedStack(BaseModel):
    """Ordered, replayable record of a synthesis run."""

    stack_name: str
    order: list[str] = Field(default_factory=list)
    records: list[ResourceRecord] = Field(default_factory=list)
    policies: list[PolicyDoc] = Field(default_factory=list)
    outputs: dict[str, Any] = Field(default_factory=dict)
    skipped_grants: list[Grant] = Field(default_factory=list)
    policy_errors: list[str] = Field(default_factory=list)

    def record(self, resource_id: str) -> ResourceRecord:
        for record in self.records:
            if record.resource_id == resource_id:
                return record
        raise KeyError(resource_id)

    def statuses(self) -> dict[str, ResourceStatus]:
        return {record.resource_id: record.status for record in self.records}

    @property
    def failed(self) -> list[ResourceRecord]:
        return [record for record in self.records if record.status == ResourceStatus.FAILED]

    @property
    def skipped(self) -> list[ResourceRecord]:
        return [record for record in self.records if record.status == ResourceStatus.SKIPPED]

    @property
    def succeeded(self) -> bool:
        return all(record.status == ResourceStatus.MATERIALIZED for record in self.records)

    def raise_for_status(self) -> "SynthesizedStack":
        if not self.succeeded:
            raise SynthesisError(self)
        return self


__all__ = [
    "ResourceStatus",
    "Reference",
    "Join",
    "Resource",
    "Grant",
    "PolicyStatement",
    "PolicyDoc",
    "ResourceRecord",
    "SynthesizedStack",
]
