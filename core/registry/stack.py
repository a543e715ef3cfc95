"""Stack registry: holds declared resources, grants and stack outputs."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from core.constants import Capability, ResourceKind, has_capability
from core.errors import DuplicateIdError, StackSealedError, UnknownResourceError
from core.graph.resolver import find_references
from core.models import Grant, Reference, Resource


class ResourceHandle:
    """Caller-facing view of one declared resource."""

    def __init__(self, stack: "Stack", logical_id: str) -> None:
        self._stack = stack
        self.id = logical_id

    @property
    def kind(self) -> str:
        return self._stack.resource(self.id).kind

    @property
    def arn(self) -> Reference:
        return self.get_output("arn")

    @property
    def ref(self) -> Reference:
        return self.get_output("id")

    def get_output(self, attribute: str) -> Reference:
        return self._stack.get_output(self.id, attribute)

    def depends_on(self, *dependency_ids: "str | ResourceHandle") -> "ResourceHandle":
        self._stack.depends_on(self.id, *dependency_ids)
        return self

    def set(self, name: str, value: Any) -> "ResourceHandle":
        self._stack._ensure_open()
        self._stack.resource(self.id).properties[name] = value
        return self

    def tag(self, key: str, value: str) -> "ResourceHandle":
        self._stack._ensure_open()
        self._stack.resource(self.id).tags[key] = value
        return self

    def __repr__(self) -> str:
        return f"ResourceHandle({self.id!r}, kind={self.kind!r})"


def _as_id(value: "str | ResourceHandle") -> str:
    return value.id if isinstance(value, ResourceHandle) else value


class Stack:
    """Open during declaration, sealed once synthesis starts."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._resources: dict[str, Resource] = {}
        self._grants: list[Grant] = []
        self._outputs: dict[str, Any] = {}
        self._sealed = False

    # ------------------------------------------------------------------
    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def resources(self) -> list[Resource]:
        return [self._view(resource) for resource in self._resources.values()]

    @property
    def grants(self) -> list[Grant]:
        return list(self._grants)

    @property
    def outputs(self) -> dict[str, Any]:
        return dict(self._outputs)

    def resource(self, logical_id: str) -> Resource:
        try:
            resource = self._resources[logical_id]
        except KeyError:
            raise UnknownResourceError(logical_id) from None
        return self._view(resource)

    def handle(self, logical_id: str) -> ResourceHandle:
        self.resource(logical_id)
        return ResourceHandle(self, logical_id)

    def __contains__(self, logical_id: object) -> bool:
        return logical_id in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    # ------------------------------------------------------------------
    def declare(
        self,
        kind: str | ResourceKind,
        logical_id: str,
        properties: Mapping[str, Any] | None = None,
        *,
        depends_on: Iterable["str | ResourceHandle"] = (),
        tags: Mapping[str, str] | None = None,
    ) -> ResourceHandle:
        self._ensure_open()
        if logical_id in self._resources:
            raise DuplicateIdError(logical_id)
        deps = [_as_id(dep) for dep in depends_on]
        for dep_id in deps:
            if dep_id not in self._resources:
                raise UnknownResourceError(dep_id, referenced_by=logical_id)
        kind_name = kind.value if isinstance(kind, ResourceKind) else str(kind)
        self._resources[logical_id] = Resource(
            logical_id=logical_id,
            kind=kind_name,
            properties=dict(properties or {}),
            depends_on=list(dict.fromkeys(deps)),
            tags=dict(tags or {}),
        )
        return ResourceHandle(self, logical_id)

    def get_output(self, logical_id: str, attribute: str) -> Reference:
        if logical_id not in self._resources:
            raise UnknownResourceError(logical_id)
        return Reference(resource_id=logical_id, attribute=attribute)

    def depends_on(self, logical_id: str, *dependency_ids: "str | ResourceHandle") -> None:
        self._ensure_open()
        resource = self.resource(logical_id)
        for dependency in dependency_ids:
            dep_id = _as_id(dependency)
            if dep_id not in self._resources:
                raise UnknownResourceError(dep_id, referenced_by=logical_id)
            if dep_id not in resource.depends_on:
                resource.depends_on.append(dep_id)

    def grant(
        self,
        principal: "str | ResourceHandle",
        target: "str | ResourceHandle",
        actions: Iterable[str],
    ) -> Grant:
        self._ensure_open()
        principal_id, target_id = _as_id(principal), _as_id(target)
        for logical_id in (principal_id, target_id):
            if logical_id not in self._resources:
                raise UnknownResourceError(logical_id)
        if not has_capability(self._resources[target_id].kind, Capability.GRANTABLE):
            raise ValueError(f"Resource '{target_id}' of kind '{self._resources[target_id].kind}' cannot be granted access to")
        grant = Grant(principal_id=principal_id, target_id=target_id, actions=sorted(set(actions)))
        self._grants.append(grant)
        return grant

    def connect(
        self,
        source: "str | ResourceHandle",
        target: "str | ResourceHandle",
        port: int,
        description: str = "",
    ) -> ResourceHandle:
        """Allow TCP traffic on ``port`` from ``source`` into ``target``."""
        source_id, target_id = _as_id(source), _as_id(target)
        for logical_id in (source_id, target_id):
            kind = self.resource(logical_id).kind
            if not has_capability(kind, Capability.CONNECTABLE):
                raise ValueError(f"Resource '{logical_id}' of kind '{kind}' has no security group to connect")
        return self.declare(
            ResourceKind.SECURITY_GROUP_INGRESS,
            f"{source_id}To{target_id}Port{port}",
            {
                "GroupId": self.get_output(target_id, "security_group_id"),
                "SourceSecurityGroupId": self.get_output(source_id, "security_group_id"),
                "IpProtocol": "tcp",
                "FromPort": port,
                "ToPort": port,
                "Description": description or f"Allow {source_id} to reach {target_id} on {port}",
            },
        )

    def add_output(self, name: str, value: Any) -> None:
        self._ensure_open()
        for ref in find_references(value):
            if ref.resource_id not in self._resources:
                raise UnknownResourceError(ref.resource_id, referenced_by=f"output {name}")
        self._outputs[name] = value

    def seal(self) -> None:
        self._sealed = True

    def _ensure_open(self) -> None:
        if self._sealed:
            raise StackSealedError(self.name)

    def _view(self, resource: Resource) -> Resource:
        # declarations are frozen once sealed
        return resource.model_copy(deep=True) if self._sealed else resource


__all__ = ["Stack", "ResourceHandle"]
