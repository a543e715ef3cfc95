"""Load stack declarations from YAML blueprint files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from core.models import Join, Reference
from core.registry.stack import Stack


class BlueprintError(ValueError):
    pass


def _convert(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {"ref", "attribute"} or set(value) == {"ref"}:
            return Reference(resource_id=str(value["ref"]), attribute=str(value.get("attribute", "id")))
        if "join" in value and set(value) <= {"join", "separator"}:
            parts = value["join"]
            if not isinstance(parts, list):
                raise BlueprintError("join must be a list of parts")
            return Join(parts=[_convert(part) for part in parts], separator=str(value.get("separator", "")))
        return {key: _convert(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_convert(item) for item in value]
    return value


def build_stack(data: dict[str, Any], name: str | None = None) -> Stack:
    """Declare every entry of a parsed blueprint mapping on a new stack."""
    if not isinstance(data, dict):
        raise BlueprintError("Blueprint must be a mapping of keys to values.")

    stack = Stack(name or str(data.get("name") or "stack"))
    for entry in data.get("resources") or []:
        try:
            kind, logical_id = entry["kind"], entry["id"]
        except (KeyError, TypeError):
            raise BlueprintError(f"Resource entry requires 'id' and 'kind': {entry!r}") from None
        stack.declare(
            kind,
            logical_id,
            _convert(entry.get("properties") or {}),
            tags=entry.get("tags") or {},
        )

    # dependencies are applied after every resource exists so order in the file does not matter
    for entry in data.get("resources") or []:
        depends_on = entry.get("depends_on") or []
        if depends_on:
            stack.depends_on(entry["id"], *depends_on)

    for grant in data.get("grants") or []:
        try:
            principal, target = grant["principal"], grant["target"]
        except (KeyError, TypeError):
            raise BlueprintError(f"Grant entry requires 'principal' and 'target': {grant!r}") from None
        stack.grant(principal, target, grant.get("actions") or [])

    for connection in data.get("connections") or []:
        try:
            source, target, port = connection["source"], connection["target"], int(connection["port"])
        except (KeyError, TypeError, ValueError):
            raise BlueprintError(f"Connection entry requires 'source', 'target' and a numeric 'port': {connection!r}") from None
        stack.connect(source, target, port, connection.get("description", ""))

    for output_name, value in (data.get("outputs") or {}).items():
        stack.add_output(output_name, _convert(value))

    return stack


def load_blueprint(path: Path) -> Stack:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return build_stack(data, name=data.get("name") if isinstance(data, dict) else None)


__all__ = ["BlueprintError", "build_stack", "load_blueprint"]
