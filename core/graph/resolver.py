"""Resolve symbolic references against the materialized outputs table."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from core.errors import UnknownOutputError, UnresolvedDependencyError
from core.models import Join, Reference

OutputsTable = Mapping[str, Mapping[str, Any]]


def find_references(value: Any) -> Iterator[Reference]:
    """Yield every reference inside ``value`` in traversal order."""
    if isinstance(value, Reference):
        yield value
    elif isinstance(value, Join):
        for part in value.parts:
            yield from find_references(part)
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from find_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from find_references(item)


class ReferenceResolver:
    """Substitute references with concrete values. Pure given the same table."""

    def resolve(self, ref: Reference, materialized_outputs: OutputsTable) -> Any:
        outputs = materialized_outputs.get(ref.resource_id)
        if outputs is None:
            raise UnresolvedDependencyError(ref.resource_id, ref.attribute)
        if ref.attribute not in outputs:
            raise UnknownOutputError(ref.resource_id, ref.attribute, list(outputs))
        return outputs[ref.attribute]

    def resolve_value(self, value: Any, materialized_outputs: OutputsTable) -> Any:
        if isinstance(value, Reference):
            return self.resolve(value, materialized_outputs)
        if isinstance(value, Join):
            parts = [str(self.resolve_value(part, materialized_outputs)) for part in value.parts]
            return value.separator.join(parts)
        if isinstance(value, Mapping):
            return {key: self.resolve_value(item, materialized_outputs) for key, item in value.items()}
        if isinstance(value, list):
            return [self.resolve_value(item, materialized_outputs) for item in value]
        if isinstance(value, tuple):
            return tuple(self.resolve_value(item, materialized_outputs) for item in value)
        return value

    def resolve_properties(self, properties: Mapping[str, Any], materialized_outputs: OutputsTable) -> dict[str, Any]:
        return {name: self.resolve_value(value, materialized_outputs) for name, value in properties.items()}


__all__ = ["ReferenceResolver", "find_references", "OutputsTable"]
