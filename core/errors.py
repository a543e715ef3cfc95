"""Exception taxonomy for stack declaration, graph building and synthesis."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from core.models import SynthesizedStack


class StackError(Exception):
    """Base class for every error raised by the engine."""


class DuplicateIdError(StackError):
    def __init__(self, logical_id: str) -> None:
        super().__init__(f"Resource '{logical_id}' is already declared in this stack")
        self.logical_id = logical_id


class UnknownResourceError(StackError):
    def __init__(self, logical_id: str, referenced_by: str | None = None) -> None:
        message = f"Resource '{logical_id}' was never declared"
        if referenced_by:
            message += f" (referenced by '{referenced_by}')"
        super().__init__(message)
        self.logical_id = logical_id
        self.referenced_by = referenced_by


class StackSealedError(StackError):
    def __init__(self, stack_name: str) -> None:
        super().__init__(f"Stack '{stack_name}' is sealed; declarations can no longer change")
        self.stack_name = stack_name


class CyclicDependencyError(StackError):
    def __init__(self, cycle: Sequence[str]) -> None:
        super().__init__("Dependency cycle detected: " + " -> ".join(cycle))
        self.cycle = list(cycle)


class UnresolvedDependencyError(StackError):
    """A reference was resolved before its resource materialized (ordering bug)."""

    def __init__(self, resource_id: str, attribute: str) -> None:
        super().__init__(f"Output '{attribute}' of '{resource_id}' requested before '{resource_id}' materialized")
        self.resource_id = resource_id
        self.attribute = attribute


class UnknownOutputError(StackError):
    def __init__(self, resource_id: str, attribute: str, available: Sequence[str] = ()) -> None:
        message = f"Resource '{resource_id}' has no output '{attribute}'"
        if available:
            message += f" (available: {', '.join(sorted(available))})"
        super().__init__(message)
        self.resource_id = resource_id
        self.attribute = attribute


class UnsupportedKindError(StackError):
    def __init__(self, kinds: Sequence[str]) -> None:
        super().__init__(f"No provider registered for kind(s): {', '.join(sorted(set(kinds)))}")
        self.kinds = sorted(set(kinds))


class ProviderCreationError(StackError):
    """Provider call failure for a single resource."""

    def __init__(
        self,
        message: str,
        *,
        resource_id: str | None = None,
        kind: str | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.resource_id = resource_id
        self.kind = kind
        self.transient = transient


class PolicyAttachmentError(StackError):
    pass


class SynthesisError(StackError):
    """Aggregate report of every resource that did not materialize."""

    def __init__(self, result: "SynthesizedStack") -> None:
        failed = [record.resource_id for record in result.failed]
        skipped = [record.resource_id for record in result.skipped]
        parts = []
        if failed:
            parts.append(f"failed: {', '.join(failed)}")
        if skipped:
            parts.append(f"skipped: {', '.join(skipped)}")
        super().__init__(f"Synthesis of '{result.stack_name}' incomplete ({'; '.join(parts)})")
        self.result = result
        self.failed = failed
        self.skipped = skipped


__all__ = [
    "StackError",
    "DuplicateIdError",
    "UnknownResourceError",
    "StackSealedError",
    "CyclicDependencyError",
    "UnresolvedDependencyError",
    "UnknownOutputError",
    "UnsupportedKindError",
    "ProviderCreationError",
    "PolicyAttachmentError",
    "SynthesisError",
]
