"""Core domain models and services for the stackweave engine."""

from .models import (
    Grant,
    Join,
    PolicyDoc,
    PolicyStatement,
    Reference,
    Resource,
    ResourceRecord,
    ResourceStatus,
    SynthesizedStack,
)

__all__ = [
    "Grant",
    "Join",
    "PolicyDoc",
    "PolicyStatement",
    "Reference",
    "Resource",
    "ResourceRecord",
    "ResourceStatus",
    "SynthesizedStack",
]
