"""Explicit teardown of a synthesized stack in reverse creation order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from core.models import SynthesizedStack
from core.providers.base import ProviderRegistry, ResourceProvider

LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class TeardownReport:
    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    retained: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.retained

    def as_json(self) -> dict[str, Any]:
        return {"deleted": list(self.deleted), "failed": dict(self.failed), "retained": list(self.retained)}


def teardown(artifact: SynthesizedStack, providers: ProviderRegistry | ResourceProvider) -> TeardownReport:
    """Delete every created resource, dependents before their dependencies.

    When a delete fails, the resources it depends on are retained so nothing
    is removed from under a resource that still exists.
    """
    if not isinstance(providers, ProviderRegistry):
        providers = ProviderRegistry(default=providers)

    report = TeardownReport()
    blocked: set[str] = set()
    records = {record.resource_id: record for record in artifact.records}

    for rid in reversed(artifact.order):
        record = records.get(rid)
        if record is None or record.physical_id is None:
            continue
        if rid in blocked:
            report.retained.append(rid)
            blocked.update(record.dependencies)
            continue
        try:
            providers.for_kind(record.kind).delete(record.kind, record.physical_id)
        except Exception as exc:  # keep deleting unrelated resources
            LOG.error("Failed to delete %s (%s): %s", rid, record.physical_id, exc)
            report.failed[rid] = f"{type(exc).__name__}: {exc}"
            blocked.update(record.dependencies)
            continue
        LOG.info("Deleted %s (%s)", rid, record.physical_id)
        report.deleted.append(rid)

    return report


__all__ = ["TeardownReport", "teardown"]
