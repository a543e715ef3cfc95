"""Compare two synthesized artifacts to detect drift between runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from core.models import ResourceRecord, SynthesizedStack

COMPARED_FIELDS = ("kind", "dependencies", "resolved_properties", "outputs", "status")


@dataclass(slots=True)
class ArtifactDiff:
    before: SynthesizedStack
    after: SynthesizedStack

    def added(self) -> list[str]:
        before_ids = set(self.before.order)
        return [rid for rid in self.after.order if rid not in before_ids]

    def removed(self) -> list[str]:
        after_ids = set(self.after.order)
        return [rid for rid in self.before.order if rid not in after_ids]

    def changed(self) -> dict[str, list[str]]:
        before = self._by_id(self.before)
        after = self._by_id(self.after)
        changes: dict[str, list[str]] = {}
        for rid in self.after.order:
            if rid not in before:
                continue
            fields = [name for name in COMPARED_FIELDS if self._field(before[rid], name) != self._field(after[rid], name)]
            if fields:
                changes[rid] = fields
        return changes

    def order_changed(self) -> bool:
        shared = set(self.before.order) & set(self.after.order)
        return [rid for rid in self.before.order if rid in shared] != [rid for rid in self.after.order if rid in shared]

    def policies_changed(self) -> bool:
        dump = lambda artifact: [doc.model_dump(by_alias=True) for doc in artifact.policies]  # noqa: E731
        return dump(self.before) != dump(self.after)

    def has_drift(self) -> bool:
        return bool(self.added() or self.removed() or self.changed() or self.order_changed() or self.policies_changed())

    def as_json(self) -> dict[str, Any]:
        return {
            "stack": self.after.stack_name,
            "drift": self.has_drift(),
            "added": self.added(),
            "removed": self.removed(),
            "changed": self.changed(),
            "orderChanged": self.order_changed(),
            "policiesChanged": self.policies_changed(),
        }

    def as_markdown(self) -> str:
        report = self.as_json()
        lines = ["| Metric | Value |", "| --- | --- |"]
        for key in ("stack", "drift", "orderChanged", "policiesChanged"):
            lines.append(f"| {key} | {report[key]} |")
        rows = self._change_rows()
        if rows:
            lines.append("\n**Resource Changes**")
            lines.append("| Resource | Change | Fields |")
            lines.append("| --- | --- | --- |")
            for rid, change, fields in rows:
                lines.append(f"| {rid} | {change} | {fields} |")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    def _change_rows(self) -> List[tuple[str, str, str]]:
        rows: List[tuple[str, str, str]] = []
        rows.extend((rid, "added", "") for rid in self.added())
        rows.extend((rid, "removed", "") for rid in self.removed())
        rows.extend((rid, "changed", ", ".join(fields)) for rid, fields in self.changed().items())
        return rows

    @staticmethod
    def _by_id(artifact: SynthesizedStack) -> dict[str, ResourceRecord]:
        return {record.resource_id: record for record in artifact.records}

    @staticmethod
    def _field(record: ResourceRecord, name: str) -> Any:
        value = getattr(record, name)
        return value.value if hasattr(value, "value") else value


__all__ = ["ArtifactDiff", "COMPARED_FIELDS"]
