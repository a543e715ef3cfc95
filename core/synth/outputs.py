"""Materialized outputs table shared between synthesis workers."""

from __future__ import annotations

import threading
import time
from typing import Any, Iterable, Mapping

from core.models import ResourceStatus


class OutputTable:
    """Write-once mapping of logical id -> outputs; readers may block on entries."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._outputs: dict[str, dict[str, Any]] = {}
        self._unavailable: dict[str, ResourceStatus] = {}

    def put(self, resource_id: str, outputs: Mapping[str, Any]) -> None:
        with self._condition:
            if resource_id in self._outputs:
                raise RuntimeError(f"Outputs for '{resource_id}' were already recorded")
            self._outputs[resource_id] = dict(outputs)
            self._condition.notify_all()

    def mark_unavailable(self, resource_id: str, status: ResourceStatus) -> None:
        with self._condition:
            self._unavailable[resource_id] = status
            self._condition.notify_all()

    def get(self, resource_id: str) -> dict[str, Any] | None:
        with self._condition:
            outputs = self._outputs.get(resource_id)
            return dict(outputs) if outputs is not None else None

    def unavailable(self, resource_id: str) -> ResourceStatus | None:
        with self._condition:
            return self._unavailable.get(resource_id)

    def wait_for(self, resource_ids: Iterable[str], timeout: float | None = None) -> bool:
        """Block until every id has outputs or is known unavailable.

        Returns True only when all ids materialized.
        """
        ids = list(resource_ids)
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while True:
                settled = [rid for rid in ids if rid in self._outputs or rid in self._unavailable]
                if len(settled) == len(ids):
                    return all(rid in self._outputs for rid in ids)
                if any(rid in self._unavailable for rid in ids):
                    return False
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._condition.wait(remaining)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        with self._condition:
            return {key: dict(value) for key, value in self._outputs.items()}

    def __contains__(self, resource_id: object) -> bool:
        with self._condition:
            return resource_id in self._outputs


__all__ = ["OutputTable"]
