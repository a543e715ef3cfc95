"""Attach least-privilege statements once both principal and target exist."""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Iterable

from core.errors import PolicyAttachmentError
from core.models import PolicyDoc, PolicyStatement

if TYPE_CHECKING:  # pragma: no cover
    from core.synth.outputs import OutputTable

LOG = logging.getLogger(__name__)

_SID_INVALID = re.compile(r"[^A-Za-z0-9]")


class PolicyAttacher:
    """Compose one named policy per principal from concrete ARNs.

    Statements are only ever built from outputs already recorded in the
    table, so a statement never carries an unresolved reference.
    """

    def __init__(self, outputs: OutputTable, *, policy_name_suffix: str = "Policy", timeout: float | None = None) -> None:
        self.outputs = outputs
        self.policy_name_suffix = policy_name_suffix
        self.timeout = timeout
        self._policies: dict[str, PolicyDoc] = {}
        self._lock = threading.Lock()

    def attach_least_privilege(
        self,
        principal_id: str,
        target_id: str,
        actions: Iterable[str],
        timeout: float | None = None,
    ) -> PolicyStatement:
        action_set = sorted(set(actions))
        if not action_set:
            raise ValueError("at least one action is required")

        principal_arn, target_arn = self._await_arns([principal_id, target_id], timeout)
        service = action_set[0].split(":", 1)[0]
        statement = PolicyStatement(
            sid=self._build_sid(service, target_id),
            principal=principal_arn,
            actions=action_set,
            resources=[target_arn],
        )
        merged = self._merge(principal_id, principal_arn, statement)
        LOG.debug("Attached %s on %s to %s", ",".join(action_set), target_id, principal_id)
        return merged

    def attach_statement(self, principal_id: str, statement: PolicyStatement, timeout: float | None = None) -> PolicyStatement:
        """Attach a statement whose resources are already concrete ARNs."""
        if any("${" in resource for resource in statement.resources):
            raise PolicyAttachmentError(f"Statement {statement.sid} still holds an unresolved reference")
        (principal_arn,) = self._await_arns([principal_id], timeout)
        scoped = statement.model_copy(update={"principal": principal_arn})
        return self._merge(principal_id, principal_arn, scoped)

    def policies(self) -> list[PolicyDoc]:
        with self._lock:
            docs = [doc.model_copy(deep=True) for doc in self._policies.values()]
        for doc in docs:
            doc.statements.sort(key=lambda statement: statement.sid or "")
        return sorted(docs, key=lambda doc: doc.name)

    def policy_for(self, principal_id: str) -> PolicyDoc | None:
        with self._lock:
            doc = self._policies.get(principal_id)
            return doc.model_copy(deep=True) if doc else None

    # ------------------------------------------------------------------
    def _await_arns(self, resource_ids: list[str], timeout: float | None) -> list[str]:
        wait = self.timeout if timeout is None else timeout
        if not self.outputs.wait_for(resource_ids, wait):
            pending = [rid for rid in resource_ids if rid not in self.outputs]
            states = {rid: self.outputs.unavailable(rid) for rid in pending}
            detail = ", ".join(f"{rid} ({state.value if state else 'not materialized'})" for rid, state in states.items())
            raise PolicyAttachmentError(f"Cannot attach policy before resources materialize: {detail}")

        arns: list[str] = []
        for resource_id in resource_ids:
            outputs = self.outputs.get(resource_id) or {}
            arn = outputs.get("arn")
            if not arn:
                raise PolicyAttachmentError(f"Resource '{resource_id}' exposes no 'arn' output")
            arns.append(str(arn))
        return arns

    def _merge(self, principal_id: str, principal_arn: str, statement: PolicyStatement) -> PolicyStatement:
        with self._lock:
            doc = self._policies.get(principal_id)
            if doc is None:
                doc = PolicyDoc(name=f"{principal_id}{self.policy_name_suffix}", principal=principal_arn)
                self._policies[principal_id] = doc

            for existing in doc.statements:
                if (
                    existing.effect == statement.effect
                    and existing.resources == statement.resources
                    and existing.conditions == statement.conditions
                ):
                    existing.actions = sorted({*existing.actions, *statement.actions})
                    return existing.model_copy()

            doc.statements.append(statement)
            return statement.model_copy()

    @staticmethod
    def _build_sid(service: str, target_id: str) -> str:
        sid = _SID_INVALID.sub("", f"Allow{service.title()}On{target_id}")
        return sid[:128] or "Allow"


__all__ = ["PolicyAttacher"]
