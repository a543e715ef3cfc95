"""Materialize a stack in dependency order against its providers."""

from __future__ import annotations

import bisect
import copy
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from core.constants import Capability, ResourceKind, THROTTLED_KINDS, has_capability
from core.errors import PolicyAttachmentError, UnknownOutputError, UnresolvedDependencyError
from core.graph.builder import DependencyGraph, DependencyGraphBuilder
from core.graph.resolver import ReferenceResolver
from core.models import Grant, PolicyStatement, Reference, Resource, ResourceRecord, ResourceStatus, SynthesizedStack
from core.policy.attacher import PolicyAttacher
from core.providers.base import ProviderRegistry, ResourceProvider, is_transient
from core.registry.stack import Stack
from core.synth.backoff import ExponentialBackoff
from core.synth.config import SynthConfig
from core.synth.outputs import OutputTable

LOG = logging.getLogger(__name__)

LOGS_BASELINE_ACTIONS = ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"]

# Interval at which the scheduler re-checks cancellation while workers run
_POLL_INTERVAL = 0.05


@dataclass(slots=True)
class _Outcome:
    resolved: dict[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] | None = None
    attempts: int = 0
    error: str | None = None
    cancelled: bool = False


@dataclass(slots=True)
class _Run:
    stack: Stack
    graph: DependencyGraph
    resources: dict[str, Resource]
    records: dict[str, ResourceRecord]
    outputs: OutputTable
    attacher: PolicyAttacher
    pending_grants: list[Grant]
    skipped_grants: list[Grant] = field(default_factory=list)
    policy_errors: list[str] = field(default_factory=list)


def _outcome_of(future: Future, rid: str) -> _Outcome:
    """Unwrap a worker result; only an ordering bug escapes."""
    try:
        return future.result()
    except UnresolvedDependencyError:
        raise
    except Exception as exc:
        LOG.exception("Unexpected error while materializing %s", rid)
        return _Outcome(error=f"{type(exc).__name__}: {exc}")


class Synthesizer:
    """Walk the dependency graph and create each resource through its provider.

    Independent subgraphs run concurrently on a pool bounded by
    ``config.parallelism``. A failed resource only takes its descendants down
    with it; everything else keeps materializing.
    """

    def __init__(
        self,
        providers: ProviderRegistry | ResourceProvider,
        config: SynthConfig,
        *,
        builder: DependencyGraphBuilder | None = None,
        resolver: ReferenceResolver | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not isinstance(providers, ProviderRegistry):
            providers = ProviderRegistry(default=providers)
        self.providers = providers
        self.config = config
        self.builder = builder or DependencyGraphBuilder()
        self.resolver = resolver or ReferenceResolver()
        self._sleep = sleep
        self._cancelled = threading.Event()
        self._run: _Run | None = None

    @property
    def attacher(self) -> PolicyAttacher | None:
        """Policy attacher of the current (or last) run."""
        return self._run.attacher if self._run else None

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def plan(self, stack: Stack) -> DependencyGraph:
        return self.builder.build(stack.resources)

    def synthesize(self, stack: Stack) -> SynthesizedStack:
        stack.seal()
        resources = {resource.logical_id: resource for resource in stack.resources}
        self.providers.check_supported(resource.kind for resource in resources.values())
        graph = self.builder.build(resources.values())

        self._cancelled.clear()
        outputs = OutputTable()
        run = _Run(
            stack=stack,
            graph=graph,
            resources=resources,
            records={
                rid: ResourceRecord(resource_id=rid, kind=resources[rid].kind, dependencies=graph.dependencies_of(rid))
                for rid in graph.order
            },
            outputs=outputs,
            attacher=PolicyAttacher(outputs, policy_name_suffix=self.config.policy_name_suffix, timeout=0),
            pending_grants=list(stack.grants),
        )
        self._run = run
        LOG.info("Synthesizing stack %s (%d resources)", stack.name, len(graph.order))

        self._schedule(run)

        result = SynthesizedStack(
            stack_name=stack.name,
            order=list(graph.order),
            records=[run.records[rid] for rid in graph.order],
            policies=run.attacher.policies(),
            outputs=self._stack_outputs(run),
            skipped_grants=run.skipped_grants + run.pending_grants,
            policy_errors=run.policy_errors,
        )
        LOG.info(
            "Stack %s synthesized: %d materialized, %d failed, %d skipped",
            stack.name,
            sum(1 for record in result.records if record.status == ResourceStatus.MATERIALIZED),
            len(result.failed),
            len(result.skipped),
        )
        return result

    def teardown(self, artifact: SynthesizedStack):
        from core.synth.teardown import teardown

        return teardown(artifact, self.providers)

    # ------------------------------------------------------------------
    # Scheduling (main thread only mutates records)

    def _schedule(self, run: _Run) -> None:
        graph = run.graph
        position = {rid: index for index, rid in enumerate(graph.order)}
        remaining = {rid: len(graph.dependencies_of(rid)) for rid in graph.order}
        ready = [rid for rid in graph.order if remaining[rid] == 0]
        deadline = time.monotonic() + self.config.timeout if self.config.timeout else None
        in_flight: dict[Future, str] = {}

        executor = ThreadPoolExecutor(max_workers=self.config.parallelism, thread_name_prefix="synth")
        try:
            while ready or in_flight:
                if deadline is not None and time.monotonic() >= deadline:
                    LOG.warning("Synthesis of %s timed out after %ss", run.stack.name, self.config.timeout)
                    self._cancelled.set()
                if self._cancelled.is_set():
                    break

                while ready and len(in_flight) < self.config.parallelism:
                    rid = ready.pop(0)
                    run.records[rid].status = ResourceStatus.MATERIALIZING
                    future = executor.submit(self._materialize, run.resources[rid], run.outputs.snapshot())
                    in_flight[future] = rid

                done, _ = wait(list(in_flight), timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda item: position[in_flight[item]]):
                    rid = in_flight.pop(future)
                    outcome = _outcome_of(future, rid)
                    if self._complete(run, rid, outcome):
                        for dependent in graph.dependents_of(rid):
                            remaining[dependent] -= 1
                            if remaining[dependent] == 0 and run.records[dependent].status == ResourceStatus.PENDING:
                                bisect.insort(ready, dependent, key=position.__getitem__)
                    self._attach_ready_grants(run)

            if self._cancelled.is_set():
                self._drain(run, in_flight)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _complete(self, run: _Run, rid: str, outcome: _Outcome) -> bool:
        record = run.records[rid]
        record.resolved_properties = outcome.resolved
        record.attempts = outcome.attempts

        if outcome.cancelled:
            self._mark_skipped(run, rid, outcome.error or "synthesis cancelled", outputs=outcome.outputs)
            return False

        if outcome.outputs is not None:
            record.outputs = outcome.outputs
            record.status = ResourceStatus.MATERIALIZED
            run.outputs.put(rid, outcome.outputs)
            LOG.info("Materialized %s (%s) after %d attempt(s)", rid, record.kind, outcome.attempts)
            self._attach_logs_baseline(run, rid)
            return True

        record.status = ResourceStatus.FAILED
        record.error = outcome.error
        run.outputs.mark_unavailable(rid, ResourceStatus.FAILED)
        LOG.error("Failed to materialize %s (%s): %s", rid, record.kind, outcome.error)
        descendants = run.graph.descendants(rid)
        for descendant in run.graph.order:
            if descendant in descendants and run.records[descendant].status == ResourceStatus.PENDING:
                self._mark_skipped(run, descendant, f"dependency '{rid}' failed")
        return False

    def _mark_skipped(self, run: _Run, rid: str, reason: str, outputs: dict[str, Any] | None = None) -> None:
        record = run.records[rid]
        record.status = ResourceStatus.SKIPPED
        record.error = reason
        if outputs:
            record.outputs = outputs
        run.outputs.mark_unavailable(rid, ResourceStatus.SKIPPED)
        LOG.warning("Skipped %s: %s", rid, reason)

    def _drain(self, run: _Run, in_flight: dict[Future, str]) -> None:
        if in_flight:
            done, not_done = wait(list(in_flight), timeout=self.config.cancel_grace)
            for future in done:
                rid = in_flight[future]
                outcome = _outcome_of(future, rid)
                run.records[rid].resolved_properties = outcome.resolved
                run.records[rid].attempts = outcome.attempts
                self._mark_skipped(run, rid, "synthesis cancelled while in flight", outputs=outcome.outputs)
            for future in not_done:
                self._mark_skipped(run, in_flight[future], "synthesis cancelled; creation call did not return")
        for rid in run.graph.order:
            if run.records[rid].status == ResourceStatus.PENDING:
                self._mark_skipped(run, rid, "synthesis cancelled")

    # ------------------------------------------------------------------
    # Worker side

    def _materialize(self, resource: Resource, materialized: dict[str, dict[str, Any]]) -> _Outcome:
        try:
            resolved = self.resolver.resolve_properties(resource.properties, materialized)
        except UnknownOutputError as exc:
            return _Outcome(error=str(exc))
        resolved = self._apply_cross_cutting(resource, resolved)

        provider = self.providers.for_kind(resource.kind)
        backoff = ExponentialBackoff(
            initial_interval=self.config.backoff_initial_interval,
            randomization_factor=self.config.backoff_randomization,
            multiplier=self.config.backoff_multiplier,
            max_interval=self.config.backoff_max_interval,
            max_retries=self.config.max_retries,
        )
        attempts = 0
        while True:
            if self._cancelled.is_set():
                return _Outcome(resolved=resolved, attempts=attempts, cancelled=True, error="synthesis cancelled before creation")
            attempts += 1
            try:
                outputs = provider.create(resource.kind, copy.deepcopy(resolved))
            except Exception as exc:  # provider failures are isolated to this resource
                if is_transient(exc):
                    delay = backoff.next_backoff()
                    if delay > 0:
                        LOG.warning(
                            "Transient error creating %s (attempt %d), retrying in %.2fs: %s",
                            resource.logical_id,
                            attempts,
                            delay,
                            exc,
                        )
                        self._sleep(delay)
                        continue
                return _Outcome(resolved=resolved, attempts=attempts, error=f"{type(exc).__name__}: {exc}")

            if not outputs or "id" not in outputs:
                return _Outcome(resolved=resolved, attempts=attempts, error="provider returned no 'id' output")
            if self._cancelled.is_set():
                return _Outcome(resolved=resolved, outputs=dict(outputs), attempts=attempts, cancelled=True)
            return _Outcome(resolved=resolved, outputs=dict(outputs), attempts=attempts)

    def _apply_cross_cutting(self, resource: Resource, resolved: dict[str, Any]) -> dict[str, Any]:
        if has_capability(resource.kind, Capability.TAGGABLE):
            tags = self.config.stack_tags()
            tags.update(resource.tags)
            declared = resolved.get("Tags") or []
            if isinstance(declared, Mapping):
                tags.update({str(key): str(value) for key, value in declared.items()})
                resolved["Tags"] = {key: tags[key] for key in sorted(tags)}
            else:
                for entry in declared:
                    tags[str(entry["Key"])] = str(entry["Value"])
                resolved["Tags"] = [{"Key": key, "Value": tags[key]} for key in sorted(tags)]

        if resource.kind in THROTTLED_KINDS and "Throttle" not in resolved:
            throttle = self.config.throttle()
            if throttle:
                resolved["Throttle"] = throttle
        return resolved

    # ------------------------------------------------------------------
    # Policies and outputs

    def _attach_ready_grants(self, run: _Run) -> None:
        waiting: list[Grant] = []
        for grant in run.pending_grants:
            ends = (run.records[grant.principal_id].status, run.records[grant.target_id].status)
            if all(status == ResourceStatus.MATERIALIZED for status in ends):
                try:
                    run.attacher.attach_least_privilege(grant.principal_id, grant.target_id, grant.actions, timeout=0)
                except PolicyAttachmentError as exc:
                    LOG.warning("Grant %s -> %s not attached: %s", grant.principal_id, grant.target_id, exc)
                    run.skipped_grants.append(grant)
                    run.policy_errors.append(f"{grant.principal_id} -> {grant.target_id}: {exc}")
            elif any(status in (ResourceStatus.FAILED, ResourceStatus.SKIPPED) for status in ends):
                LOG.warning("Grant %s -> %s not attached: an end did not materialize", grant.principal_id, grant.target_id)
                run.skipped_grants.append(grant)
            else:
                waiting.append(grant)
        run.pending_grants = waiting

    def _attach_logs_baseline(self, run: _Run, rid: str) -> None:
        resource = run.resources[rid]
        if not self.config.include_logs_baseline or resource.kind != ResourceKind.FUNCTION.value:
            return
        role = resource.properties.get("Role")
        if not isinstance(role, Reference):
            return
        function_name = run.records[rid].outputs.get("name", rid)
        log_group_arn = (
            f"arn:aws:logs:{self.config.region}:{self.config.account_id}:log-group:/aws/lambda/{function_name}:*"
        )
        statement = PolicyStatement(
            sid=f"AllowLogsFor{''.join(ch for ch in rid if ch.isalnum())}",
            actions=list(LOGS_BASELINE_ACTIONS),
            resources=[log_group_arn],
        )
        try:
            run.attacher.attach_statement(role.resource_id, statement, timeout=0)
        except PolicyAttachmentError as exc:
            LOG.warning("Logs baseline for %s not attached: %s", rid, exc)
            run.policy_errors.append(f"{role.resource_id} logs baseline: {exc}")

    def _stack_outputs(self, run: _Run) -> dict[str, Any]:
        snapshot = run.outputs.snapshot()
        resolved: dict[str, Any] = {}
        for name, value in run.stack.outputs.items():
            try:
                resolved[name] = self.resolver.resolve_value(value, snapshot)
            except (UnresolvedDependencyError, UnknownOutputError) as exc:
                LOG.warning("Stack output %s omitted: %s", name, exc)
        return resolved


__all__ = ["Synthesizer", "LOGS_BASELINE_ACTIONS"]
