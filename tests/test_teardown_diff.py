"""Teardown and artifact diff tests."""

from __future__ import annotations

from core.constants import ResourceKind
from core.providers.memory import InMemoryProvider
from core.registry.stack import Stack
from core.synth.config import SynthConfig
from core.synth.diff import ArtifactDiff
from core.synth.synthesizer import Synthesizer
from core.synth.teardown import teardown


def _stack(function_memory: int = 128, extra: bool = False) -> Stack:
    stack = Stack("service")
    role = stack.declare(ResourceKind.ROLE, "Role", {"RoleName": "svc"})
    topic = stack.declare(ResourceKind.TOPIC, "Topic", {"TopicName": "svc-events"})
    stack.declare(
        ResourceKind.FUNCTION,
        "Function",
        {"FunctionName": "svc", "MemorySize": function_memory, "Role": role.arn, "Topic": topic.arn},
    )
    stack.declare(ResourceKind.SECRET, "Unrelated", {"Name": "svc-secret"})
    if extra:
        stack.declare(ResourceKind.TOPIC, "Audit", {"TopicName": "svc-audit"})
    return stack


def _synth(stack: Stack, provider: InMemoryProvider | None = None):
    config = SynthConfig(project="svc", author="ops")
    return Synthesizer(provider or InMemoryProvider(), config).synthesize(stack)


class FailingDeleteProvider(InMemoryProvider):
    def delete(self, kind: str, physical_id: str) -> None:
        if kind == "function":
            raise RuntimeError("resource in use")
        super().delete(kind, physical_id)


def test_teardown_deletes_in_reverse_order():
    provider = InMemoryProvider()
    artifact = _synth(_stack(), provider)

    report = teardown(artifact, provider)

    assert report.succeeded
    assert report.deleted == ["Unrelated", "Function", "Topic", "Role"]
    assert [kind for kind, _ in provider.delete_calls] == ["secret", "function", "topic", "role"]
    assert provider.resources == {}


def test_teardown_retains_dependencies_of_failed_delete():
    provider = FailingDeleteProvider()
    artifact = _synth(_stack(), provider)

    report = teardown(artifact, provider)

    assert report.deleted == ["Unrelated"]
    assert "resource in use" in report.failed["Function"]
    assert report.retained == ["Topic", "Role"]
    assert not report.succeeded
    assert report.as_json()["retained"] == ["Topic", "Role"]


def test_synthesizer_teardown_uses_its_providers():
    provider = InMemoryProvider()
    synthesizer = Synthesizer(provider, SynthConfig(project="svc", author="ops"))
    artifact = synthesizer.synthesize(_stack())
    assert synthesizer.teardown(artifact).succeeded
    assert provider.resources == {}


def test_identical_runs_have_no_drift():
    diff = ArtifactDiff(_synth(_stack()), _synth(_stack()))
    assert not diff.has_drift()
    assert diff.as_json() == {
        "stack": "service",
        "drift": False,
        "added": [],
        "removed": [],
        "changed": {},
        "orderChanged": False,
        "policiesChanged": False,
    }


def test_changed_and_added_resources_are_reported():
    diff = ArtifactDiff(_synth(_stack()), _synth(_stack(function_memory=512, extra=True)))

    assert diff.has_drift()
    assert diff.added() == ["Audit"]
    assert diff.removed() == []
    assert "resolved_properties" in diff.changed()["Function"]
    markdown = diff.as_markdown()
    assert "| Audit | added |  |" in markdown
    assert "| Function | changed |" in markdown


def test_diff_survives_json_round_trip():
    artifact = _synth(_stack())
    reloaded = type(artifact).model_validate(artifact.model_dump(mode="json", by_alias=True))
    assert not ArtifactDiff(artifact, reloaded).has_drift()
