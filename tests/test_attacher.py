"""Outputs table and policy attacher tests."""

from __future__ import annotations

import threading

import pytest

from core.errors import PolicyAttachmentError
from core.models import PolicyStatement, ResourceStatus
from core.policy.attacher import PolicyAttacher
from core.synth.outputs import OutputTable

ROLE_ARN = "arn:aws:iam::123456789012:role/worker"
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:events"
QUEUE_ARN = "arn:aws:sqs:us-east-1:123456789012:jobs"


def _table() -> OutputTable:
    table = OutputTable()
    table.put("Role", {"id": "worker", "arn": ROLE_ARN})
    table.put("Topic", {"id": "events", "arn": TOPIC_ARN})
    return table


def test_outputs_table_is_write_once():
    table = OutputTable()
    table.put("Role", {"id": "r"})
    with pytest.raises(RuntimeError):
        table.put("Role", {"id": "again"})
    assert table.get("Role") == {"id": "r"}
    assert "Role" in table


def test_outputs_table_wait_returns_false_for_unavailable():
    table = OutputTable()
    table.put("Role", {"id": "r"})
    table.mark_unavailable("Topic", ResourceStatus.FAILED)
    assert table.wait_for(["Role", "Topic"], timeout=1) is False
    assert table.unavailable("Topic") == ResourceStatus.FAILED


def test_outputs_table_wait_times_out():
    assert OutputTable().wait_for(["Role"], timeout=0.05) is False


def test_attach_produces_concrete_statement():
    attacher = PolicyAttacher(_table())
    statement = attacher.attach_least_privilege("Role", "Topic", ["sns:Publish"])

    assert statement.sid == "AllowSnsOnTopic"
    assert statement.principal == ROLE_ARN
    assert statement.resources == [TOPIC_ARN]

    (policy,) = attacher.policies()
    assert policy.name == "RolePolicy"
    assert policy.principal == ROLE_ARN
    assert policy.services == ["sns"]


def test_attach_is_idempotent():
    attacher = PolicyAttacher(_table())
    attacher.attach_least_privilege("Role", "Topic", ["sns:Publish"])
    attacher.attach_least_privilege("Role", "Topic", ["sns:Publish"])
    attacher.attach_least_privilege("Role", "Topic", ["sns:GetTopicAttributes"])

    policy = attacher.policy_for("Role")
    assert len(policy.statements) == 1
    assert policy.statements[0].actions == ["sns:GetTopicAttributes", "sns:Publish"]


def test_attach_blocks_until_both_ends_materialize():
    table = OutputTable()
    attacher = PolicyAttacher(table)
    attached: list = []

    worker = threading.Thread(
        target=lambda: attached.append(attacher.attach_least_privilege("Role", "Queue", ["sqs:SendMessage"], timeout=5))
    )
    worker.start()

    table.put("Role", {"id": "worker", "arn": ROLE_ARN})
    worker.join(0.1)
    assert worker.is_alive()
    assert attached == []

    table.put("Queue", {"id": "jobs", "arn": QUEUE_ARN})
    worker.join(5)
    assert not worker.is_alive()

    (statement,) = attached
    assert statement.principal == ROLE_ARN
    assert statement.resources == [QUEUE_ARN]


def test_attach_fails_when_target_never_materializes():
    table = OutputTable()
    table.put("Role", {"id": "worker", "arn": ROLE_ARN})
    table.mark_unavailable("Queue", ResourceStatus.SKIPPED)
    attacher = PolicyAttacher(table)

    with pytest.raises(PolicyAttachmentError) as excinfo:
        attacher.attach_least_privilege("Role", "Queue", ["sqs:SendMessage"], timeout=5)
    assert "skipped" in str(excinfo.value)
    assert attacher.policies() == []


def test_attach_times_out_for_pending_target():
    attacher = PolicyAttacher(_table(), timeout=0.05)
    with pytest.raises(PolicyAttachmentError):
        attacher.attach_least_privilege("Role", "Queue", ["sqs:SendMessage"])


def test_attach_requires_actions():
    with pytest.raises(ValueError):
        PolicyAttacher(_table()).attach_least_privilege("Role", "Topic", [])


def test_attach_statement_rejects_unresolved_resources():
    attacher = PolicyAttacher(_table())
    statement = PolicyStatement(sid="Raw", actions=["s3:GetObject"], resources=["${Bucket.arn}/*"])
    with pytest.raises(PolicyAttachmentError):
        attacher.attach_statement("Role", statement)


def test_policies_serialize_with_iam_aliases():
    attacher = PolicyAttacher(_table())
    attacher.attach_least_privilege("Role", "Topic", ["sns:Publish"])
    payload = attacher.policies()[0].model_dump(by_alias=True)
    assert payload["PolicyName"] == "RolePolicy"
    assert payload["Statement"][0]["Resource"] == [TOPIC_ARN]
    assert payload["Statement"][0]["Action"] == ["sns:Publish"]
