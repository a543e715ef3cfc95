"""Provider, retry classification and backoff tests."""

from __future__ import annotations

import json
from typing import Any

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from core.errors import ProviderCreationError, UnsupportedKindError
from core.providers.base import ProviderRegistry, ResourceProvider, is_transient
from core.providers.cloudcontrol import CloudControlProvider
from core.providers.memory import InMemoryProvider
from core.synth.backoff import ExponentialBackoff


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "CreateResource")


class DummyCloudControl:
    def __init__(self, final_status: str = "SUCCESS", error_code: str | None = None) -> None:
        self.final_status = final_status
        self.error_code = error_code
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def create_resource(self, **kwargs):
        self.calls.append(("create_resource", kwargs))
        return {"ProgressEvent": {"Operation": "CREATE", "OperationStatus": "IN_PROGRESS", "RequestToken": "tok-1"}}

    def delete_resource(self, **kwargs):
        self.calls.append(("delete_resource", kwargs))
        return {"ProgressEvent": {"Operation": "DELETE", "OperationStatus": "IN_PROGRESS", "RequestToken": "tok-2"}}

    def get_resource_request_status(self, **kwargs):
        self.calls.append(("get_resource_request_status", kwargs))
        event = {"OperationStatus": self.final_status, "Identifier": "arn:aws:sns:us-east-1:1:events"}
        if self.error_code:
            event["ErrorCode"] = self.error_code
            event["StatusMessage"] = "handler failed"
        return {"ProgressEvent": event}

    def get_resource(self, **kwargs):
        self.calls.append(("get_resource", kwargs))
        properties = {"TopicArn": "arn:aws:sns:us-east-1:1:events", "TopicName": "events"}
        return {"ResourceDescription": {"Identifier": kwargs["Identifier"], "Properties": json.dumps(properties)}}


def test_in_memory_provider_is_create_if_absent():
    provider = InMemoryProvider()
    first = provider.create("topic", {"TopicName": "events"})
    second = provider.create("topic", {"TopicName": "events"})
    other = provider.create("topic", {"TopicName": "other"})

    assert first == second
    assert first["id"] != other["id"]
    assert first["arn"] == "arn:aws:sns:us-east-1:123456789012:events"
    assert provider.create_calls == 3
    assert len(provider.resources) == 2
    assert isinstance(provider, ResourceProvider)


def test_in_memory_provider_kind_specific_outputs():
    provider = InMemoryProvider(region="eu-west-1")
    api = provider.create("rest-api", {"Name": "api", "StageName": "v1"})
    assert api["stage_name"] == "v1"
    assert api["url"].endswith(".execute-api.eu-west-1.amazonaws.com/v1/")
    assert api["execute_arn"].startswith("arn:aws:execute-api:eu-west-1:")

    vpc = provider.create("vpc", {"CidrBlock": "10.1.0.0/16", "MaxAzs": 3})
    assert vpc["id"].startswith("vpc-")
    assert len(vpc["private_subnet_ids"]) == 3

    database = provider.create("database-instance", {"DBInstanceIdentifier": "appdb", "VpcSecurityGroupIds": ["sg-1"]})
    assert database["port"] == 5432
    assert database["security_group_id"] == "sg-1"


def test_in_memory_provider_delete_records_call():
    provider = InMemoryProvider()
    outputs = provider.create("topic", {"TopicName": "events"})
    provider.delete("topic", outputs["id"])
    assert provider.resources == {}
    assert provider.delete_calls == [("topic", outputs["id"])]


def test_registry_dispatches_by_kind():
    default, special = InMemoryProvider(), InMemoryProvider()
    registry = ProviderRegistry(default=default)
    registry.register("topic", special)
    assert registry.for_kind("topic") is special
    assert registry.for_kind("role") is default


def test_registry_without_default_rejects_unknown_kind():
    registry = ProviderRegistry()
    with pytest.raises(UnsupportedKindError):
        registry.for_kind("topic")
    with pytest.raises(UnsupportedKindError) as excinfo:
        registry.check_supported(["topic", "role", "topic"])
    assert excinfo.value.kinds == ["role", "topic"]


def test_transient_classification():
    assert is_transient(_client_error("Throttling"))
    assert is_transient(_client_error("TooManyRequestsException"))
    assert not is_transient(_client_error("AccessDenied"))
    assert is_transient(EndpointConnectionError(endpoint_url="https://cloudcontrolapi.us-east-1.amazonaws.com"))
    assert is_transient(ProviderCreationError("slow down", transient=True))
    assert not is_transient(ProviderCreationError("bad input"))
    assert not is_transient(ValueError("boom"))


def test_cloudcontrol_create_polls_until_success():
    client = DummyCloudControl()
    provider = CloudControlProvider(client, sleep=lambda _: None)

    outputs = provider.create("topic", {"TopicName": "events"})

    assert outputs["id"] == "arn:aws:sns:us-east-1:1:events"
    assert outputs["topic_name"] == "events"
    assert outputs["topic_arn"] == "arn:aws:sns:us-east-1:1:events"
    assert outputs["arn"] == outputs["topic_arn"]
    create_call = client.calls[0][1]
    assert create_call["TypeName"] == "AWS::SNS::Topic"
    assert json.loads(create_call["DesiredState"]) == {"TopicName": "events"}


def test_cloudcontrol_failure_classifies_transient_codes():
    provider = CloudControlProvider(DummyCloudControl("FAILED", "Throttling"), sleep=lambda _: None)
    with pytest.raises(ProviderCreationError) as excinfo:
        provider.create("topic", {"TopicName": "events"})
    assert excinfo.value.transient

    provider = CloudControlProvider(DummyCloudControl("FAILED", "InvalidRequest"), sleep=lambda _: None)
    with pytest.raises(ProviderCreationError) as excinfo:
        provider.create("topic", {"TopicName": "events"})
    assert not excinfo.value.transient


def test_cloudcontrol_delete_and_unknown_kind():
    client = DummyCloudControl()
    provider = CloudControlProvider(client, sleep=lambda _: None)
    provider.delete("topic", "arn:aws:sns:us-east-1:1:events")
    assert client.calls[0] == ("delete_resource", {"TypeName": "AWS::SNS::Topic", "Identifier": "arn:aws:sns:us-east-1:1:events"})

    with pytest.raises(UnsupportedKindError):
        provider.create("queue", {})


def test_backoff_grows_and_gives_up():
    backoff = ExponentialBackoff(initial_interval=1.0, multiplier=2.0, max_interval=3.0, max_retries=4)
    assert [backoff.next_backoff() for _ in range(5)] == [1.0, 2.0, 3.0, 3.0, 0]
    backoff.reset()
    assert backoff.next_backoff() == 1.0


def test_backoff_randomization_stays_in_bounds():
    backoff = ExponentialBackoff(initial_interval=1.0, randomization_factor=0.5, max_retries=-1)
    for _ in range(3):
        backoff.reset()
        assert 0.5 <= backoff.next_backoff() <= 1.5
