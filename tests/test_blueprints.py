"""Blueprint loader and built-in template tests."""

from __future__ import annotations

import textwrap

import pytest

from core.blueprint import BlueprintError, build_stack, load_blueprint
from core.models import Join, Reference, ResourceStatus
from core.providers.memory import InMemoryProvider
from core.synth.config import SynthConfig
from core.synth.synthesizer import Synthesizer
from core.templates import TEMPLATES, build_template

BLUEPRINT = textwrap.dedent(
    """
    name: orders
    resources:
      - id: Function
        kind: function
        properties:
          FunctionName: orders
          Role: {ref: Role, attribute: arn}
          Environment:
            Variables:
              TOPIC: {ref: Topic, attribute: arn}
      - id: Role
        kind: role
        properties:
          RoleName: orders-role
      - id: Topic
        kind: topic
        tags:
          site: orders.example.com
        properties:
          TopicName: orders
      - id: Audit
        kind: topic
        depends_on: [Function]
        properties:
          TopicName: {join: [{ref: Topic, attribute: name}, audit], separator: "-"}
    grants:
      - principal: Role
        target: Topic
        actions: [sns:Publish]
    outputs:
      FunctionArn: {ref: Function, attribute: arn}
      TopicId: {ref: Topic}
    """
)

API_PARAMS = {
    "domain_name": "example.com",
    "api_domain_name": "api.example.com",
    "certificate_arn": "arn:aws:acm:us-east-1:123456789012:certificate/abc",
    "hosted_zone_id": "Z123",
}


def _synth(stack):
    return Synthesizer(InMemoryProvider(), SynthConfig(project="site", author="ops")).synthesize(stack)


def test_blueprint_converts_refs_and_joins(tmp_path):
    path = tmp_path / "orders.yml"
    path.write_text(BLUEPRINT, encoding="utf-8")

    stack = load_blueprint(path)

    assert stack.name == "orders"
    function = stack.resource("Function")
    assert function.properties["Role"] == Reference(resource_id="Role", attribute="arn")
    audit = stack.resource("Audit")
    assert isinstance(audit.properties["TopicName"], Join)
    assert audit.depends_on == ["Function"]
    assert stack.resource("Topic").tags == {"site": "orders.example.com"}
    assert stack.outputs["TopicId"] == Reference(resource_id="Topic", attribute="id")


def test_blueprint_synthesizes_out_of_declaration_order(tmp_path):
    path = tmp_path / "orders.yml"
    path.write_text(BLUEPRINT, encoding="utf-8")

    artifact = _synth(load_blueprint(path))

    assert artifact.order == ["Role", "Topic", "Function", "Audit"]
    assert artifact.succeeded
    assert artifact.record("Audit").resolved_properties["TopicName"] == "orders-audit"
    assert artifact.outputs["FunctionArn"] == artifact.record("Function").outputs["arn"]
    assert artifact.policies[0].statements[0].actions == ["sns:Publish"]


def test_blueprint_rejects_malformed_entries():
    with pytest.raises(BlueprintError):
        build_stack({"resources": [{"kind": "role"}]})
    with pytest.raises(BlueprintError):
        build_stack(["not", "a", "mapping"])
    with pytest.raises(BlueprintError):
        build_stack({"resources": [{"id": "A", "kind": "topic", "properties": {"Name": {"join": "a"}}}]})


def test_blueprint_rejects_incomplete_grants_and_connections():
    resources = [{"id": "Role", "kind": "role"}, {"id": "Topic", "kind": "topic"}]
    with pytest.raises(BlueprintError, match="principal"):
        build_stack({"resources": resources, "grants": [{"target": "Topic", "actions": ["sns:Publish"]}]})
    with pytest.raises(BlueprintError, match="port"):
        build_stack({"resources": resources, "connections": [{"source": "Role", "target": "Topic"}]})


def test_template_registry_lists_templates():
    assert sorted(TEMPLATES) == ["api-gateway", "cache-cluster", "database", "vpc-endpoints"]
    with pytest.raises(ValueError):
        build_template("unknown", {})


def test_api_gateway_template_synthesizes():
    stack = build_template("api-gateway", API_PARAMS)
    artifact = _synth(stack)

    assert artifact.succeeded
    assert artifact.order.index("FunctionRole") < artifact.order.index("Function")
    assert artifact.order.index("Api") < artifact.order.index("InvokePermission")
    assert "WebAcl" not in artifact.order

    permission = artifact.record("InvokePermission").resolved_properties
    assert permission["SourceArn"].endswith("/*/*/*")
    plan = artifact.record("UsagePlan").resolved_properties
    assert plan["Throttle"] == {"RateLimit": 2000, "BurstLimit": 1000}
    assert plan["Quota"] == {"Limit": 100000, "Period": "MONTH"}
    assert artifact.outputs["ApiDomain"] == "api.example.com."

    (policy,) = artifact.policies
    assert policy.name == "FunctionRolePolicy"
    assert policy.statements[0].actions == ["sns:Publish"]
    assert policy.statements[0].resources == [artifact.record("DeadLetterTopic").outputs["arn"]]


def test_api_gateway_template_adds_web_acl_in_production():
    stack = build_template("api-gateway", {**API_PARAMS, "is_production": "true"})

    assert "WebAcl" in stack.resource("Api").depends_on
    artifact = _synth(stack)
    assert artifact.record("WebAclAssociation").status == ResourceStatus.MATERIALIZED
    assert artifact.order.index("WebAcl") < artifact.order.index("Api")


def test_api_gateway_template_requires_domain_parameters():
    with pytest.raises(KeyError):
        build_template("api-gateway", {"domain_name": "example.com"})


def test_cache_cluster_template_orders_subnet_group_first():
    artifact = _synth(build_template("cache-cluster", {"port": "6380"}))

    assert artifact.succeeded
    assert "CacheSubnetGroup" in artifact.record("CacheCluster").dependencies
    assert artifact.order.index("CacheSubnetGroup") < artifact.order.index("CacheCluster")
    ingress = artifact.record("CacheIngressFromVpc").resolved_properties
    assert ingress["CidrIp"] == "10.0.0.0/16"
    assert ingress["FromPort"] == 6380
    assert artifact.outputs["CacheEndpoint"] == artifact.record("CacheCluster").outputs["endpoint"]


def test_database_template_wires_secret_into_instance():
    artifact = _synth(build_template("database", {"database_name": "ledger"}))

    secret_arn = artifact.record("DatabaseSecret").outputs["arn"]
    password = artifact.record("Database").resolved_properties["MasterUserPassword"]
    assert password == f"{{{{resolve:secretsmanager:{secret_arn}:SecretString:password}}}}"
    assert artifact.policies[0].name == "DatabaseClientRolePolicy"
    assert artifact.policies[0].statements[0].resources == [secret_arn]


def test_vpc_endpoints_template_connects_function_to_interfaces():
    stack = build_template("vpc-endpoints", {"interface_services": "sns,secretsmanager"})
    artifact = _synth(stack)

    assert artifact.succeeded
    assert "FunctionToSnsInterfaceEndpointPort443" in artifact.order
    assert "FunctionToSecretsmanagerInterfaceEndpointPort443" in artifact.order
    ingress = artifact.record("FunctionToSnsInterfaceEndpointPort443").resolved_properties
    assert ingress["GroupId"] == artifact.record("EndpointSecurityGroup").outputs["security_group_id"]
    assert ingress["SourceSecurityGroupId"] == artifact.record("FunctionSecurityGroup").outputs["security_group_id"]
    gateway = artifact.record("DynamodbGatewayEndpoint").resolved_properties
    assert gateway["ServiceName"] == "com.amazonaws.us-east-1.dynamodb"
