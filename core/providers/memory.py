"""Deterministic in-process provider used for dry runs and tests."""

from __future__ import annotations

import hashlib
import json
import threading
from typing import Any, Callable, Dict

from core.constants import ResourceKind

# Property names checked, in order, for a resource's human-readable name
NAME_KEYS = (
    "FunctionName",
    "RoleName",
    "TopicName",
    "Name",
    "DomainName",
    "ClusterName",
    "DBInstanceIdentifier",
    "SecretName",
    "GroupName",
    "CacheSubnetGroupName",
    "ApiKeyName",
    "UsagePlanName",
)

_ARN_FORMATS: Dict[str, str] = {
    ResourceKind.FUNCTION.value: "arn:aws:lambda:{region}:{account}:function:{name}",
    ResourceKind.ROLE.value: "arn:aws:iam::{account}:role/{name}",
    ResourceKind.TOPIC.value: "arn:aws:sns:{region}:{account}:{name}",
    ResourceKind.REST_API.value: "arn:aws:apigateway:{region}::/restapis/{id}",
    ResourceKind.USAGE_PLAN.value: "arn:aws:apigateway:{region}::/usageplans/{id}",
    ResourceKind.API_KEY.value: "arn:aws:apigateway:{region}::/apikeys/{id}",
    ResourceKind.DOMAIN_NAME.value: "arn:aws:apigateway:{region}::/domainnames/{name}",
    ResourceKind.WEB_ACL.value: "arn:aws:wafv2:{region}:{account}:regional/webacl/{name}/{id}",
    ResourceKind.CACHE_CLUSTER.value: "arn:aws:elasticache:{region}:{account}:cluster:{name}",
    ResourceKind.CACHE_SUBNET_GROUP.value: "arn:aws:elasticache:{region}:{account}:subnetgroup:{name}",
    ResourceKind.DATABASE_INSTANCE.value: "arn:aws:rds:{region}:{account}:db:{name}",
    ResourceKind.SECRET.value: "arn:aws:secretsmanager:{region}:{account}:secret:{name}-{suffix}",
    ResourceKind.HOSTED_ZONE.value: "arn:aws:route53:::hostedzone/{id}",
    ResourceKind.VPC.value: "arn:aws:ec2:{region}:{account}:vpc/{id}",
    ResourceKind.VPC_ENDPOINT.value: "arn:aws:ec2:{region}:{account}:vpc-endpoint/{id}",
    ResourceKind.SECURITY_GROUP.value: "arn:aws:ec2:{region}:{account}:security-group/{id}",
}

_ID_PREFIXES: Dict[str, str] = {
    ResourceKind.VPC.value: "vpc-",
    ResourceKind.VPC_ENDPOINT.value: "vpce-",
    ResourceKind.SECURITY_GROUP.value: "sg-",
    ResourceKind.SECURITY_GROUP_INGRESS.value: "sgr-",
    ResourceKind.HOSTED_ZONE.value: "Z",
    ResourceKind.REST_API.value: "",
    ResourceKind.API_KEY.value: "",
}

Extra = Callable[[dict[str, Any], dict[str, Any], "InMemoryProvider"], dict[str, Any]]


def _digest(kind: str, properties: dict[str, Any]) -> str:
    canonical = json.dumps({"kind": kind, "properties": properties}, sort_keys=True, default=str)
    return hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class InMemoryProvider:
    """Create-if-absent provider: identical kind and properties yield identical outputs."""

    def __init__(self, account_id: str = "123456789012", region: str = "us-east-1") -> None:
        self.account_id = account_id
        self.region = region
        self.resources: dict[str, dict[str, Any]] = {}
        self.create_calls = 0
        self.delete_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def create(self, kind: str, properties: dict[str, Any]) -> dict[str, Any]:
        digest = _digest(kind, properties)
        physical_id = _ID_PREFIXES.get(kind, f"{kind}-") + digest[:12]
        with self._lock:
            self.create_calls += 1
            existing = self.resources.get(physical_id)
            if existing is not None:
                return dict(existing["outputs"])

            outputs = self._outputs(kind, properties, physical_id, digest)
            self.resources[physical_id] = {"kind": kind, "properties": properties, "outputs": outputs}
            return dict(outputs)

    def delete(self, kind: str, physical_id: str) -> None:
        with self._lock:
            self.delete_calls.append((kind, physical_id))
            self.resources.pop(physical_id, None)

    # ------------------------------------------------------------------
    def _outputs(self, kind: str, properties: dict[str, Any], physical_id: str, digest: str) -> dict[str, Any]:
        name = next((str(properties[key]) for key in NAME_KEYS if properties.get(key)), physical_id)
        outputs: dict[str, Any] = {"id": physical_id, "name": name}
        arn_format = _ARN_FORMATS.get(kind)
        if arn_format:
            outputs["arn"] = arn_format.format(
                region=self.region, account=self.account_id, name=name, id=physical_id, suffix=digest[:6]
            )
        else:
            outputs["arn"] = f"arn:aws:{kind}:{self.region}:{self.account_id}:{physical_id}"

        extra = _EXTRAS.get(kind)
        if extra:
            outputs.update(extra(properties, outputs, self))
        return outputs


def _rest_api(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    api_id = outputs["id"]
    stage = properties.get("StageName", "prod")
    return {
        "root_resource_id": f"{api_id[:6]}root",
        "execute_arn": f"arn:aws:execute-api:{provider.region}:{provider.account_id}:{api_id}",
        "url": f"https://{api_id}.execute-api.{provider.region}.amazonaws.com/{stage}/",
        "stage_name": stage,
        "stage_arn": f"arn:aws:apigateway:{provider.region}::/restapis/{api_id}/stages/{stage}",
    }


def _domain_name(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    token = outputs["id"][-10:]
    return {
        "distribution_domain_name": f"d{token}.cloudfront.net",
        "regional_domain_name": f"d-{token}.execute-api.{provider.region}.amazonaws.com",
        "distribution_hosted_zone_id": "Z2FDTNDATAQYW2",
    }


def _endpoint(port: int, service: str) -> Extra:
    def extra(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
        groups = properties.get("VpcSecurityGroupIds") or properties.get("SecurityGroupIds") or []
        return {
            "endpoint": f"{outputs['name']}.{outputs['id'][-8:]}.{provider.region}.{service}.amazonaws.com",
            "port": int(properties.get("Port", port)),
            "security_group_id": groups[0] if groups else f"sg-{outputs['id'][-12:]}",
        }

    return extra


def _connectable(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    vpc_config = properties.get("VpcConfig") or {}
    groups = properties.get("SecurityGroupIds") or vpc_config.get("SecurityGroupIds") or []
    return {"security_group_id": groups[0] if groups else f"sg-{outputs['id'][-12:]}"}


def _security_group(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    return {"security_group_id": outputs["id"]}


def _vpc(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    zones = int(properties.get("MaxAzs", 2))
    suffix = outputs["id"][-8:]
    return {
        "cidr_block": properties.get("CidrBlock", "10.0.0.0/16"),
        "private_subnet_ids": [f"subnet-{suffix}{index}" for index in range(zones)],
        "public_subnet_ids": [f"subnet-{suffix}{index + zones}" for index in range(zones)],
    }


def _hosted_zone(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    return {"name_servers": [f"ns-{index}.awsdns-{outputs['id'][-4:]}.net" for index in range(1, 5)]}


def _record_set(properties: dict[str, Any], outputs: dict[str, Any], provider: InMemoryProvider) -> dict[str, Any]:
    fqdn = str(properties.get("Name", outputs["id"])).rstrip(".") + "."
    return {"fqdn": fqdn}


_EXTRAS: Dict[str, Extra] = {
    ResourceKind.REST_API.value: _rest_api,
    ResourceKind.DOMAIN_NAME.value: _domain_name,
    ResourceKind.DATABASE_INSTANCE.value: _endpoint(5432, "rds"),
    ResourceKind.CACHE_CLUSTER.value: _endpoint(6379, "cache"),
    ResourceKind.FUNCTION.value: _connectable,
    ResourceKind.VPC_ENDPOINT.value: _connectable,
    ResourceKind.SECURITY_GROUP.value: _security_group,
    ResourceKind.VPC.value: _vpc,
    ResourceKind.HOSTED_ZONE.value: _hosted_zone,
    ResourceKind.RECORD_SET.value: _record_set,
}


__all__ = ["InMemoryProvider", "NAME_KEYS"]
