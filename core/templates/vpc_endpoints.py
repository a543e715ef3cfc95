"""Private VPC with gateway and interface endpoints reachable from a function."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.constants import ResourceKind
from core.registry.stack import ResourceHandle, Stack


@dataclass(slots=True)
class VpcEndpointsProps:
    region: str = "us-east-1"
    vpc_cidr: str = "10.0.0.0/16"
    gateway_services: list[str] = field(default_factory=lambda: ["dynamodb"])
    interface_services: list[str] = field(default_factory=lambda: ["sns", "secretsmanager"])
    function_name: str = "endpoint-client"

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "VpcEndpointsProps":
        props = cls(
            region=data.get("region", "us-east-1"),
            vpc_cidr=data.get("vpc_cidr", "10.0.0.0/16"),
            function_name=data.get("function_name", "endpoint-client"),
        )
        for key in ("gateway_services", "interface_services"):
            value = data.get(key)
            if isinstance(value, str):
                value = [item.strip() for item in value.split(",") if item.strip()]
            if value:
                setattr(props, key, list(value))
        return props


def _camel(service: str) -> str:
    return "".join(part.capitalize() for part in service.replace("-", " ").split())


def build_vpc_endpoints(stack: Stack, props: VpcEndpointsProps) -> dict[str, ResourceHandle]:
    handles: dict[str, ResourceHandle] = {}
    vpc = stack.declare(
        ResourceKind.VPC,
        "Vpc",
        {"CidrBlock": props.vpc_cidr, "MaxAzs": 2, "EnableDnsSupport": True, "EnableDnsHostnames": True},
    )
    endpoint_group = stack.declare(
        ResourceKind.SECURITY_GROUP,
        "EndpointSecurityGroup",
        {"GroupDescription": "Interface endpoints", "VpcId": vpc.ref},
    )
    function_group = stack.declare(
        ResourceKind.SECURITY_GROUP,
        "FunctionSecurityGroup",
        {"GroupDescription": f"{props.function_name} function", "VpcId": vpc.ref},
    )
    handles.update(vpc=vpc, endpoint_group=endpoint_group, function_group=function_group)

    for service in props.gateway_services:
        handles[f"{service}_endpoint"] = stack.declare(
            ResourceKind.VPC_ENDPOINT,
            f"{_camel(service)}GatewayEndpoint",
            {
                "VpcId": vpc.ref,
                "ServiceName": f"com.amazonaws.{props.region}.{service}",
                "VpcEndpointType": "Gateway",
            },
        )

    interface_endpoints: list[ResourceHandle] = []
    for service in props.interface_services:
        endpoint = stack.declare(
            ResourceKind.VPC_ENDPOINT,
            f"{_camel(service)}InterfaceEndpoint",
            {
                "VpcId": vpc.ref,
                "ServiceName": f"com.amazonaws.{props.region}.{service}",
                "VpcEndpointType": "Interface",
                "PrivateDnsEnabled": True,
                "SubnetIds": vpc.get_output("private_subnet_ids"),
                "SecurityGroupIds": [endpoint_group.get_output("security_group_id")],
            },
        )
        handles[f"{service}_endpoint"] = endpoint
        interface_endpoints.append(endpoint)

    role = stack.declare(
        ResourceKind.ROLE,
        "FunctionRole",
        {
            "RoleName": f"{props.function_name}-role",
            "ManagedPolicyArns": ["arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"],
            "AssumeRolePolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [
                    {"Effect": "Allow", "Principal": {"Service": "lambda.amazonaws.com"}, "Action": "sts:AssumeRole"}
                ],
            },
        },
    )
    function = stack.declare(
        ResourceKind.FUNCTION,
        "Function",
        {
            "FunctionName": props.function_name,
            "Runtime": "nodejs18.x",
            "Handler": "index.handler",
            "Role": role.arn,
            "VpcConfig": {
                "SubnetIds": vpc.get_output("private_subnet_ids"),
                "SecurityGroupIds": [function_group.get_output("security_group_id")],
            },
        },
    )
    handles.update(role=role, function=function)

    for endpoint in interface_endpoints:
        stack.connect(function, endpoint, 443)
    return handles


__all__ = ["VpcEndpointsProps", "build_vpc_endpoints"]
