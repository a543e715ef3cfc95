"""REST API fronting a function, with dead-letter topic, custom domain and DNS alias."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from core.constants import ResourceKind
from core.models import Join
from core.registry.stack import ResourceHandle, Stack

CORS_ALLOW_HEADERS = "'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token'"


@dataclass(slots=True)
class ApiGatewayProps:
    domain_name: str
    api_domain_name: str
    certificate_arn: str
    hosted_zone_id: str
    environment: str = "dev"
    project: str = "stackweave"
    region: str = "us-east-1"
    code_bucket: str = "sample-code"
    code_key: str = "golang-sample.zip"
    is_production: bool = False
    allowed_ip_ranges: list[str] = field(default_factory=lambda: ["192.0.2.0/24", "198.51.100.0/24"])
    quota_limit: int = 100000

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ApiGatewayProps":
        ranges = data.get("allowed_ip_ranges")
        if isinstance(ranges, str):
            ranges = [item.strip() for item in ranges.split(",") if item.strip()]
        props = cls(
            domain_name=data["domain_name"],
            api_domain_name=data["api_domain_name"],
            certificate_arn=data["certificate_arn"],
            hosted_zone_id=data["hosted_zone_id"],
            environment=data.get("environment", "dev"),
            project=data.get("project", "stackweave"),
            region=data.get("region", "us-east-1"),
            code_bucket=data.get("code_bucket", "sample-code"),
            code_key=data.get("code_key", "golang-sample.zip"),
            is_production=str(data.get("is_production", False)).lower() in {"1", "true", "yes"},
            quota_limit=int(data.get("quota_limit", 100000)),
        )
        if ranges:
            props.allowed_ip_ranges = list(ranges)
        return props


def build_api_gateway(stack: Stack, props: ApiGatewayProps) -> dict[str, ResourceHandle]:
    site_tags = {"site": props.api_domain_name}

    role = stack.declare(
        ResourceKind.ROLE,
        "FunctionRole",
        {
            "RoleName": f"{props.environment}{props.project}LambdaFunctionRole",
            "Description": f"{props.environment}{props.domain_name} Lambda Function Role",
            "AssumeRolePolicyDocument": {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"Service": "lambda.amazonaws.com"},
                        "Action": "sts:AssumeRole",
                    }
                ],
            },
        },
        tags=site_tags,
    )

    topic = stack.declare(
        ResourceKind.TOPIC,
        "DeadLetterTopic",
        {
            "TopicName": f"{props.environment}-{props.project}-dead-letter-topic",
            "DisplayName": f"{props.environment}{props.project}DeadLetterTopic",
        },
    )
    stack.grant(role, topic, ["sns:Publish"])

    function = stack.declare(
        ResourceKind.FUNCTION,
        "Function",
        {
            "FunctionName": f"{props.environment}-lambda-save-resources",
            "Description": f"{props.environment} Lambda Function to Save the Resources",
            "Runtime": "provided.al2",
            "Handler": "bootstrap",
            "MemorySize": 512,
            "Timeout": 10,
            "Code": {"S3Bucket": props.code_bucket, "S3Key": props.code_key},
            "Environment": {"Variables": {"S3_BUCKET_NAME": f"{props.domain_name}-archive"}},
            "Role": role.arn,
            "DeadLetterConfig": {"TargetArn": topic.arn},
        },
        tags=site_tags,
    )

    web_acl = None
    if props.is_production:
        web_acl = stack.declare(
            ResourceKind.WEB_ACL,
            "WebAcl",
            {
                "Name": f"{props.domain_name}-web-acl",
                "Description": f"API ACL for the {props.domain_name} API Gateway",
                "Scope": "REGIONAL",
                "DefaultAction": {"Block": {}},
                "AllowedAddresses": list(props.allowed_ip_ranges),
                "VisibilityConfig": {
                    "CloudWatchMetricsEnabled": True,
                    "MetricName": "WebAclMetrics",
                    "SampledRequestsEnabled": True,
                },
            },
        )

    integration_uri = Join(
        parts=[f"arn:aws:apigateway:{props.region}:lambda:path/2015-03-31/functions/", function.arn, "/invocations"]
    )
    api = stack.declare(
        ResourceKind.REST_API,
        "Api",
        {
            "Name": props.api_domain_name,
            "Description": f"{props.api_domain_name} API Gateway for the {props.environment} environment",
            "StageName": "prod",
            "Routes": [
                {
                    "Path": "/save",
                    "HttpMethod": "POST",
                    "ApiKeyRequired": True,
                    "Integration": {"Type": "AWS_PROXY", "IntegrationHttpMethod": "POST", "Uri": integration_uri},
                },
                {
                    "Path": "/save",
                    "HttpMethod": "OPTIONS",
                    "Integration": {
                        "Type": "MOCK",
                        "PassthroughBehavior": "WHEN_NO_MATCH",
                        "RequestTemplates": {"application/json": '{"statusCode": 200}'},
                        "ResponseParameters": {
                            "method.response.header.Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
                            "method.response.header.Access-Control-Allow-Methods": "'GET,POST,OPTIONS'",
                            "method.response.header.Access-Control-Allow-Origin": f"'https://{props.domain_name}'",
                        },
                    },
                },
            ],
        },
        depends_on=[web_acl] if web_acl else (),
        tags=site_tags,
    )

    permission = stack.declare(
        ResourceKind.PERMISSION,
        "InvokePermission",
        {
            "Action": "lambda:InvokeFunction",
            "FunctionName": function.arn,
            "Principal": "apigateway.amazonaws.com",
            "SourceArn": Join(parts=[api.get_output("execute_arn"), "/*/*/*"]),
        },
    )

    api_key = stack.declare(
        ResourceKind.API_KEY,
        "ApiKey",
        {"Name": f"{props.domain_name}ApiKey", "Description": f"{props.domain_name} API Key", "Enabled": True},
    )
    usage_plan = stack.declare(
        ResourceKind.USAGE_PLAN,
        "UsagePlan",
        {
            "UsagePlanName": f"{props.domain_name}UsagePlan",
            "Description": f"{props.domain_name} Usage plan",
            "ApiStages": [{"ApiId": api.ref, "Stage": api.get_output("stage_name")}],
            "ApiKeys": [api_key.ref],
            "Quota": {"Limit": props.quota_limit, "Period": "MONTH"},
        },
    )

    domain = stack.declare(
        ResourceKind.DOMAIN_NAME,
        "DomainName",
        {
            "DomainName": props.api_domain_name,
            "CertificateArn": props.certificate_arn,
            "EndpointConfiguration": {"Types": ["EDGE"]},
        },
    )
    mapping = stack.declare(
        ResourceKind.BASE_PATH_MAPPING,
        "BasePathMapping",
        {"DomainName": domain.get_output("name"), "RestApiId": api.ref, "Stage": api.get_output("stage_name")},
    )
    record = stack.declare(
        ResourceKind.RECORD_SET,
        "DnsRecord",
        {
            "HostedZoneId": props.hosted_zone_id,
            "Name": props.api_domain_name,
            "Type": "A",
            "Comment": f"API Gateway alias record for {props.domain_name}",
            "AliasTarget": {
                "DNSName": domain.get_output("distribution_domain_name"),
                "HostedZoneId": domain.get_output("distribution_hosted_zone_id"),
            },
        },
    )

    handles = {
        "role": role,
        "topic": topic,
        "function": function,
        "api": api,
        "permission": permission,
        "api_key": api_key,
        "usage_plan": usage_plan,
        "domain": domain,
        "base_path_mapping": mapping,
        "record": record,
    }
    if web_acl is not None:
        handles["web_acl"] = web_acl
        handles["web_acl_association"] = stack.declare(
            ResourceKind.WEB_ACL_ASSOCIATION,
            "WebAclAssociation",
            {"WebACLArn": web_acl.arn, "ResourceArn": api.get_output("stage_arn")},
        )

    stack.add_output("ApiUrl", api.get_output("url"))
    stack.add_output("FunctionArn", function.arn)
    stack.add_output("ApiDomain", record.get_output("fqdn"))
    return handles


__all__ = ["ApiGatewayProps", "build_api_gateway"]
