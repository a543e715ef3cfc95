"""Common constants shared across stackweave modules."""

from enum import Enum


class ResourceKind(str, Enum):
    FUNCTION = "function"
    REST_API = "rest-api"
    USAGE_PLAN = "usage-plan"
    API_KEY = "api-key"
    DOMAIN_NAME = "domain-name"
    BASE_PATH_MAPPING = "base-path-mapping"
    PERMISSION = "permission"
    WEB_ACL = "web-acl"
    WEB_ACL_ASSOCIATION = "web-acl-association"
    CACHE_CLUSTER = "cache-cluster"
    CACHE_SUBNET_GROUP = "cache-subnet-group"
    DATABASE_INSTANCE = "database-instance"
    SECRET = "secret"
    HOSTED_ZONE = "hosted-zone"
    RECORD_SET = "record-set"
    VPC = "vpc"
    VPC_ENDPOINT = "vpc-endpoint"
    SECURITY_GROUP = "security-group"
    SECURITY_GROUP_INGRESS = "security-group-ingress"
    ROLE = "role"
    TOPIC = "topic"


class Capability(str, Enum):
    TAGGABLE = "taggable"
    CONNECTABLE = "connectable"
    GRANTABLE = "grantable"


_T = Capability.TAGGABLE
_C = Capability.CONNECTABLE
_G = Capability.GRANTABLE

KIND_CAPABILITIES: dict[str, frozenset[Capability]] = {
    ResourceKind.FUNCTION.value: frozenset({_T, _C, _G}),
    ResourceKind.REST_API.value: frozenset({_T, _G}),
    ResourceKind.USAGE_PLAN.value: frozenset({_T}),
    ResourceKind.API_KEY.value: frozenset({_T}),
    ResourceKind.DOMAIN_NAME.value: frozenset({_T}),
    ResourceKind.BASE_PATH_MAPPING.value: frozenset(),
    ResourceKind.PERMISSION.value: frozenset(),
    ResourceKind.WEB_ACL.value: frozenset({_T}),
    ResourceKind.WEB_ACL_ASSOCIATION.value: frozenset(),
    ResourceKind.CACHE_CLUSTER.value: frozenset({_T, _C}),
    ResourceKind.CACHE_SUBNET_GROUP.value: frozenset({_T}),
    ResourceKind.DATABASE_INSTANCE.value: frozenset({_T, _C, _G}),
    ResourceKind.SECRET.value: frozenset({_T, _G}),
    ResourceKind.HOSTED_ZONE.value: frozenset({_T}),
    ResourceKind.RECORD_SET.value: frozenset(),
    ResourceKind.VPC.value: frozenset({_T}),
    ResourceKind.VPC_ENDPOINT.value: frozenset({_C}),
    ResourceKind.SECURITY_GROUP.value: frozenset({_T, _C}),
    ResourceKind.SECURITY_GROUP_INGRESS.value: frozenset(),
    ResourceKind.ROLE.value: frozenset({_T}),
    ResourceKind.TOPIC.value: frozenset({_T, _G}),
}

# Kinds that receive the configured API throttle unless set explicitly
THROTTLED_KINDS = frozenset({ResourceKind.REST_API.value, ResourceKind.USAGE_PLAN.value})

# CloudFormation type names used by the Cloud Control provider
CLOUDFORMATION_TYPES: dict[str, str] = {
    ResourceKind.FUNCTION.value: "AWS::Lambda::Function",
    ResourceKind.REST_API.value: "AWS::ApiGateway::RestApi",
    ResourceKind.USAGE_PLAN.value: "AWS::ApiGateway::UsagePlan",
    ResourceKind.API_KEY.value: "AWS::ApiGateway::ApiKey",
    ResourceKind.DOMAIN_NAME.value: "AWS::ApiGateway::DomainName",
    ResourceKind.BASE_PATH_MAPPING.value: "AWS::ApiGateway::BasePathMapping",
    ResourceKind.PERMISSION.value: "AWS::Lambda::Permission",
    ResourceKind.WEB_ACL.value: "AWS::WAFv2::WebACL",
    ResourceKind.WEB_ACL_ASSOCIATION.value: "AWS::WAFv2::WebACLAssociation",
    ResourceKind.CACHE_CLUSTER.value: "AWS::ElastiCache::CacheCluster",
    ResourceKind.CACHE_SUBNET_GROUP.value: "AWS::ElastiCache::SubnetGroup",
    ResourceKind.DATABASE_INSTANCE.value: "AWS::RDS::DBInstance",
    ResourceKind.SECRET.value: "AWS::SecretsManager::Secret",
    ResourceKind.HOSTED_ZONE.value: "AWS::Route53::HostedZone",
    ResourceKind.RECORD_SET.value: "AWS::Route53::RecordSet",
    ResourceKind.VPC.value: "AWS::EC2::VPC",
    ResourceKind.VPC_ENDPOINT.value: "AWS::EC2::VPCEndpoint",
    ResourceKind.SECURITY_GROUP.value: "AWS::EC2::SecurityGroup",
    ResourceKind.SECURITY_GROUP_INGRESS.value: "AWS::EC2::SecurityGroupIngress",
    ResourceKind.ROLE.value: "AWS::IAM::Role",
    ResourceKind.TOPIC.value: "AWS::SNS::Topic",
}

THROTTLING_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "RequestThrottled",
        "SlowDown",
        "ServiceUnavailable",
    }
)


def capabilities_of(kind: str) -> frozenset[Capability]:
    return KIND_CAPABILITIES.get(kind, frozenset())


def has_capability(kind: str, capability: Capability) -> bool:
    return capability in capabilities_of(kind)
