"""Redis cache cluster in private subnets of a new VPC."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.constants import ResourceKind
from core.registry.stack import ResourceHandle, Stack


@dataclass(slots=True)
class CacheClusterProps:
    cluster_name: str = "my-cache-cluster"
    subnet_group_name: str = "cache-subnet-group"
    node_type: str = "cache.t2.micro"
    engine: str = "redis"
    num_nodes: int = 1
    port: int = 6379
    vpc_cidr: str = "10.0.0.0/16"
    max_azs: int = 2

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "CacheClusterProps":
        defaults = cls()
        return cls(
            cluster_name=data.get("cluster_name", defaults.cluster_name),
            subnet_group_name=data.get("subnet_group_name", defaults.subnet_group_name),
            node_type=data.get("node_type", defaults.node_type),
            engine=data.get("engine", defaults.engine),
            num_nodes=int(data.get("num_nodes", defaults.num_nodes)),
            port=int(data.get("port", defaults.port)),
            vpc_cidr=data.get("vpc_cidr", defaults.vpc_cidr),
            max_azs=int(data.get("max_azs", defaults.max_azs)),
        )


def build_cache_cluster(stack: Stack, props: CacheClusterProps) -> dict[str, ResourceHandle]:
    vpc = stack.declare(ResourceKind.VPC, "Vpc", {"CidrBlock": props.vpc_cidr, "MaxAzs": props.max_azs})
    security_group = stack.declare(
        ResourceKind.SECURITY_GROUP,
        "CacheSecurityGroup",
        {"GroupDescription": "Security group for ElastiCache", "VpcId": vpc.ref},
    )
    ingress = stack.declare(
        ResourceKind.SECURITY_GROUP_INGRESS,
        "CacheIngressFromVpc",
        {
            "GroupId": security_group.get_output("security_group_id"),
            "CidrIp": vpc.get_output("cidr_block"),
            "IpProtocol": "tcp",
            "FromPort": props.port,
            "ToPort": props.port,
            "Description": "Allow inbound from VPC",
        },
    )
    subnet_group = stack.declare(
        ResourceKind.CACHE_SUBNET_GROUP,
        "CacheSubnetGroup",
        {
            "CacheSubnetGroupName": props.subnet_group_name,
            "Description": "Subnet group for the redis cluster",
            "SubnetIds": vpc.get_output("private_subnet_ids"),
        },
    )
    # the cluster names its subnet group literally, so the ordering edge must be explicit
    cluster = stack.declare(
        ResourceKind.CACHE_CLUSTER,
        "CacheCluster",
        {
            "ClusterName": props.cluster_name,
            "CacheNodeType": props.node_type,
            "Engine": props.engine,
            "NumCacheNodes": props.num_nodes,
            "Port": props.port,
            "CacheSubnetGroupName": props.subnet_group_name,
            "VpcSecurityGroupIds": [security_group.get_output("security_group_id")],
        },
        depends_on=[subnet_group],
    )

    stack.add_output("CacheEndpoint", cluster.get_output("endpoint"))
    return {
        "vpc": vpc,
        "security_group": security_group,
        "ingress": ingress,
        "subnet_group": subnet_group,
        "cluster": cluster,
    }


__all__ = ["CacheClusterProps", "build_cache_cluster"]
