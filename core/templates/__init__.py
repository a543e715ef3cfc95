"""Ready-made stack topologies."""

from __future__ import annotations

from typing import Any, Callable, NamedTuple

from core.registry.stack import ResourceHandle, Stack

from .api_gateway import ApiGatewayProps, build_api_gateway
from .cache_cluster import CacheClusterProps, build_cache_cluster
from .database import DatabaseProps, build_database
from .vpc_endpoints import VpcEndpointsProps, build_vpc_endpoints


class Template(NamedTuple):
    props: Any
    build: Callable[[Stack, Any], dict[str, ResourceHandle]]


TEMPLATES: dict[str, Template] = {
    "api-gateway": Template(ApiGatewayProps, build_api_gateway),
    "cache-cluster": Template(CacheClusterProps, build_cache_cluster),
    "database": Template(DatabaseProps, build_database),
    "vpc-endpoints": Template(VpcEndpointsProps, build_vpc_endpoints),
}


def build_template(name: str, params: dict[str, Any], stack_name: str | None = None) -> Stack:
    try:
        template = TEMPLATES[name]
    except KeyError:
        raise ValueError(f"Unknown template '{name}'; choose from {', '.join(sorted(TEMPLATES))}") from None
    stack = Stack(stack_name or name)
    template.build(stack, template.props.from_mapping(params))
    return stack


__all__ = [
    "TEMPLATES",
    "Template",
    "build_template",
    "ApiGatewayProps",
    "CacheClusterProps",
    "DatabaseProps",
    "VpcEndpointsProps",
    "build_api_gateway",
    "build_cache_cluster",
    "build_database",
    "build_vpc_endpoints",
]
