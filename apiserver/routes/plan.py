"""API route returning the creation order of a stack."""

from __future__ import annotations

import json
from typing import Any

from core.blueprint import build_stack
from core.errors import StackError
from core.graph.builder import DependencyGraphBuilder
from core.registry.stack import Stack
from core.templates import build_template


def parse_body(event: dict[str, Any]) -> dict[str, Any]:
    payload = event.get("body")
    if isinstance(payload, str):
        return json.loads(payload or "{}")
    return payload or {}


def load_stack(data: dict[str, Any]) -> Stack:
    if "blueprint" in data:
        return build_stack(data["blueprint"], name=data.get("stackName"))
    if "template" in data:
        return build_template(data["template"], data.get("params") or {}, stack_name=data.get("stackName"))
    raise ValueError("Request must contain 'blueprint' or 'template'")


def bad_request(exc: Exception) -> dict[str, Any]:
    return {"statusCode": 400, "body": {"message": str(exc), "error": type(exc).__name__}}


def handle(event: dict[str, Any]) -> dict[str, Any]:
    try:
        stack = load_stack(parse_body(event))
        graph = DependencyGraphBuilder().build(stack.resources)
    except (StackError, ValueError, KeyError) as exc:
        return bad_request(exc)

    return {
        "statusCode": 200,
        "body": {
            "stack": stack.name,
            "order": graph.order,
            "dependencies": {rid: graph.dependencies_of(rid) for rid in graph.order},
        },
    }
