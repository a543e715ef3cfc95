"""Entrypoint compatible with AWS Lambda + API Gateway."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Tuple

from apiserver.routes import plan, synth, templates

LOG = logging.getLogger(__name__)

RouteHandler = Callable[[dict[str, Any]], dict[str, Any]]


ROUTES: Dict[Tuple[str, str], RouteHandler] = {
    ("GET", "/templates"): templates,
    ("POST", "/plan"): plan,
    ("POST", "/synth"): synth,
}


def _respond(status: int, body: Any) -> dict[str, Any]:
    return {"statusCode": status, "headers": {"Content-Type": "application/json"}, "body": json.dumps(body)}


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    method = event.get("httpMethod", "GET").upper()
    path = event.get("resource") or event.get("path", "/")
    handler = ROUTES.get((method, path))

    if handler is None:
        allowed = sorted(route_method for route_method, route_path in ROUTES if route_path == path)
        if allowed:
            response = _respond(405, {"message": f"Method {method} not allowed", "allowed": allowed})
            response["headers"]["Allow"] = ", ".join(allowed)
            return response
        return _respond(404, {"message": "Route not found"})

    LOG.info("Handling %s %s", method, path)
    result = handler(event)
    response = _respond(result["statusCode"], result.get("body", {}))
    response["headers"].update(result.get("headers", {}))
    return response
