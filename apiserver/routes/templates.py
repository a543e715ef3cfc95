"""API route listing the built-in stack templates."""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from core.templates import TEMPLATES


def handle(event: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": 200,
        "body": {
            "templates": [
                {"name": name, "parameters": [item.name for item in fields(template.props)]}
                for name, template in sorted(TEMPLATES.items())
            ]
        },
    }
