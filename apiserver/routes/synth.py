"""API route synthesizing a stack against the in-memory provider."""

from __future__ import annotations

from typing import Any

from apiserver.routes.plan import bad_request, load_stack, parse_body
from core.errors import StackError
from core.providers.memory import InMemoryProvider
from core.synth.config import SynthConfig
from core.synth.synthesizer import Synthesizer


def handle(event: dict[str, Any]) -> dict[str, Any]:
    try:
        data = parse_body(event)
        config = SynthConfig(
            project=data.get("project", ""),
            author=data.get("author", ""),
            environment=data.get("environment", "dev"),
            region=data.get("region", "us-east-1"),
            include_logs_baseline=bool(data.get("includeLogsBaseline", False)),
        )
        stack = load_stack(data)
        provider = InMemoryProvider(account_id=config.account_id, region=config.region)
        artifact = Synthesizer(provider, config).synthesize(stack)
    except (StackError, ValueError, KeyError) as exc:
        return bad_request(exc)

    return {
        "statusCode": 200 if artifact.succeeded else 207,
        "body": {"artifact": artifact.model_dump(mode="json", by_alias=True)},
    }
