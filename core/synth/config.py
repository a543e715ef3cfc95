"""Explicit synthesis configuration passed into the Synthesizer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class SynthConfig:
    project: str
    author: str
    environment: str = "dev"
    account_id: str = "123456789012"
    region: str = "us-east-1"
    parallelism: int = 4
    max_retries: int = 3
    backoff_initial_interval: float = 0.5
    backoff_multiplier: float = 2.0
    backoff_max_interval: float = 20.0
    backoff_randomization: float = 0.0
    timeout: float | None = None
    cancel_grace: float = 30.0
    tags: dict[str, str] = field(default_factory=dict)
    throttle_rate_limit: float | None = 2000
    throttle_burst_limit: int | None = 1000
    include_logs_baseline: bool = False
    policy_name_suffix: str = "Policy"

    def __post_init__(self) -> None:
        if not self.project:
            raise ValueError("project must be specified")
        if not self.author:
            raise ValueError("author must be specified")
        if self.parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive when set")

    def stack_tags(self) -> dict[str, str]:
        tags = {
            "project": self.project,
            "author": self.author,
            "environment": self.environment,
        }
        tags.update(self.tags)
        return tags

    def throttle(self) -> dict[str, float | int]:
        settings: dict[str, float | int] = {}
        if self.throttle_rate_limit is not None:
            settings["RateLimit"] = self.throttle_rate_limit
        if self.throttle_burst_limit is not None:
            settings["BurstLimit"] = self.throttle_burst_limit
        return settings


__all__ = ["SynthConfig"]
