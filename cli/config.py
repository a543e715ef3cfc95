"""Configuration loader for the stackweave CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.synth.config import SynthConfig

DEFAULTS = {
    "project_name": None,
    "author": None,
    "environment": "dev",
    "region": "us-east-1",
    "account_id": "123456789012",
    "parallelism": 4,
    "max_retries": 3,
    "timeout": None,
    "default_format": "json",
    "include_logs_baseline": False,
}


@dataclass(slots=True)
class Settings:
    project_name: str | None = DEFAULTS["project_name"]
    author: str | None = DEFAULTS["author"]
    environment: str = DEFAULTS["environment"]
    region: str = DEFAULTS["region"]
    account_id: str = DEFAULTS["account_id"]
    parallelism: int = DEFAULTS["parallelism"]
    max_retries: int = DEFAULTS["max_retries"]
    timeout: float | None = DEFAULTS["timeout"]
    default_format: str = DEFAULTS["default_format"]
    include_logs_baseline: bool = DEFAULTS["include_logs_baseline"]
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Settings":
        timeout = data.get("timeout", DEFAULTS["timeout"])
        tags = data.get("tags") or {}
        if not isinstance(tags, dict):
            raise ValueError("'tags' must be a mapping of tag keys to values.")
        return cls(
            project_name=data.get("project_name", DEFAULTS["project_name"]),
            author=data.get("author", DEFAULTS["author"]),
            environment=data.get("environment", DEFAULTS["environment"]),
            region=data.get("region", DEFAULTS["region"]),
            account_id=str(data.get("account_id", DEFAULTS["account_id"])),
            parallelism=int(data.get("parallelism", DEFAULTS["parallelism"])),
            max_retries=int(data.get("max_retries", DEFAULTS["max_retries"])),
            timeout=float(timeout) if timeout is not None else None,
            default_format=data.get("default_format", DEFAULTS["default_format"]),
            include_logs_baseline=bool(data.get("include_logs_baseline", DEFAULTS["include_logs_baseline"])),
            tags={str(key): str(value) for key, value in tags.items()},
        )

    def merge_cli(
        self,
        format_override: str | None = None,
        include_logs: bool | None = None,
        parallelism: int | None = None,
        timeout: float | None = None,
    ) -> "Settings":
        return Settings(
            project_name=self.project_name,
            author=self.author,
            environment=self.environment,
            region=self.region,
            account_id=self.account_id,
            parallelism=parallelism or self.parallelism,
            max_retries=self.max_retries,
            timeout=timeout if timeout is not None else self.timeout,
            default_format=format_override or self.default_format,
            include_logs_baseline=self.include_logs_baseline if include_logs is None else include_logs,
            tags=dict(self.tags),
        )

    def to_synth_config(self) -> SynthConfig:
        if not self.project_name:
            raise ValueError("'project_name' is required in the configuration file.")
        if not self.author:
            raise ValueError("'author' is required in the configuration file.")
        return SynthConfig(
            project=self.project_name,
            author=self.author,
            environment=self.environment,
            account_id=self.account_id,
            region=self.region,
            parallelism=self.parallelism,
            max_retries=self.max_retries,
            timeout=self.timeout,
            tags=dict(self.tags),
            include_logs_baseline=self.include_logs_baseline,
        )


def load_settings(path: Path) -> Settings:
    if not path.exists():
        return Settings()

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    if not isinstance(data, dict):
        raise ValueError("Configuration file must be a mapping of keys to values.")

    return Settings.from_mapping(data)


__all__ = ["Settings", "load_settings"]
