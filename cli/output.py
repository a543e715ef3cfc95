"""Output helpers for the stackweave CLI."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from core.models import SynthesizedStack


def _default_serializer(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, set):
        return sorted(value)
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def emit(data: Any, fmt: str, output_path: Path | None = None) -> None:
    if fmt == "json":
        rendered = json.dumps(data, indent=2, default=_default_serializer)
    elif fmt == "md":
        rendered = _to_markdown(data)
    elif fmt == "table":
        rendered = _to_table(data)
    else:
        raise ValueError(f"Unsupported format: {fmt}")

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(rendered + ("\n" if not rendered.endswith("\n") else ""), encoding="utf-8")
    else:
        print(rendered)


def load_artifact(path: Path) -> SynthesizedStack:
    data = json.loads(path.read_text(encoding="utf-8"))
    # artifacts written by `synth --format json` wrap the stack in an envelope
    if isinstance(data, dict) and "artifact" in data:
        data = data["artifact"]
    return SynthesizedStack.model_validate(data)


def artifact_rows(artifact: SynthesizedStack) -> list[dict[str, Any]]:
    return [
        {
            "resource": record.resource_id,
            "kind": record.kind,
            "status": record.status.value,
            "physicalId": record.physical_id or "",
            "attempts": record.attempts,
            "error": record.error or "",
        }
        for record in artifact.records
    ]


# ---------------------------------------------------------------------------
# Renderers


def _cell(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(_cell(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=_default_serializer)
    if value is None:
        return ""
    return str(value)


def _columns(rows: list[dict[str, Any]]) -> list[str]:
    # first-seen order keeps the row builders' column layout
    return list(dict.fromkeys(key for row in rows for key in row))


def _to_markdown(data: Any) -> str:
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        data = [{"Key": key, "Value": value} for key, value in data.items()]
    if not isinstance(data, list):
        return _cell(data)
    if not data:
        return "(no data)"
    if not all(isinstance(row, dict) for row in data):
        return "\n".join(f"- {_cell(item)}" for item in data)

    columns = _columns(data)
    lines = [f"| {' | '.join(columns)} |", f"|{'|'.join(' --- ' for _ in columns)}|"]
    lines.extend(f"| {' | '.join(_cell(row.get(column)) for column in columns)} |" for row in data)
    return "\n".join(lines)


def _to_table(data: Any) -> str:
    if isinstance(data, dict):
        data = [{"key": key, "value": value} for key, value in data.items()]
    if not isinstance(data, list) or not data:
        return _cell(data)
    if not all(isinstance(row, dict) for row in data):
        return "\n".join(_cell(item) for item in data)

    columns = _columns(data)
    cells = [[_cell(row.get(column)) for column in columns] for row in data]
    widths = [max(len(column), *(len(line[index]) for line in cells)) for index, column in enumerate(columns)]
    rendered = [
        "  ".join(column.ljust(width) for column, width in zip(columns, widths)),
        "  ".join("-" * width for width in widths),
    ]
    rendered.extend("  ".join(value.ljust(width) for value, width in zip(line, widths)).rstrip() for line in cells)
    return "\n".join(rendered)


__all__ = ["emit", "load_artifact", "artifact_rows"]
