"""Command line interface for stackweave workflows."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, List

import boto3

from cli import config, output
from core.blueprint import BlueprintError, load_blueprint
from core.errors import StackError
from core.providers import CloudControlProvider, InMemoryProvider, ProviderRegistry
from core.registry.stack import Stack
from core.synth import ArtifactDiff, SynthConfig, Synthesizer
from core.templates import TEMPLATES, build_template

LOG = logging.getLogger(__name__)


class CLIError(Exception):
    def __init__(self, message: str, exit_code: int = 2) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def _add_source_arguments(command: argparse.ArgumentParser) -> None:
    source = command.add_mutually_exclusive_group(required=True)
    source.add_argument("--blueprint", type=Path, help="YAML blueprint declaring the stack")
    source.add_argument("--template", choices=sorted(TEMPLATES), help="Built-in stack template")
    command.add_argument("--param", action="append", default=[], metavar="KEY=VALUE", help="Template parameter")
    command.add_argument("--stack-name", help="Override the stack name")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stackweave", description="Declarative stack synthesizer")
    parser.add_argument("--config", type=Path, default=Path("stackweave.yml"), help="Path to CLI configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log synthesis progress to stderr")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # plan -------------------------------------------------------------------
    plan_cmd = subparsers.add_parser("plan", help="Print the creation order of a stack")
    _add_source_arguments(plan_cmd)
    plan_cmd.add_argument("--output", type=Path)
    plan_cmd.add_argument("--format", choices=["json", "md", "table"], help="Output format override")

    # synth ------------------------------------------------------------------
    synth_cmd = subparsers.add_parser("synth", help="Materialize a stack and emit its artifact")
    _add_source_arguments(synth_cmd)
    synth_cmd.add_argument("--provider", choices=["memory", "cloudcontrol"], default="memory")
    synth_cmd.add_argument("--parallelism", type=int)
    synth_cmd.add_argument("--timeout", type=float, help="Overall deadline in seconds")
    synth_cmd.add_argument("--include-logs-baseline", action="store_true")
    synth_cmd.add_argument("--output", type=Path)
    synth_cmd.add_argument("--format", choices=["json", "md", "table"], help="Output format override")

    # diff -------------------------------------------------------------------
    diff_cmd = subparsers.add_parser("diff", help="Compare two synthesized artifacts")
    diff_cmd.add_argument("--before", required=True, type=Path)
    diff_cmd.add_argument("--after", required=True, type=Path)
    diff_cmd.add_argument("--output", type=Path)
    diff_cmd.add_argument("--format", choices=["json", "md", "table"], help="Output format override")

    return parser


def app(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        settings = config.load_settings(args.config)
        format_override = getattr(args, "format", None)
        effective_format = format_override or settings.default_format

        if args.command == "plan":
            return _cmd_plan(args, settings.merge_cli(format_override=effective_format))
        if args.command == "synth":
            include_logs = args.include_logs_baseline or settings.include_logs_baseline
            merged = settings.merge_cli(
                format_override=effective_format,
                include_logs=include_logs,
                parallelism=args.parallelism,
                timeout=args.timeout,
            )
            return _cmd_synth(args, merged)
        if args.command == "diff":
            return _cmd_diff(args, settings.merge_cli(format_override=effective_format))
    except CLIError as exc:
        print(exc, file=sys.stderr)
        return exc.exit_code
    except (StackError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except Exception as exc:  # pragma: no cover - unexpected errors bubble up
        LOG.debug("Unexpected failure", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


# ---------------------------------------------------------------------------
# Command implementations


def _cmd_plan(args: argparse.Namespace, settings: config.Settings) -> int:
    stack = _load_stack(args)
    graph = Synthesizer(ProviderRegistry(), _plan_config(settings)).plan(stack)
    rows = [
        {
            "position": index,
            "resource": rid,
            "kind": stack.resource(rid).kind,
            "dependsOn": ", ".join(graph.dependencies_of(rid)),
        }
        for index, rid in enumerate(graph.order, start=1)
    ]
    output.emit(rows, settings.default_format, output_path=args.output)
    return 0


def _cmd_synth(args: argparse.Namespace, settings: config.Settings) -> int:
    synth_config = settings.to_synth_config()
    stack = _load_stack(args)
    synthesizer = Synthesizer(_build_providers(args.provider, synth_config), synth_config)
    artifact = synthesizer.synthesize(stack)

    if settings.default_format == "json":
        output.emit({"artifact": artifact.model_dump(mode="json", by_alias=True)}, "json", output_path=args.output)
    else:
        output.emit(output.artifact_rows(artifact), settings.default_format, output_path=args.output)

    if not artifact.succeeded:
        failed = [record.resource_id for record in artifact.failed]
        skipped = [record.resource_id for record in artifact.skipped]
        print(f"Stack {artifact.stack_name} incomplete: failed={failed} skipped={skipped}", file=sys.stderr)
        return 4
    return 0


def _cmd_diff(args: argparse.Namespace, settings: config.Settings) -> int:
    try:
        before = output.load_artifact(args.before)
        after = output.load_artifact(args.after)
    except (OSError, ValueError) as exc:
        raise CLIError(f"Unable to read artifact: {exc}") from exc

    diff = ArtifactDiff(before, after)
    if settings.default_format == "md":
        output.emit(diff.as_markdown(), "md", output_path=args.output)
    else:
        output.emit(diff.as_json(), settings.default_format, output_path=args.output)
    return 3 if diff.has_drift() else 0


# ---------------------------------------------------------------------------
# Helpers


def _load_stack(args: argparse.Namespace) -> Stack:
    if args.blueprint:
        if not args.blueprint.exists():
            raise CLIError(f"Blueprint not found: {args.blueprint}")
        try:
            stack = load_blueprint(args.blueprint)
        except BlueprintError as exc:
            raise CLIError(f"Invalid blueprint: {exc}") from exc
        if args.stack_name:
            stack.name = args.stack_name
        return stack
    params = _parse_params(args.param)
    try:
        return build_template(args.template, params, stack_name=args.stack_name)
    except KeyError as exc:
        raise CLIError(f"Template '{args.template}' requires parameter {exc}") from exc


def _parse_params(pairs: List[str]) -> dict[str, Any]:
    params: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise CLIError(f"Invalid --param '{pair}', expected KEY=VALUE")
        params[key.strip()] = value.strip()
    return params


def _plan_config(settings: config.Settings) -> SynthConfig:
    # plan never calls a provider, so identity fields only need placeholders
    return SynthConfig(project=settings.project_name or "plan", author=settings.author or "plan")


def _build_providers(name: str, synth_config: SynthConfig) -> ProviderRegistry:
    if name == "cloudcontrol":
        client = boto3.client("cloudcontrol", region_name=synth_config.region)
        return ProviderRegistry(default=CloudControlProvider(client))
    return ProviderRegistry(default=InMemoryProvider(account_id=synth_config.account_id, region=synth_config.region))


def main() -> None:
    raise SystemExit(app())


if __name__ == "__main__":
    main()
