#!/usr/bin/env python3
"""
Command line runner for node flows.

Usage:
    node-flow flows/greet.json                  # Validate and run a flow
    node-flow flows/greet.json -i name=Alice    # Seed the root nodes' input
    node-flow flows/greet.json --dry-run        # Validate only
    node-flow --list-flows                      # Flows in the configured flows_dir
    node-flow --list-nodes                      # Registered node types
    node-flow --docs                            # Node reference (markdown)

Other flows in the same directory as the flow file can be called as sub-flows
by their file stem.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from .config import build_runner, load_config
from .core import ExecutionReport, FlowError, FlowRunner, RunOptions, load_flow

logger = logging.getLogger(__name__)

REPORT_PREVIEW_CHARS = 2000


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging for CLI use. ``quiet`` wins over ``verbose``."""
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_input_args(input_args: list[str] | None) -> dict[str, Any]:
    """
    Turn repeated ``KEY=VALUE`` options into the initial input.

    Values that parse as JSON (numbers, booleans, lists, objects) keep their
    type; anything else stays a string.
    """
    parsed: dict[str, Any] = {}
    for arg in input_args or []:
        key, sep, raw = arg.partition("=")
        if not sep:
            print(f"Warning: ignoring '{arg}' (expected KEY=VALUE)", file=sys.stderr)
            continue
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


def get_available_flows(flows_dir: Path) -> list[dict]:
    """Id, name, description and size of every loadable flow file in a directory."""
    summaries = []
    for path in sorted(flows_dir.glob("*.json")) if flows_dir.exists() else []:
        try:
            flow = load_flow(path)
        except (OSError, ValueError) as e:
            logger.debug(f"Skipping {path}: {e}")
            continue
        summaries.append({
            "path": path,
            "id": flow.id,
            "name": flow.name or flow.id,
            "description": flow.description or "No description",
            "nodes": len(flow.nodes),
        })
    return summaries


def print_report(report: ExecutionReport) -> None:
    heading = "COMPLETE" if report.success else report.status.value.upper()
    rule = "=" * 60
    print(f"\n{rule}\nEXECUTION {heading}\n{rule}")
    print(f"Run: {report.run_id}")
    print(f"Duration: {report.duration_seconds:.2f}s")
    print(f"Nodes executed: {len(report.executed_nodes)}")
    if report.terminated:
        print("Stopped by End Flow node")

    if report.error:
        where = f" at node {report.error.node_id}" if report.error.node_id else ""
        print(f"\nError ({report.error.kind.value}){where}: {report.error.message}")

    if report.last_output is not None:
        text = json.dumps(report.last_output, indent=2, default=str)
        if len(text) > REPORT_PREVIEW_CHARS:
            text = text[:REPORT_PREVIEW_CHARS] + "\n..."
        print(f"\nOutput:\n{text}")


async def run_flow(
    runner: FlowRunner,
    flow_path: Path,
    dry_run: bool = False,
    flow_inputs: dict[str, Any] | None = None,
    options: RunOptions | None = None,
    output_file: Path | None = None,
) -> int:
    """Validate and (unless dry_run) execute one flow file. Returns the exit code."""
    runner.load_flows_from_directory(flow_path.parent)
    flow_id = runner.load_flow_file(flow_path)
    flow = runner.get_flow(flow_id)
    logger.info(f"Flow '{flow_id}': {len(flow.nodes)} nodes, {len(flow.edges)} edges")

    validation = runner.validate(flow_id)
    for warning in validation.warnings:
        logger.warning(str(warning))
    if not validation.is_valid:
        print(validation.format())
        return 1
    if dry_run:
        logger.info("✓ Validation passed (dry run, not executed)")
        return 0

    try:
        report = await runner.run_flow(flow_id, flow_inputs, options)
    except FlowError as e:
        logger.error(str(e))
        return 1

    print_report(report)
    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(json.dumps(report.to_dict(), indent=2, default=str))
        print(f"\nReport saved to: {output_file}")
    return 0 if report.success else 1


def _list_nodes(runner: FlowRunner) -> int:
    print(f"{'Node Type':<32} Label")
    print("-" * 80)
    for definition in runner.registry.definitions():
        print(f"{definition.type:<32} {definition.label}")
    return 0


def _list_flows(flows_dir: Path) -> int:
    flows = get_available_flows(flows_dir)
    if not flows:
        print(f"No flows found in {flows_dir}")
        return 0
    print(f"{'Flow':<28} Description")
    print("-" * 80)
    for flow in flows:
        description = flow["description"]
        if len(description) > 48:
            description = description[:48] + "..."
        print(f"{flow['id']:<28} {description}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate and run node flow graphs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("flow", type=Path, nargs="?", help="Flow JSON file")
    parser.add_argument(
        "--input", "-i",
        action="append",
        metavar="KEY=VALUE",
        dest="inputs",
        help="Initial input value (repeatable)"
    )
    parser.add_argument("--dry-run", action="store_true", help="Validate without executing")
    parser.add_argument("--output", "-o", type=Path, help="Write the full run report as JSON")
    parser.add_argument("--start-node", help="Only run what is downstream of this node")
    parser.add_argument("--end-node", help="Only run what this node depends on")
    parser.add_argument("--config", type=Path, help="Config file (default: config.local.yaml)")
    parser.add_argument("--flows-dir", type=Path, help="Directory for --list-flows")

    listing = parser.add_mutually_exclusive_group()
    listing.add_argument("--list-flows", action="store_true", help="List available flows")
    listing.add_argument("--list-nodes", action="store_true", help="List registered node types")
    listing.add_argument("--docs", action="store_true", help="Print the node reference")

    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Warnings and errors only")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)

    config = load_config(args.config)
    from . import components  # noqa: F401  (registers the built-in node types)
    runner = build_runner(config)

    if args.list_nodes:
        return _list_nodes(runner)
    if args.docs:
        print(runner.registry.generate_docs())
        return 0
    if args.list_flows:
        return _list_flows(args.flows_dir or Path(config["flows_dir"]))

    if args.flow is None:
        parser.print_usage(sys.stderr)
        print("Error: a flow file is required", file=sys.stderr)
        return 1
    if not args.flow.exists():
        print(f"Error: flow file not found: {args.flow}", file=sys.stderr)
        return 1

    return asyncio.run(run_flow(
        runner,
        args.flow,
        dry_run=args.dry_run,
        flow_inputs=parse_input_args(args.inputs),
        options=RunOptions(start_node_id=args.start_node, end_node_id=args.end_node),
        output_file=args.output,
    ))


if __name__ == "__main__":
    sys.exit(main())
