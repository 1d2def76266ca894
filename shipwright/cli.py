"""Command line entry point.

Usage:
  shipwright ask "<request>" [--session ID] [--mock] [--config PATH]
  shipwright pipeline "<name>" "<description>" [--mock] [--config PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import ShipwrightConfig, load_config
from .exceptions import ShipwrightError


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--mock", action="store_true", help="Use offline scripted reasoning")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shipwright", description="Multi-agent delivery CLI")
    subparsers = parser.add_subparsers(dest="command")

    ask_parser = subparsers.add_parser("ask", help="Plan and run a single request")
    ask_parser.add_argument("request", help="What to build or change")
    ask_parser.add_argument("--session", default="cli", help="Session id for follow-ups")
    _add_common(ask_parser)

    pipeline_parser = subparsers.add_parser("pipeline", help="Analyze and deliver a project")
    pipeline_parser.add_argument("name", help="Project name")
    pipeline_parser.add_argument("description", help="Project description")
    _add_common(pipeline_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ShipwrightError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "ask":
            asyncio.run(_ask_command(args, config))
        elif args.command == "pipeline":
            asyncio.run(_pipeline_command(args, config))
    except ShipwrightError as e:
        print(f"Error [{e.kind}]: {e.message}", file=sys.stderr)
        sys.exit(1)


def _print_event(event) -> None:
    payload = event.to_dict()
    kind = payload.pop("type")
    details = ", ".join(f"{k}={str(v)[:80]}" for k, v in payload.items())
    print(f"  [{kind}] {details}")


async def _ask_command(args, config: ShipwrightConfig) -> None:
    from .convenience import create_controller, create_reasoning_client

    controller = create_controller(create_reasoning_client(config, mock=args.mock), config)
    response = await controller.process(args.request, args.session, _print_event)

    print("\n" + response.answer)
    for artifact in response.artifacts:
        print(f"\n--- {artifact.filename} ({artifact.language}) ---\n{artifact.content}")
    failed = response.failed_steps
    if failed:
        print(f"\n{len(failed)} step(s) failed:", file=sys.stderr)
        for step in failed:
            print(f"  {step.step_id}: {step.output}", file=sys.stderr)


async def _pipeline_command(args, config: ShipwrightConfig) -> None:
    from .adapters.memory import InMemoryTaskStore
    from .convenience import create_pipeline, create_reasoning_client

    store = InMemoryTaskStore()
    pipeline = create_pipeline(create_reasoning_client(config, mock=args.mock), config, store=store)
    project = await store.create_project(args.name, args.description)

    processed = await pipeline.analyze_and_execute(project.id, _print_event)
    while processed:
        processed = await pipeline.execute_next_tasks(project.id, _print_event)

    status = await pipeline.get_project_status(project.id)
    print(f"\nProject {status.project_name}: {status.total_tasks} tasks")
    for name, count in sorted(status.tasks_by_status.items()):
        print(f"  {name}: {count}")
    for task in status.tasks:
        print(f"  [{task.status.value}] #{task.id} {task.title}")
