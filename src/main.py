# src/main.py — v2
"""CLI entry point — submit, run, status, logs commands.

Usage:
    teamrun submit <definition.json> [--run]
    teamrun run <run_id>
    teamrun status <run_id>
    teamrun logs <run_id> [--step STEP] [--agent NAME]

The CLI always persists state: an in-memory store or report backend in
settings is replaced by SQLite / markdown so runs survive between
invocations. Team and agent definitions are kept next to the store in
``teams.json``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from teamrun.config.settings import Settings, load_settings
from teamrun.version import __version__

logger = logging.getLogger(__name__)

DIRECTORY_FILE = "teams.json"


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _cli_settings()
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="teamrun",
        description=f"teamrun v{__version__} — Multi-agent pipeline runner",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- submit ---
    p_submit = subparsers.add_parser(
        "submit", help="Register agents, team and a pending run from a definition file",
    )
    p_submit.add_argument("definition", type=Path, help="Path to definition JSON")
    p_submit.add_argument(
        "--run", action="store_true",
        help="Execute the run immediately after submitting",
    )
    p_submit.set_defaults(func=_cmd_submit)

    # --- run ---
    p_run = subparsers.add_parser("run", help="Execute (or resume) a run")
    p_run.add_argument("run_id", help="Run ID")
    p_run.set_defaults(func=_cmd_run)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show run status and stages")
    p_status.add_argument("run_id", help="Run ID")
    p_status.set_defaults(func=_cmd_status)

    # --- logs ---
    p_logs = subparsers.add_parser("logs", help="Print a run's log")
    p_logs.add_argument("run_id", help="Run ID")
    p_logs.add_argument("--step", default=None, help="Only entries with this step tag")
    p_logs.add_argument("--agent", default=None, help="Only entries for this agent")
    p_logs.set_defaults(func=_cmd_logs)

    return parser


async def _cmd_submit(args: argparse.Namespace, settings: Settings) -> int:
    """Register definitions and create a pending run."""
    from teamrun.storage.store_factory import create_run_store
    from teamrun.teams.directory import (
        load_definition_file,
        load_directory,
        merge_directories,
        save_directory,
    )

    definition_path: Path = args.definition
    if not definition_path.exists():
        logger.error("File not found: %s", definition_path)
        return 1

    directory, run = load_definition_file(definition_path)
    if run.timeout_ms <= 0:
        run = run.model_copy(update={"timeout_ms": settings.run_default_timeout_ms})

    directory_path = _directory_path(settings)
    save_directory(merge_directories(load_directory(directory_path), directory), directory_path)

    store = create_run_store(settings)
    try:
        await store.create_run(run)
    finally:
        store.close()

    print(f"Submitted run {run.id} ({run.name or 'unnamed'})")
    if args.run:
        return await _execute(run.id, settings)
    return 0


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    return await _execute(args.run_id, settings)


async def _cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Print run status, stage table and usage."""
    from teamrun.storage.store_factory import create_run_store
    from teamrun.tracking.usage_ledger import UsageLedger

    store = create_run_store(settings)
    try:
        run = await store.get_run(args.run_id)
        if run is None:
            logger.error("Run not found: %s", args.run_id)
            return 1
        stages = await store.list_stages(run.id)
        usage = await UsageLedger(store).usage_by_run(run.id)
    finally:
        store.close()

    print(f"\nRun {run.id}:")
    print(f"  Name:      {run.name}")
    print(f"  Status:    {run.status}")
    print(f"  Topology:  {run.topology}")
    if run.error:
        print(f"  Error:     {run.error}")
    if run.deliverables.get("report_id"):
        print(f"  Report:    {run.deliverables['report_id']}")
    print(f"  LLM calls: {usage.call_count} ({usage.total_tokens} tokens, ${usage.total_cost})")
    if stages:
        print("\n  Stages:")
        for stage in stages:
            duration = f"{stage.duration_ms}ms" if stage.duration_ms is not None else "-"
            detail = stage.error or stage.output_summary or ""
            print(f"    [{stage.status:9s}] {stage.name} ({duration}) {detail}")
    return 0


async def _cmd_logs(args: argparse.Namespace, settings: Settings) -> int:
    from teamrun.storage.store_factory import create_run_store

    store = create_run_store(settings)
    try:
        entries = await store.list_logs(args.run_id, step=args.step, agent=args.agent)
    finally:
        store.close()

    for entry in entries:
        stamp = entry.inserted_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{stamp} [{entry.level:7s}] {entry.step:15s} {entry.message}")
    return 0


async def _execute(run_id: str, settings: Settings) -> int:
    """Run the orchestrator to completion and print the final status."""
    from teamrun.pipeline.orchestrator import RunOrchestrator
    from teamrun.reports.sink_factory import create_report_sink
    from teamrun.storage.store_factory import create_run_store
    from teamrun.teams.directory import load_directory

    store = create_run_store(settings)
    try:
        orchestrator = RunOrchestrator.create(
            store=store,
            directory=load_directory(_directory_path(settings)),
            sink=create_report_sink(settings),
            settings=settings,
        )
        await orchestrator.run(run_id)
        run = await store.get_run(run_id)
    finally:
        store.close()

    if run is None:
        logger.error("Run not found: %s", run_id)
        return 1

    print(f"\nRun {run.id}: {run.status}")
    if run.error:
        print(f"  Error:  {run.error}")
    if run.deliverables.get("report_id"):
        print(f"  Report: {settings.report_root.expanduser() / run.deliverables['report_id']}")
    return 0 if run.status == "completed" else 2


def _cli_settings() -> Settings:
    settings = load_settings()
    overrides: dict[str, str] = {}
    if settings.store_backend == "memory":
        overrides["store_backend"] = "sqlite"
    if settings.report_backend == "memory":
        overrides["report_backend"] = "markdown"
    return settings.model_copy(update=overrides) if overrides else settings


def _directory_path(settings: Settings) -> Path:
    return settings.store_path.expanduser().parent / DIRECTORY_FILE


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from teamrun.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
