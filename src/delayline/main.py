"""
main.py — delayline Entry Point

Usage:
    python -m delayline run plan.yaml                 # run a plan until it finishes
    python -m delayline run plan.yaml --duration 10   # stop after 10 seconds
    python -m delayline run plan.yaml --log-level DEBUG
    python -m delayline run plan.yaml --config path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.table import Table


def _find_env_file() -> Path | None:
    """Walk up from CWD looking for .env file."""
    cwd = Path.cwd()
    for d in [cwd, *cwd.parents]:
        candidate = d / ".env"
        if candidate.is_file():
            return candidate
    return None


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="delayline",
        description="delayline — tick-driven event scheduling",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging.level from config",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Schedule the events of a plan file and drive them")
    run.add_argument("plan", help="Path to a YAML plan file")
    run.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds even if events remain (default: run to completion)",
    )
    return parser.parse_args(argv)


def bootstrap(args: argparse.Namespace):
    """
    Load config, validate it fully, and set up logging.
    Returns (settings, log) ready for use.

    Exits with code 1 (after printing a clear message) if:
      - config.yaml has invalid values (Pydantic ValidationError)
      - cross-field problems are found (ConfigError from validate_all())
    """
    from pydantic import ValidationError

    from delayline.config.settings import ConfigError, load_settings
    from delayline.observability.logger import get_logger, setup_logging

    # -- Load and parse -------------------------------------------------------
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(
            f"\n❌  Config validation failed:\n\n{problems}\n\n"
            f"    Fix config/config.yaml or your environment and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)
    except (OSError, ValueError, TypeError) as exc:
        print(
            f"\n❌  Failed to load config: {type(exc).__name__}: {exc}\n",
            file=sys.stderr,
        )
        sys.exit(1)

    # -- Cross-field validation -----------------------------------------------
    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        sys.exit(1)

    # -- Logging --------------------------------------------------------------
    # CLI --log-level flag overrides config.yaml
    log_file = setup_logging(settings.logging, level=args.log_level)

    log = get_logger("delayline.main")
    log.debug("delayline.logging.ready", log_file=str(log_file))
    return settings, log


def render_remaining(console: Console, snapshots: dict) -> None:
    """Print a table of events that were still scheduled when the run ended."""
    table = Table(title="Still scheduled", box=box.SIMPLE)
    table.add_column("alias", style="cyan")
    table.add_column("category")
    table.add_column("type")
    table.add_column("elapsed / delay", justify="right")
    table.add_column("intervals", justify="right")
    table.add_column("paused")
    for alias, snap in snapshots.items():
        table.add_row(
            alias,
            snap.category or "-",
            snap.type or "-",
            f"{snap.time_since_scheduled:.2f} / {snap.delay:.2f}",
            str(snap.intervals_invoked),
            "yes" if snap.is_paused else "no",
        )
    console.print(table)


async def run_plan(args: argparse.Namespace, settings, log, console: Console) -> int:
    from delayline.exceptions import PlanError
    from delayline.observability.logger import log_context
    from delayline.plan import load_plan

    if settings.scheduler.start_paused and args.duration is None:
        # nothing in a plan run ever resumes the scheduler
        log.warning("plan.run.paused_without_duration", plan=str(args.plan))
        console.print(
            "[red]❌ scheduler.start_paused is set, so this run would never finish. "
            "Pass --duration or unset start_paused.[/]"
        )
        return 1

    try:
        plan = load_plan(args.plan)
    except PlanError as exc:
        console.print(f"[red]❌ {exc}[/]")
        return 1

    with log_context(plan=str(args.plan)):
        return await _drive_plan(plan, args, settings, log, console)


async def _drive_plan(plan, args: argparse.Namespace, settings, log, console: Console) -> int:
    from delayline.plan import apply_plan
    from delayline.scheduler import Scheduler, TickDriver

    scheduler = Scheduler.from_settings(settings, name=Path(args.plan).stem)

    def on_fire(alias: str, entry) -> None:
        log.info("plan.event.fired", alias=alias, message=entry.message)
        console.print(f"[green]●[/] {alias}" + (f"  [dim]{entry.message}[/]" if entry.message else ""))

    def on_interval(alias: str, count: int, entry) -> None:
        log.debug("plan.event.interval", alias=alias, count=count)
        console.print(f"[dim]  {alias} · {count}[/]")

    failed = apply_plan(plan, scheduler, on_fire, on_interval)
    for alias in failed:
        console.print(f"[yellow]⚠ could not schedule '{alias}'[/]")

    driver = TickDriver.from_settings(settings, scheduler)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.duration if args.duration is not None else None

    await driver.start()
    try:
        while scheduler.size or scheduler.waiting_count:
            if deadline is not None and loop.time() >= deadline:
                log.info("plan.run.duration_elapsed", remaining=scheduler.size)
                break
            await asyncio.sleep(settings.scheduler.tick_interval)
    finally:
        await driver.stop()

    if scheduler.size:
        render_remaining(console, scheduler.peek_all())
    return 2 if failed else 0


async def main(argv: Optional[list[str]] = None) -> int:
    env_path = _find_env_file()
    if env_path:
        load_dotenv(dotenv_path=env_path)

    args = parse_args(argv)
    settings, log = bootstrap(args)
    console = Console()

    if args.command == "run":
        return await run_plan(args, settings, log, console)
    return 1


def main_sync() -> None:
    """Synchronous entry point for console_scripts (pyproject.toml)."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    main_sync()
