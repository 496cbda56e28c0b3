# src/main.py — v1
"""CLI entry point — deploy, plan, status commands.

Usage:
    provisioner deploy [--domain D] [--email E] [--resume] [--dry-run] [options]
    provisioner plan
    provisioner status [--state-dir DIR]

Exit codes:
    0  run completed (possibly degraded)
    1  invalid configuration, declined confirmation, or not root
    2  run halted (resumable) or cancelled
    3  another run is already in progress
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from provisioner.config.settings import ConfigurationError, Settings
from provisioner.core.errors import (
    ConfigDeclined,
    InvalidConfig,
    NotRoot,
    PlanError,
    RunAlreadyInProgress,
    RunCancelled,
)
from provisioner.logging.logger import setup_logging
from provisioner.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_HALTED = 2
EXIT_IN_PROGRESS = 3


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_CONFIG

    console = Console()
    try:
        settings = Settings()
    except (ValidationError, ConfigurationError) as exc:
        console.print(f"[red]Invalid settings:[/red] {escape(str(exc))}")
        return EXIT_CONFIG

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings, console))
    except (InvalidConfig, ConfigDeclined, NotRoot) as exc:
        logger.debug("Aborted before provisioning", exc_info=True)
        _print_error(console, exc)
        return EXIT_CONFIG
    except RunAlreadyInProgress as exc:
        _print_error(console, exc)
        return EXIT_IN_PROGRESS
    except (RunCancelled, KeyboardInterrupt) as exc:
        console.print(f"[yellow]Cancelled[/yellow] {escape(str(exc))}".rstrip())
        return EXIT_HALTED
    except PlanError as exc:
        logger.error("Invalid step plan: %s", exc, exc_info=args.verbose)
        _print_error(console, exc)
        return EXIT_CONFIG
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return EXIT_CONFIG


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="provisioner",
        description=f"provisioner v{__version__} — idempotent web server provisioning",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging and tracebacks",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- deploy ---
    p_deploy = subparsers.add_parser(
        "deploy", help="Provision this server (idempotent, resumable)",
    )
    p_deploy.add_argument("--domain", default=None, help="Domain name (e.g. example.com)")
    p_deploy.add_argument(
        "--email", dest="contact_email", default=None,
        help="Contact email for the TLS certificate",
    )
    p_deploy.add_argument(
        "--database-password", default=None,
        help="Database password (prefer PROVISION_DATABASE_PASSWORD)",
    )
    p_deploy.add_argument(
        "--api-key", default=None,
        help="Application API key (prefer PROVISION_API_KEY)",
    )
    p_deploy.add_argument(
        "--dns-ready", action=argparse.BooleanOptionalAction, default=None,
        help="Whether DNS already points at this server",
    )
    p_deploy.add_argument(
        "--resume", action="store_true",
        help="Continue the latest run instead of starting a new one",
    )
    p_deploy.add_argument(
        "--non-interactive", action="store_true",
        help="Never prompt; take values from options and PROVISION_* variables",
    )
    p_deploy.add_argument(
        "--dry-run", action="store_true",
        help="Only evaluate preconditions and show what would change",
    )
    p_deploy.add_argument(
        "--state-dir", type=Path, default=None,
        help="Directory holding run records (default: PROVISION_STATE_DIR)",
    )
    p_deploy.set_defaults(func=_cmd_deploy)

    # --- plan ---
    p_plan = subparsers.add_parser("plan", help="Show the resolved step order")
    p_plan.set_defaults(func=_cmd_plan)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show the latest run record")
    p_status.add_argument(
        "--state-dir", type=Path, default=None,
        help="Directory holding run records (default: PROVISION_STATE_DIR)",
    )
    p_status.set_defaults(func=_cmd_status)

    return parser


async def _cmd_deploy(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    """Execute a provisioning run."""
    from provisioner.api.facade import provision
    from provisioner.api.models import ProvisionOptions
    from provisioner.reporting.reporter import RichReporter
    from provisioner.variables.sources import InteractiveSource, MappingSource

    options = ProvisionOptions(
        domain=args.domain,
        contact_email=args.contact_email,
        database_password=args.database_password,
        api_key=args.api_key,
        dns_ready=args.dns_ready,
        resume=args.resume,
        interactive=not args.non_interactive,
        dry_run=args.dry_run,
        state_dir=args.state_dir,
    )
    source = InteractiveSource(console) if options.interactive else MappingSource()
    reporter = RichReporter(console)

    result = await provision(options, settings=settings, source=source, reporter=reporter)

    if options.dry_run:
        table = Table(title="Dry run", show_header=True)
        table.add_column("Step")
        table.add_column("Action")
        table.add_column("Note")
        for item in result.preview:
            table.add_row(item.label, item.action, escape(item.note))
        console.print(table)
        return EXIT_OK

    if result.state_path is not None:
        console.print(f"Run record: {result.state_path}")
    return EXIT_OK if result.completed else EXIT_HALTED


async def _cmd_plan(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    """Print the resolved execution order and stages."""
    from provisioner.api.facade import build_step_plan

    plan = build_step_plan()
    table = Table(title="Provisioning plan", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Depends on")
    for index, step in enumerate(plan.steps, start=1):
        table.add_row(str(index), f"{step.id} ({step.label})", ", ".join(step.dependencies) or "-")
    console.print(table)
    for level, stage in enumerate(plan.stages, start=1):
        console.print(f"Stage {level}: {', '.join(stage)}")
    return EXIT_OK


async def _cmd_status(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    """Display the latest run record."""
    from provisioner.api.facade import latest_run

    if args.state_dir is not None:
        settings = settings.model_copy(update={"state_dir": args.state_dir})
    state = latest_run(settings)
    if state is None:
        console.print(f"No runs recorded in {settings.state_dir}")
        return EXIT_OK

    table = Table(title=f"Run {state.run_id} on {state.host}: {state.status}", show_header=True)
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Detail")
    for result in state.results:
        detail = ""
        if result.deferred:
            detail = "deferred"
        elif result.reverified:
            detail = "re-verified"
        if result.error is not None:
            detail = f"{result.error.kind}: {result.error.message}"
        table.add_row(result.step_id, result.status, str(result.attempts), escape(detail))
    console.print(table)
    for session in state.sessions:
        kind = "resume" if session.resumed else "start"
        console.print(f"  {session.started_at:%Y-%m-%d %H:%M:%S} {kind}: {session.outcome or 'running'}")
    return EXIT_OK if state.status in ("completed", "not_started") else EXIT_HALTED


def _print_error(console: Console, exc: Exception) -> None:
    console.print(f"[red]{type(exc).__name__}:[/red] {escape(str(exc))}")
    problems = exc.problems if isinstance(exc, InvalidConfig) else []
    if len(problems) > 1:
        for problem in problems:
            console.print(f"  - {escape(problem)}")


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    level = "DEBUG" if verbose else settings.log_level
    console_level = "DEBUG" if verbose else "WARNING"
    try:
        setup_logging(
            level=level,
            log_format=settings.log_format,
            log_file=settings.log_file,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            console_level=console_level,
        )
    except OSError as exc:
        setup_logging(level=level, log_format=settings.log_format, console_level=console_level)
        logger.warning("Log file %s unavailable (%s); logging to console only", settings.log_file, exc)


def cli() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    cli()
