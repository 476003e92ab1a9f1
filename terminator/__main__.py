"""Entry point for python -m terminator.

Usage:
    python -m terminator sessions [--tag TAG] [--project-path PATH]
    python -m terminator info
    python -m terminator exec TAG --command "npm test" --project-path ~/src/app
    python -m terminator read TAG --lines 50
    python -m terminator focus TAG
    python -m terminator kill TAG

The process exit status is the error's exit code (see ExitCode).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Awaitable, Callable

from rich.console import Console
from rich.table import Table

from terminator import __version__
from terminator.config import load_config
from terminator.controller import TerminatorController
from terminator.exceptions import (
    CommandTimeoutError,
    ExitCode,
    TerminatorError,
    record_error,
)
from terminator.logging_config import log_exception, setup_logging
from terminator.models import (
    AppConfig,
    ExecuteCommandParams,
    ExecutionMode,
    FocusPreference,
    FocusSessionParams,
    KillSessionParams,
    LogLevel,
    ReadSessionParams,
    SessionInfo,
    WindowGrouping,
)

logger = logging.getLogger("terminator.cli")

CommandHandler = Callable[[argparse.Namespace, TerminatorController], Awaitable[int]]


def _setup_logging(args: argparse.Namespace, config: AppConfig) -> None:
    """Configure logging from flags and configuration."""
    if args.debug:
        setup_logging(
            level=LogLevel.DEBUG,
            log_dir=config.resolved_log_dir,
            log_to_console=True,
        )
    else:
        setup_logging(
            level=config.log_level,
            log_dir=config.resolved_log_dir,
            log_to_console=False,
        )


def _print_json(data: Any) -> None:
    """Print data as JSON to stdout."""
    print(json.dumps(data, indent=2, default=str))


def _print_error(error: TerminatorError, *, as_json: bool) -> None:
    if as_json:
        _print_json(
            {
                "error": error.message,
                "error_type": type(error).__name__,
                "exit_code": int(error.exit_code),
                "context": error.context,
            }
        )
        return
    Console(stderr=True).print(f"[bold red]Error:[/bold red] {error}", highlight=False)


def _sessions_table(sessions: list[SessionInfo]) -> Table:
    table = Table(title="Managed sessions")
    table.add_column("Session")
    table.add_column("Tag")
    table.add_column("Project")
    table.add_column("TTY")
    table.add_column("Busy")
    table.add_column("Window")
    table.add_column("Tab")
    for s in sessions:
        table.add_row(
            s.identifier,
            s.tag,
            s.project_hash[:12],
            s.tty or "-",
            "yes" if s.is_busy else "no",
            s.window_identifier,
            s.tab_identifier.serialize(),
        )
    return table


# =============================================================================
# CLI Command Handlers
# =============================================================================


async def cmd_sessions(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle sessions command."""
    sessions = await controller.list_sessions(
        filter_tag=args.tag, project_path=args.project_path
    )
    if args.json:
        _print_json([s.to_dict() for s in sessions])
    elif not sessions:
        print("No managed sessions.")
    else:
        Console().print(_sessions_table(sessions))
    return ExitCode.SUCCESS


async def cmd_info(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle info command."""
    info = await controller.info()
    if args.json:
        _print_json(info.to_dict())
        return ExitCode.SUCCESS

    console = Console()
    console.print(f"[bold]Terminator[/bold] {info.version}", highlight=False)
    config_table = Table(title="Active configuration")
    config_table.add_column("Setting")
    config_table.add_column("Value")
    for key, value in info.active_configuration.items():
        config_table.add_row(key, str(value))
    console.print(config_table)
    if info.error:
        console.print(f"[yellow]Could not list sessions:[/yellow] {info.error}", highlight=False)
    elif info.sessions:
        console.print(_sessions_table(info.sessions))
    else:
        console.print("No managed sessions.")
    if info.error_counts:
        counts = ", ".join(
            f"{name}: {count}" for name, count in sorted(info.error_counts.items())
        )
        console.print(f"[dim]Errors this run: {counts}[/dim]", highlight=False)
    return ExitCode.SUCCESS


async def cmd_exec(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle exec command."""
    mode = None
    if args.background:
        mode = ExecutionMode.BACKGROUND
    elif args.foreground:
        mode = ExecutionMode.FOREGROUND

    params = ExecuteCommandParams(
        tag=args.tag,
        project_path=args.project_path,
        command=args.command_text,
        execution_mode=mode,
        lines_to_capture=args.lines,
        timeout=args.timeout,
        focus_preference=FocusPreference(args.focus_mode),
    )
    result = await controller.execute_command(params)

    if args.json:
        _print_json(result.to_dict())
    else:
        if result.output:
            print(result.output)
        Console(stderr=True).print(
            f"[dim]{result.session_info.identifier} "
            f"({result.session_info.tab_identifier})[/dim]",
            highlight=False,
        )

    if result.was_killed_by_timeout:
        error = CommandTimeoutError(
            timeout=args.timeout
            if args.timeout is not None
            else controller.config.foreground_completion_seconds
        )
        record_error(error)
        if not args.json:
            _print_error(error, as_json=False)
        return error.exit_code
    return ExitCode.SUCCESS


async def cmd_read(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle read command."""
    result = await controller.read_session_output(
        ReadSessionParams(
            tag=args.tag,
            project_path=args.project_path,
            lines_to_read=args.lines,
            focus_preference=FocusPreference(args.focus_mode),
        )
    )
    if args.json:
        _print_json(result.to_dict())
    elif result.output:
        print(result.output)
    return ExitCode.SUCCESS


async def cmd_focus(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle focus command."""
    result = await controller.focus_session(
        FocusSessionParams(tag=args.tag, project_path=args.project_path)
    )
    if args.json:
        _print_json(result.to_dict())
    else:
        print(f"Focused {result.focused_session_info.identifier}")
    return ExitCode.SUCCESS


async def cmd_kill(args: argparse.Namespace, controller: TerminatorController) -> int:
    """Handle kill command."""
    result = await controller.kill_process_in_session(
        KillSessionParams(
            tag=args.tag,
            project_path=args.project_path,
            focus_preference=FocusPreference(args.focus_mode),
        )
    )
    if args.json:
        _print_json(result.to_dict())
    else:
        print(result.message)
    return ExitCode.SUCCESS if result.kill_success else ExitCode.SESSION_BUSY


COMMANDS: dict[str, CommandHandler] = {
    "sessions": cmd_sessions,
    "info": cmd_info,
    "exec": cmd_exec,
    "read": cmd_read,
    "focus": cmd_focus,
    "kill": cmd_kill,
}


async def _dispatch(args: argparse.Namespace, config: AppConfig) -> int:
    """Build the controller and run one subcommand, mapping errors to exit codes."""
    try:
        controller = TerminatorController.from_config(config)
        return int(await COMMANDS[args.command](args, controller))
    except TerminatorError as e:
        log_exception(logger, e, f"{args.command} failed", include_traceback=False)
        record_error(e)
        _print_error(e, as_json=args.json)
        return int(e.exit_code)


def _run_async(coro: Any) -> int:
    """Run an async coroutine and return exit code."""
    return asyncio.run(coro)


# =============================================================================
# Argument Parser Setup
# =============================================================================


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )


def _add_session_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("tag", help="Session tag (letters, digits, '_' or '-')")
    parser.add_argument(
        "--project-path",
        help="Project directory the session belongs to",
    )


def _add_focus_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--focus-mode",
        choices=[p.value for p in FocusPreference],
        default=FocusPreference.DEFAULT.value,
        help="Whether to bring the session to the front (default: config)",
    )


def _create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="terminator",
        description="Run commands in tagged Apple Terminal / iTerm2 sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the test suite in the project's "tests" tab and wait for it
  python -m terminator exec tests --project-path ~/src/app --command "npm test"

  # Start a dev server without waiting
  python -m terminator exec server --project-path ~/src/app --command "npm run dev" --background

  # Show the last 30 lines of the server tab
  python -m terminator read server --project-path ~/src/app --lines 30
""",
    )

    # Global arguments
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--app",
        help="Terminal application (Terminal, iTerm)",
    )
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Set log level (default: config)",
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for terminator.log and command output logs",
    )
    parser.add_argument(
        "--grouping",
        choices=[g.value for g in WindowGrouping],
        help="Window grouping for new sessions (default: config)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # sessions
    sessions_parser = subparsers.add_parser("sessions", help="List managed sessions")
    sessions_parser.add_argument("--tag", help="Only sessions with this tag")
    sessions_parser.add_argument("--project-path", help="Only sessions of this project")
    _add_common_args(sessions_parser)

    # info
    info_parser = subparsers.add_parser(
        "info", help="Show version, configuration and sessions"
    )
    _add_common_args(info_parser)

    # exec
    exec_parser = subparsers.add_parser(
        "exec", help="Run a command in a session, creating it if needed"
    )
    _add_session_args(exec_parser)
    exec_parser.add_argument(
        "--command",
        dest="command_text",
        help="Shell command to run (omit to only create/focus the session)",
    )
    mode_group = exec_parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--background", action="store_true", help="Do not wait for completion"
    )
    mode_group.add_argument(
        "--foreground", action="store_true", help="Wait for completion"
    )
    exec_parser.add_argument("--lines", type=int, help="Output lines to return")
    exec_parser.add_argument(
        "--timeout", type=float, help="Seconds to wait (startup wait in background)"
    )
    exec_parser.add_argument(
        "--reuse-busy",
        action="store_true",
        help="Interrupt a busy session instead of failing",
    )
    _add_focus_arg(exec_parser)
    _add_common_args(exec_parser)

    # read
    read_parser = subparsers.add_parser("read", help="Read a session's recent output")
    _add_session_args(read_parser)
    read_parser.add_argument("--lines", type=int, help="Lines to return")
    _add_focus_arg(read_parser)
    _add_common_args(read_parser)

    # focus
    focus_parser = subparsers.add_parser("focus", help="Bring a session to the front")
    _add_session_args(focus_parser)
    _add_common_args(focus_parser)

    # kill
    kill_parser = subparsers.add_parser(
        "kill", help="Stop the process running in a session"
    )
    _add_session_args(kill_parser)
    _add_focus_arg(kill_parser)
    _add_common_args(kill_parser)

    return parser


def _config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Command-line flags that override configuration."""
    overrides: dict[str, Any] = {}
    if args.app:
        overrides["terminal_app"] = args.app
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_dir:
        overrides["log_dir"] = args.log_dir
    if args.grouping:
        overrides["window_grouping"] = args.grouping
    if getattr(args, "reuse_busy", False):
        overrides["reuse_busy_sessions"] = True
    return overrides


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the terminator command."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return ExitCode.GENERAL_ERROR

    try:
        config = load_config(_config_overrides(args))
    except TerminatorError as e:
        _print_error(e, as_json=getattr(args, "json", False))
        return int(e.exit_code)

    _setup_logging(args, config)
    logger.debug("Running %s with %s", args.command, config.as_environment())
    return _run_async(_dispatch(args, config))


if __name__ == "__main__":
    sys.exit(main())
