"""Entry point for `python -m commander` / `commander`.

Subcommands:
    commander run <owner/repo#issue>   Run an agent on an issue and open a PR
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from commander.config import LoggingSettings, get_settings
from commander.errors import CommanderError
from commander.logger import configure_logging, install_excepthook, logger
from commander.types import RunOptions

_EPILOG = """\
examples:
  commander run ungood/opencode-commander#12
  commander run ungood/myapp#5 --timeout 60 --verbose
"""


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if n <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive number of minutes, got {n}")
    return n


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commander",
        description="Orchestrate AI coding agents across multiple repositories",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser(
        "run", help="Fetch a GitHub issue, run an agent in a container, and create a PR"
    )
    run.add_argument("task_ref", metavar="owner/repo#issue", help="Issue to work on")
    run.add_argument(
        "--timeout",
        type=_positive_int,
        default=None,
        metavar="MINUTES",
        help="Agent timeout in minutes (default from config)",
    )
    run.add_argument("--quiet", action="store_true", help="Don't post status comments")
    run.add_argument("--cpu", default=None, metavar="LIMIT", help="CPU limit per container")
    run.add_argument("--memory", default=None, metavar="LIMIT", help="Memory limit per container")
    run.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _run(args: argparse.Namespace) -> int:
    from commander.app import CommanderApp

    settings = get_settings()
    if args.verbose:
        settings = settings.model_copy(update={"logging": LoggingSettings(level="DEBUG")})
    configure_logging(settings.logging.level)
    install_excepthook()

    options = RunOptions(
        task_ref=args.task_ref,
        timeout_minutes=args.timeout,
        quiet=args.quiet,
        cpu_limit=args.cpu,
        memory_limit=args.memory,
    )
    try:
        result = asyncio.run(CommanderApp(settings).run(options))
    except CommanderError as exc:
        logger.error("Task failed", error=str(exc))
        return 1

    if result.success:
        # stdout carries only the PR URL
        print(result.pr_url)
        return 0
    logger.error("Task failed", error=result.error)
    return 1


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    match args.command:
        case "run":
            sys.exit(_run(args))
        case _:
            parser.print_usage(sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
