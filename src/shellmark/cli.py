"""Command-line interface for shellmark."""

import argparse
import asyncio
import logging
import os
import sys

from shellmark import __version__
from shellmark.config import load_config
from shellmark.local_host import LocalTerminalHost
from shellmark.models import ExecutionOptions, RunnerConfig
from shellmark.session import SessionController

BOLD = "\033[1m"
CYAN = "\033[36m"
RED = "\033[31m"
RESET = "\033[0m"


def _supports_color() -> bool:
    """Return whether ANSI color output should be used."""
    if os.getenv("NO_COLOR") is not None:
        return False
    if os.getenv("TERM", "").lower() == "dumb":
        return False
    return sys.stdout.isatty()


def _format_output(text: str) -> str:
    """Highlight the match header of a run report."""
    if not _supports_color():
        return text
    header, sep, rest = text.partition("\n")
    if header.startswith("Match found"):
        return f"{BOLD}{CYAN}{header}{RESET}{sep}{rest}"
    return f"{RED}{header}{RESET}{sep}{rest}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shellmark",
        description="Run commands and extract their output from shell-integration markers",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--no-shell-integration",
        action="store_true",
        help="Send commands as raw text instead of using shell integration",
    )
    parser.add_argument(
        "--auto-close",
        action="store_true",
        help="Close the terminal after every command",
    )
    parser.add_argument(
        "--prompt-command",
        default=None,
        help="PROMPT_COMMAND for the managed terminal (default: configured value)",
    )
    parser.add_argument(
        "--no-vte",
        action="store_true",
        help="Skip the VTE completion-notification pattern",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Benchmark repetitions per extraction strategy",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print the pattern match statistics after the last command",
    )
    parser.add_argument(
        "commands",
        nargs="+",
        metavar="command",
        help="Shell command to run; several commands run one after another",
    )
    return parser


def _build_options(args: argparse.Namespace, config: RunnerConfig) -> ExecutionOptions:
    defaults = config.execution_options()
    prompt_command = defaults.prompt_command
    if args.prompt_command is not None:
        prompt_command = args.prompt_command
    return ExecutionOptions(
        auto_close_terminal=args.auto_close or defaults.auto_close_terminal,
        use_shell_integration=defaults.use_shell_integration and not args.no_shell_integration,
        prompt_command=prompt_command,
        enable_vte_checks=defaults.enable_vte_checks and not args.no_vte,
    )


async def run_commands(
    commands: list[str], options: ExecutionOptions, config: RunnerConfig
) -> SessionController:
    """Run *commands* sequentially in one session and return its controller."""
    host = LocalTerminalHost(shell=config.shell)
    controller = SessionController(
        host,
        on_output=lambda text: print(_format_output(text)),
        on_debug=lambda text: logging.getLogger("shellmark").debug("%s", text),
        config=config,
    )
    try:
        for command in commands:
            await controller.execute_command(command, options)
            await controller.wait_until_idle()
    finally:
        controller.close_terminal()
    return controller


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )

    config = load_config()
    if args.iterations is not None:
        if args.iterations < 1:
            parser.error("--iterations must be at least 1")
        config.benchmark_iterations = args.iterations
    options = _build_options(args, config)

    try:
        controller = asyncio.run(run_commands(args.commands, options, config))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.stats:
        print(controller.render_statistics())
    return 0


def entrypoint() -> None:
    raise SystemExit(main())
