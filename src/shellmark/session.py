"""Run commands in a managed terminal and extract their output."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from shellmark.extractor import PatternExtractor
from shellmark.gate import IntegrationStatus, wait_for_shell_integration
from shellmark.host import (
    Disposable,
    Listener,
    ShellExecution,
    ShellExecutionEvent,
    Terminal,
    TerminalHost,
)
from shellmark.markers import count_completion_markers
from shellmark.models import ExecutionOptions, MatchResult, RunnerConfig
from shellmark.stats import StatisticsStore, quote

log = logging.getLogger(__name__)

BUSY_MESSAGE = "Command execution in progress, please wait..."
FALLBACK_WARNING = "Warning: Shell integration not available, falling back to sendText\n\n"


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_INTEGRATION = "awaiting_integration"
    RUNNING = "running"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class TerminalEnvironment:
    """Environment a managed terminal was created with."""

    prompt_command: str
    enable_vte_checks: bool

    def as_env(self) -> dict[str, str]:
        env: dict[str, str] = {}
        if self.prompt_command:
            env["PROMPT_COMMAND"] = self.prompt_command
        if not self.enable_vte_checks:
            # Terminals report VTE support through VTE_VERSION; "0" turns it off.
            env["VTE_VERSION"] = "0"
        return env


class ExecutionSubscription:
    """Start/end listeners registered for one command dispatched to *terminal*."""

    def __init__(
        self, host: TerminalHost, terminal: Terminal, on_start: Listener, on_end: Listener
    ) -> None:
        self.terminal = terminal
        self._disposables: list[Disposable] = [
            host.on_did_start_shell_execution(on_start),
            host.on_did_end_shell_execution(on_end),
        ]

    @property
    def active(self) -> bool:
        return bool(self._disposables)

    def matches(self, event: ShellExecutionEvent) -> bool:
        return self.active and event.terminal is self.terminal

    def dispose(self) -> None:
        disposables, self._disposables = self._disposables, []
        for disposable in disposables:
            disposable.dispose()


def format_result(match: MatchResult, output: str) -> str:
    """Return the match report sent to the output sink.

    The first line is the verdict; a match is followed by the raw output it
    was extracted from.
    """
    if match.tier is None:
        return f"No match found in: {quote(output)}"
    header = f"Match found (Pattern {match.tier.value}): {quote(match.text)}"
    return f"{header}\n\nFrom:\n{quote(output)}"


class SessionController:
    """Own one reusable terminal and run one command at a time in it.

    Results are delivered through ``on_output`` (match report) and
    ``on_debug`` (full statistics report), once per completed run.
    """

    def __init__(
        self,
        host: TerminalHost,
        on_output: Callable[[str], None],
        on_debug: Callable[[str], None],
        *,
        extractor: PatternExtractor | None = None,
        stats: StatisticsStore | None = None,
        config: RunnerConfig | None = None,
    ) -> None:
        self.host = host
        self.on_output = on_output
        self.on_debug = on_debug
        self.config = config or RunnerConfig()
        self.extractor = extractor or PatternExtractor(iterations=self.config.benchmark_iterations)
        self.stats = stats or StatisticsStore()

        self._terminal: Terminal | None = None
        self._environment: TerminalEnvironment | None = None
        self._state = SessionState.IDLE
        self._subscription: ExecutionSubscription | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._cleanup_task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_executing(self) -> bool:
        return self._state is not SessionState.IDLE

    @property
    def terminal(self) -> Terminal | None:
        return self._terminal

    def _set_state(self, state: SessionState) -> None:
        log.debug("session state %s -> %s", self._state.value, state.value)
        self._state = state

    async def execute_command(self, command: str, options: ExecutionOptions | None = None) -> None:
        """Dispatch *command* to the managed terminal.

        Returns once the command has been handed to the terminal; results
        arrive later through the output sinks. A call made while another
        command is in flight is rejected with ``BUSY_MESSAGE``.
        """
        options = options or self.config.execution_options()
        if self.is_executing:
            log.info("rejected %r: another command is running", command)
            self.on_output(BUSY_MESSAGE)
            return

        self._idle.clear()
        self._set_state(SessionState.AWAITING_INTEGRATION)
        try:
            terminal = self._provision_terminal(options)
            self._subscription = ExecutionSubscription(
                self.host,
                terminal,
                lambda event: self._on_start(event, options),
                lambda event: self._on_end(event, options),
            )
            await self._dispatch(terminal, command, options)
        except Exception:
            log.exception("failed to dispatch %r", command)
            self._abort()
            raise

    def _provision_terminal(self, options: ExecutionOptions) -> Terminal:
        prompt_command = (options.prompt_command or self.config.prompt_command).strip()
        environment = TerminalEnvironment(prompt_command, options.enable_vte_checks)

        if self._terminal is not None and environment != self._environment:
            log.debug("terminal environment changed, recreating terminal")
            self.close_terminal()

        if self._terminal is None:
            env = environment.as_env()
            self._terminal = self.host.create_terminal(self.config.terminal_name, env)
            self._environment = environment
            log.debug("created terminal %r with env %s", self.config.terminal_name, env)

        self._terminal.show()
        return self._terminal

    async def _dispatch(self, terminal: Terminal, command: str, options: ExecutionOptions) -> None:
        if not options.use_shell_integration:
            self._set_state(SessionState.RUNNING)
            terminal.send_text(command)
            return

        status = await wait_for_shell_integration(
            terminal,
            timeout_ms=self.config.integration_timeout_ms,
            interval_ms=self.config.integration_poll_ms,
        )
        if terminal is not self._terminal:
            log.info("terminal closed before %r was dispatched", command)
            return
        self._set_state(SessionState.RUNNING)
        if status is IntegrationStatus.READY:
            terminal.shell_integration.execute_command(command)
            return

        log.warning("shell integration unavailable, sending raw text")
        self.on_output(FALLBACK_WARNING)
        self.stats.record_fallback_warning()
        terminal.send_text(command)

    def _on_start(self, event: ShellExecutionEvent, options: ExecutionOptions) -> None:
        if self._subscription is None or not self._subscription.matches(event):
            return
        self._run_task = asyncio.create_task(self._process_execution(event.execution, options))

    def _on_end(self, event: ShellExecutionEvent, options: ExecutionOptions) -> None:
        if self._subscription is None or not self._subscription.matches(event):
            return
        self._subscription.dispose()
        self._subscription = None
        self._set_state(SessionState.CLEANUP)
        self._cleanup_task = asyncio.create_task(self._cleanup(options))

    async def _process_execution(
        self, execution: ShellExecution, options: ExecutionOptions
    ) -> None:
        chunks: list[str] = []
        try:
            async for chunk in execution.read():
                chunks.append(chunk)
        except Exception:
            log.exception("error reading command output stream, discarding run")
            return
        self._record_run("".join(chunks), options)

    def _record_run(self, output: str, options: ExecutionOptions) -> None:
        self.stats.record_completion_marker_count(count_completion_markers(output))

        report = self.extractor.analyze(output, options.enable_vte_checks)
        for mismatch in report.mismatches:
            self.stats.record_mismatch(mismatch.tier, mismatch.regex_text, mismatch.index_text)
        if report.regex_us is not None and report.index_us is not None:
            self.stats.record_timings(report.regex_us, report.index_us)
        self.stats.record(report.match, output)

        self.on_output(format_result(report.match, output))
        self.on_debug(self.stats.render())

    async def _cleanup(self, options: ExecutionOptions) -> None:
        run_task, self._run_task = self._run_task, None
        if run_task is not None:
            try:
                await run_task
            except Exception:
                log.exception("command run failed")
        if options.auto_close_terminal:
            self.close_terminal()
        self._set_state(SessionState.IDLE)
        self._idle.set()

    def _abort(self) -> None:
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        self._set_state(SessionState.IDLE)
        self._idle.set()

    async def wait_until_idle(self) -> None:
        """Wait until the in-flight command, if any, has been cleaned up."""
        await self._idle.wait()

    def close_terminal(self) -> None:
        """Dispose the managed terminal; the next command creates a new one.

        A command still in flight on the terminal is dropped: its output is
        discarded and the controller returns to idle.
        """
        terminal, self._terminal = self._terminal, None
        if terminal is None:
            return
        self._environment = None
        if self._subscription is not None and self._subscription.terminal is terminal:
            log.warning("terminal closed while a command was in flight, discarding run")
            run_task, self._run_task = self._run_task, None
            if run_task is not None:
                run_task.cancel()
            self._abort()
        terminal.dispose()

    def reset_statistics(self) -> None:
        self.stats.reset()

    def render_statistics(self) -> str:
        return self.stats.render()
