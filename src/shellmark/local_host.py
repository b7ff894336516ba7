r"""Terminal host that runs commands as local subprocesses.

Each dispatched command runs through ``<shell> -c``. Output is framed with
the same markers an integrated terminal emits, so the session controller
sees the stream it would see in an editor:

    \033]633;C\007 <output> [\033]777;notify;Command completed;<cmd>\033\\] \033]633;D;<exit>

Commands sent with ``send_text`` bypass shell integration and only carry
the output-start marker. Disposing a terminal kills its running command and
fails the output stream with ``TerminalDisposedError``.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
from collections.abc import AsyncIterator

from shellmark.host import EventEmitter, Listener, ShellExecutionEvent, Subscription
from shellmark.markers import COMMAND_FINISHED, OUTPUT_START, VTE_COMPLETED

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
_END_OF_STREAM = object()


def resolve_shell(shell: str | None = None) -> str:
    """Return the shell executable to run commands with."""
    return shell or os.environ.get("SHELL") or "/bin/sh"


class TerminalDisposedError(RuntimeError):
    """Raised to the output reader when a terminal is disposed mid-command."""


def _vte_enabled(env: dict[str, str]) -> bool:
    return env.get("VTE_VERSION", "").strip() not in {"", "0"}


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


class LocalExecution:
    """Output stream of one command, readable once."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def feed(self, text: str) -> None:
        if text:
            self._queue.put_nowait(text)

    def fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    def close(self) -> None:
        self._queue.put_nowait(_END_OF_STREAM)

    async def read(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END_OF_STREAM:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class LocalShellIntegration:
    def __init__(self, terminal: LocalTerminal) -> None:
        self._terminal = terminal

    def execute_command(self, command: str) -> asyncio.Task[int]:
        return self._terminal._start_command(command, integrated=True)


class LocalTerminal:
    """A named environment plus a shell; every command is a fresh subprocess."""

    def __init__(
        self, host: LocalTerminalHost, name: str, env: dict[str, str], shell: str, integration: bool
    ) -> None:
        self.name = name
        self.env = dict(env)
        self.shell = shell
        self.shell_integration: LocalShellIntegration | None = None
        self.disposed = False
        self._host = host
        self._integration = integration
        self._tasks: set[asyncio.Task[int]] = set()

    def show(self) -> None:
        if self._integration and not self.disposed:
            self.shell_integration = LocalShellIntegration(self)

    def send_text(self, text: str) -> None:
        self._start_command(text, integrated=False)

    def dispose(self) -> None:
        self.disposed = True
        self.shell_integration = None
        for task in list(self._tasks):
            task.cancel()
        log.debug("disposed terminal %r", self.name)

    def _start_command(self, command: str, *, integrated: bool) -> asyncio.Task[int]:
        if self.disposed:
            raise RuntimeError(f"terminal {self.name!r} has been disposed")
        task = asyncio.create_task(self._run(command, integrated))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, command: str, integrated: bool) -> int:
        env = {**os.environ, **self.env}
        execution = LocalExecution()
        event = ShellExecutionEvent(terminal=self, execution=execution)
        self._host.start_events.fire(event)

        exit_code = -1
        proc: asyncio.subprocess.Process | None = None
        try:
            execution.feed(OUTPUT_START)
            proc = await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
            )
            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            while chunk := await proc.stdout.read(READ_CHUNK_SIZE):
                execution.feed(decoder.decode(chunk))
            execution.feed(decoder.decode(b"", final=True))
            exit_code = await proc.wait()
            log.debug("%r exited with %d", command, exit_code)

            if integrated:
                if _vte_enabled(env):
                    execution.feed(f"{VTE_COMPLETED};{command}\x1b\\")
                execution.feed(f"{COMMAND_FINISHED};{exit_code}")
            if prompt_command := env.get("PROMPT_COMMAND", "").strip():
                await self._run_prompt_command(prompt_command, env)
        except asyncio.CancelledError:
            log.debug("terminal %r disposed while running %r", self.name, command)
            if proc is not None:
                await _terminate(proc)
            execution.fail(TerminalDisposedError(f"terminal {self.name!r} was disposed"))
            raise
        except OSError as exc:
            log.error("failed to run %r with %s: %s", command, self.shell, exc)
            execution.fail(exc)
        finally:
            execution.close()
            self._host.end_events.fire(event)
        return exit_code

    async def _run_prompt_command(self, prompt_command: str, env: dict[str, str]) -> None:
        proc = await asyncio.create_subprocess_exec(
            self.shell,
            "-c",
            prompt_command,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            env=env,
        )
        try:
            await proc.wait()
        except asyncio.CancelledError:
            await _terminate(proc)
            raise


class LocalTerminalHost:
    """``TerminalHost`` backed by local subprocesses."""

    def __init__(self, shell: str | None = None, integration: bool = True) -> None:
        self.shell = resolve_shell(shell)
        self.integration = integration
        self.start_events = EventEmitter()
        self.end_events = EventEmitter()

    def create_terminal(self, name: str, env: dict[str, str]) -> LocalTerminal:
        log.debug("creating terminal %r using %s", name, self.shell)
        return LocalTerminal(self, name, env, self.shell, self.integration)

    def on_did_start_shell_execution(self, listener: Listener) -> Subscription:
        return self.start_events.subscribe(listener)

    def on_did_end_shell_execution(self, listener: Listener) -> Subscription:
        return self.end_events.subscribe(listener)
