"""Shared pytest fixtures: config isolation and an in-memory terminal host."""

from pathlib import Path

import pytest

import shellmark.config as config_module
from shellmark.host import EventEmitter, ShellExecutionEvent


@pytest.fixture()
def shellmark_config_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[Path, Path]:
    """Redirect shellmark config paths to a temp directory."""
    config_dir = tmp_path / ".shellmark"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    for name in (
        "SHELLMARK_PROMPT_COMMAND",
        "SHELLMARK_SHELL",
        "SHELLMARK_BENCHMARK_ITERATIONS",
        "SHELLMARK_VTE_CHECKS",
        "SHELLMARK_AUTO_CLOSE",
    ):
        monkeypatch.delenv(name, raising=False)
    return config_dir, config_file


@pytest.fixture()
def config_dir(shellmark_config_paths: tuple[Path, Path]) -> Path:
    return shellmark_config_paths[0]


@pytest.fixture()
def config_file(shellmark_config_paths: tuple[Path, Path]) -> Path:
    return shellmark_config_paths[1]


class FakeExecution:
    def __init__(self, chunks: list[str], error: Exception | None = None) -> None:
        self.chunks = chunks
        self.error = error

    async def read(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


class FakeIntegration:
    def __init__(self, terminal: "FakeTerminal") -> None:
        self.terminal = terminal

    def execute_command(self, command: str) -> None:
        self.terminal.executed.append(command)
        self.terminal.host.dispatched(self.terminal)


class FakeTerminal:
    def __init__(self, host: "FakeHost", name: str, env: dict[str, str]) -> None:
        self.host = host
        self.name = name
        self.env = env
        self.shell_integration: FakeIntegration | None = None
        self.show_count = 0
        self.sent: list[str] = []
        self.executed: list[str] = []
        self.disposed = False

    def show(self) -> None:
        self.show_count += 1
        if self.host.integration:
            self.shell_integration = FakeIntegration(self)

    def send_text(self, text: str) -> None:
        self.sent.append(text)
        self.host.dispatched(self)

    def dispose(self) -> None:
        self.disposed = True


class FakeHost:
    """Terminal host that replays scripted output.

    With ``auto_emit`` the start and end events fire as soon as a command is
    dispatched; otherwise tests call ``finish`` themselves.
    """

    def __init__(self, chunks=None, integration=True, auto_emit=True, error=None) -> None:
        self.chunks = list(chunks or [])
        self.integration = integration
        self.auto_emit = auto_emit
        self.error = error
        self.terminals: list[FakeTerminal] = []
        self.start_events = EventEmitter()
        self.end_events = EventEmitter()

    def create_terminal(self, name: str, env: dict[str, str]) -> FakeTerminal:
        terminal = FakeTerminal(self, name, env)
        self.terminals.append(terminal)
        return terminal

    def on_did_start_shell_execution(self, listener):
        return self.start_events.subscribe(listener)

    def on_did_end_shell_execution(self, listener):
        return self.end_events.subscribe(listener)

    def dispatched(self, terminal: FakeTerminal) -> None:
        if self.auto_emit:
            self.finish(terminal)

    def finish(self, terminal: FakeTerminal, chunks=None, error=None) -> None:
        execution = FakeExecution(
            list(self.chunks if chunks is None else chunks), error or self.error
        )
        event = ShellExecutionEvent(terminal=terminal, execution=execution)
        self.start_events.fire(event)
        self.end_events.fire(event)


@pytest.fixture()
def make_host():
    return FakeHost
