"""Terminal-host contract consumed by the session controller.

A host owns terminals and reports command executions on them. Editors
provide their own implementation; ``shellmark.local_host`` provides one
backed by local subprocesses.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any, Protocol

log = logging.getLogger(__name__)


class Disposable(Protocol):
    def dispose(self) -> None: ...


class ShellIntegration(Protocol):
    def execute_command(self, command: str) -> Any: ...


class ShellExecution(Protocol):
    def read(self) -> AsyncIterator[str]:
        """Return the raw output of the execution, chunk by chunk."""
        ...


class Terminal(Protocol):
    name: str
    shell_integration: ShellIntegration | None

    def show(self) -> None: ...

    def send_text(self, text: str) -> None: ...

    def dispose(self) -> None: ...


@dataclass(frozen=True)
class ShellExecutionEvent:
    """Start or end notification for one command execution."""

    terminal: Terminal
    execution: ShellExecution


Listener = Callable[[ShellExecutionEvent], Any]


class TerminalHost(Protocol):
    def create_terminal(self, name: str, env: dict[str, str]) -> Terminal: ...

    def on_did_start_shell_execution(self, listener: Listener) -> Disposable: ...

    def on_did_end_shell_execution(self, listener: Listener) -> Disposable: ...


class Subscription:
    """Handle returned by ``EventEmitter.subscribe``; disposing it unsubscribes."""

    def __init__(self, emitter: EventEmitter, listener: Listener) -> None:
        self._emitter = emitter
        self._listener = listener

    def dispose(self) -> None:
        self._emitter.unsubscribe(self._listener)


class EventEmitter:
    """Minimal listener registry for host notifications."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def fire(self, event: ShellExecutionEvent) -> None:
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            listener(event)
