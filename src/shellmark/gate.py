"""Wait for a terminal's shell integration to come up."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum

from shellmark.host import Terminal
from shellmark.models import DEFAULT_INTEGRATION_POLL_MS, DEFAULT_INTEGRATION_TIMEOUT_MS

log = logging.getLogger(__name__)


class IntegrationStatus(Enum):
    READY = "ready"
    TIMEOUT = "timeout"


def has_shell_integration(terminal: Terminal) -> bool:
    """Return whether *terminal* exposes shell integration with an execute path."""
    integration = getattr(terminal, "shell_integration", None)
    return integration is not None and getattr(integration, "execute_command", None) is not None


async def wait_for_shell_integration(
    terminal: Terminal,
    timeout_ms: int = DEFAULT_INTEGRATION_TIMEOUT_MS,
    interval_ms: int = DEFAULT_INTEGRATION_POLL_MS,
) -> IntegrationStatus:
    """Poll *terminal* until shell integration is available or *timeout_ms* elapses.

    Each check only reads terminal attributes; the wait between checks yields
    to the event loop.

    Returns:
        ``IntegrationStatus.READY`` once integration is present, otherwise
        ``IntegrationStatus.TIMEOUT``. Never raises on timeout.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        if has_shell_integration(terminal):
            log.debug("shell integration ready")
            return IntegrationStatus.READY
        if time.monotonic() >= deadline:
            log.debug("shell integration not ready after %d ms", timeout_ms)
            return IntegrationStatus.TIMEOUT
        await asyncio.sleep(interval_ms / 1000)
