"""Configuration for shellmark."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from shellmark.models import RunnerConfig

log = logging.getLogger(__name__)

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "RunnerConfig",
    "load_config",
    "parse_bool",
]

CONFIG_DIR = Path.home() / ".shellmark"
CONFIG_FILE = CONFIG_DIR / "config.json"
BOOLEAN_TRUE_STRINGS = {"1", "true", "yes", "on"}
BOOLEAN_FALSE_STRINGS = {"0", "false", "no", "off"}


def parse_bool(raw: str) -> bool | None:
    """Return the boolean a config string spells, or ``None`` if it spells neither."""
    normalized = raw.strip().lower()
    if normalized in BOOLEAN_TRUE_STRINGS:
        return True
    if normalized in BOOLEAN_FALSE_STRINGS:
        return False
    return None


def load_config() -> RunnerConfig:
    """Load config from file, with env var overrides.

    Reads ``~/.shellmark/config.json`` and applies environment variable
    overrides (``SHELLMARK_PROMPT_COMMAND``, ``SHELLMARK_SHELL``,
    ``SHELLMARK_BENCHMARK_ITERATIONS``, ``SHELLMARK_VTE_CHECKS`` and
    ``SHELLMARK_AUTO_CLOSE``). Falls back to defaults when the file is absent,
    contains invalid JSON, or fails validation.

    Returns:
        The resolved ``RunnerConfig`` instance.
    """
    raw_config: dict[str, Any] = {}

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                loaded = json.load(f)
        except json.JSONDecodeError as exc:
            log.warning(
                "invalid config JSON in %s (%s); falling back to defaults",
                CONFIG_FILE,
                exc,
            )
        else:
            if isinstance(loaded, dict):
                raw_config = loaded
            log.debug("loaded config from %s", CONFIG_FILE)

    try:
        config = RunnerConfig.model_validate(raw_config)
    except ValidationError as exc:
        log.warning("invalid config in %s (%s); falling back to defaults", CONFIG_FILE, exc)
        config = RunnerConfig()

    # Env var overrides
    if (prompt_command := os.environ.get("SHELLMARK_PROMPT_COMMAND")) is not None:
        config.prompt_command = prompt_command
    if shell := os.environ.get("SHELLMARK_SHELL"):
        config.shell = shell
    if iterations_raw := os.environ.get("SHELLMARK_BENCHMARK_ITERATIONS"):
        try:
            iterations = int(iterations_raw)
        except ValueError:
            iterations = 0
        if iterations >= 1:
            config.benchmark_iterations = iterations
        else:
            log.warning("ignoring SHELLMARK_BENCHMARK_ITERATIONS=%r", iterations_raw)
    if (vte_raw := os.environ.get("SHELLMARK_VTE_CHECKS")) is not None:
        if (vte := parse_bool(vte_raw)) is not None:
            config.enable_vte_checks = vte
    if (auto_close_raw := os.environ.get("SHELLMARK_AUTO_CLOSE")) is not None:
        if (auto_close := parse_bool(auto_close_raw)) is not None:
            config.auto_close_terminal = auto_close

    return config
