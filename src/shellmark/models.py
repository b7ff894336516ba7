"""Data models for shellmark."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from shellmark.markers import PatternTier

DEFAULT_PROMPT_COMMAND = "sleep 0.1"
DEFAULT_TERMINAL_NAME = "Command Runner"
DEFAULT_BENCHMARK_ITERATIONS = 1000
DEFAULT_INTEGRATION_TIMEOUT_MS = 4000
DEFAULT_INTEGRATION_POLL_MS = 100


class ExecutionOptions(BaseModel):
    """Per-call options for ``SessionController.execute_command``."""

    model_config = ConfigDict(frozen=True)

    auto_close_terminal: bool = Field(
        default=False,
        description="Dispose the terminal once the command has finished.",
    )
    use_shell_integration: bool = Field(
        default=True,
        description=(
            "Dispatch through the shell-integration execute path when available, "
            "falling back to sending raw text otherwise."
        ),
    )
    prompt_command: str | None = Field(
        default=None,
        description=(
            "Value for PROMPT_COMMAND in the managed terminal. None or an empty string "
            "uses the configured default; a whitespace-only string leaves PROMPT_COMMAND unset."
        ),
    )
    enable_vte_checks: bool = Field(
        default=True,
        description=(
            "Try the VTE completion-notification tier. When False the terminal is also "
            "started with VTE_VERSION=0."
        ),
    )


class RunnerConfig(BaseModel):
    """Runtime configuration for shellmark."""

    terminal_name: str = Field(
        default=DEFAULT_TERMINAL_NAME,
        description="Name given to the managed terminal.",
    )
    prompt_command: str = Field(
        default=DEFAULT_PROMPT_COMMAND,
        description=(
            "PROMPT_COMMAND used when a call does not set one. "
            "Overridden by SHELLMARK_PROMPT_COMMAND."
        ),
    )
    shell: str | None = Field(
        default=None,
        description=(
            "Shell used by the local terminal host. None uses $SHELL, then /bin/sh. "
            "Overridden by SHELLMARK_SHELL."
        ),
    )
    auto_close_terminal: bool = Field(
        default=False,
        description="Default for ExecutionOptions.auto_close_terminal.",
    )
    use_shell_integration: bool = Field(
        default=True,
        description="Default for ExecutionOptions.use_shell_integration.",
    )
    enable_vte_checks: bool = Field(
        default=True,
        description="Default for ExecutionOptions.enable_vte_checks.",
    )
    benchmark_iterations: int = Field(
        default=DEFAULT_BENCHMARK_ITERATIONS,
        ge=1,
        description="Repetitions per extraction strategy when measuring latency.",
    )
    integration_timeout_ms: int = Field(
        default=DEFAULT_INTEGRATION_TIMEOUT_MS,
        ge=0,
        description="How long to wait for shell integration before sending raw text.",
    )
    integration_poll_ms: int = Field(
        default=DEFAULT_INTEGRATION_POLL_MS,
        ge=1,
        description="Interval between shell-integration readiness checks.",
    )

    def execution_options(self) -> ExecutionOptions:
        """Return the per-call defaults described by this config."""
        return ExecutionOptions(
            auto_close_terminal=self.auto_close_terminal,
            use_shell_integration=self.use_shell_integration,
            prompt_command=self.prompt_command,
            enable_vte_checks=self.enable_vte_checks,
        )


@dataclass(frozen=True)
class MatchResult:
    """Extracted command output and the tier that produced it."""

    tier: PatternTier | None = None
    text: str | None = None

    def __post_init__(self) -> None:
        if (self.tier is None) != (self.text is None):
            raise ValueError("MatchResult needs both tier and text, or neither")

    @property
    def matched(self) -> bool:
        return self.tier is not None


NO_MATCH = MatchResult()


@dataclass(frozen=True)
class Mismatch:
    """Disagreement between the regex and index strategies for one tier."""

    tier: PatternTier
    regex_text: str | None
    index_text: str | None


@dataclass(frozen=True)
class ExtractionReport:
    """Everything one extraction pass produced.

    ``regex_us`` and ``index_us`` are the average per-call latencies of the
    accepted tier, or ``None`` when nothing matched.
    """

    match: MatchResult
    mismatches: tuple[Mismatch, ...] = ()
    regex_us: float | None = None
    index_us: float | None = None
