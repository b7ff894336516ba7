"""Shell-integration marker grammar."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

# OSC 633 "command output start" marker, BEL terminated.
OUTPUT_START = "\x1b]633;C\x07"

# VTE-style completion notification. Only the escape prefix is matched; the
# sequence continues with a command name and an ST/BEL terminator.
VTE_COMPLETED = "\x1b]777;notify;Command completed"

# OSC 633 "command finished" marker, optionally followed by ";<exit code>".
COMMAND_FINISHED = "\x1b]633;D"

COMPLETION_MARKER_RE = re.compile(re.escape(COMMAND_FINISHED))


class PatternTier(IntEnum):
    """Marker conventions, in precedence order."""

    VTE = 1
    VSCE = 2
    FALLBACK = 3

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]


_TIER_LABELS = {
    PatternTier.VTE: "VTE",
    PatternTier.VSCE: "VSCE",
    PatternTier.FALLBACK: "Fallback",
}


@dataclass(frozen=True)
class MarkerPattern:
    """Prefix/suffix pair for one tier plus the equivalent regular expression."""

    tier: PatternTier
    prefix: str
    suffix: str | None
    regex: re.Pattern[str]


def build_pattern(tier: PatternTier, prefix: str, suffix: str | None) -> MarkerPattern:
    """Return a ``MarkerPattern`` whose regex captures the same span as an index scan."""
    if suffix is None:
        regex = re.compile(re.escape(prefix) + r"(.*)\Z", re.DOTALL)
    else:
        regex = re.compile(re.escape(prefix) + r"(.*?)" + re.escape(suffix), re.DOTALL)
    return MarkerPattern(tier=tier, prefix=prefix, suffix=suffix, regex=regex)


DEFAULT_PATTERNS: tuple[MarkerPattern, ...] = (
    build_pattern(PatternTier.VTE, OUTPUT_START, VTE_COMPLETED),
    build_pattern(PatternTier.VSCE, OUTPUT_START, COMMAND_FINISHED),
    build_pattern(PatternTier.FALLBACK, OUTPUT_START, None),
)


def count_completion_markers(output: str) -> int:
    """Count raw ``633;D`` completion markers in *output*."""
    return len(COMPLETION_MARKER_RE.findall(output))
