"""Three-tier extraction of command output from shell-integration markers."""

from __future__ import annotations

import logging
import re

from shellmark.benchmark import time_call
from shellmark.markers import DEFAULT_PATTERNS, MarkerPattern, PatternTier
from shellmark.models import (
    DEFAULT_BENCHMARK_ITERATIONS,
    NO_MATCH,
    ExtractionReport,
    MatchResult,
    Mismatch,
)

log = logging.getLogger(__name__)


def index_scan(output: str, prefix: str, suffix: str | None) -> str | None:
    """Return the text between the first *prefix* and the next *suffix*.

    With no *suffix*, everything after the first *prefix* is returned.
    """
    start = output.find(prefix)
    if start == -1:
        return None
    content_start = start + len(prefix)
    if suffix is None:
        return output[content_start:]
    end = output.find(suffix, content_start)
    if end == -1:
        return None
    return output[content_start:end]


def regex_scan(output: str, pattern: re.Pattern[str]) -> str | None:
    """Return the first capture group of *pattern* in *output*, if any."""
    match = pattern.search(output)
    if match is None:
        return None
    return match.group(1)


class PatternExtractor:
    """Try each marker tier in order and cross-check two scan strategies.

    A tier only counts when the regex scan and the index scan both match and
    return the same text. Any disagreement is reported as a ``Mismatch`` and
    the search moves on to the next tier.
    """

    def __init__(
        self,
        iterations: int = DEFAULT_BENCHMARK_ITERATIONS,
        patterns: tuple[MarkerPattern, ...] = DEFAULT_PATTERNS,
    ) -> None:
        if iterations < 1:
            raise ValueError(f"iterations must be at least 1, got {iterations}")
        self.iterations = iterations
        self.patterns = tuple(sorted(patterns, key=lambda p: p.tier))

    def extract(self, output: str, enable_vte_checks: bool = True) -> MatchResult:
        """Return the extracted output and the tier that matched."""
        return self.analyze(output, enable_vte_checks).match

    def analyze(self, output: str, enable_vte_checks: bool = True) -> ExtractionReport:
        """Run the tier search and return the match with diagnostics and timings."""
        mismatches: list[Mismatch] = []
        for pattern in self.patterns:
            if pattern.tier is PatternTier.VTE and not enable_vte_checks:
                continue

            by_regex = time_call(lambda: regex_scan(output, pattern.regex), self.iterations)
            by_index = time_call(
                lambda: index_scan(output, pattern.prefix, pattern.suffix), self.iterations
            )
            regex_text, index_text = by_regex.result, by_index.result

            if regex_text is None and index_text is None:
                log.debug("tier %s: no match", pattern.tier.label)
                continue
            if regex_text != index_text:
                log.warning("tier %s: regex and index scans disagree", pattern.tier.label)
                mismatches.append(Mismatch(pattern.tier, regex_text, index_text))
                continue

            log.debug("tier %s: matched %d chars", pattern.tier.label, len(index_text))
            return ExtractionReport(
                match=MatchResult(tier=pattern.tier, text=index_text),
                mismatches=tuple(mismatches),
                regex_us=by_regex.average_us,
                index_us=by_index.average_us,
            )

        return ExtractionReport(match=NO_MATCH, mismatches=tuple(mismatches))
