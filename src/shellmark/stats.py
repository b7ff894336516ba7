"""Accumulated pattern-match statistics across command runs."""

from __future__ import annotations

import json

from shellmark.markers import PatternTier
from shellmark.models import MatchResult


def quote(text: str | None) -> str:
    """Return *text* as a JSON string literal so control characters stay visible."""
    return json.dumps(text, ensure_ascii=False)


class StatisticsStore:
    """Counters, samples and diagnostics gathered by a ``SessionController``."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Clear every counter and collection."""
        self.tier_counts: dict[PatternTier, int] = {tier: 0 for tier in PatternTier}
        self.no_match_count = 0
        self.last_matches: dict[PatternTier, tuple[str, str]] = {}
        self.no_match_examples: list[str] = []
        self.completion_marker_count = 0
        self.fallback_warnings = 0
        self.mismatches: list[str] = []
        self.regex_times: list[float] = []
        self.index_times: list[float] = []

    def record(self, result: MatchResult, source: str) -> None:
        """Count *result* and keep *source* as its example."""
        if result.tier is None:
            self.no_match_count += 1
            self.no_match_examples.append(source)
            return
        self.tier_counts[result.tier] += 1
        self.last_matches[result.tier] = (result.text, source)

    def record_mismatch(self, tier_id: int, regex_text: str | None, index_text: str | None) -> None:
        self.mismatches.append(
            f"Pattern {int(tier_id)} mismatch:\n"
            f"  Regex: {quote(regex_text)}\n"
            f"  Index: {quote(index_text)}"
        )

    def record_fallback_warning(self) -> None:
        self.fallback_warnings += 1

    def record_completion_marker_count(self, count: int) -> None:
        self.completion_marker_count += count

    def record_timings(self, regex_us: float, index_us: float) -> None:
        self.regex_times.append(regex_us)
        self.index_times.append(index_us)

    @property
    def avg_regex_us(self) -> float:
        return _mean(self.regex_times)

    @property
    def avg_index_us(self) -> float:
        return _mean(self.index_times)

    def render(self) -> str:
        """Return the human-readable statistics report."""
        lines = ["Pattern Match Statistics:"]
        if self.mismatches:
            lines.append("Match Validation Issues:")
            lines.extend(f"  {message}" for message in self.mismatches)
            lines.append("")

        for tier in PatternTier:
            label = f"Pattern {tier.value} ({tier.label}):"
            lines.append(f"    {label:<24}{self.tier_counts[tier]}")
        lines.append(f"    {'No matches:':<24}{self.no_match_count}")
        lines.append(f"    {'Total 633;D count:':<24}{self.completion_marker_count}")
        lines.append(f"    {'shIntegration warnings:':<24}{self.fallback_warnings}")

        avg_regex, avg_index = self.avg_regex_us, self.avg_index_us
        ratio = f"{avg_regex / avg_index:.1f}x" if avg_index > 0 else "n/a"
        lines.append(f"    {'Avg Regex Time:':<24}{avg_regex:.3f}µs")
        lines.append(f"    {'Avg String Index Time:':<24}{avg_index:.3f}µs (regex/index: {ratio})")
        lines.append("")

        lines.append("Example matches:")
        for tier in PatternTier:
            if tier not in self.last_matches:
                continue
            text, source = self.last_matches[tier]
            lines.append(f"Pattern {tier.value} ({tier.label}):")
            lines.append(f"  Match: {quote(text)}")
            lines.append(f"  From:  {quote(source)}")
            lines.append("")

        if self.no_match_examples:
            lines.append("No match examples:")
            lines.extend(
                f"  {i}. {quote(example)}" for i, example in enumerate(self.no_match_examples, 1)
            )

        return "\n".join(lines) + "\n"


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
