"""Latency measurement for extraction strategies."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class TimedResult(Generic[T]):
    """Result of the last call and the mean time per call in microseconds."""

    result: T
    average_us: float


def time_call(fn: Callable[[], T], iterations: int) -> TimedResult[T]:
    """Call *fn* ``iterations`` times and return its last result with the mean latency.

    Args:
        fn: Zero-argument callable to measure.
        iterations: Number of calls; ``1`` measures a single call.

    Returns:
        ``TimedResult`` holding the final return value and the average wall-clock
        time per call in microseconds.

    Raises:
        ValueError: If *iterations* is less than 1.
    """
    if iterations < 1:
        raise ValueError(f"iterations must be at least 1, got {iterations}")

    result = None
    start = time.perf_counter()
    for _ in range(iterations):
        result = fn()
    elapsed = time.perf_counter() - start
    return TimedResult(result=result, average_us=elapsed / iterations * 1_000_000)
