"""
Stage Timing.

A small perf_counter() context manager used by the dispatcher to time
cache lookups, provider calls and cache writes for logs and metrics.

Example:
    with timeit("synthesize") as t:
        result = await backend.synthesize(text, voice)
    verbose(_LOG, "synthesized", seconds=round(t.seconds, 4))
"""
from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict


@dataclass
class Timing:
    """Duration of one named stage."""
    name: str
    seconds: float


class timeit:
    """
    Context manager for timing a block, sync or across awaits.

    The elapsed time is available as ``t.seconds`` both inside the block
    (time so far) and after it exits (final duration).
    """

    def __init__(self, name: str):
        self.name = name
        self._t0 = 0.0
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0)

    @property
    def seconds(self) -> float:
        if self.timing is not None:
            return self.timing.seconds
        return perf_counter() - self._t0


@dataclass
class StageTimings:
    """Per-request collection of stage durations, in insertion order."""
    stages: Dict[str, float] = field(default_factory=dict)

    def add(self, timing: Timing | None) -> None:
        if timing is not None:
            self.stages[timing.name] = round(timing.seconds, 4)

    @property
    def total(self) -> float:
        return round(sum(self.stages.values()), 4)
