"""Random source and sampling helpers: pure math, no I/O.

Every probabilistic rule in the engine draws through an ``RngSource`` so a
seeded ``random.Random`` (or a scripted stream in tests) replays exactly.
"""
from __future__ import annotations

import math
import random
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")


class RngSource(Protocol):
    def random(self) -> float:
        """Return a uniform float in [0, 1)."""
        ...


def default_rng(seed: int | None = None) -> random.Random:
    return random.Random(seed)


def chance(rng: RngSource, probability: float) -> bool:
    """Bernoulli trial: True with the given probability (0..1)."""
    return rng.random() < probability


def percent_chance(rng: RngSource, percent: float) -> bool:
    return rng.random() * 100 < percent


def randint(rng: RngSource, low: int, high: int) -> int:
    """Uniform integer in [low, high]."""
    if high < low:
        raise ValueError(f"Empty range: {low}..{high}")
    return low + min(int(rng.random() * (high - low + 1)), high - low)


def uniform(rng: RngSource, low: float, high: float) -> float:
    return low + rng.random() * (high - low)


def choice(rng: RngSource, options: Sequence[T]) -> T:
    if not options:
        raise ValueError("Cannot choose from an empty sequence")
    return options[randint(rng, 0, len(options) - 1)]


def weighted_choice(rng: RngSource, options: Sequence[T], weights: Sequence[float]) -> T:
    """Pick one option with probability proportional to its weight."""
    if not options or len(options) != len(weights):
        raise ValueError("Options and weights must be non-empty and the same length")
    total = math.fsum(weights)
    if total <= 0:
        raise ValueError("Weights must sum to a positive value")
    target = rng.random() * total
    cumulative = 0.0
    for option, weight in zip(options, weights):
        cumulative += weight
        if target < cumulative:
            return option
    return options[-1]
