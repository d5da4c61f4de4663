"""
Randomized stake amounts, validator choice and inter-account delays.
"""
import random
from typing import Optional, Sequence, TypeVar

from .models import Range

T = TypeVar('T')

_system_random = random.SystemRandom()


def sample_amount_wei(min_wei: int, max_wei: int, rng: Optional[random.Random] = None) -> int:
    """
    Uniform integer amount in [min_wei, max_wei).

    Raises:
        ValueError: If the range is empty
    """
    if max_wei <= min_wei:
        raise ValueError(f"empty stake range [{min_wei}, {max_wei})")
    return (rng or _system_random).randrange(min_wei, max_wei)


def sample_choice(values: Sequence[T], rng: Optional[random.Random] = None) -> T:
    """
    Uniform pick from ``values``.

    Raises:
        ValueError: If ``values`` is empty
    """
    if not values:
        raise ValueError("cannot pick a random value from an empty collection")
    return (rng or _system_random).choice(values)


def sample_seconds(bounds: Range, rng: Optional[random.Random] = None) -> float:
    """Uniform float in [min, max)."""
    value = bounds.min + (rng or _system_random).random() * (bounds.max - bounds.min)
    # float rounding can land exactly on max
    return value if value < bounds.max else bounds.min


class DelaySchedule:
    """Endless source of jittered delays drawn from a configured range."""

    def __init__(self, bounds: Range, rng: Optional[random.Random] = None):
        self.bounds = bounds
        self._rng = rng

    def __iter__(self):
        return self

    def __next__(self) -> float:
        return sample_seconds(self.bounds, self._rng)
