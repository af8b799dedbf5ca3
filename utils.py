import math
import random
import time
from typing import Iterable, Optional

from constants import WEEKDAY_INDEX, WEEKDAYS


def weekday_ordinal(day: str) -> int:
    """Return the 0-based position of a weekday name in the planning week."""
    try:
        return WEEKDAY_INDEX[day]
    except KeyError:
        raise ValueError(f"Unknown weekday: {day!r}. Expected one of {', '.join(WEEKDAYS)}")


def are_consecutive_days(first: str, second: str) -> bool:
    """True when `second` is the weekday right after `first`."""
    return weekday_ordinal(second) - weekday_ordinal(first) == 1


def order_days(days: Iterable[str]) -> tuple[str, ...]:
    """Deduplicate and sort weekday names into week order."""
    return tuple(sorted(set(days), key=weekday_ordinal))


def make_rng(seed: Optional[int]) -> random.Random:
    """Create a private pseudo-random generator.

    Every planning call owns its generator; nothing in the engine touches the
    module-level `random` state.
    """
    return random.Random(0 if seed is None else seed)


def mean(values) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def pstdev(values) -> float:
    values = list(values)
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class Deadline:
    """Cooperative wall-clock budget checked at iteration boundaries.

    A budget of None (or <= 0) never expires.
    """

    def __init__(self, timeout_ms: Optional[float]):
        self.timeout_ms = timeout_ms
        self._start = time.monotonic()
        if timeout_ms is None or timeout_ms <= 0:
            self._expires_at = None
        else:
            self._expires_at = self._start + timeout_ms / 1000.0

    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self._start) * 1000.0

    def remaining_ms(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, (self._expires_at - time.monotonic()) * 1000.0)
