"""
Run configuration for the Dining Arbiter simulator.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from models.errors import ConfigurationError


class DelayRange(NamedTuple):
    """Inclusive bounds in seconds for a randomized delay."""
    low: float = 0.0
    high: float = 0.0


def _to_delay_range(name: str, value) -> DelayRange:
    if isinstance(value, DelayRange):
        delay = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        delay = DelayRange(float(value), float(value))
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        delay = DelayRange(*value)
    else:
        raise ConfigurationError(f"{name} must be a number or a [low, high] pair, got {value!r}")

    for bound in delay:
        if isinstance(bound, bool) or not isinstance(bound, (int, float)):
            raise ConfigurationError(f"{name} bounds must be numbers, got {value!r}")
        if not math.isfinite(bound):
            raise ConfigurationError(f"{name} bounds must be finite, got {value!r}")
    if delay.low < 0:
        raise ConfigurationError(f"{name} cannot be negative ({delay.low})")
    if delay.high < delay.low:
        raise ConfigurationError(f"{name} high bound {delay.high} is below low bound {delay.low}")
    return DelayRange(float(delay.low), float(delay.high))


def _check_positive(name: str, value) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be positive and finite, got {value}")


@dataclass
class SimulationConfig:
    """
    Parameters for one simulation run.

    Attributes:
        actor_count: Number of actors (and slots) in the ring, at least 2
        cycles: Per-actor cycle cap (None = run until cancelled)
        think_delay: Bounds for the Thinking delay
        act_delay: Bounds for the Acting delay
        seed: Base seed for the per-actor random generators
        detect_interval: Seconds between deadlock watchdog checks (None disables)
        starvation_limit: Longest acceptable hungry wait in seconds (None disables)
    """
    actor_count: int
    cycles: Optional[int] = None
    think_delay: Union[DelayRange, tuple, list, float] = DelayRange()
    act_delay: Union[DelayRange, tuple, list, float] = DelayRange()
    seed: int = 0
    detect_interval: Optional[float] = 0.5
    starvation_limit: Optional[float] = None

    def __post_init__(self):
        """Validate and normalise the configuration."""
        if isinstance(self.actor_count, bool) or not isinstance(self.actor_count, int):
            raise ConfigurationError(f"actor_count must be an integer, got {self.actor_count!r}")
        if self.actor_count < 2:
            raise ConfigurationError(f"actor_count must be at least 2, got {self.actor_count}")

        if self.cycles is not None:
            if isinstance(self.cycles, bool) or not isinstance(self.cycles, int) or self.cycles < 1:
                raise ConfigurationError(f"cycles must be a positive integer, got {self.cycles!r}")

        self.think_delay = _to_delay_range("think_delay", self.think_delay)
        self.act_delay = _to_delay_range("act_delay", self.act_delay)

        _check_positive("detect_interval", self.detect_interval)
        _check_positive("starvation_limit", self.starvation_limit)

    @property
    def admission_capacity(self) -> int:
        """Permits in the admission gate (one less than the actor count)."""
        return self.actor_count - 1
