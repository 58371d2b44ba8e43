"""
Metrics Tracking for the Dining Arbiter simulator.

Tracks per-actor progress and waiting throughout a run.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


@dataclass
class SimulationMetrics:
    """
    Accumulated metrics for a single simulation run.

    Every actor writes only its own row, so no locking is needed.

    Tracks four key metrics:
    1. Completed Cycles: think -> act -> release rounds finished per actor
    2. Cycle Skew: max - min completed cycles across actors (starvation signal)
    3. Hungry Wait: seconds from requesting admission to Acting, per actor
    4. Throughput: completed cycles / wall-clock seconds
    """
    actor_count: int
    cycles_completed: Optional[np.ndarray] = field(default=None)
    acting_counts: Optional[np.ndarray] = field(default=None)
    slot_hold_counts: Optional[np.ndarray] = field(default=None)
    longest_wait: Optional[np.ndarray] = field(default=None)
    total_wait: Optional[np.ndarray] = field(default=None)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def __post_init__(self):
        n = self.actor_count
        if self.cycles_completed is None:
            self.cycles_completed = np.zeros(n, dtype=int)
        if self.acting_counts is None:
            self.acting_counts = np.zeros(n, dtype=int)
        if self.slot_hold_counts is None:
            # [actor][slot] number of times the actor acquired the slot
            self.slot_hold_counts = np.zeros((n, n), dtype=int)
        if self.longest_wait is None:
            self.longest_wait = np.zeros(n, dtype=float)
        if self.total_wait is None:
            self.total_wait = np.zeros(n, dtype=float)

    def mark_started(self) -> None:
        self.started_at = time.monotonic()

    def mark_finished(self) -> None:
        self.finished_at = time.monotonic()

    def record_acquired(self, actor_id: int, slot_index: int) -> None:
        """Record that an actor acquired a slot."""
        self.slot_hold_counts[actor_id][slot_index] += 1

    def record_acting(self, actor_id: int, waited: float) -> None:
        """
        Record an actor reaching Acting.

        Args:
            actor_id: Actor identifier
            waited: Seconds spent between requesting admission and Acting
        """
        self.acting_counts[actor_id] += 1
        self.total_wait[actor_id] += waited
        if waited > self.longest_wait[actor_id]:
            self.longest_wait[actor_id] = waited

    def record_cycle(self, actor_id: int) -> None:
        """Record a completed cycle (both slots released, gate left)."""
        self.cycles_completed[actor_id] += 1

    @property
    def elapsed(self) -> float:
        """Wall-clock seconds of the run (so far, if still running)."""
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    @property
    def total_cycles(self) -> int:
        return int(self.cycles_completed.sum())

    def get_cycle_skew(self) -> int:
        """Largest difference in completed cycles between any two actors."""
        return int(self.cycles_completed.max() - self.cycles_completed.min())

    def get_avg_wait(self) -> float:
        """Average hungry wait per Acting entry across all actors."""
        total_acting = self.acting_counts.sum()
        if total_acting == 0:
            return 0.0
        return float(self.total_wait.sum() / total_acting)

    def get_throughput(self) -> float:
        """Completed cycles per second."""
        elapsed = self.elapsed
        if elapsed <= 0:
            return 0.0
        return self.total_cycles / elapsed

    def get_starving_actors(self, limit: float) -> List[int]:
        """
        Actors whose longest hungry wait exceeded the limit.

        Args:
            limit: Starvation threshold in seconds
        """
        return [int(i) for i in np.flatnonzero(self.longest_wait > limit)]


def format_metrics_report(
    metrics: SimulationMetrics,
    verbose: bool = False,
    outcome: str = None,
    starvation_limit: float = None
) -> str:
    """
    Format metrics for display at end of simulation.

    Args:
        metrics: SimulationMetrics instance with collected data
        verbose: If True, include the per-slot hold matrix
        outcome: How the run ended
        starvation_limit: Threshold used to flag starving actors

    Returns:
        Formatted metrics report string
    """
    lines = []
    lines.append("\n" + "="*60)
    lines.append("SIMULATION METRICS")
    lines.append("="*60)

    if outcome:
        lines.append(f"Outcome: {outcome.upper()}")
    lines.append(f"Actors: {metrics.actor_count}")
    lines.append(f"Elapsed: {metrics.elapsed:.3f}s")
    lines.append("")

    lines.append("KEY METRICS:")
    lines.append("-" * 60)
    lines.append(f"1. Completed Cycles: {metrics.total_cycles}")
    lines.append(f"2. Cycle Skew: {metrics.get_cycle_skew()}")
    lines.append(f"3. Average Hungry Wait: {metrics.get_avg_wait() * 1000:.2f} ms")
    lines.append(f"4. Throughput: {metrics.get_throughput():.1f} cycles/s")

    if starvation_limit is not None:
        starving = metrics.get_starving_actors(starvation_limit)
        starving_str = ", ".join(f"A{a}" for a in starving) if starving else "none"
        lines.append(f"   Starving (> {starvation_limit:.2f}s): {starving_str}")

    lines.append("")
    lines.append("PER-ACTOR SUMMARY:")
    lines.append("-" * 60)
    for actor_id in range(metrics.actor_count):
        lines.append(
            f"  A{actor_id}: cycles={int(metrics.cycles_completed[actor_id]):6} | "
            f"acting={int(metrics.acting_counts[actor_id]):6} | "
            f"longest wait={metrics.longest_wait[actor_id] * 1000:8.2f} ms"
        )

    if verbose:
        lines.append("")
        lines.append("SLOT HOLD MATRIX [actor][slot]:")
        lines.append("-" * 60)
        lines.append("      " + " ".join(f"S{s:<5}" for s in range(metrics.actor_count)))
        for actor_id in range(metrics.actor_count):
            row = " ".join(f"{int(c):6}" for c in metrics.slot_hold_counts[actor_id])
            lines.append(f"  A{actor_id}: {row}")

    lines.append("="*60)
    return "\n".join(lines)
