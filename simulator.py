#!/usr/bin/env python3
"""
Dining Arbiter Simulator
Main entry point and simulation driver.

N actors share a ring of N resource slots. Each actor needs both of its
adjacent slots to act. Deadlock is ruled out twice over: an admission gate
of N-1 permits, and acquisition in global slot-index order.
"""

import argparse
import random
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from models.actor import Actor, ActorPhase
from models.config import SimulationConfig
from models.errors import ConfigurationError, InvariantViolation
from models.resource import ResourcePool
from models.system_state import SystemState
from algorithms.admission import AdmissionGate
from algorithms.detection import detect_deadlock
from analysis.analyzer import audit_event_log
from analysis.events import EventLog, EventType
from analysis.metrics import SimulationMetrics, format_metrics_report
from utils.config_loader import load_config
from utils.logger import SimulatorLogger


class Outcome(Enum):
    """How a simulation run ended."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ActorSnapshot:
    """Read-only copy of one actor's observable state."""
    phase: ActorPhase
    held_slots: Tuple[int, ...]
    cycles_completed: int


class Simulation:
    """
    One simulation run.

    Owns the resource pool, the admission gate and the actors. Actors hold
    only references to the shared structures; nothing is process-global.
    """

    def __init__(
        self,
        config: SimulationConfig,
        logger: Optional[SimulatorLogger] = None,
        event_log: Optional[EventLog] = None,
        metrics: Optional[SimulationMetrics] = None
    ):
        """
        Build the shared structures and the actors (not started yet).

        Args:
            config: Validated run configuration
            logger: Logger instance (console, non-verbose by default)
            event_log: Optional log of every ownership change, for auditing
            metrics: Metrics collector (created if not given)
        """
        self.config = config
        self.logger = logger if logger is not None else SimulatorLogger()
        self.event_log = event_log
        self.metrics = metrics if metrics is not None else SimulationMetrics(config.actor_count)

        self.pool = ResourcePool(config.actor_count)
        self.gate = AdmissionGate(config.admission_capacity)

        self._cancel_event = threading.Event()
        self._stop_watchdog = threading.Event()
        self._start_signal = threading.Event()
        self._cancel_requested = False
        self._failure: Optional[BaseException] = None
        self._failure_lock = threading.Lock()

        self.actors: List[Actor] = [
            Actor(
                actor_id=i,
                pool=self.pool,
                gate=self.gate,
                cancel_event=self._cancel_event,
                think_delay=config.think_delay,
                act_delay=config.act_delay,
                rng=_actor_rng(config.seed, i),
                cycles=config.cycles,
                metrics=self.metrics,
                event_log=self.event_log,
                logger=self.logger,
            )
            for i in range(config.actor_count)
        ]

        self._threads: List[threading.Thread] = []
        self._watchdog: Optional[threading.Thread] = None
        self._outcome: Optional[Outcome] = None
        self._joined = False

    @property
    def started(self) -> bool:
        return bool(self._threads)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def start(self, cycles: Optional[int] = None) -> None:
        """
        Spawn one thread per actor.

        Args:
            cycles: Per-actor cycle cap; defaults to config.cycles (None = unbounded)

        Raises:
            RuntimeError: If the simulation was already started
            ConfigurationError: If cycles is not a positive integer
        """
        if self.started:
            raise RuntimeError("Simulation already started")
        if cycles is not None:
            if isinstance(cycles, bool) or not isinstance(cycles, int) or cycles < 1:
                raise ConfigurationError(f"cycles must be a positive integer, got {cycles!r}")
            for actor in self.actors:
                actor.cycles = cycles

        cap = self.actors[0].cycles
        self.logger.log(f"\n{'='*60}")
        self.logger.log(
            f"SIMULATION START: {self.config.actor_count} actors, "
            f"{self.gate.capacity} admission permits, "
            f"{'unbounded' if cap is None else f'{cap} cycles/actor'}"
        )
        self.logger.log(f"{'='*60}")

        self.metrics.mark_started()
        self._threads = [
            threading.Thread(target=self._run_actor, args=(actor,), name=f"actor-{actor.actor_id}", daemon=True)
            for actor in self.actors
        ]
        for thread in self._threads:
            thread.start()
        # Actors start cycling together once every thread exists
        self._start_signal.set()

        if self.config.detect_interval is not None:
            self._watchdog = threading.Thread(target=self._watch, name="deadlock-watchdog", daemon=True)
            self._watchdog.start()

    def cancel(self) -> None:
        """Ask every actor to unwind; returns immediately."""
        if not self._cancel_requested:
            self._cancel_requested = True
            self.logger.log("Cancellation requested - actors unwinding")
        self._interrupt()

    def await_completion(self, timeout: Optional[float] = None) -> Outcome:
        """
        Wait until every actor thread has terminated holding nothing.

        Args:
            timeout: Seconds to wait (None = wait indefinitely)

        Returns:
            Outcome.COMPLETED if every actor finished its cycles,
            Outcome.CANCELLED otherwise

        Raises:
            RuntimeError: If the simulation was never started
            TimeoutError: If actors are still running after timeout
            InvariantViolation: If any actor or the watchdog found an arbitration bug
        """
        if not self.started:
            raise RuntimeError("Simulation was not started")

        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if thread.is_alive():
                raise TimeoutError(f"{thread.name} still running after {timeout}s")

        if not self._joined:
            self._joined = True
            self._stop_watchdog.set()
            if self._watchdog is not None:
                self._watchdog.join()
            self.metrics.mark_finished()

        if self._failure is not None:
            raise self._failure

        if self._outcome is None:
            cap = self.actors[0].cycles
            if cap is not None and all(a.cycles_completed >= cap for a in self.actors):
                self._outcome = Outcome.COMPLETED
            else:
                self._outcome = Outcome.CANCELLED
            self.logger.log_outcome(self._outcome.value, self.metrics.total_cycles, self.metrics.elapsed)
        return self._outcome

    def snapshot(self) -> Dict[int, ActorSnapshot]:
        """Phase and held slots per actor, read without blocking any actor."""
        return {
            actor.actor_id: ActorSnapshot(actor.phase, actor.held_slots, actor.cycles_completed)
            for actor in self.actors
        }

    def slot_snapshot(self) -> Dict[int, Optional[int]]:
        """Holder per slot (None when free)."""
        return self.pool.holders()

    def system_state(self) -> Optional[SystemState]:
        """Consistent matrix view of holds and waits, or None if it kept changing."""
        return SystemState.capture(self.pool, self.gate)

    def _run_actor(self, actor: Actor) -> None:
        self._start_signal.wait()
        try:
            actor.run()
        except Exception as e:
            self._abort(e, actor.actor_id)

    def _abort(self, error: BaseException, actor_id: int = -1) -> None:
        """Record the first fatal error and bring every actor down."""
        with self._failure_lock:
            first = self._failure is None
            if first:
                self._failure = error
        if first:
            self.logger.log_violation(error)
            if self.event_log is not None:
                self.event_log.record(EventType.VIOLATION, actor_id, getattr(error, "slot_index", None),
                                      message=str(error))
        self._interrupt()

    def _interrupt(self) -> None:
        self._cancel_event.set()
        self.gate.interrupt_waiters()
        self.pool.interrupt_waiters()

    def _watch(self) -> None:
        """Periodically look for circular waits and leaked resources."""
        interval = self.config.detect_interval
        while not self._stop_watchdog.wait(interval):
            state = SystemState.capture(self.pool, self.gate)
            if state is None:
                # State changed on every read: actors are making progress
                continue

            try:
                state.assert_resource_conservation("during watchdog check")
            except AssertionError as e:
                self._abort(InvariantViolation(str(e)))
                return

            deadlock_exists, deadlocked = detect_deadlock(state)
            if deadlock_exists:
                self.logger.log(state.display(), "debug")
                self._abort(InvariantViolation(f"Circular wait detected among actors {deadlocked}"))
                return


def _actor_rng(seed: int, actor_id: int) -> random.Random:
    return random.Random(seed * 1_000_003 + actor_id)


def new_simulation(
    actor_count: int,
    logger: Optional[SimulatorLogger] = None,
    event_log: Optional[EventLog] = None,
    **options
) -> Simulation:
    """
    Construct a simulation for actor_count actors.

    Args:
        actor_count: Number of actors (at least 2)
        logger: Logger instance
        event_log: Optional event log for auditing
        **options: Any other SimulationConfig field (cycles, think_delay, ...)

    Raises:
        ConfigurationError: If the configuration is invalid (nothing is built)
    """
    config = SimulationConfig(actor_count=actor_count, **options)
    return Simulation(config, logger=logger, event_log=event_log)


def run_simulation(
    config: SimulationConfig,
    duration: Optional[float] = None,
    logger: Optional[SimulatorLogger] = None,
    event_log: Optional[EventLog] = None
) -> Tuple[Outcome, SimulationMetrics]:
    """
    Run a simulation to completion, or cancel it after duration seconds.

    Args:
        config: Run configuration
        duration: Wall-clock window before cancelling (None = wait for cycles)
        logger: Logger instance
        event_log: Optional event log for auditing

    Returns:
        Tuple of (outcome, metrics)
    """
    if config.cycles is None and duration is None:
        raise ConfigurationError("Unbounded runs need a duration")

    simulation = Simulation(config, logger=logger, event_log=event_log)
    simulation.start()
    try:
        try:
            outcome = simulation.await_completion(timeout=duration)
        except TimeoutError:
            simulation.cancel()
            outcome = simulation.await_completion()
    except KeyboardInterrupt:
        simulation.cancel()
        outcome = simulation.await_completion()
    return outcome, simulation.metrics


def _build_config(args: argparse.Namespace) -> SimulationConfig:
    """Merge the optional config file with command-line overrides."""
    options = {}
    if args.config:
        base = load_config(args.config)
        options = {
            'actor_count': base.actor_count,
            'cycles': base.cycles,
            'think_delay': base.think_delay,
            'act_delay': base.act_delay,
            'seed': base.seed,
            'detect_interval': base.detect_interval,
            'starvation_limit': base.starvation_limit,
        }

    overrides = {
        'actor_count': args.actors,
        'cycles': args.cycles,
        'think_delay': args.think_delay,
        'act_delay': args.act_delay,
        'seed': args.seed,
        'detect_interval': args.detect_interval,
        'starvation_limit': args.starvation_limit,
    }
    options.update({k: v for k, v in overrides.items() if v is not None})
    options.setdefault('actor_count', 5)
    return SimulationConfig(**options)


def main():
    """Main entry point for the simulator."""
    parser = argparse.ArgumentParser(
        description='Dining Arbiter - deadlock-free arbitration of a ring of shared resources'
    )
    parser.add_argument('--config', type=str, help='Path to run configuration JSON file')
    parser.add_argument('--actors', type=int, help='Number of actors (default: 5)')
    parser.add_argument('--cycles', type=int, help='Cycles per actor (default: unbounded)')
    parser.add_argument('--duration', type=float, help='Seconds before cancelling the run')
    parser.add_argument('--think-delay', type=float, nargs=2, metavar=('MIN', 'MAX'),
                        help='Think delay bounds in seconds')
    parser.add_argument('--act-delay', type=float, nargs=2, metavar=('MIN', 'MAX'),
                        help='Act delay bounds in seconds')
    parser.add_argument('--seed', type=int, help='Seed for the randomized delays')
    parser.add_argument('--detect-interval', type=float,
                        help='Seconds between deadlock watchdog checks (default: 0.5)')
    parser.add_argument('--starvation-limit', type=float,
                        help='Flag actors whose hungry wait exceeded this many seconds')
    parser.add_argument('--audit', action='store_true', help='Record and audit every ownership change')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging')
    parser.add_argument('--log-file', type=str, help='Also write the log to this file')

    args = parser.parse_args()

    try:
        config = _build_config(args)
        if config.cycles is None and args.duration is None:
            parser.error('unbounded runs need --duration (or set --cycles)')
    except ConfigurationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    logger = SimulatorLogger(verbose=args.verbose, log_file=args.log_file)
    event_log = EventLog() if args.audit else None

    try:
        outcome, metrics = run_simulation(config, args.duration, logger, event_log)
    except InvariantViolation:
        logger.close()
        return 1

    logger.log(format_metrics_report(metrics, args.verbose, outcome.value, config.starvation_limit))
    if event_log is not None:
        logger.log(audit_event_log(event_log, config.actor_count).display())
    logger.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
