"""
Actor model for the Dining Arbiter simulator.

An actor repeatedly thinks, gets admitted, takes its two adjacent slots in
global index order, acts, and gives everything back in reverse order.
"""

import random
import threading
import time
from enum import Enum
from typing import Optional, Tuple

from models.config import DelayRange
from models.errors import CancellationRequested, InvariantViolation
from models.resource import ResourcePool
from algorithms.admission import AdmissionGate
from analysis.events import EventLog, EventType
from analysis.metrics import SimulationMetrics
from utils.logger import SimulatorLogger


class ActorPhase(Enum):
    """Actor phases in the simulation."""
    IDLE = "IDLE"
    THINKING = "THINKING"
    WAITING_FOR_ADMISSION = "WAITING_FOR_ADMISSION"
    ACQUIRING_FIRST_SLOT = "ACQUIRING_FIRST_SLOT"
    ACQUIRING_SECOND_SLOT = "ACQUIRING_SECOND_SLOT"
    ACTING = "ACTING"
    RELEASING = "RELEASING"
    STOPPED = "STOPPED"


# Phases that require an admission permit
CRITICAL_PHASES = frozenset({
    ActorPhase.ACQUIRING_FIRST_SLOT,
    ActorPhase.ACQUIRING_SECOND_SLOT,
    ActorPhase.ACTING,
})


class Actor:
    """
    One independent competitor for two adjacent resource slots.

    The actor only references the shared pool and gate; the simulation
    owns them. Phase transitions are strictly sequential and cancellation
    is checked at each one.

    Attributes:
        actor_id: Index in [0, N)
        first_slot: Lower of the two adjacent slot indices
        second_slot: Higher of the two adjacent slot indices
        phase: Current phase (plain attribute, read by snapshots)
        held_slots: Slots held right now, in acquisition order
        cycles_completed: Finished think -> act -> release rounds
    """

    def __init__(
        self,
        actor_id: int,
        pool: ResourcePool,
        gate: AdmissionGate,
        cancel_event: threading.Event,
        think_delay: DelayRange = DelayRange(),
        act_delay: DelayRange = DelayRange(),
        rng: Optional[random.Random] = None,
        cycles: Optional[int] = None,
        metrics: Optional[SimulationMetrics] = None,
        event_log: Optional[EventLog] = None,
        logger: Optional[SimulatorLogger] = None
    ):
        self.actor_id = actor_id
        self.pool = pool
        self.gate = gate
        self.cancel_event = cancel_event
        self.think_delay = think_delay
        self.act_delay = act_delay
        self.rng = rng if rng is not None else random.Random(actor_id)
        self.cycles = cycles
        self.metrics = metrics
        self.event_log = event_log
        self.logger = logger

        self.first_slot, self.second_slot = pool.slots_for(actor_id)
        self.phase = ActorPhase.IDLE
        self.held_slots: Tuple[int, ...] = ()
        self.cycles_completed = 0
        self._admitted = False

    def run(self) -> None:
        """
        Cycle until the cycle cap is reached or the run is cancelled.

        Raises:
            InvariantViolation: On any arbitration bug; resources are still
                given back before the exception leaves this method
        """
        try:
            while self.cycles is None or self.cycles_completed < self.cycles:
                self._run_cycle()
            self._record(EventType.FINISHED)
        except CancellationRequested:
            self._record(EventType.CANCELLED)
        finally:
            self.phase = ActorPhase.STOPPED
            self._log_phase()

    def _run_cycle(self) -> None:
        self._advance(ActorPhase.THINKING)
        self._pause(self.think_delay)

        self._advance(ActorPhase.WAITING_FOR_ADMISSION)
        hungry_since = time.monotonic()
        self.gate.enter(self.actor_id, self.cancel_event)
        self._admitted = True
        self._record(EventType.ADMITTED)

        try:
            self._advance(ActorPhase.ACQUIRING_FIRST_SLOT)
            self._acquire(self.first_slot)

            self._advance(ActorPhase.ACQUIRING_SECOND_SLOT)
            self._acquire(self.second_slot)

            self._advance(ActorPhase.ACTING)
            self._record(EventType.ACTING)
            if self.metrics is not None:
                self.metrics.record_acting(self.actor_id, time.monotonic() - hungry_since)
            self._pause(self.act_delay)
        finally:
            # Never checks cancellation: a releasing actor always finishes releasing
            self.phase = ActorPhase.RELEASING
            self._log_phase()
            self._release_all()

        self.cycles_completed += 1
        if self.metrics is not None:
            self.metrics.record_cycle(self.actor_id)

    def _advance(self, phase: ActorPhase) -> None:
        if self.cancel_event.is_set():
            raise CancellationRequested(f"A{self.actor_id}: cancelled before {phase.value}")
        self.phase = phase
        self._log_phase()

    def _pause(self, delay: DelayRange) -> None:
        if delay.high > 0:
            cancelled = self.cancel_event.wait(self.rng.uniform(delay.low, delay.high))
        else:
            # A zero-length pause still yields the interpreter to other actors
            time.sleep(0)
            cancelled = self.cancel_event.is_set()
        if cancelled:
            raise CancellationRequested(f"A{self.actor_id}: cancelled during {self.phase.value}")

    def _acquire(self, slot_index: int) -> None:
        if slot_index in self.held_slots:
            raise InvariantViolation(
                f"A{self.actor_id} already holds S{slot_index} it is re-acquiring",
                actor_id=self.actor_id,
                slot_index=slot_index,
            )
        if slot_index == self.second_slot and self.held_slots != (self.first_slot,):
            raise InvariantViolation(
                f"A{self.actor_id} acquiring S{slot_index} without holding S{self.first_slot}",
                actor_id=self.actor_id,
                slot_index=slot_index,
            )

        slot = self.pool[slot_index]
        slot.acquire(self.actor_id, self.cancel_event)
        self.held_slots = self.held_slots + (slot_index,)
        if slot.holder != self.actor_id:
            raise InvariantViolation(
                f"S{slot_index} reports holder A{slot.holder} right after A{self.actor_id} acquired it",
                actor_id=self.actor_id,
                slot_index=slot_index,
            )

        self._record(EventType.ACQUIRED, slot_index)
        if self.metrics is not None:
            self.metrics.record_acquired(self.actor_id, slot_index)

    def _release_all(self) -> None:
        """Release held slots in reverse acquisition order, then leave the gate."""
        for slot_index in reversed(self.held_slots):
            self._record(EventType.RELEASED, slot_index)
            self.held_slots = self.held_slots[:-1]
            self.pool[slot_index].release(self.actor_id)

        if self._admitted:
            self._record(EventType.LEFT)
            self._admitted = False
            self.gate.leave(self.actor_id)

    def _record(self, event_type: EventType, slot_index: Optional[int] = None) -> None:
        if self.event_log is not None:
            self.event_log.record(event_type, self.actor_id, slot_index, cycle=self.cycles_completed)

    def _log_phase(self) -> None:
        if self.logger is not None:
            self.logger.log_phase(self.actor_id, self.phase.value)

    def __repr__(self) -> str:
        return (
            f"Actor(id={self.actor_id}, phase={self.phase.value}, "
            f"slots=({self.first_slot}, {self.second_slot}), held={self.held_slots}, "
            f"cycles={self.cycles_completed})"
        )
