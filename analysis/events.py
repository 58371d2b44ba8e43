"""
Event Model for the Dining Arbiter simulator.

Defines event types for tracking actor actions during a run.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class EventType(Enum):
    """Types of events in the simulation."""
    ADMITTED = "admitted"
    ACQUIRED = "acquired"
    ACTING = "acting"
    RELEASED = "released"
    LEFT = "left"
    CANCELLED = "cancelled"
    FINISHED = "finished"
    VIOLATION = "violation"


@dataclass
class SimulationEvent:
    """
    Represents a single event in the simulation.

    Attributes:
        seq: Position in the log (assigned by EventLog)
        timestamp: Monotonic clock reading when recorded
        event_type: Type of event
        actor_id: Actor involved in event
        slot_index: Slot involved in event (if applicable)
        cycle: Actor's cycle number when the event occurred
        message: Human-readable description
    """
    seq: int
    timestamp: float
    event_type: EventType
    actor_id: int
    slot_index: Optional[int] = None
    cycle: int = 0
    message: str = ""

    def __str__(self) -> str:
        """Format event for logging."""
        base = f"#{self.seq} A{self.actor_id} (cycle {self.cycle})"

        if self.event_type == EventType.ADMITTED:
            return f"{base} admitted past the gate"
        elif self.event_type == EventType.ACQUIRED:
            return f"{base} acquires S{self.slot_index}"
        elif self.event_type == EventType.ACTING:
            return f"{base} is acting"
        elif self.event_type == EventType.RELEASED:
            return f"{base} releases S{self.slot_index}"
        elif self.event_type == EventType.LEFT:
            return f"{base} leaves the gate"
        elif self.event_type == EventType.VIOLATION:
            return f"{base} - INVARIANT VIOLATION ({self.message})"
        else:
            return f"{base} - {self.event_type.value}: {self.message}"


@dataclass
class EventLog:
    """
    Thread-safe collection of simulation events.

    Ownership events (ADMITTED, ACQUIRED) are recorded while the resource
    is held and release events (RELEASED, LEFT) before it is given up, so
    the order of the log never shows a resource with two owners unless
    the arbitration itself is broken.
    """
    events: List[SimulationEvent] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(
        self,
        event_type: EventType,
        actor_id: int,
        slot_index: Optional[int] = None,
        cycle: int = 0,
        message: str = ""
    ) -> SimulationEvent:
        """Append a new event and return it."""
        with self._lock:
            event = SimulationEvent(
                seq=len(self.events),
                timestamp=time.monotonic(),
                event_type=event_type,
                actor_id=actor_id,
                slot_index=slot_index,
                cycle=cycle,
                message=message,
            )
            self.events.append(event)
            return event

    def __len__(self) -> int:
        return len(self.events)

    def copy_events(self) -> List[SimulationEvent]:
        """Consistent copy of the events recorded so far."""
        with self._lock:
            return list(self.events)

    def get_events_by_type(self, event_type: EventType) -> list:
        """Get all events of a specific type."""
        return [e for e in self.copy_events() if e.event_type == event_type]

    def get_events_by_actor(self, actor_id: int) -> list:
        """Get all events recorded by one actor."""
        return [e for e in self.copy_events() if e.actor_id == actor_id]

    def display(self) -> str:
        """Format all events for display."""
        return "\n".join(str(event) for event in self.copy_events())
