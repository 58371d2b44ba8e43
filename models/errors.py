"""
Error taxonomy for the Dining Arbiter simulator.

Blocking and waiting are never errors. Only broken arbitration state
(InvariantViolation) and rejected configuration are faults.
"""

from typing import Optional


class ArbitrationError(Exception):
    """Base class for all simulator errors."""
    pass


class InvariantViolation(ArbitrationError):
    """
    Fatal arbitration bug: double hold, foreign release, permit count out of range.

    Attributes:
        actor_id: Actor involved in the violation (if known)
        slot_index: Slot involved in the violation (if known)
    """

    def __init__(self, message: str, actor_id: Optional[int] = None, slot_index: Optional[int] = None):
        super().__init__(message)
        self.actor_id = actor_id
        self.slot_index = slot_index


class NotOwner(InvariantViolation):
    """Raised when an actor releases a slot it does not hold."""
    pass


class SlotBusy(ArbitrationError):
    """Raised by non-blocking acquisition when the slot is not free."""
    pass


class ConfigurationError(ValueError):
    """Raised when a simulation configuration is invalid."""
    pass


class CancellationRequested(ArbitrationError):
    """Raised at a blocking point to unwind an actor after cancel()."""
    pass
