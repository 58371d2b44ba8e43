"""
Admission Gate for the Dining Arbiter simulator.

Counting permit pool sized N-1 that caps how many actors may be in the
critical acquisition phase at once.
"""

import threading
from collections import deque
from typing import FrozenSet, Optional, Tuple

from models.errors import CancellationRequested, ConfigurationError, InvariantViolation


class AdmissionGate:
    """
    Permit pool breaking the Circular Wait condition.

    With N actors and N-1 permits, at least one actor is always outside the
    critical phase, so a full cycle of actors each holding one slot and
    waiting on the next can never form.

    Attributes:
        capacity: Total permits (actor_count - 1)

    Invariant:
        0 <= permits <= capacity and permits + len(admitted) == capacity
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"Admission gate needs at least 1 permit, got {capacity}")
        self.capacity = capacity
        self._permits = capacity
        self._admitted = set()
        self._waiters = deque()
        self._cond = threading.Condition()
        self._version = 0

    @property
    def permits(self) -> int:
        """Permits currently available."""
        return self._permits

    @property
    def admitted(self) -> FrozenSet[int]:
        """Actors currently past the gate."""
        with self._cond:
            return frozenset(self._admitted)

    @property
    def waiters(self) -> Tuple[int, ...]:
        """Actors blocked in enter(), head first."""
        with self._cond:
            return tuple(self._waiters)

    @property
    def version(self) -> int:
        return self._version

    def observe(self) -> Tuple[FrozenSet[int], Tuple[int, ...], int, int]:
        """Atomic (admitted, waiters, permits, version) reading."""
        with self._cond:
            return frozenset(self._admitted), tuple(self._waiters), self._permits, self._version

    def enter(self, actor_id: int, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Block until a permit is available, then take it.

        Permits are not re-entrant: an actor must leave() before entering again.

        Args:
            actor_id: Actor requesting admission
            cancel_event: Run cancellation event, observed while queued

        Raises:
            InvariantViolation: On re-entrant enter()
            CancellationRequested: If cancelled before admission
        """
        with self._cond:
            if actor_id in self._admitted or actor_id in self._waiters:
                raise InvariantViolation(
                    f"A{actor_id} entered the admission gate twice without leaving",
                    actor_id=actor_id,
                )

            if self._permits > 0 and not self._waiters:
                self._permits -= 1
                self._admitted.add(actor_id)
                self._version += 1
                self._check_bounds()
                return

            self._waiters.append(actor_id)
            self._version += 1

            while actor_id not in self._admitted:
                if cancel_event is not None and cancel_event.is_set():
                    self._waiters.remove(actor_id)
                    self._version += 1
                    raise CancellationRequested(f"A{actor_id}: cancelled while waiting for admission")
                self._cond.wait()

    def leave(self, actor_id: int) -> None:
        """
        Return the permit, handing it to the longest-waiting entrant if any.

        Raises:
            InvariantViolation: If the actor was not admitted
        """
        with self._cond:
            if actor_id not in self._admitted:
                raise InvariantViolation(
                    f"A{actor_id} left the admission gate without entering",
                    actor_id=actor_id,
                )

            self._admitted.remove(actor_id)
            if self._waiters:
                self._admitted.add(self._waiters.popleft())
            else:
                self._permits += 1
            self._version += 1
            self._check_bounds()
            self._cond.notify_all()

    def interrupt_waiters(self) -> None:
        """Wake every queued actor so it can observe cancellation."""
        with self._cond:
            self._cond.notify_all()

    def _check_bounds(self) -> None:
        if not 0 <= self._permits <= self.capacity:
            raise InvariantViolation(
                f"Admission permits out of range: {self._permits} not in [0, {self.capacity}]"
            )
        if self._permits + len(self._admitted) != self.capacity:
            raise InvariantViolation(
                f"Admission permits leaked: available={self._permits} + "
                f"admitted={len(self._admitted)} != capacity={self.capacity}"
            )
