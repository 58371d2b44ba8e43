"""
Resource model for the Dining Arbiter simulator.

A ResourceSlot is a single exclusively-held unit shared by two adjacent
actors. A ResourcePool is the fixed ring of slots for one run.
"""

import threading
from collections import deque
from typing import Dict, Optional, Tuple

from models.errors import CancellationRequested, InvariantViolation, NotOwner, SlotBusy


class ResourceSlot:
    """
    One exclusively-lockable shared resource.

    Attributes:
        index: Position of the slot in the ring
        holder: Actor currently holding the slot (None when free)

    Invariant:
        At most one holder at any time. Waiters are served in FIFO order:
        release() hands the slot straight to the head of the queue.
    """

    def __init__(self, index: int):
        self.index = index
        self._holder: Optional[int] = None
        self._waiters = deque()
        self._cond = threading.Condition()
        self._version = 0

    @property
    def holder(self) -> Optional[int]:
        return self._holder

    @property
    def is_free(self) -> bool:
        return self._holder is None

    @property
    def waiters(self) -> Tuple[int, ...]:
        """Actors queued on this slot, head first."""
        with self._cond:
            return tuple(self._waiters)

    @property
    def version(self) -> int:
        """Counter bumped on every holder or queue change."""
        return self._version

    def observe(self) -> Tuple[Optional[int], Tuple[int, ...], int]:
        """Atomic (holder, waiters, version) reading."""
        with self._cond:
            return self._holder, tuple(self._waiters), self._version

    def acquire(self, actor_id: int, cancel_event: Optional[threading.Event] = None) -> None:
        """
        Acquire the slot, blocking while another actor holds it.

        Implements Mutual Exclusion: the caller becomes the only holder.

        Args:
            actor_id: Actor requesting the slot
            cancel_event: Run cancellation event, observed while queued

        Raises:
            InvariantViolation: If the caller already holds or awaits this slot
            CancellationRequested: If cancelled before the slot was granted
        """
        with self._cond:
            self._check_not_reentrant(actor_id)

            if self._holder is None and not self._waiters:
                self._grant(actor_id)
                return

            self._waiters.append(actor_id)
            self._version += 1

            # release() sets _holder to the queue head before notifying
            while self._holder != actor_id:
                if cancel_event is not None and cancel_event.is_set():
                    self._waiters.remove(actor_id)
                    self._version += 1
                    raise CancellationRequested(
                        f"A{actor_id}: cancelled while waiting for S{self.index}"
                    )
                self._cond.wait()

    def try_acquire(self, actor_id: int) -> None:
        """
        Acquire the slot only if it is free right now.

        Raises:
            SlotBusy: If the slot is held or other actors are already queued
            InvariantViolation: If the caller already holds this slot
        """
        with self._cond:
            self._check_not_reentrant(actor_id)
            if self._holder is not None or self._waiters:
                raise SlotBusy(f"S{self.index} is held by A{self._holder}")
            self._grant(actor_id)

    def release(self, actor_id: int) -> None:
        """
        Release the slot and hand it to the longest-waiting actor.

        Raises:
            NotOwner: If the caller is not the current holder
        """
        with self._cond:
            if self._holder != actor_id:
                raise NotOwner(
                    f"A{actor_id} cannot release S{self.index} - held by "
                    f"{'nobody' if self._holder is None else f'A{self._holder}'}",
                    actor_id=actor_id,
                    slot_index=self.index,
                )

            self._holder = self._waiters.popleft() if self._waiters else None
            self._version += 1
            self._cond.notify_all()

    def interrupt_waiters(self) -> None:
        """Wake every queued actor so it can observe cancellation."""
        with self._cond:
            self._cond.notify_all()

    def _grant(self, actor_id: int) -> None:
        self._holder = actor_id
        self._version += 1

    def _check_not_reentrant(self, actor_id: int) -> None:
        if self._holder == actor_id or actor_id in self._waiters:
            raise InvariantViolation(
                f"A{actor_id} re-acquiring S{self.index} it already holds or awaits",
                actor_id=actor_id,
                slot_index=self.index,
            )

    def __repr__(self) -> str:
        holder = "free" if self._holder is None else f"A{self._holder}"
        return f"ResourceSlot(index={self.index}, holder={holder})"


class ResourcePool:
    """
    Fixed-size ring of resource slots.

    Actor i uses slots i and (i + 1) mod N, so every slot is shared by
    exactly two neighbouring actors. The size never changes after construction.
    """

    def __init__(self, size: int):
        if size < 2:
            raise ValueError(f"Resource pool needs at least 2 slots, got {size}")
        self._slots = tuple(ResourceSlot(i) for i in range(size))

    @property
    def size(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index: int) -> ResourceSlot:
        return self._slots[index]

    def __iter__(self):
        return iter(self._slots)

    def slots_for(self, actor_index: int) -> Tuple[int, int]:
        """
        Slot indices used by an actor, ordered (lower, higher).

        Acquisition always follows this global index order.
        """
        if actor_index < 0 or actor_index >= self.size:
            raise ValueError(f"Invalid actor index {actor_index}")
        a = actor_index
        b = (actor_index + 1) % self.size
        return (a, b) if a < b else (b, a)

    def holders(self) -> Dict[int, Optional[int]]:
        """Copy of slot index -> holder (None when free)."""
        return {slot.index: slot.holder for slot in self._slots}

    def versions(self) -> Tuple[int, ...]:
        return tuple(slot.version for slot in self._slots)

    def interrupt_waiters(self) -> None:
        for slot in self._slots:
            slot.interrupt_waiters()
