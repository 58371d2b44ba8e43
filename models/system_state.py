"""
System State model for the Dining Arbiter simulator.

Captures a consistent matrix view of who holds and who waits for which
resource, as input to the deadlock watchdog. Columns 0..N-1 are the
resource slots; column N is the admission gate (N-1 instances).
"""

import numpy as np
from typing import Optional
from dataclasses import dataclass

from models.resource import ResourcePool
from algorithms.admission import AdmissionGate


@dataclass(frozen=True)
class SystemState:
    """
    Immutable arbitration state captured at one instant.

    Attributes:
        allocation_matrix: [A][R] 1 where actor holds the slot / a gate permit
        request_matrix: [A][R] 1 where actor is queued on the slot / the gate
        available_vector: [R] Free instances per resource
        total_vector: [R] Instances per resource (1 per slot, N-1 for the gate)
    """
    allocation_matrix: np.ndarray
    request_matrix: np.ndarray
    available_vector: np.ndarray
    total_vector: np.ndarray

    @property
    def num_actors(self) -> int:
        return self.allocation_matrix.shape[0]

    @property
    def num_resources(self) -> int:
        return self.allocation_matrix.shape[1]

    @property
    def gate_column(self) -> int:
        return self.num_resources - 1

    @classmethod
    def capture(cls, pool: ResourcePool, gate: AdmissionGate, max_attempts: int = 50) -> Optional["SystemState"]:
        """
        Build a consistent snapshot without pausing any actor.

        Reads every version counter first, then each structure atomically
        with its own version; accepts the read only if no structure changed
        in between, and retries otherwise.

        Returns:
            SystemState, or None if the state kept changing for max_attempts reads
        """
        for _ in range(max_attempts):
            before = pool.versions() + (gate.version,)
            slot_views = [slot.observe() for slot in pool]
            gate_view = gate.observe()
            observed = tuple(view[2] for view in slot_views) + (gate_view[3],)
            if observed == before:
                return cls._build(slot_views, gate_view, gate.capacity)
        return None

    @classmethod
    def _build(cls, slot_views, gate_view, gate_capacity: int) -> "SystemState":
        n = len(slot_views)
        allocation = np.zeros((n, n + 1), dtype=int)
        request = np.zeros((n, n + 1), dtype=int)
        available = np.zeros(n + 1, dtype=int)
        total = np.ones(n + 1, dtype=int)
        total[n] = gate_capacity

        for index, (holder, waiters, _) in enumerate(slot_views):
            if holder is not None:
                allocation[holder][index] = 1
            else:
                available[index] = 1
            for waiter in waiters:
                request[waiter][index] = 1

        admitted, gate_waiters, permits, _ = gate_view
        for actor_id in admitted:
            allocation[actor_id][n] = 1
        for actor_id in gate_waiters:
            request[actor_id][n] = 1
        available[n] = permits

        return cls(
            allocation_matrix=allocation,
            request_matrix=request,
            available_vector=available,
            total_vector=total,
        )

    def resource_name(self, column: int) -> str:
        return "GATE" if column == self.gate_column else f"S{column}"

    def display(self) -> str:
        """
        Generate readable string representation of the state.

        Returns:
            Formatted string showing allocation and request matrices
        """
        header = "      " + " ".join(f"{self.resource_name(r):>4}" for r in range(self.num_resources))
        output = []
        output.append("\n" + "="*60)
        output.append("ARBITRATION STATE")
        output.append("="*60)

        output.append("\nAvailable:")
        output.append("  [" + ", ".join(
            f"{self.resource_name(r)}:{self.available_vector[r]}" for r in range(self.num_resources)
        ) + "]")

        output.append("\nAllocation Matrix:")
        output.append(header)
        for i in range(self.num_actors):
            output.append(f"  A{i}: " + " ".join(f"{v:4}" for v in self.allocation_matrix[i]))

        output.append("\nRequest Matrix (Waiting):")
        output.append(header)
        for i in range(self.num_actors):
            output.append(f"  A{i}: " + " ".join(f"{v:4}" for v in self.request_matrix[i]))

        output.append("\n" + "="*60)
        return "\n".join(output)

    def assert_resource_conservation(self, context=""):
        """Verify resource conservation: allocated + available = total for all resources.

        Args:
            context: Description of when this check is being run (for error messages)

        Raises:
            AssertionError: If resource conservation is violated
        """
        allocated = self.allocation_matrix.sum(axis=0)

        for r_idx in range(self.num_resources):
            name = self.resource_name(r_idx)
            assert allocated[r_idx] + self.available_vector[r_idx] == self.total_vector[r_idx], (
                f"Resource conservation violated for {name} {context}\n"
                f"  Allocated: {allocated[r_idx]}, Available: {self.available_vector[r_idx]}, "
                f"Total: {self.total_vector[r_idx]}"
            )
            assert self.available_vector[r_idx] >= 0, (
                f"Negative available instances for {name} {context}\n"
                f"  Available: {self.available_vector[r_idx]}"
            )
