"""
Deadlock Detection Algorithm for the Dining Arbiter simulator.

Matrix-based Work/Finish detection over a captured SystemState. With the
admission gate and ordered acquisition in place this should never find
anything; the watchdog treats a hit as an arbitration bug.
"""

import numpy as np
from typing import List, Tuple

from models.system_state import SystemState


def detect_deadlock(system_state: SystemState) -> Tuple[bool, List[int]]:
    """
    Detect deadlock using matrix-based Work/Finish algorithm.

    Algorithm:
    1. Initialize Work = Available.copy(), Finish = [False] * num_actors
    2. Find actor i where Finish[i] == False and Request[i] <= Work (element-wise)
    3. If found: Finish[i] = True, Work += Allocation[i], repeat step 2
    4. If no such actor: deadlock exists if any Finish[i] == False

    Thinking actors hold and request nothing, so they always finish.
    The gate column makes actors blocked on admission part of the analysis.

    Args:
        system_state: Captured arbitration state

    Returns:
        Tuple of (deadlock_exists, list of deadlocked actor ids)
    """
    work = system_state.available_vector.copy()
    finish = np.zeros(system_state.num_actors, dtype=bool)

    found_progress = True
    while found_progress:
        found_progress = False

        for i in range(system_state.num_actors):
            if finish[i]:
                continue

            if np.all(system_state.request_matrix[i] <= work):
                work += system_state.allocation_matrix[i]
                finish[i] = True
                found_progress = True
                # Restart search from beginning for deterministic behavior
                break

    deadlocked = [int(i) for i in np.flatnonzero(~finish)]
    return len(deadlocked) > 0, deadlocked
