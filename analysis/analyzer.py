"""
Event Log Audit for the Dining Arbiter simulator.

Replays a recorded run and checks the arbitration properties after the
fact: mutual exclusion, the admission bound, acquisition order and
clean release.
"""

from typing import Dict, List, Optional, Set
from dataclasses import dataclass, field

from analysis.events import EventLog, EventType


@dataclass
class AuditReport:
    """Findings from replaying one event log."""
    actor_count: int
    events_checked: int = 0
    max_admitted: int = 0
    max_acting_skew: int = 0
    double_holds: List[str] = field(default_factory=list)
    foreign_releases: List[str] = field(default_factory=list)
    order_violations: List[str] = field(default_factory=list)
    unadmitted_acquisitions: List[str] = field(default_factory=list)
    leaked_slots: Dict[int, int] = field(default_factory=dict)
    leaked_permits: Set[int] = field(default_factory=set)

    @property
    def admission_bound_held(self) -> bool:
        return self.max_admitted <= self.actor_count - 1

    @property
    def released_cleanly(self) -> bool:
        """True if nothing was still held when the log ended."""
        return not self.leaked_slots and not self.leaked_permits

    def is_clean(self) -> bool:
        """True if the run showed no arbitration fault at all."""
        return (
            self.admission_bound_held
            and self.released_cleanly
            and not self.double_holds
            and not self.foreign_releases
            and not self.order_violations
            and not self.unadmitted_acquisitions
        )

    def display(self) -> str:
        """Format the audit for display."""
        result = "\nEVENT LOG AUDIT\n"
        result += f"  Events checked: {self.events_checked}\n"
        result += f"  Max admitted at once: {self.max_admitted} (bound {self.actor_count - 1})\n"
        result += f"  Double holds: {len(self.double_holds)}\n"
        result += f"  Foreign releases: {len(self.foreign_releases)}\n"
        result += f"  Max acting skew: {self.max_acting_skew}\n"
        result += f"  Order violations: {len(self.order_violations)}\n"
        result += f"  Acquisitions without admission: {len(self.unadmitted_acquisitions)}\n"
        leaked = ", ".join(f"S{s}->A{a}" for s, a in sorted(self.leaked_slots.items())) or "none"
        result += f"  Still held at end: {leaked}\n"
        result += f"  Verdict: {'CLEAN' if self.is_clean() else 'FAULTY'}"
        for finding in self.double_holds + self.foreign_releases + self.order_violations:
            result += f"\n    - {finding}"
        return result


def audit_event_log(event_log: EventLog, actor_count: int) -> AuditReport:
    """
    Replay an event log and check every arbitration property.

    Args:
        event_log: Log recorded during the run
        actor_count: Number of actors (and slots) in the ring

    Returns:
        AuditReport with all findings
    """
    report = AuditReport(actor_count=actor_count)
    slot_holder: Dict[int, int] = {}
    admitted: Set[int] = set()
    held: Dict[int, List[int]] = {a: [] for a in range(actor_count)}
    acting = [0] * actor_count

    for event in event_log.copy_events():
        report.events_checked += 1
        actor = event.actor_id
        slot = event.slot_index

        if event.event_type == EventType.ADMITTED:
            admitted.add(actor)
            report.max_admitted = max(report.max_admitted, len(admitted))

        elif event.event_type == EventType.ACTING:
            acting[actor] += 1
            report.max_acting_skew = max(report.max_acting_skew, max(acting) - min(acting))

        elif event.event_type == EventType.LEFT:
            admitted.discard(actor)

        elif event.event_type == EventType.ACQUIRED:
            current: Optional[int] = slot_holder.get(slot)
            if current is not None:
                report.double_holds.append(
                    f"#{event.seq}: A{actor} acquired S{slot} while A{current} held it"
                )
            if actor not in admitted:
                report.unadmitted_acquisitions.append(
                    f"#{event.seq}: A{actor} acquired S{slot} without admission"
                )
            low, high = _slots_for(actor, actor_count)
            if slot == high and held[actor] != [low]:
                report.order_violations.append(
                    f"#{event.seq}: A{actor} acquired S{high} while holding {held[actor]}"
                )
            slot_holder[slot] = actor
            held[actor].append(slot)

        elif event.event_type == EventType.RELEASED:
            if slot_holder.get(slot) != actor:
                report.foreign_releases.append(
                    f"#{event.seq}: A{actor} released S{slot} held by A{slot_holder.get(slot)}"
                )
            else:
                del slot_holder[slot]
            if slot in held[actor]:
                held[actor].remove(slot)

    report.leaked_slots = dict(slot_holder)
    report.leaked_permits = set(admitted)
    return report


def _slots_for(actor_id: int, actor_count: int):
    a, b = actor_id, (actor_id + 1) % actor_count
    return (a, b) if a < b else (b, a)
