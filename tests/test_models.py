"""
Core Model Tests

Tests ResourceSlot, ResourcePool, AdmissionGate, SimulationConfig and the
configuration loader.
"""

import json
import sys
import tempfile
import threading
import time
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from models.config import DelayRange, SimulationConfig
from models.errors import (
    CancellationRequested,
    ConfigurationError,
    InvariantViolation,
    NotOwner,
    SlotBusy,
)
from models.resource import ResourcePool, ResourceSlot
from algorithms.admission import AdmissionGate
from analysis.metrics import SimulationMetrics
from utils.config_loader import config_from_dict, load_config


def _wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true; used to sequence helper threads."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Timed out waiting for condition")
        time.sleep(0.001)


def test_slot_acquire_release():
    """Test exclusive acquisition and release of a single slot."""
    print("\n" + "="*60)
    print("TEST 1: ResourceSlot acquire/release")
    print("="*60)

    slot = ResourceSlot(3)
    assert slot.is_free, "New slot should be free"

    slot.acquire(1)
    print(f"  {slot}")
    assert slot.holder == 1, "A1 should hold S3"

    try:
        slot.try_acquire(2)
        assert False, "Held slot should reject non-blocking acquire"
    except SlotBusy:
        print("  ✓ try_acquire on held slot raises SlotBusy")

    try:
        slot.release(2)
        assert False, "Foreign release should be rejected"
    except NotOwner as e:
        assert e.actor_id == 2 and e.slot_index == 3, "NotOwner should name actor and slot"
        print(f"  ✓ Foreign release rejected: {e}")

    slot.release(1)
    assert slot.is_free, "Slot should be free after release"

    slot.try_acquire(4)
    assert slot.holder == 4, "Free slot should accept non-blocking acquire"
    slot.release(4)

    print("\n✅ ResourceSlot Tests PASSED")


def test_slot_rejects_reacquire():
    """Re-acquiring a held slot is an arbitration bug, not a wait."""
    slot = ResourceSlot(0)
    slot.acquire(7)
    try:
        slot.acquire(7)
        assert False, "Re-acquire should raise InvariantViolation"
    except InvariantViolation as e:
        assert e.actor_id == 7 and e.slot_index == 0
    assert slot.holder == 7, "Failed re-acquire must not change the holder"


def test_release_of_free_slot_is_not_owner():
    slot = ResourceSlot(1)
    try:
        slot.release(0)
        assert False, "Releasing a free slot should raise NotOwner"
    except NotOwner:
        pass


def test_slot_fifo_handoff():
    """Waiters are served in arrival order; release hands the slot to the head."""
    print("\n" + "="*60)
    print("TEST 2: ResourceSlot FIFO handoff")
    print("="*60)

    slot = ResourceSlot(0)
    slot.acquire(0)
    order = []

    def waiter(actor_id):
        slot.acquire(actor_id)
        order.append(actor_id)
        slot.release(actor_id)

    threads = []
    for actor_id in (1, 2, 3):
        t = threading.Thread(target=waiter, args=(actor_id,))
        t.start()
        threads.append(t)
        _wait_until(lambda a=actor_id: a in slot.waiters)

    print(f"  Queue: {slot.waiters}")
    assert slot.waiters == (1, 2, 3), "Waiters should queue in arrival order"

    slot.release(0)
    for t in threads:
        t.join(2.0)

    print(f"  Service order: {order}")
    assert order == [1, 2, 3], "Slot should be handed over in FIFO order"
    assert slot.is_free, "Slot should be free after all waiters released"
    print("\n✅ FIFO Handoff Tests PASSED")


def test_slot_cancellation_while_waiting():
    """A cancelled waiter leaves the queue and never becomes the holder."""
    slot = ResourceSlot(2)
    slot.acquire(0)
    cancel = threading.Event()
    outcome = []

    def waiter():
        try:
            slot.acquire(1, cancel)
            outcome.append("acquired")
        except CancellationRequested:
            outcome.append("cancelled")

    t = threading.Thread(target=waiter)
    t.start()
    _wait_until(lambda: slot.waiters == (1,))

    cancel.set()
    slot.interrupt_waiters()
    t.join(2.0)

    assert outcome == ["cancelled"], f"Waiter should unwind on cancel, got {outcome}"
    assert slot.waiters == (), "Cancelled waiter should leave the queue"
    assert slot.holder == 0, "Holder must be unaffected by a cancelled waiter"
    slot.release(0)
    assert slot.is_free


def test_pool_slots_for():
    """Test ring topology and global index ordering."""
    print("\n" + "="*60)
    print("TEST 3: ResourcePool topology")
    print("="*60)

    pool = ResourcePool(5)
    assert len(pool) == 5, "Pool should have 5 slots"
    assert pool.slots_for(0) == (0, 1)
    assert pool.slots_for(3) == (3, 4)
    # Wrap-around actor takes the lower index first
    assert pool.slots_for(4) == (0, 4), "A4 should acquire S0 before S4"
    print(f"  Slots per actor: {[pool.slots_for(i) for i in range(5)]}")

    pair = ResourcePool(2)
    assert pair.slots_for(0) == (0, 1)
    assert pair.slots_for(1) == (0, 1), "With 2 actors both share the same ordered pair"

    assert pool.holders() == {i: None for i in range(5)}, "All slots start free"

    for bad in (-1, 5):
        try:
            pool.slots_for(bad)
            assert False, f"Actor index {bad} should be rejected"
        except ValueError:
            pass

    print("\n✅ ResourcePool Tests PASSED")


def test_gate_enter_leave():
    """Test permit accounting and non re-entrancy of the admission gate."""
    print("\n" + "="*60)
    print("TEST 4: AdmissionGate permits")
    print("="*60)

    gate = AdmissionGate(2)
    gate.enter(0)
    gate.enter(1)
    print(f"  Admitted: {sorted(gate.admitted)}, permits left: {gate.permits}")
    assert gate.permits == 0, "Both permits should be taken"
    assert gate.admitted == frozenset({0, 1})

    try:
        gate.enter(0)
        assert False, "Second enter without leave should be rejected"
    except InvariantViolation:
        print("  ✓ Re-entrant enter rejected")

    gate.leave(1)
    assert gate.permits == 1, "Leave should return the permit"

    try:
        gate.leave(1)
        assert False, "Leave without enter should be rejected"
    except InvariantViolation:
        print("  ✓ Leave without enter rejected")

    gate.leave(0)
    assert gate.permits == gate.capacity, "All permits back after everyone left"

    try:
        AdmissionGate(0)
        assert False, "Gate without permits should be rejected"
    except ConfigurationError:
        pass

    print("\n✅ AdmissionGate Tests PASSED")


def test_gate_blocks_and_hands_off_in_order():
    """Entrants beyond capacity block and are admitted in FIFO order."""
    gate = AdmissionGate(1)
    gate.enter(0)
    admitted_order = []

    def entrant(actor_id):
        gate.enter(actor_id)
        admitted_order.append(actor_id)
        gate.leave(actor_id)

    threads = []
    for actor_id in (1, 2):
        t = threading.Thread(target=entrant, args=(actor_id,))
        t.start()
        threads.append(t)
        _wait_until(lambda a=actor_id: a in gate.waiters)

    assert gate.permits == 0 and gate.admitted == frozenset({0}), "Capacity 1 admits only A0"

    gate.leave(0)
    for t in threads:
        t.join(2.0)

    assert admitted_order == [1, 2], f"Admission should be FIFO, got {admitted_order}"
    assert gate.permits == 1 and not gate.admitted


def test_gate_cancellation_while_waiting():
    gate = AdmissionGate(1)
    gate.enter(0)
    cancel = threading.Event()
    outcome = []

    def entrant():
        try:
            gate.enter(1, cancel)
            outcome.append("admitted")
        except CancellationRequested:
            outcome.append("cancelled")

    t = threading.Thread(target=entrant)
    t.start()
    _wait_until(lambda: gate.waiters == (1,))
    cancel.set()
    gate.interrupt_waiters()
    t.join(2.0)

    assert outcome == ["cancelled"]
    assert gate.waiters == () and gate.admitted == frozenset({0})
    gate.leave(0)
    assert gate.permits == 1, "Permit must not leak after a cancelled entrant"


def test_config_validation():
    """Test that invalid configurations fail fast."""
    print("\n" + "="*60)
    print("TEST 5: SimulationConfig validation")
    print("="*60)

    config = SimulationConfig(actor_count=5, think_delay=[0.0, 0.01], act_delay=0.002)
    assert config.think_delay == DelayRange(0.0, 0.01)
    assert config.act_delay == DelayRange(0.002, 0.002), "A single number is a fixed delay"
    assert config.admission_capacity == 4

    invalid = [
        dict(actor_count=1),
        dict(actor_count=0),
        dict(actor_count=2.5),
        dict(actor_count=True),
        dict(actor_count=3, cycles=0),
        dict(actor_count=3, cycles=-4),
        dict(actor_count=3, think_delay=[0.2, 0.1]),
        dict(actor_count=3, act_delay=[-0.1, 0.1]),
        dict(actor_count=3, act_delay=[0.1, 0.2, 0.3]),
        dict(actor_count=3, think_delay="slow"),
        dict(actor_count=3, think_delay=["a", "b"]),
        dict(actor_count=3, detect_interval=0),
        dict(actor_count=3, starvation_limit=-1.0),
        dict(actor_count=3, think_delay=float("inf")),
        dict(actor_count=3, act_delay=[0.0, float("inf")]),
        dict(actor_count=3, think_delay=float("nan")),
        dict(actor_count=3, detect_interval=float("inf")),
        dict(actor_count=3, detect_interval=float("nan")),
        dict(actor_count=3, starvation_limit=float("inf")),
    ]
    for kwargs in invalid:
        try:
            SimulationConfig(**kwargs)
            assert False, f"Should have rejected {kwargs}"
        except ConfigurationError as e:
            print(f"  ✓ Rejected {kwargs}: {e}")

    print("\n✅ SimulationConfig Tests PASSED")


def test_config_loader():
    """Test loading run configurations from JSON files."""
    print("\n" + "="*60)
    print("TEST 6: Configuration Loader")
    print("="*60)

    with tempfile.TemporaryDirectory() as tmp:
        good = Path(tmp) / "run.json"
        good.write_text(json.dumps({
            "actor_count": 4,
            "cycles": 10,
            "think_delay": [0.0, 0.001],
            "act_delay": [0.0, 0.001],
            "seed": 3,
        }), encoding="utf-8")

        config = load_config(str(good))
        print(f"  Loaded: {config}")
        assert config.actor_count == 4 and config.cycles == 10 and config.seed == 3

        broken = Path(tmp) / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        for path in (str(broken), str(Path(tmp) / "missing.json")):
            try:
                load_config(path)
                assert False, f"Should have rejected {path}"
            except ConfigurationError as e:
                print(f"  ✓ Rejected: {e}")

        # json.load accepts the non-standard Infinity and NaN literals
        unbounded = Path(tmp) / "unbounded.json"
        unbounded.write_text('{"actor_count": 3, "think_delay": Infinity, "act_delay": NaN}', encoding="utf-8")
        try:
            load_config(str(unbounded))
            assert False, "Non-finite delays should be rejected"
        except ConfigurationError as e:
            assert "finite" in str(e), f"Unexpected message: {e}"
            print(f"  ✓ Rejected: {e}")

    for data in ([1, 2], {"cycles": 3}, {"actor_count": 3, "colour": "red"},
                 {"actor_count": 3, "seed": "x"}, {"actor_count": 3, "detect_interval": "1"}):
        try:
            config_from_dict(data)
            assert False, f"Should have rejected {data}"
        except ConfigurationError:
            pass

    print("\n✅ Configuration Loader Tests PASSED")


def test_bundled_scenarios_load():
    """Every shipped run configuration must be valid."""
    scenarios = sorted((project_root / "scenarios").glob("*.json"))
    assert scenarios, "Expected bundled run configurations"
    for path in scenarios:
        config = load_config(str(path))
        assert config.actor_count >= 2, f"{path.name} should define a valid ring"


def test_metrics_start_empty():
    """Fresh metrics allocate zeroed per-actor arrays."""
    metrics = SimulationMetrics(4)
    assert metrics.cycles_completed.shape == (4,)
    assert metrics.slot_hold_counts.shape == (4, 4), "One row of slot holds per actor"
    assert metrics.total_cycles() == 0 and metrics.get_cycle_skew() == 0
    assert list(metrics.longest_wait) == [0.0] * 4

    metrics.record_acquired(2, 3)
    metrics.record_cycle(2)
    assert metrics.slot_hold_counts[2][3] == 1
    assert metrics.get_cycle_skew() == 1, "One actor ahead by a cycle"
    assert metrics.acting_counts is not SimulationMetrics(4).acting_counts, "Arrays are per instance"


def main():
    """Run all model tests."""
    print("\n" + "="*70)
    print(" "*20 + "CORE MODEL TESTS")
    print("="*70)

    try:
        test_slot_acquire_release()
        test_slot_rejects_reacquire()
        test_release_of_free_slot_is_not_owner()
        test_slot_fifo_handoff()
        test_slot_cancellation_while_waiting()
        test_pool_slots_for()
        test_gate_enter_leave()
        test_gate_blocks_and_hands_off_in_order()
        test_gate_cancellation_while_waiting()
        test_config_validation()
        test_config_loader()
        test_bundled_scenarios_load()
        test_metrics_start_empty()

        print("\n" + "="*70)
        print("\n🎉 ALL CORE MODEL TESTS PASSED")
        print("="*70 + "\n")
        return 0

    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
