"""
Test Property Reconciliation (No Broker)
========================================

Exercises reconcile() and PropertyReconciler with a recording actuator.

Usage:
    pytest test_reconciler.py -v
"""

import threading

import pytest

from pnp_twin.schemas import (
    AckStatus,
    Bounds,
    PropertyState,
    WritablePropertyRequest,
)
from pnp_device.reconciler import (
    PARSE_ERROR_MESSAGE,
    PropertyReconciler,
    check_bounds,
    parse_numeric,
    reconcile,
)
from pnp_twin.errors import ParseError, ValidationError


COMPONENT = "thermostatComponent"
PROPERTY = "targetTemperature"
BOUNDS = Bounds(-15.0, 33.5)


class RecordingActuator:
    """Collects every actuation call."""

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def __call__(self, value):
        self.calls.append(value)
        if self.fail:
            raise RuntimeError("actuator jammed")


def state(target=22.0, version=0):
    return PropertyState(COMPONENT, PROPERTY, target, target, version)


def request(value, version=1):
    return WritablePropertyRequest(COMPONENT, PROPERTY, value, version)


def make_reconciler(actuator):
    reconciler = PropertyReconciler()
    reconciler.register_property(
        COMPONENT, PROPERTY, bounds=BOUNDS, initial_value=22.0, actuate=actuator
    )
    return reconciler


# ─────────────────────────────────────────────────────────────────────────────
# reconcile()
# ─────────────────────────────────────────────────────────────────────────────

def test_out_of_range_rejects_with_current_value():
    """40.0 against [-15.0, 33.5] echoes the device's 22.0."""
    print("\n" + "=" * 60)
    print("TEST: Out of range → REJECTED(current)")
    print("=" * 60)

    actuator = RecordingActuator()
    outcome = reconcile(state(), BOUNDS, request(40.0, version=3), actuator)

    assert outcome.status == AckStatus.REJECTED
    assert outcome.value == 22.0
    assert "out of range" in outcome.message
    assert outcome.version == 3
    assert actuator.calls == []
    print(f"✓ {outcome}")


@pytest.mark.parametrize("value", [-15.1, 33.6, 1e9, -1e9])
def test_any_out_of_range_value_never_echoed(value):
    outcome = reconcile(state(), BOUNDS, request(value), RecordingActuator())
    assert outcome.status == AckStatus.REJECTED
    assert outcome.value == 22.0


def test_in_range_new_value_actuates_once_and_accepts():
    """25.0 against target 22.0 actuates exactly once."""
    print("\n" + "=" * 60)
    print("TEST: In range, different → one actuation, ACCEPTED")
    print("=" * 60)

    actuator = RecordingActuator()
    outcome = reconcile(state(), BOUNDS, request(25.0, version=4), actuator)

    assert actuator.calls == [25.0]
    assert outcome.status == AckStatus.ACCEPTED
    assert outcome.value == 25.0
    assert outcome.version == 4
    assert outcome.ack_code == 202
    print(f"✓ {outcome}")


def test_same_value_is_unchanged_without_actuation():
    actuator = RecordingActuator()
    outcome = reconcile(state(22.0), BOUNDS, request(22.0), actuator)

    assert outcome.status == AckStatus.UNCHANGED
    assert outcome.value == 22.0
    assert outcome.ack_code == 200
    assert actuator.calls == []


def test_equality_uses_tolerance():
    actuator = RecordingActuator()
    outcome = reconcile(state(22.0), BOUNDS, request(22.0 + 1e-9), actuator, tolerance=1e-6)
    assert outcome.status == AckStatus.UNCHANGED
    assert actuator.calls == []


def test_bounds_are_inclusive():
    actuator = RecordingActuator()
    assert reconcile(state(), BOUNDS, request(33.5), actuator).status == AckStatus.ACCEPTED
    assert reconcile(state(), BOUNDS, request(-15.0), actuator).status == AckStatus.ACCEPTED
    assert actuator.calls == [33.5, -15.0]


@pytest.mark.parametrize("value", ["warm", None, True, [25.0], {"v": 1}, float("nan"), "inf"])
def test_unparseable_value_rejected_with_generic_message(value):
    actuator = RecordingActuator()
    outcome = reconcile(state(), BOUNDS, request(value, version=9), actuator)

    assert outcome.status == AckStatus.REJECTED
    assert outcome.value == 22.0
    assert outcome.message == PARSE_ERROR_MESSAGE
    assert outcome.version == 9
    assert actuator.calls == []


def test_numeric_text_is_accepted():
    actuator = RecordingActuator()
    outcome = reconcile(state(), BOUNDS, request(" 25.5 "), actuator)
    assert outcome.status == AckStatus.ACCEPTED
    assert actuator.calls == [25.5]


def test_actuator_failure_becomes_rejection():
    actuator = RecordingActuator(fail=True)
    outcome = reconcile(state(), BOUNDS, request(25.0, version=2), actuator)

    assert outcome.status == AckStatus.REJECTED
    assert outcome.value == 22.0
    assert outcome.version == 2
    assert actuator.calls == [25.0]


def test_parse_and_bounds_helpers_raise_typed_errors():
    assert parse_numeric(b"21") == 21.0
    with pytest.raises(ParseError):
        parse_numeric(False)
    with pytest.raises(ValidationError):
        check_bounds(40.0, BOUNDS)
    assert check_bounds(20.0, BOUNDS) == 20.0


# ─────────────────────────────────────────────────────────────────────────────
# PropertyReconciler
# ─────────────────────────────────────────────────────────────────────────────

def test_idempotent_repeat_is_unchanged():
    """Same accepted value twice: ACCEPTED then UNCHANGED, one actuation."""
    print("\n" + "=" * 60)
    print("TEST: Idempotence")
    print("=" * 60)

    actuator = RecordingActuator()
    reconciler = make_reconciler(actuator)

    first = reconciler.handle_write(request(25.0, version=2))
    second = reconciler.handle_write(request(25.0, version=3))

    assert first.status == AckStatus.ACCEPTED
    assert second.status == AckStatus.UNCHANGED
    assert second.value == 25.0
    assert actuator.calls == [25.0]
    print("✓ ACCEPTED → UNCHANGED")


def test_accepted_write_updates_state():
    reconciler = make_reconciler(RecordingActuator())
    reconciler.handle_write(request(25.0, version=5))

    current = reconciler.get_state(COMPONENT, PROPERTY)
    assert current.value == 25.0
    assert current.target_setting == 25.0
    assert current.version == 5


def test_rejected_write_keeps_value_but_advances_version():
    reconciler = make_reconciler(RecordingActuator())
    reconciler.handle_write(request(40.0, version=6))

    current = reconciler.get_state(COMPONENT, PROPERTY)
    assert current.value == 22.0
    assert current.version == 6


def test_stored_version_never_decreases():
    reconciler = make_reconciler(RecordingActuator())
    reconciler.handle_write(request(25.0, version=10))
    outcome = reconciler.handle_write(request(26.0, version=4))

    assert outcome.version == 4
    assert reconciler.get_state(COMPONENT, PROPERTY).version == 10


def test_unknown_property_rejected_without_state():
    reconciler = make_reconciler(RecordingActuator())
    outcome = reconciler.handle_write(
        WritablePropertyRequest(COMPONENT, "fanSpeed", 3, 1)
    )

    assert outcome.status == AckStatus.REJECTED
    assert outcome.value is None
    assert "unknown property" in outcome.message
    assert not reconciler.is_registered(COMPONENT, "fanSpeed")


def test_register_property_validates():
    reconciler = make_reconciler(RecordingActuator())

    with pytest.raises(ValueError):
        reconciler.register_property(COMPONENT, PROPERTY, BOUNDS, 22.0, RecordingActuator())
    with pytest.raises(ValueError):
        reconciler.register_property(COMPONENT, "other", BOUNDS, 99.0, RecordingActuator())


def test_patch_document_uses_same_path():
    actuator = RecordingActuator()
    reconciler = make_reconciler(actuator)

    results = reconciler.handle_patch({
        "$version": 7,
        COMPONENT: {"__t": "c", PROPERTY: 30.0},
    })

    assert len(results) == 1
    req, outcome = results[0]
    assert req.key == (COMPONENT, PROPERTY)
    assert outcome.status == AckStatus.ACCEPTED
    assert outcome.version == 7
    assert actuator.calls == [30.0]


def test_malformed_patch_is_ignored():
    reconciler = make_reconciler(RecordingActuator())
    assert reconciler.handle_patch({COMPONENT: {"__t": "c", PROPERTY: 30.0}}) == []
    assert reconciler.handle_patch(["not", "a", "document"]) == []


def test_concurrent_identical_writes_actuate_once():
    """Compare-then-actuate is serialized per property."""
    actuator = RecordingActuator()
    reconciler = make_reconciler(actuator)
    barrier = threading.Barrier(8)
    outcomes = []
    outcomes_lock = threading.Lock()

    def writer(version):
        barrier.wait()
        outcome = reconciler.handle_write(request(27.0, version=version))
        with outcomes_lock:
            outcomes.append(outcome.status)

    threads = [threading.Thread(target=writer, args=(v,)) for v in range(1, 9)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert actuator.calls == [27.0]
    assert outcomes.count(AckStatus.ACCEPTED) == 1
    assert outcomes.count(AckStatus.UNCHANGED) == 7
    assert reconciler.get_state(COMPONENT, PROPERTY).version == 8
