"""
Property Reconciler - Writable property decisions for numeric setpoints.

This module decides how the device answers a writable-property proposal:

    proposal not numeric            → REJECTED(device value)
    proposal outside bounds         → REJECTED(device value)
    proposal != current target      → actuate once, ACCEPTED(proposal)
    proposal == current target      → UNCHANGED(device value), no actuation

Equality uses an absolute tolerance, never exact float comparison.
Errors never leave reconcile(): they become REJECTED outcomes.

Thread Safety:
- PropertyReconciler serializes the compare-then-actuate sequence per
  (component, name) with its own lock; different properties do not contend.
"""

import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from pnp_twin.errors import ParseError, ValidationError
from pnp_twin.schemas import (
    AckOutcome,
    AckStatus,
    Bounds,
    PropertyState,
    WritablePropertyRequest,
)

logger = logging.getLogger(__name__)

Actuator = Callable[[float], None]

PARSE_ERROR_MESSAGE = "invalid value: expected a number"


def parse_numeric(raw: Any) -> float:
    """
    Parse a proposed property value as a finite float.

    Raises:
        ParseError: If raw is not a finite number or numeric text
    """
    if isinstance(raw, bool):
        raise ParseError(f"Expected a number, got boolean {raw!r}")

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError("Expected a number, got undecodable bytes") from e

    if isinstance(raw, str):
        raw = raw.strip()

    if not isinstance(raw, (int, float, str)):
        raise ParseError(f"Expected a number, got {type(raw).__name__}")

    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Expected a number, got {raw!r}") from e

    if not math.isfinite(value):
        raise ParseError(f"Expected a finite number, got {raw!r}")
    return value


def check_bounds(value: float, bounds: Bounds) -> float:
    """
    Raises:
        ValidationError: If value is outside [bounds.min_value, bounds.max_value]
    """
    if not bounds.contains(value):
        raise ValidationError(
            f"{value} is out of range [{bounds.min_value}, {bounds.max_value}]"
        )
    return value


def reconcile(
    current: PropertyState,
    bounds: Bounds,
    request: WritablePropertyRequest,
    actuate: Actuator,
    tolerance: float = 1e-6,
) -> AckOutcome:
    """
    Decide the acknowledgement for one writable-property request.

    Args:
        current: Device's view of the property
        bounds: Valid range for the property
        request: Incoming proposal
        actuate: Applies a new setpoint; called at most once, only on ACCEPTED
        tolerance: Absolute tolerance for "already at value"

    Returns:
        AckOutcome carrying request.version
    """
    version = request.version

    try:
        value = check_bounds(parse_numeric(request.proposed_value), bounds)
    except ParseError as e:
        logger.warning(f"⚠️ {request.component}/{request.name} v{version}: {e}")
        return AckOutcome.rejected(current.value, PARSE_ERROR_MESSAGE, version)
    except ValidationError as e:
        logger.info(f"🚫 {request.component}/{request.name} v{version}: {e}")
        return AckOutcome.rejected(current.value, f"{request.name} {e}", version)

    if math.isclose(value, current.target_setting, rel_tol=0.0, abs_tol=tolerance):
        return AckOutcome.unchanged(
            current.value, f"{request.name} is already at {value}", version
        )

    try:
        actuate(value)
    except Exception as e:
        logger.error(
            f"❌ Actuation failed for {request.component}/{request.name}={value}: {e}",
            exc_info=True,
        )
        return AckOutcome.rejected(current.value, f"failed to apply {value}: {e}", version)

    return AckOutcome.accepted(value, f"Setting {request.name} to {value}", version)


@dataclass
class _PropertySlot:
    state: PropertyState
    bounds: Bounds
    actuate: Actuator
    tolerance: float
    lock: threading.Lock


class PropertyReconciler:
    """
    Stateful reconciler for a set of numeric writable properties.

    Both incoming representations (single property write, desired document)
    funnel into handle_write(), which calls reconcile() under the property's
    lock and records the outcome.

    Usage:
        reconciler = PropertyReconciler()
        reconciler.register_property(
            "thermostatComponent", "targetTemperature",
            bounds=Bounds(-15.0, 33.5),
            initial_value=22.0,
            actuate=sink.set_target_temperature,
        )

        outcome = reconciler.handle_write(
            WritablePropertyRequest("thermostatComponent", "targetTemperature", 25.0, 3)
        )
    """

    def __init__(self, default_tolerance: float = 1e-6):
        self.default_tolerance = default_tolerance
        self._slots: Dict[Tuple[str, str], _PropertySlot] = {}
        self._lock = threading.Lock()

    def register_property(
        self,
        component: str,
        name: str,
        bounds: Bounds,
        initial_value: float,
        actuate: Actuator,
        tolerance: Optional[float] = None,
        version: int = 0,
    ) -> PropertyState:
        """
        Register a writable numeric property.

        Raises:
            ValueError: If already registered or initial_value outside bounds
        """
        if not bounds.contains(initial_value):
            raise ValueError(
                f"initial_value {initial_value} outside bounds "
                f"[{bounds.min_value}, {bounds.max_value}]"
            )

        state = PropertyState(component, name, initial_value, float(initial_value), version)
        slot = _PropertySlot(
            state=state,
            bounds=bounds,
            actuate=actuate,
            tolerance=self.default_tolerance if tolerance is None else tolerance,
            lock=threading.Lock(),
        )

        with self._lock:
            if (component, name) in self._slots:
                raise ValueError(f"Property '{component}/{name}' already registered")
            self._slots[(component, name)] = slot

        logger.info(
            f"Registered writable property {component}/{name} "
            f"(bounds=[{bounds.min_value}, {bounds.max_value}], initial={initial_value})"
        )
        return state

    def handle_write(self, request: WritablePropertyRequest) -> AckOutcome:
        """
        Reconcile one request and record the result.

        Never raises for bad input: unknown properties and malformed values
        produce REJECTED outcomes.
        """
        slot = self._slots.get(request.key)
        if slot is None:
            logger.warning(f"⚠️ Write for unknown property {request.component}/{request.name}")
            return AckOutcome.rejected(
                None, f"unknown property {request.component}/{request.name}", request.version
            )

        with slot.lock:
            current = slot.state
            outcome = reconcile(current, slot.bounds, request, slot.actuate, slot.tolerance)

            version = max(current.version, request.version)
            if outcome.status == AckStatus.ACCEPTED:
                slot.state = replace(
                    current, value=outcome.value, target_setting=outcome.value, version=version
                )
            else:
                slot.state = replace(current, version=version)

        logger.info(
            f"📝 {request.component}/{request.name} v{request.version}: "
            f"{outcome.status.value} ({outcome.message})"
        )
        return outcome

    def handle_patch(self, document: Dict[str, Any]) -> List[Tuple[WritablePropertyRequest, AckOutcome]]:
        """
        Reconcile every property in a desired-properties document.

        Returns:
            (request, outcome) pairs in document order; empty if the document
            is malformed
        """
        try:
            requests = WritablePropertyRequest.from_desired_document(document)
        except ParseError as e:
            logger.warning(f"⚠️ Ignoring malformed desired document: {e}")
            return []
        return [(request, self.handle_write(request)) for request in requests]

    def get_state(self, component: str, name: str) -> PropertyState:
        """
        Snapshot of a registered property.

        Raises:
            KeyError: If the property is not registered
        """
        slot = self._slots[(component, name)]
        with slot.lock:
            return slot.state

    def is_registered(self, component: str, name: str) -> bool:
        return (component, name) in self._slots
