"""
Writable Property Schema
========================

Bounded Context: Twin Property Data Structures

This module defines the values that flow through property reconciliation.

Design:
- Bounds: Static (min, max) pair, validated at construction
- PropertyState: Immutable snapshot of one (component, name) property
- WritablePropertyRequest: Incoming desired value + version (consumed once)
- AckOutcome: Tagged ACCEPTED / REJECTED / UNCHANGED acknowledgement

Message Flow:
    Desired patch → WritablePropertyRequest → Reconciler → AckOutcome → Reported

Wire Shapes:
    Single property write:   {"value": 25.0, "version": 7}
    Desired document:        {"$version": 7,
                              "thermostatComponent": {"__t": "c", "targetTemperature": 25.0}}
    Acknowledgement:         {"value": 25.0, "ac": 202, "ad": "...", "av": 7}
"""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .common import JsonPayload
from ..errors import ParseError

COMPONENT_MARKER_KEY = "__t"
COMPONENT_MARKER_VALUE = "c"
VERSION_KEY = "$version"

# Properties that live on the device's root (no component wrapper)
DEFAULT_COMPONENT = ""


@dataclass(frozen=True)
class Bounds:
    """
    Inclusive range constraining valid values of a numeric property.

    Attributes:
        min_value: Lowest accepted value
        max_value: Highest accepted value

    Invariants:
        - both finite
        - min_value < max_value

    Example:
        >>> bounds = Bounds(min_value=-15.0, max_value=33.5)
        >>> bounds.contains(40.0)
        False
    """
    min_value: float
    max_value: float

    def __post_init__(self):
        """Validate invariants."""
        if not (math.isfinite(self.min_value) and math.isfinite(self.max_value)):
            raise ValueError(
                f"Bounds must be finite, got [{self.min_value}, {self.max_value}]"
            )
        if self.min_value >= self.max_value:
            raise ValueError(
                f"Bounds min must be < max, got [{self.min_value}, {self.max_value}]"
            )

    def contains(self, value: float) -> bool:
        """Check value is within [min_value, max_value]."""
        return self.min_value <= value <= self.max_value

    @classmethod
    def from_list(cls, data: List[float]) -> 'Bounds':
        """Build from a [min, max] pair (YAML form)."""
        if len(data) != 2:
            raise ValueError(f"Bounds must be [min, max], got {data}")
        return cls(min_value=float(data[0]), max_value=float(data[1]))


@dataclass(frozen=True)
class PropertyState:
    """
    Snapshot of one writable property as the device knows it.

    Attributes:
        component: Component name
        name: Property name
        value: Last value reported by the device
        target_setting: Setpoint currently applied to the actuator
        version: Last acknowledged desired version (never decreases)
    """
    component: str
    name: str
    value: Any
    target_setting: float
    version: int = 0


@dataclass(frozen=True)
class WritablePropertyRequest:
    """
    Incoming proposal to change a writable property.

    proposed_value is kept raw; the reconciler parses it so that a malformed
    value becomes a REJECTED acknowledgement rather than an exception.
    """
    component: str
    name: str
    proposed_value: Any
    version: int

    @property
    def key(self) -> tuple:
        return (self.component, self.name)

    @classmethod
    def from_single_property(
        cls,
        component: str,
        name: str,
        data: bytes
    ) -> 'WritablePropertyRequest':
        """
        Decode the single-property representation {"value": v, "version": n}.

        Raises:
            ParseError: If payload is not a JSON object with value and version
        """
        try:
            decoded = json.loads(data.decode("utf-8") if isinstance(data, bytes) else data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"Invalid JSON for property {component}/{name}: {e}") from e

        if not isinstance(decoded, dict) or "value" not in decoded:
            raise ParseError(f"Property write for {component}/{name} has no 'value'")

        return cls(
            component=component,
            name=name,
            proposed_value=decoded["value"],
            version=_parse_version(decoded.get("version")),
        )

    @classmethod
    def from_desired_document(cls, document: Dict[str, Any]) -> List['WritablePropertyRequest']:
        """
        Flatten a desired-properties document into one request per property.

        Component sections are dicts tagged {"__t": "c"}; other top-level keys
        are root properties of the default component.

        Raises:
            ParseError: If document is not an object or $version is invalid
        """
        if not isinstance(document, dict):
            raise ParseError(
                f"Desired document must be an object, got {type(document).__name__}"
            )

        version = _parse_version(document.get(VERSION_KEY))
        requests = []

        for key, entry in document.items():
            if key.startswith("$"):
                continue

            if isinstance(entry, dict) and entry.get(COMPONENT_MARKER_KEY) == COMPONENT_MARKER_VALUE:
                for prop_name, prop_value in entry.items():
                    if prop_name == COMPONENT_MARKER_KEY:
                        continue
                    requests.append(cls(key, prop_name, prop_value, version))
            else:
                requests.append(cls(DEFAULT_COMPONENT, key, entry, version))

        return requests


def _parse_version(raw: Any) -> int:
    if raw is None:
        raise ParseError("Missing property version")
    if isinstance(raw, bool):
        raise ParseError(f"Invalid property version: {raw!r}")
    try:
        version = int(raw)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Invalid property version: {raw!r}") from e
    if version < 0:
        raise ParseError(f"Property version must be >= 0, got {version}")
    return version


class AckStatus(str, Enum):
    """Acknowledgement outcome for a writable property request."""
    ACCEPTED = "accepted"      # New value applied
    REJECTED = "rejected"      # Proposal refused, device value echoed
    UNCHANGED = "unchanged"    # Already at the proposed value


ACK_CODES = {
    AckStatus.ACCEPTED: 202,
    AckStatus.UNCHANGED: 200,
    AckStatus.REJECTED: 400,
}

_STATUS_BY_CODE = {code: status for status, code in ACK_CODES.items()}


@dataclass(frozen=True)
class AckOutcome(JsonPayload):
    """
    Acknowledgement sent back for a writable property request.

    Attributes:
        status: ACCEPTED, REJECTED or UNCHANGED
        value: Value reported back (never an out-of-range proposal)
        message: Human-readable description
        version: Version echoed from the triggering request

    Example:
        >>> AckOutcome.rejected(22.0, "out of range", version=3).to_dict()
        {'value': 22.0, 'ac': 400, 'ad': 'out of range', 'av': 3}
    """
    status: AckStatus
    value: Any
    message: str
    version: Optional[int] = None

    TYPE_ID = "property.ack"

    @classmethod
    def accepted(cls, value: Any, message: str, version: Optional[int] = None) -> 'AckOutcome':
        return cls(AckStatus.ACCEPTED, value, message, version)

    @classmethod
    def rejected(cls, value: Any, message: str, version: Optional[int] = None) -> 'AckOutcome':
        return cls(AckStatus.REJECTED, value, message, version)

    @classmethod
    def unchanged(cls, value: Any, message: str, version: Optional[int] = None) -> 'AckOutcome':
        return cls(AckStatus.UNCHANGED, value, message, version)

    @property
    def ack_code(self) -> int:
        """Status code reported to the twin store."""
        return ACK_CODES[self.status]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to writable-property response shape."""
        return {
            'value': self.value,
            'ac': self.ack_code,
            'ad': self.message,
            'av': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AckOutcome':
        """Deserialize from writable-property response shape."""
        code = int(data['ac'])
        if code not in _STATUS_BY_CODE:
            raise ValueError(f"Unknown ack code: {code}")
        return cls(
            status=_STATUS_BY_CODE[code],
            value=data['value'],
            message=data.get('ad', ''),
            version=data.get('av'),
        )
