"""
PayloadRegistry - Payload types keyed by type identifier

Bounded Context: Typed payload lookup
Responsibilities:
  - Register payload classes under their TYPE_ID
  - Serialize/deserialize by type identifier
  - Provide introspection (available_types)

Threading: Thread-safe (uses lock for write operations)
Pattern: Registry with explicit registration
"""

import threading
from typing import Dict, Optional, Set, Type

from .common import SerializablePayload
from .commands import (
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    FirmwareUpdateResponseBinary,
    RebootRequest,
    RebootResponse,
)
from .property import AckOutcome
from ..errors import ParseError


class PayloadRegistry:
    """
    Extensible registry of payload variants.

    Example:
        registry = PayloadRegistry()
        registry.register(RebootRequest)

        request = registry.deserialize("reboot.request", raw_bytes)
    """

    def __init__(self):
        self._types: Dict[str, Type[SerializablePayload]] = {}
        self._lock = threading.Lock()

    def register(
        self,
        payload_type: Type[SerializablePayload],
        type_id: Optional[str] = None
    ) -> None:
        """
        Register a payload class.

        Args:
            payload_type: SerializablePayload subclass
            type_id: Identifier (default: payload_type.TYPE_ID)

        Raises:
            ValueError: If no identifier or identifier already registered
        """
        type_id = type_id or payload_type.TYPE_ID
        if not type_id:
            raise ValueError(f"{payload_type.__name__} has no TYPE_ID")

        with self._lock:
            existing = self._types.get(type_id)
            if existing is not None and existing is not payload_type:
                raise ValueError(
                    f"Payload type '{type_id}' already registered to {existing.__name__}"
                )
            self._types[type_id] = payload_type

    def get(self, type_id: str) -> Type[SerializablePayload]:
        """
        Look up a payload class.

        Raises:
            ParseError: If type_id is unknown
        """
        try:
            return self._types[type_id]
        except KeyError:
            raise ParseError(
                f"Unknown payload type '{type_id}'. "
                f"Available types: {', '.join(sorted(self._types))}"
            ) from None

    def serialize(self, payload: SerializablePayload) -> bytes:
        """Serialize payload after checking its type is registered."""
        self.get(payload.TYPE_ID)
        return payload.serialize()

    def deserialize(self, type_id: str, data: bytes) -> SerializablePayload:
        """Deserialize data as the payload registered under type_id."""
        return self.get(type_id).deserialize(data)

    def is_registered(self, type_id: str) -> bool:
        return type_id in self._types

    @property
    def available_types(self) -> Set[str]:
        return set(self._types.keys())


def create_default_registry() -> PayloadRegistry:
    """Registry pre-populated with the built-in payloads."""
    registry = PayloadRegistry()
    for payload_type in (
        FirmwareUpdateRequest,
        FirmwareUpdateResponse,
        FirmwareUpdateResponseBinary,
        RebootRequest,
        RebootResponse,
        AckOutcome,
    ):
        registry.register(payload_type)
    return registry
