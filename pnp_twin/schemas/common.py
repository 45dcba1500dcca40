"""
Common Schema Types
==================

Bounded Context: Typed Payload Contract

This module defines the capability every request/response payload implements,
so the dispatcher and reconciler never depend on a concrete wire format.

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Type Safety: All fields explicitly typed
- Serialization: serialize() -> bytes, deserialize(bytes) -> instance
- Validation: Constructor validates invariants, decoding raises ParseError

Types:
- SerializablePayload: Abstract {serialize, deserialize} capability
- JsonPayload: UTF-8 JSON encoding built on to_dict()/from_dict()
- BinaryPayload: Fixed struct layouts
- Timestamp: ISO 8601 timestamp wrapper
"""

import json
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Tuple, Type, TypeVar

from ..errors import ParseError

P = TypeVar("P", bound="SerializablePayload")


class SerializablePayload(ABC):
    """
    Capability interface shared by all payload variants.

    Subclasses set TYPE_ID, the key used by PayloadRegistry.

    Example:
        >>> data = RebootResponse(reboot_status="ok").serialize()
        >>> RebootResponse.deserialize(data).reboot_status
        'ok'
    """

    TYPE_ID: ClassVar[str] = ""

    @abstractmethod
    def serialize(self) -> bytes:
        """Encode this payload to bytes."""
        raise NotImplementedError("Subclasses must implement serialize()")

    @classmethod
    @abstractmethod
    def deserialize(cls: Type[P], data: bytes) -> P:
        """
        Decode bytes into a payload instance.

        Raises:
            ParseError: If data is malformed
        """
        raise NotImplementedError("Subclasses must implement deserialize()")


class JsonPayload(SerializablePayload):
    """
    Payload encoded as a UTF-8 JSON object.

    Subclasses (frozen dataclasses) provide to_dict() and from_dict();
    from_dict() may raise KeyError/TypeError/ValueError, which are reported
    as ParseError.
    """

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def from_dict(cls: Type[P], data: Dict[str, Any]) -> P:
        """Deserialize from dict."""
        raise NotImplementedError

    def serialize(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def deserialize(cls: Type[P], data: bytes) -> P:
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
            decoded = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
            raise ParseError(f"Invalid JSON for {cls.__name__}: {e}") from e

        if not isinstance(decoded, dict):
            raise ParseError(
                f"{cls.__name__} expects a JSON object, got {type(decoded).__name__}"
            )

        try:
            return cls.from_dict(decoded)
        except KeyError as e:
            raise ParseError(f"Missing required {cls.__name__} field: {e}") from e
        except (TypeError, ValueError) as e:
            raise ParseError(f"Invalid {cls.__name__} data: {e}") from e


class BinaryPayload(SerializablePayload):
    """
    Payload encoded with fixed struct layouts.

    Provides length-prefixed field helpers; struct errors surface as ParseError.
    """

    @staticmethod
    def pack_field(value: bytes) -> bytes:
        """Length-prefix a variable-size field (uint32, big endian)."""
        return struct.pack(">I", len(value)) + value

    @staticmethod
    def unpack_field(data: bytes, offset: int) -> Tuple[bytes, int]:
        """
        Read a length-prefixed field.

        Returns:
            (field bytes, offset after the field)
        """
        try:
            (length,) = struct.unpack_from(">I", data, offset)
        except struct.error as e:
            raise ParseError(f"Truncated binary payload at offset {offset}") from e
        start = offset + 4
        end = start + length
        if end > len(data):
            raise ParseError(
                f"Field length {length} exceeds payload size {len(data)}"
            )
        return bytes(data[start:end]), end


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper.

    Attributes:
        value: ISO 8601 formatted timestamp string

    Example:
        >>> ts = Timestamp.now()
        >>> ts.value
        '2025-10-24T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current UTC time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
