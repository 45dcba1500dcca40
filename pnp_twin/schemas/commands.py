"""
Command Payload Schema
======================

Bounded Context: Command Request/Response Data Structures

This module defines the typed payloads exchanged by device commands.

Design:
- FirmwareUpdateRequest/Response: Outbound firmware check (device → counterpart)
- FirmwareUpdateResponseBinary: Same response, binary wire layout
- RebootRequest/Response: Inbound reboot command (counterpart → device)

Message Flow:
    Device → updateFirmware(FirmwareUpdateRequest) → Counterpart
    Counterpart → FirmwareUpdateResponse → Device → ActuationSink.apply_firmware()
"""

import base64
import binascii
import struct
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from .common import BinaryPayload, JsonPayload
from ..errors import ParseError


def parse_firmware_version(value: str) -> tuple:
    """
    Parse a dotted firmware version ("1.2.4") into a comparable tuple.

    Raises:
        ValueError: If any segment is not a non-negative integer
    """
    parts = str(value).strip().split(".")
    if not parts or any(not p.isdigit() for p in parts):
        raise ValueError(f"Invalid firmware version: {value!r}")
    return tuple(int(p) for p in parts)


@dataclass(frozen=True)
class FirmwareUpdateRequest(JsonPayload):
    """
    Ask the counterpart whether newer firmware exists.

    Attributes:
        firmware_version: Currently installed version (dotted)
    """
    firmware_version: str

    TYPE_ID = "firmware.update.request"

    def __post_init__(self):
        """Validate invariants."""
        parse_firmware_version(self.firmware_version)

    def to_dict(self) -> Dict[str, Any]:
        return {'firmware_version': self.firmware_version}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FirmwareUpdateRequest':
        return cls(firmware_version=str(data['firmware_version']))


@dataclass(frozen=True)
class FirmwareUpdateResponse(JsonPayload):
    """
    Counterpart's answer to a firmware check.

    Attributes:
        should_update: True if firmware_bytes must be applied
        firmware_version: Version of the offered firmware
        firmware_bytes: Firmware image (base64 on the wire)

    Example:
        >>> FirmwareUpdateResponse(False, "1.0.0").to_dict()
        {'should_update': False, 'firmware_version': '1.0.0', 'firmware_bytes': ''}
    """
    should_update: bool
    firmware_version: str
    firmware_bytes: bytes = b""

    TYPE_ID = "firmware.update.response"

    def __post_init__(self):
        """Validate invariants."""
        parse_firmware_version(self.firmware_version)
        if self.should_update and not self.firmware_bytes:
            raise ValueError("should_update requires firmware_bytes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'should_update': self.should_update,
            'firmware_version': self.firmware_version,
            'firmware_bytes': base64.b64encode(self.firmware_bytes).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FirmwareUpdateResponse':
        should_update = data['should_update']
        if not isinstance(should_update, bool):
            raise TypeError(f"should_update must be a boolean, got {should_update!r}")
        try:
            firmware_bytes = base64.b64decode(data.get('firmware_bytes', ''), validate=True)
        except (binascii.Error, TypeError) as e:
            raise ValueError(f"firmware_bytes is not valid base64: {e}") from e
        return cls(
            should_update=should_update,
            firmware_version=str(data['firmware_version']),
            firmware_bytes=firmware_bytes,
        )


@dataclass(frozen=True)
class FirmwareUpdateResponseBinary(BinaryPayload):
    """
    Firmware check answer in binary layout.

    Layout (big endian):
        uint8   format version (1)
        uint8   should_update (0/1)
        uint32  len + utf-8 firmware_version
        uint32  len + firmware_bytes
    """
    should_update: bool
    firmware_version: str
    firmware_bytes: bytes = b""

    TYPE_ID = "firmware.update.response.bin"
    FORMAT_VERSION = 1

    def __post_init__(self):
        """Validate invariants."""
        parse_firmware_version(self.firmware_version)

    def serialize(self) -> bytes:
        return (
            struct.pack(">BB", self.FORMAT_VERSION, int(self.should_update))
            + self.pack_field(self.firmware_version.encode("utf-8"))
            + self.pack_field(self.firmware_bytes)
        )

    @classmethod
    def deserialize(cls, data: bytes) -> 'FirmwareUpdateResponseBinary':
        try:
            format_version, should_update = struct.unpack_from(">BB", data, 0)
        except struct.error as e:
            raise ParseError("Truncated binary firmware response header") from e

        if format_version != cls.FORMAT_VERSION:
            raise ParseError(f"Unsupported binary format version: {format_version}")
        if should_update not in (0, 1):
            raise ParseError(f"Invalid should_update flag: {should_update}")

        version_raw, offset = cls.unpack_field(data, 2)
        firmware_bytes, offset = cls.unpack_field(data, offset)
        if offset != len(data):
            raise ParseError(f"{len(data) - offset} trailing bytes in firmware response")

        try:
            return cls(
                should_update=bool(should_update),
                firmware_version=version_raw.decode("utf-8"),
                firmware_bytes=firmware_bytes,
            )
        except (UnicodeDecodeError, ValueError) as e:
            raise ParseError(f"Invalid binary firmware response: {e}") from e

    def to_response(self) -> FirmwareUpdateResponse:
        """Convert to the JSON variant (same fields)."""
        return FirmwareUpdateResponse(
            should_update=self.should_update,
            firmware_version=self.firmware_version,
            firmware_bytes=self.firmware_bytes,
        )


@dataclass(frozen=True)
class RebootRequest(JsonPayload):
    """
    Inbound reboot command.

    Attributes:
        when_to_reboot: Requested reboot time (naive = device local time)
    """
    when_to_reboot: datetime

    TYPE_ID = "reboot.request"

    def to_dict(self) -> Dict[str, Any]:
        return {'when_to_reboot': self.when_to_reboot.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RebootRequest':
        return cls(when_to_reboot=datetime.fromisoformat(str(data['when_to_reboot'])))


@dataclass(frozen=True)
class RebootResponse(JsonPayload):
    """Result of a reboot command."""
    reboot_status: str

    TYPE_ID = "reboot.response"

    def to_dict(self) -> Dict[str, Any]:
        return {'reboot_status': self.reboot_status}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RebootResponse':
        return cls(reboot_status=str(data['reboot_status']))
