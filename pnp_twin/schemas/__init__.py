"""
PnP Twin Schemas
================

Bounded Context: Data Structures

This module defines immutable, typed payloads for twin properties and commands.

Design:
- Frozen dataclasses (immutability)
- Type hints for all fields (mypy compatible)
- serialize() -> bytes / deserialize(bytes) for every payload
- PayloadRegistry keyed by TYPE_ID for extension

Public API
----------
Contract:
    SerializablePayload, JsonPayload, BinaryPayload, Timestamp
    PayloadRegistry, create_default_registry

Property Types:
    Bounds, PropertyState, WritablePropertyRequest
    AckStatus, AckOutcome

Command Types:
    FirmwareUpdateRequest, FirmwareUpdateResponse, FirmwareUpdateResponseBinary
    RebootRequest, RebootResponse

Example:
    >>> from pnp_twin.schemas import RebootResponse
    >>> RebootResponse(reboot_status="Device is rebooting now.").serialize()
    b'{"reboot_status": "Device is rebooting now."}'
"""

from .common import SerializablePayload, JsonPayload, BinaryPayload, Timestamp
from .property import (
    Bounds,
    PropertyState,
    WritablePropertyRequest,
    AckStatus,
    AckOutcome,
    DEFAULT_COMPONENT,
)
from .commands import (
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    FirmwareUpdateResponseBinary,
    RebootRequest,
    RebootResponse,
    parse_firmware_version,
)
from .registry import PayloadRegistry, create_default_registry

__all__ = [
    # Contract
    'SerializablePayload',
    'JsonPayload',
    'BinaryPayload',
    'Timestamp',
    'PayloadRegistry',
    'create_default_registry',
    # Property types
    'Bounds',
    'PropertyState',
    'WritablePropertyRequest',
    'AckStatus',
    'AckOutcome',
    'DEFAULT_COMPONENT',
    # Command types
    'FirmwareUpdateRequest',
    'FirmwareUpdateResponse',
    'FirmwareUpdateResponseBinary',
    'RebootRequest',
    'RebootResponse',
    'parse_firmware_version',
]
