"""
PnP Twin Package
================

Bounded Context: Device Twin Data and Device-to-Cloud Messaging

This package provides the typed payload contract, the property data model,
the error taxonomy and the MQTT adapters a Plug-and-Play device uses to talk
to its twin store.

Architecture:
- schemas/: Immutable payloads with serialize()/deserialize()
- publishers/: Telemetry and reported-property producers
- subscriber: Desired-property consumer
- logging/: Structured JSON logging for observability
- errors: TwinError hierarchy
- topics: Topic layout for one device

Public API
----------
Schemas:
    SerializablePayload, JsonPayload, BinaryPayload, PayloadRegistry
    Bounds, PropertyState, WritablePropertyRequest, AckStatus, AckOutcome
    FirmwareUpdateRequest, FirmwareUpdateResponse, FirmwareUpdateResponseBinary
    RebootRequest, RebootResponse

Messaging:
    TopicLayout, TelemetryPublisher, ReportedPropertyPublisher,
    DesiredPropertySubscriber

Logging:
    LogEvent, StructuredLogger, create_logger
"""

__version__ = "1.0.0"

from .errors import (
    TwinError,
    ValidationError,
    ParseError,
    UnknownCommandError,
    CommandFailedError,
    TransportError,
    CommandTimeoutError,
)

from .schemas import (
    SerializablePayload,
    JsonPayload,
    BinaryPayload,
    Timestamp,
    PayloadRegistry,
    create_default_registry,
    Bounds,
    PropertyState,
    WritablePropertyRequest,
    AckStatus,
    AckOutcome,
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    FirmwareUpdateResponseBinary,
    RebootRequest,
    RebootResponse,
)

from .topics import TopicLayout

from .publishers import (
    BasePublisher,
    TelemetryPublisher,
    ReportedPropertyPublisher,
)

from .subscriber import DesiredPropertySubscriber

from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    # Errors
    'TwinError',
    'ValidationError',
    'ParseError',
    'UnknownCommandError',
    'CommandFailedError',
    'TransportError',
    'CommandTimeoutError',
    # Schemas
    'SerializablePayload',
    'JsonPayload',
    'BinaryPayload',
    'Timestamp',
    'PayloadRegistry',
    'create_default_registry',
    'Bounds',
    'PropertyState',
    'WritablePropertyRequest',
    'AckStatus',
    'AckOutcome',
    'FirmwareUpdateRequest',
    'FirmwareUpdateResponse',
    'FirmwareUpdateResponseBinary',
    'RebootRequest',
    'RebootResponse',
    # Messaging
    'TopicLayout',
    'BasePublisher',
    'TelemetryPublisher',
    'ReportedPropertyPublisher',
    'DesiredPropertySubscriber',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
