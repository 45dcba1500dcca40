"""
MQTT Publishers
==============

Bounded Context: Device-to-Cloud Message Production

Design:
- BasePublisher: Abstract base with connection management
- TelemetryPublisher: Periodic component telemetry
- ReportedPropertyPublisher: Reported properties and writable-property acks

Public API
----------
    BasePublisher: Abstract publisher (for custom publishers)
    TelemetryPublisher: Telemetry publisher
    ReportedPropertyPublisher: Reported property publisher
"""

from .base import BasePublisher
from .telemetry import TelemetryPublisher
from .reported import ReportedPropertyPublisher

__all__ = [
    'BasePublisher',
    'TelemetryPublisher',
    'ReportedPropertyPublisher',
]
