"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Elasticsearch, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, property, telemetry, error
    category: connected, publish, write
    action: success, failed, received

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.component
    | filter event = "error.schema_validation"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - property.*: Writable property reconciliation
    - telemetry.*: Periodic telemetry emission
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Property Events ==========
    PROPERTY_WRITE_RECEIVED = "property.write.received"
    """Desired property write received from the twin store."""

    PROPERTY_WRITE_ACKED = "property.write.acked"
    """Acknowledgement reported for a writable property."""

    PROPERTY_REPORTED = "property.reported"
    """Reported property patch published."""

    # ========== Telemetry Events ==========
    TELEMETRY_SENT = "telemetry.sent"
    """Telemetry message published."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""
