"""
Telemetry Publisher
===================

Bounded Context: Telemetry Message Production

This module provides the publisher for periodic device telemetry.

Design:
- Inherits from BasePublisher (connection management)
- One topic per component (telemetry/{component})
- QoS 0 by default (a missed reading is superseded by the next one)

Message Flow:
    Sensor → TelemetryPublisher → MQTT Broker

Payload:
    {"currentTemp": 22.0, "timestamp": "2025-10-24T15:30:45+00:00"}
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import Timestamp
from ..logging import StructuredLogger, LogEvent
from ..topics import TopicLayout


class TelemetryPublisher(BasePublisher):
    """
    Publisher for component telemetry values.

    Example:
        >>> publisher = TelemetryPublisher(
        ...     broker_host="localhost",
        ...     layout=TopicLayout("pnp", "thermostat-01"),
        ...     logger=logger
        ... )
        >>> publisher.connect()
        >>> publisher.publish_telemetry("thermostatComponent", {"currentTemp": 22.0})
    """

    def __init__(
        self,
        broker_host: str,
        layout: TopicLayout,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "pnp_telemetry_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=layout.telemetry(""),
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.layout = layout

    def format_message(self, values: Dict[str, Any], timestamp: Optional[Timestamp] = None) -> Dict[str, Any]:
        """
        Format telemetry values with a timestamp.

        Raises:
            ValueError: If values is empty or uses the reserved 'timestamp' key
        """
        if not values:
            raise ValueError("Telemetry message must contain at least one value")
        if 'timestamp' in values:
            raise ValueError("'timestamp' is reserved in telemetry messages")

        message = dict(values)
        message['timestamp'] = (timestamp or Timestamp.now()).to_dict()
        return message

    def publish_telemetry(self, component: str, values: Dict[str, Any]) -> bool:
        """
        Publish telemetry values for one component.

        Returns:
            True if published successfully, False otherwise
        """
        try:
            message = self.format_message(values)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Invalid telemetry message",
                exc_info=e,
                metadata={'component': component}
            )
            return False

        published = self.publish(message, topic=self.layout.telemetry(component))
        if published:
            self.logger.info(
                event=LogEvent.TELEMETRY_SENT,
                message="Telemetry sent",
                metadata={'component': component, 'values': values}
            )
        return published
