"""
Reported Property Publisher
===========================

Bounded Context: Reported Property Production

This module publishes reported-property patches and writable-property
acknowledgements to the twin store.

Design:
- Inherits from BasePublisher (connection management)
- QoS 1 by default (reported state must not be lost)
- Component properties are wrapped with the {"__t": "c"} marker

Message Flow:
    Reconciler → AckOutcome → ReportedPropertyPublisher → MQTT Broker

Payload:
    {"thermostatComponent": {"__t": "c",
                             "targetTemperature": {"value": 25.0, "ac": 202, "ad": "...", "av": 7}}}
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import AckOutcome
from ..schemas.property import COMPONENT_MARKER_KEY, COMPONENT_MARKER_VALUE
from ..logging import StructuredLogger, LogEvent
from ..topics import TopicLayout


class ReportedPropertyPublisher(BasePublisher):
    """
    Publisher for reported properties and writable-property acks.

    Example:
        >>> publisher = ReportedPropertyPublisher(
        ...     broker_host="localhost",
        ...     layout=TopicLayout("pnp", "thermostat-01"),
        ...     logger=logger
        ... )
        >>> publisher.publish_properties("deviceConfig", {"serialNumber": "JAMESD1234"})
    """

    def __init__(
        self,
        broker_host: str,
        layout: TopicLayout,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "pnp_reported_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=layout.reported,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.layout = layout

    def format_message(self, component: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """
        Build a reported patch for one component.

        The default component ("") reports at the document root.
        """
        if not properties:
            raise ValueError("Reported patch must contain at least one property")
        if not component:
            return dict(properties)
        section = {COMPONENT_MARKER_KEY: COMPONENT_MARKER_VALUE}
        section.update(properties)
        return {component: section}

    def publish_properties(self, component: str, properties: Dict[str, Any]) -> bool:
        """
        Publish reported property values for one component.

        Returns:
            True if published successfully, False otherwise
        """
        published = self.publish(self.format_message(component, properties))
        if published:
            self.logger.info(
                event=LogEvent.PROPERTY_REPORTED,
                message="Reported properties",
                metadata={'component': component, 'properties': sorted(properties)}
            )
        return published

    def publish_ack(self, component: str, property_name: str, outcome: AckOutcome) -> bool:
        """
        Publish the acknowledgement for a writable property request.

        Returns:
            True if published successfully, False otherwise
        """
        published = self.publish(
            self.format_message(component, {property_name: outcome.to_dict()})
        )
        if published:
            self.logger.info(
                event=LogEvent.PROPERTY_WRITE_ACKED,
                message=f"Acknowledged {property_name}",
                metadata={
                    'component': component,
                    'status': outcome.status.value,
                    'ac': outcome.ack_code,
                    'av': outcome.version,
                }
            )
        return published
