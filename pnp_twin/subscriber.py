"""
Desired Property Subscriber
===========================

Bounded Context: Cloud-to-Device Property Writes

This module receives writable-property proposals from the twin store and
hands them, one WritablePropertyRequest at a time, to a single callback.

Two incoming representations are supported:
- Desired document on properties/desired
      {"$version": 7, "thermostatComponent": {"__t": "c", "targetTemperature": 25}}
- Single property write on properties/desired/{component}/{property}
      {"value": 25, "version": 7}

Both are flattened into WritablePropertyRequest, so the device reconciles them
through the same code path.

Ordering:
    paho-mqtt delivers messages on one network thread, so requests reach the
    callback in delivery order.

Example:
    >>> subscriber = DesiredPropertySubscriber(
    ...     broker_host="localhost",
    ...     layout=TopicLayout("pnp", "thermostat-01"),
    ...     on_property_write=reconciler_callback,
    ...     logger=logger
    ... )
    >>> subscriber.connect()  # Non-blocking, callbacks run in background
    >>> # ...
    >>> subscriber.stop()
"""

import json
import threading
from typing import Callable, List, Optional
import paho.mqtt.client as mqtt

from .errors import ParseError
from .schemas import WritablePropertyRequest
from .logging import StructuredLogger, LogEvent
from .topics import TopicLayout


class DesiredPropertySubscriber:
    """
    MQTT subscriber for desired-property writes.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        layout: Topic layout for the device
        on_property_write: Callback invoked once per WritablePropertyRequest

    Thread Safety:
        Thread-safe via paho-mqtt's loop_start() and threading.Event
    """

    def __init__(
        self,
        broker_host: str,
        layout: TopicLayout,
        logger: StructuredLogger,
        on_property_write: Optional[Callable[[WritablePropertyRequest], None]] = None,
        broker_port: int = 1883,
        client_id: str = "pnp_desired_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        """
        Initialize desired property subscriber.

        Design Note:
            The callback runs in the MQTT thread. Keep it fast.
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.layout = layout
        self.client_id = client_id
        self.logger = logger
        self.qos = qos
        self.on_property_write = on_property_write

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._message_count = {'documents': 0, 'properties': 0, 'rejected': 0}

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        """Subscribe to both desired-property topics once connected."""
        if reason_code == 0:
            self._connected.set()

            client.subscribe(self.layout.desired, qos=self.qos)
            client.subscribe(self.layout.desired_property_filter, qos=self.qos)

            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker and subscribed to desired properties",
                metadata={
                    'broker': f"{self.broker_host}:{self.broker_port}",
                    'desired_topic': self.layout.desired,
                    'property_topic': self.layout.desired_property_filter
                }
            )
        else:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={reason_code})",
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'reason_code': str(reason_code)
            }
        )

    def _on_message(self, client, userdata, msg) -> None:
        """Route a desired-property message by topic."""
        try:
            if msg.topic == self.layout.desired:
                self._handle_desired_document(msg.payload)
                return

            parsed = self.layout.parse_desired_property(msg.topic)
            if parsed is not None:
                component, property_name = parsed
                self._handle_single_property(component, property_name, msg.payload)
            else:
                self.logger.warning(
                    event=LogEvent.DESERIALIZATION_ERROR,
                    message=f"Received message from unknown topic: {msg.topic}"
                )

        except Exception as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Error processing desired property message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )

    def _handle_desired_document(self, payload: bytes) -> List[WritablePropertyRequest]:
        """
        Handle a desired-properties document.

        Returns:
            The requests delivered to the callback (empty on parse failure)
        """
        try:
            document = json.loads(payload.decode('utf-8'))
            requests = WritablePropertyRequest.from_desired_document(document)
        except (UnicodeDecodeError, json.JSONDecodeError, ParseError) as e:
            self._count('rejected')
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Desired document failed schema validation",
                exc_info=e
            )
            return []

        self._count('documents')
        self.logger.info(
            event=LogEvent.PROPERTY_WRITE_RECEIVED,
            message="Received desired document",
            metadata={
                'version': requests[0].version if requests else None,
                'properties': [f"{r.component}/{r.name}" for r in requests]
            }
        )

        for request in requests:
            self._deliver(request)
        return requests

    def _handle_single_property(
        self,
        component: str,
        property_name: str,
        payload: bytes
    ) -> Optional[WritablePropertyRequest]:
        """
        Handle a single-property write.

        Returns:
            The request delivered to the callback (None on parse failure)
        """
        try:
            request = WritablePropertyRequest.from_single_property(
                component, property_name, payload
            )
        except ParseError as e:
            self._count('rejected')
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Property write failed schema validation",
                exc_info=e,
                metadata={'component': component, 'property': property_name}
            )
            return None

        self._count('properties')
        self.logger.info(
            event=LogEvent.PROPERTY_WRITE_RECEIVED,
            message=f"Received write for {property_name}",
            metadata={'component': component, 'version': request.version}
        )
        self._deliver(request)
        return request

    def _deliver(self, request: WritablePropertyRequest) -> None:
        if self.on_property_write is None:
            self.logger.warning(
                event=LogEvent.PROPERTY_WRITE_RECEIVED,
                message="No property write callback bound, request dropped",
                metadata={'component': request.component, 'property': request.name}
            )
            return
        try:
            self.on_property_write(request)
        except Exception as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Property write callback failed",
                exc_info=e,
                metadata={'component': request.component, 'property': request.name}
            )

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._message_count[key] += 1

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker and start the network loop.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                self._running = True
                return True
            else:
                self.logger.error(
                    event=LogEvent.MQTT_CONNECTION_ERROR,
                    message="Connection timeout",
                    metadata={'timeout': timeout}
                )
                return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

    def stop(self) -> None:
        """Stop network loop and disconnect."""
        self._running = False
        self.client.loop_stop()
        self.client.disconnect()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        """Get subscriber statistics."""
        with self._stats_lock:
            return {
                'documents_received': self._message_count['documents'],
                'properties_received': self._message_count['properties'],
                'messages_rejected': self._message_count['rejected'],
                'connected': self._connected.is_set(),
                'running': self._running,
                'broker': f"{self.broker_host}:{self.broker_port}"
            }
