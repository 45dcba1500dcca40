"""
MQTT client wrapper for talking to a thermostat device.

Handles MQTT connection, publishing, response correlation and disconnection.
"""

import threading
import uuid
from typing import Optional, Tuple

import paho.mqtt.client as mqtt

from pnp_twin.topics import TopicLayout


class MQTTCommandClient:
    """
    MQTT client for sending commands and property writes to one device.

    Publishes with QoS 1. Commands wait for the device's response on the
    matching response topic.
    """

    def __init__(
        self,
        layout: TopicLayout,
        broker: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None
    ):
        """
        Initialize MQTT command client.

        Args:
            layout: Topic layout of the target device
            broker: MQTT broker host
            port: MQTT broker port
            username: Optional MQTT username
            password: Optional MQTT password
        """
        self.layout = layout
        self.broker = broker
        self.port = port

        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)

        if username and password:
            self.client.username_pw_set(username, password)

        self._response: Optional[Tuple[int, bytes]] = None
        self._response_event = threading.Event()
        self._request_id: Optional[str] = None

    def publish(self, topic: str, payload: bytes, qos: int = 1, timeout: float = 10.0) -> None:
        """
        Publish one message, wait for the broker to acknowledge it and disconnect.

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            TimeoutError: If the broker does not acknowledge within timeout
        """
        self._connect()
        self.client.loop_start()
        try:
            info = self.client.publish(topic, payload, qos=qos)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                raise ConnectionError(f"Publish failed (rc={info.rc})")
            info.wait_for_publish(timeout=timeout)
            if not info.is_published():
                raise TimeoutError(f"Publish to '{topic}' not acknowledged within {timeout}s")
        finally:
            self.client.loop_stop()
            self.client.disconnect()

    def send_command(
        self,
        component: str,
        command_name: str,
        payload: bytes,
        timeout: float = 10.0
    ) -> Tuple[int, bytes]:
        """
        Send a command request and wait for the device's response.

        Returns:
            (status, payload) from the response topic

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            TimeoutError: If no response arrives within timeout
        """
        self._request_id = uuid.uuid4().hex
        self._response = None
        self._response_event.clear()
        self.client.on_message = self._on_message

        self._connect()
        self.client.loop_start()
        try:
            result = self.client.subscribe(
                self.layout.command_response_filter(component, command_name, self._request_id),
                qos=1
            )
            if result[0] != mqtt.MQTT_ERR_SUCCESS:
                raise ConnectionError(f"Subscribe failed (rc={result[0]})")

            info = self.client.publish(
                self.layout.command_request(component, command_name, self._request_id),
                payload,
                qos=1
            )
            info.wait_for_publish(timeout=timeout)

            if not self._response_event.wait(timeout=timeout):
                raise TimeoutError(
                    f"No response to '{component}/{command_name}' within {timeout}s"
                )
            return self._response
        finally:
            self.client.loop_stop()
            self.client.disconnect()

    def _on_message(self, client, userdata, msg):
        parsed = self.layout.parse_command_response(msg.topic)
        if parsed is None or parsed.request_id != self._request_id:
            return
        self._response = (parsed.status, msg.payload)
        self._response_event.set()

    def _connect(self) -> None:
        try:
            self.client.connect(self.broker, self.port, keepalive=60)
        except (ConnectionRefusedError, OSError) as e:
            raise ConnectionError(
                f"Unable to connect to MQTT broker at {self.broker}:{self.port}. "
                "Is mosquitto running?"
            ) from e
