"""
MQTTControlPlane - MQTT command transport for one device

Bounded Context: MQTT connection management + command request/response
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Inbound commands: receive request, dispatch, publish response with status
  - Outbound commands: CommandTransport implementation (request-id correlation)
  - Status publishing (retained)

QoS Policy:
  - Commands and replies: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - MQTT client runs own background thread (loop_start/loop_stop)
  - Callbacks (_on_connect, _on_message) run in MQTT thread
  - Inbound command handlers run in MQTT thread (keep them fast!)
  - Outbound replies resolve the waiting caller from the MQTT thread
"""

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from pnp_twin.errors import (
    TransportError,
    TwinError,
    STATUS_INTERNAL_ERROR,
    STATUS_OK,
    status_for_error,
)
from pnp_twin.schemas import SerializablePayload
from pnp_twin.topics import TopicLayout

from .dispatcher import CommandDispatcher
from .transport import CommandTransport, ReplyCallback

logger = logging.getLogger(__name__)


def encode_response(result: Any) -> bytes:
    """Encode a handler result for the response topic."""
    if result is None:
        return b"{}"
    if isinstance(result, SerializablePayload):
        return result.serialize()
    if isinstance(result, (bytes, bytearray)):
        return bytes(result)
    return json.dumps(result).encode("utf-8")


class MQTTControlPlane(CommandTransport):
    """
    MQTT Control Plane for device commands.

    Features:
      - QoS 1 for reliable command delivery
      - Retained status messages (last status persisted)
      - Event-based connection synchronization
      - CommandDispatcher for inbound routing and outbound requests

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            layout=TopicLayout("pnp", "thermostat-01"),
            client_id="thermostat-01-control",
        )

        control_plane.dispatcher.register_handler(
            "deviceConfig", "reboot", on_reboot, request_type=RebootRequest
        )

        if control_plane.connect(timeout=5.0):
            print("Connected to MQTT broker")

        control_plane.disconnect()
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        layout: TopicLayout,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Initialize MQTT Control Plane.

        Args:
            broker_host: MQTT broker hostname
            broker_port: MQTT broker port (typically 1883)
            layout: Topic layout for the device
            client_id: MQTT client identifier
            username: Optional MQTT authentication username
            password: Optional MQTT authentication password
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.layout = layout
        self.client_id = client_id

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        # Outbound requests awaiting a reply: rid -> callback
        self._pending: Dict[str, ReplyCallback] = {}
        self._pending_lock = threading.Lock()

        self.dispatcher = CommandDispatcher(transport=self)

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise

        Thread Safety: Blocks until connected or timeout
        """
        try:
            logger.info(f"🔌 Connecting to MQTT broker: {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info("✅ MQTT Control Plane connected")
                return True
            else:
                logger.error(f"❌ Connection timeout after {timeout}s")
                return False

        except Exception as e:
            logger.error(f"❌ Error connecting to MQTT: {e}")
            return False

    def disconnect(self) -> None:
        """
        Disconnect from MQTT broker.

        Thread Safety: Safe to call multiple times
        """
        if self._running:
            logger.info("🔌 Disconnecting from MQTT broker")
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()
            with self._pending_lock:
                self._pending.clear()
            logger.info("✅ MQTT Control Plane disconnected")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def publish_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish status update to the retained status topic.

        Thread Safety: Safe to call from any thread
        """
        message = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message["details"] = details

        try:
            self.client.publish(
                self.layout.status,
                json.dumps(message),
                qos=1,
                retain=True,
            )
            logger.debug(f"📤 Status published: {status}")
        except Exception as e:
            logger.error(f"❌ Error publishing status: {e}")

    # ===== CommandTransport (outbound) =====

    def send_request(
        self,
        component: str,
        command_name: str,
        payload: bytes,
        on_reply: ReplyCallback
    ) -> str:
        """
        Publish an outbound command request.

        Raises:
            TransportError: If not connected or the publish is refused
        """
        if not self._connected.is_set():
            raise TransportError(
                f"Cannot send '{component}/{command_name}': not connected to broker"
            )

        request_id = uuid.uuid4().hex
        with self._pending_lock:
            self._pending[request_id] = on_reply

        topic = self.layout.outbound_request(component, command_name, request_id)
        try:
            result = self.client.publish(topic, payload, qos=1)
        except Exception as e:
            self.discard(request_id)
            raise TransportError(f"Error publishing '{component}/{command_name}': {e}") from e

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            self.discard(request_id)
            raise TransportError(
                f"Publish of '{component}/{command_name}' failed (rc={result.rc})"
            )

        logger.debug(f"📤 Outbound command published: {topic}")
        return request_id

    def discard(self, request_id: str) -> None:
        with self._pending_lock:
            self._pending.pop(request_id, None)

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """
        MQTT callback: connection established.

        Thread: Runs in MQTT client thread
        """
        if reason_code == 0:
            logger.info(f"✅ Connected to broker (rc={reason_code})")

            client.subscribe(self.layout.command_request_filter, qos=1)
            client.subscribe(self.layout.outbound_response_filter, qos=1)
            logger.info(f"📥 Subscribed to: {self.layout.command_request_filter} (QoS 1)")
            logger.info(f"📥 Subscribed to: {self.layout.outbound_response_filter} (QoS 1)")

            self.publish_status("connected")
            self._connected.set()
        else:
            logger.error(f"❌ Connection failed (rc={reason_code})")
            self._connected.clear()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        """
        MQTT callback: disconnection detected.

        Thread: Runs in MQTT client thread
        """
        if reason_code != 0:
            logger.warning(f"⚠️ Unexpected disconnection (rc={reason_code})")
        else:
            logger.info("✅ Disconnected from broker")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        """
        MQTT callback: command request or outbound reply received.

        Thread: Runs in MQTT client thread
        """
        try:
            request = self.layout.parse_command_request(msg.topic)
            if request is not None:
                self._handle_command(request.component, request.command_name,
                                     request.request_id, msg.payload)
                return

            reply = self.layout.parse_outbound_response(msg.topic)
            if reply is not None:
                self._handle_reply(reply.request_id, reply.status, msg.payload)
                return

            logger.warning(f"⚠️ Message on unexpected topic: {msg.topic}")

        except Exception as e:
            logger.error(f"❌ Error processing message: {e}", exc_info=True)

    def _handle_command(self, component: str, command_name: str, request_id: str, payload: bytes) -> int:
        """
        Dispatch an inbound command and publish its response.

        Returns:
            Status code sent back
        """
        logger.info(f"🎯 Executing command: {component or '$default'}/{command_name}")

        try:
            result = self.dispatcher.dispatch(component, command_name, payload)
            status = STATUS_OK
            body = encode_response(result)
            logger.debug(f"✅ Command '{command_name}' executed successfully")

        except TwinError as e:
            status = status_for_error(e)
            body = json.dumps({"error": str(e)}).encode("utf-8")
            logger.warning(f"⚠️ Command '{command_name}' failed ({status}): {e}")
            if status == 404:
                available = ', '.join(sorted(self.dispatcher.registry.get_help()))
                logger.info(f"💡 Available commands: {available}")

        except (TypeError, ValueError) as e:
            # Handler result could not be encoded
            status = STATUS_INTERNAL_ERROR
            body = json.dumps({"error": f"Unencodable response: {e}"}).encode("utf-8")
            logger.error(f"❌ Command '{command_name}' response not encodable: {e}")

        self.client.publish(
            self.layout.command_response(component, command_name, status, request_id),
            body,
            qos=1,
        )
        return status

    def _handle_reply(self, request_id: str, status: int, payload: bytes) -> bool:
        """
        Resolve a pending outbound request.

        Returns:
            True if a waiting caller received the reply
        """
        with self._pending_lock:
            callback = self._pending.pop(request_id, None)

        if callback is None:
            logger.debug(f"🗑️ Reply for unknown or expired request discarded (rid={request_id})")
            return False

        return bool(callback(status, payload))
