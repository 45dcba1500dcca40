"""
CommandDispatcher - Inbound dispatch and outbound request/reply

Bounded Context: Command routing for one device
Responsibilities:
  - register_handler / dispatch (delegated to CommandRegistry)
  - send_command: serialize, send via CommandTransport, await typed reply

Outbound Policy:
  - Single attempt per call, no implicit retries
  - timeout <= 0 fails with CommandTimeoutError before the transport is touched
  - A reply arriving after the deadline is discarded

Threading:
  - dispatch() runs handlers in the caller's thread (MQTT thread for inbound)
  - send_command() blocks the caller on a threading.Event until reply or deadline
"""

import logging
import threading
from typing import Any, Callable, Optional, Tuple, Type, Union

from pnp_twin.errors import (
    CommandFailedError,
    CommandTimeoutError,
    TransportError,
    STATUS_OK,
)
from pnp_twin.schemas import SerializablePayload

from .registry import CommandRegistry
from .transport import CommandTransport

logger = logging.getLogger(__name__)


class CounterpartError(Exception):
    """Non-success status returned by the counterpart for an outbound command"""

    def __init__(self, status: int, payload: bytes):
        self.status = status
        self.payload = payload
        super().__init__(f"Counterpart returned status {status}: {payload[:200]!r}")


class _PendingReply:
    """One outstanding outbound request. Resolved at most once."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._expired = False
        self.result: Optional[Tuple[int, bytes]] = None

    def resolve(self, status: int, payload: bytes) -> bool:
        with self._lock:
            if self._expired or self.result is not None:
                return False
            self.result = (status, payload)
        self._event.set()
        return True

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout=timeout)

    def expire(self) -> bool:
        """Mark as timed out. Returns False if a reply won the race."""
        with self._lock:
            if self.result is not None:
                return False
            self._expired = True
            return True


class CommandDispatcher:
    """
    Single entry point for device commands.

    Example:
        dispatcher = CommandDispatcher(transport=control_plane)
        dispatcher.register_handler("deviceConfig", "reboot", on_reboot,
                                    request_type=RebootRequest)

        # Inbound (called by the transport)
        response = dispatcher.dispatch("deviceConfig", "reboot", raw_bytes)

        # Outbound
        reply = dispatcher.send_command(
            "deviceConfig", "updateFirmware",
            FirmwareUpdateRequest(firmware_version="1.0.0"),
            response_type=FirmwareUpdateResponse,
            timeout=10.0,
        )
    """

    def __init__(
        self,
        transport: Optional[CommandTransport] = None,
        registry: Optional[CommandRegistry] = None
    ):
        self.transport = transport
        self.registry = registry or CommandRegistry()

    # ===== Inbound =====

    def register_handler(
        self,
        component: str,
        command_name: str,
        handler: Callable,
        request_type: Optional[Type[SerializablePayload]] = None,
        description: str = ""
    ) -> None:
        """Register (or replace) the handler for (component, command_name)."""
        self.registry.register(component, command_name, handler, request_type, description)

    def dispatch(self, component: str, command_name: str, request_payload: Any = None) -> Any:
        """
        Route an inbound command to its handler.

        Raises:
            UnknownCommandError, ParseError, CommandFailedError
        """
        return self.registry.dispatch(component, command_name, request_payload)

    # ===== Outbound =====

    def send_command(
        self,
        component: str,
        command_name: str,
        request: Union[SerializablePayload, bytes],
        response_type: Optional[Type[SerializablePayload]] = None,
        timeout: float = 10.0
    ) -> Any:
        """
        Send a command to the counterpart and wait for its reply.

        Args:
            component: Target component
            command_name: Command name
            request: Payload (serialized here) or raw bytes
            response_type: Payload class used to decode the reply (None = raw bytes)
            timeout: Deadline in seconds

        Returns:
            Decoded reply (or raw bytes)

        Raises:
            CommandTimeoutError: timeout <= 0, or no reply before the deadline
            TransportError: No transport, or the transport failed to send
            CommandFailedError: Counterpart replied with a non-success status
            ParseError: Reply could not be decoded with response_type
        """
        if timeout is None or timeout <= 0:
            raise CommandTimeoutError(component, command_name, timeout)

        if self.transport is None:
            raise TransportError("No command transport configured")

        payload = request.serialize() if isinstance(request, SerializablePayload) else bytes(request)

        pending = _PendingReply()
        try:
            request_id = self.transport.send_request(
                component, command_name, payload, pending.resolve
            )
        except TransportError:
            raise
        except (ConnectionError, OSError) as e:
            raise TransportError(f"Failed to send '{component}/{command_name}': {e}") from e

        logger.debug(f"📤 Sent '{component}/{command_name}' (rid={request_id})")

        if not pending.wait(timeout) and pending.expire():
            self.transport.discard(request_id)
            logger.warning(
                f"⏱️ '{component}/{command_name}' timed out after {timeout}s (rid={request_id})"
            )
            raise CommandTimeoutError(component, command_name, timeout)

        status, data = pending.result
        if status != STATUS_OK:
            raise CommandFailedError(component, command_name, CounterpartError(status, data))

        if response_type is None:
            return data
        return response_type.deserialize(data)
