"""
CommandTransport - Outbound command collaborator

Bounded Context: Device-to-counterpart request/reply delivery

The dispatcher only speaks bytes to this interface; connection lifecycle,
authentication and request correlation belong to the implementation
(MQTTControlPlane for MQTT).
"""

from abc import ABC, abstractmethod
from typing import Callable

ReplyCallback = Callable[[int, bytes], bool]


class CommandTransport(ABC):
    """
    Sends command requests to the counterpart and routes replies back.

    Implementations call on_reply(status, payload) at most once per request,
    from any thread.
    """

    @abstractmethod
    def send_request(
        self,
        component: str,
        command_name: str,
        payload: bytes,
        on_reply: ReplyCallback
    ) -> str:
        """
        Send one request.

        Returns:
            Request identifier (used with discard())

        Raises:
            TransportError: If the request cannot be sent
        """
        raise NotImplementedError("Subclasses must implement send_request()")

    @abstractmethod
    def discard(self, request_id: str) -> None:
        """Forget a pending request; a later reply is dropped."""
        raise NotImplementedError("Subclasses must implement discard()")
