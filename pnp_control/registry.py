"""
CommandRegistry - Handler table keyed by (component, command)

Bounded Context: Command registration and inbound dispatch
Responsibilities:
  - Register one handler per (component, command name)
  - Decode typed request payloads before invoking the handler
  - Wrap handler failures in CommandFailedError
  - Provide introspection (available_commands, get_help)

Registration Policy:
  Re-registering a key replaces the previous handler (last-write-wins).
  The replacement is logged so it is never silent in the logs.

Threading: Thread-safe (uses lock for write operations)
Pattern: Registry with explicit registration
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Tuple, Type

from pnp_twin.errors import CommandFailedError, UnknownCommandError
from pnp_twin.schemas import SerializablePayload

logger = logging.getLogger(__name__)

CommandKey = Tuple[str, str]


@dataclass(frozen=True)
class CommandEntry:
    """Registered handler plus its optional request payload type."""
    handler: Callable
    request_type: Optional[Type[SerializablePayload]] = None
    description: str = ""


class CommandRegistry:
    """
    Registry for device commands with explicit registration.

    Key Features:
      - Fail-fast: Unknown commands rejected before any handler runs
      - Introspection: Can query available commands at runtime
      - Self-Documenting: Each command has a description

    Example:
        registry = CommandRegistry()
        registry.register("deviceConfig", "reboot", handle_reboot,
                          request_type=RebootRequest, description="Reboot device")

        response = registry.dispatch("deviceConfig", "reboot", raw_bytes)
    """

    def __init__(self):
        self._commands: Dict[CommandKey, CommandEntry] = {}
        self._lock = threading.Lock()

    def register(
        self,
        component: str,
        command_name: str,
        handler: Callable,
        request_type: Optional[Type[SerializablePayload]] = None,
        description: str = ""
    ) -> None:
        """
        Register a command handler.

        Args:
            component: Component name ("" for the default component)
            command_name: Command name
            handler: Callable receiving the (decoded) request, returning the response
            request_type: Payload class used to decode bytes requests
            description: Human-readable description for help text

        Thread Safety: Uses lock for write operation
        """
        if not command_name:
            raise ValueError("command_name cannot be empty")

        key = (component, command_name)
        with self._lock:
            replaced = key in self._commands
            self._commands[key] = CommandEntry(handler, request_type, description)

        if replaced:
            logger.info(f"🔁 Handler for '{component}/{command_name}' replaced")

    def unregister(self, component: str, command_name: str) -> bool:
        """Remove a handler. Returns True if one was registered."""
        with self._lock:
            return self._commands.pop((component, command_name), None) is not None

    def dispatch(self, component: str, command_name: str, request_payload: Any = None) -> Any:
        """
        Invoke the handler registered for (component, command_name).

        bytes payloads are decoded with the registered request_type first.

        Returns:
            Whatever the handler returns

        Raises:
            UnknownCommandError: If no handler registered (no handler invoked)
            ParseError: If the request payload cannot be decoded
            CommandFailedError: If the handler raises (cause chained)

        Thread Safety: Runs in the caller's thread
        """
        entry = self._commands.get((component, command_name))
        if entry is None:
            raise UnknownCommandError(component, command_name, self._command_labels())

        request = request_payload
        if entry.request_type is not None and isinstance(request_payload, (bytes, bytearray)):
            request = entry.request_type.deserialize(bytes(request_payload))

        try:
            if request is not None:
                return entry.handler(request)
            return entry.handler()
        except Exception as e:
            raise CommandFailedError(component, command_name, e) from e

    def is_available(self, component: str, command_name: str) -> bool:
        """Check if command is registered."""
        return (component, command_name) in self._commands

    @property
    def available_commands(self) -> Set[CommandKey]:
        """Snapshot of registered (component, command) keys."""
        return set(self._commands.keys())

    def get_help(self) -> Dict[str, str]:
        """Dict of 'component/command' -> description."""
        return {
            f"{component}/{name}": entry.description
            for (component, name), entry in self._commands.items()
        }

    def count(self) -> int:
        """Number of registered commands."""
        return len(self._commands)

    def _command_labels(self):
        return [f"{c}/{n}" for c, n in self._commands.keys()]
