"""
pnp_control - Command plane for a PnP device

Bounded Context: Command registration, dispatch and transport
Responsibilities:
  - Handler table keyed by (component, command)
  - Single dispatch entry point for inbound commands
  - Outbound send_command with caller deadline
  - MQTT transport for both directions

Architecture:
  - CommandRegistry: Explicit registration, last-write-wins per key
  - CommandDispatcher: dispatch() + send_command()
  - CommandTransport: Outbound collaborator interface
  - MQTTControlPlane: paho-mqtt implementation of the transport

Design Philosophy:
  - Explicit registration (no callback wiring scattered across the app)
  - Deterministic testing without a live broker (fake transports)
  - Thread-safe (registry and pending-reply table use locks)
"""

from .registry import CommandRegistry, CommandEntry
from .transport import CommandTransport
from .dispatcher import CommandDispatcher, CounterpartError
from .plane import MQTTControlPlane

__all__ = [
    "CommandRegistry",
    "CommandEntry",
    "CommandTransport",
    "CommandDispatcher",
    "CounterpartError",
    "MQTTControlPlane",
]
