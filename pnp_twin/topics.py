"""
Topic Layout
============

Bounded Context: MQTT topic naming for one device

All topics live under "{prefix}/{device_id}":

    commands/{component}/{command}/req/{rid}            inbound command
    commands/{component}/{command}/res/{status}/{rid}   inbound response
    outbound/{component}/{command}/req/{rid}            outbound command
    outbound/{component}/{command}/res/{status}/{rid}   outbound reply
    properties/desired                                  desired document
    properties/desired/{component}/{property}           single property write
    properties/reported                                 reported patch
    telemetry/{component}                               telemetry
    status                                              retained status

The default (root) component is written as "$default" in topic segments.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

DEFAULT_COMPONENT_SEGMENT = "$default"


def component_segment(component: str) -> str:
    return component or DEFAULT_COMPONENT_SEGMENT


def component_from_segment(segment: str) -> str:
    return "" if segment == DEFAULT_COMPONENT_SEGMENT else segment


class CommandTopic(NamedTuple):
    """Parsed command request/response topic."""
    component: str
    command_name: str
    request_id: str
    status: Optional[int] = None


@dataclass(frozen=True)
class TopicLayout:
    """
    Topic builder/parser for one device.

    Example:
        >>> layout = TopicLayout(prefix="pnp", device_id="thermostat-01")
        >>> layout.telemetry("thermostatComponent")
        'pnp/thermostat-01/telemetry/thermostatComponent'
    """
    prefix: str
    device_id: str

    def __post_init__(self):
        """Validate topic segments."""
        for name, value in (("prefix", self.prefix), ("device_id", self.device_id)):
            if not value:
                raise ValueError(f"{name} cannot be empty")
            if any(c in value for c in "+#"):
                raise ValueError(f"{name} cannot contain MQTT wildcards: {value}")

    @property
    def root(self) -> str:
        return f"{self.prefix}/{self.device_id}"

    # ----- commands (inbound) -----

    def command_request(self, component: str, command_name: str, request_id: str) -> str:
        return f"{self.root}/commands/{component_segment(component)}/{command_name}/req/{request_id}"

    def command_response(self, component: str, command_name: str, status: int, request_id: str) -> str:
        return f"{self.root}/commands/{component_segment(component)}/{command_name}/res/{status}/{request_id}"

    @property
    def command_request_filter(self) -> str:
        return f"{self.root}/commands/+/+/req/+"

    def command_response_filter(self, component: str, command_name: str, request_id: str) -> str:
        return f"{self.root}/commands/{component_segment(component)}/{command_name}/res/+/{request_id}"

    # ----- commands (outbound) -----

    def outbound_request(self, component: str, command_name: str, request_id: str) -> str:
        return f"{self.root}/outbound/{component_segment(component)}/{command_name}/req/{request_id}"

    def outbound_response(self, component: str, command_name: str, status: int, request_id: str) -> str:
        return f"{self.root}/outbound/{component_segment(component)}/{command_name}/res/{status}/{request_id}"

    @property
    def outbound_response_filter(self) -> str:
        return f"{self.root}/outbound/+/+/res/+/+"

    # ----- properties -----

    @property
    def desired(self) -> str:
        return f"{self.root}/properties/desired"

    def desired_property(self, component: str, property_name: str) -> str:
        return f"{self.root}/properties/desired/{component_segment(component)}/{property_name}"

    @property
    def desired_property_filter(self) -> str:
        return f"{self.root}/properties/desired/+/+"

    @property
    def reported(self) -> str:
        return f"{self.root}/properties/reported"

    # ----- telemetry / status -----

    def telemetry(self, component: str) -> str:
        return f"{self.root}/telemetry/{component_segment(component)}"

    @property
    def status(self) -> str:
        return f"{self.root}/status"

    # ----- parsing -----

    def parse_command_request(self, topic: str) -> Optional[CommandTopic]:
        """Parse commands/{component}/{command}/req/{rid}; None if no match."""
        parts = self._relative_parts(topic)
        if parts is None or len(parts) != 5 or parts[0] != "commands" or parts[3] != "req":
            return None
        return CommandTopic(component_from_segment(parts[1]), parts[2], parts[4])

    def parse_command_response(self, topic: str) -> Optional[CommandTopic]:
        """Parse commands/{component}/{command}/res/{status}/{rid}; None if no match."""
        return self._parse_response(topic, "commands")

    def parse_outbound_response(self, topic: str) -> Optional[CommandTopic]:
        """Parse outbound/{component}/{command}/res/{status}/{rid}; None if no match."""
        return self._parse_response(topic, "outbound")

    def _parse_response(self, topic: str, direction: str) -> Optional[CommandTopic]:
        parts = self._relative_parts(topic)
        if parts is None or len(parts) != 6 or parts[0] != direction or parts[3] != "res":
            return None
        try:
            status = int(parts[4])
        except ValueError:
            return None
        return CommandTopic(component_from_segment(parts[1]), parts[2], parts[5], status)

    def parse_desired_property(self, topic: str) -> Optional[tuple]:
        """Parse properties/desired/{component}/{property}; None if no match."""
        parts = self._relative_parts(topic)
        if parts is None or len(parts) != 4 or parts[:2] != ["properties", "desired"]:
            return None
        return component_from_segment(parts[2]), parts[3]

    def _relative_parts(self, topic: str) -> Optional[list]:
        prefix = self.root + "/"
        if not topic.startswith(prefix):
            return None
        return topic[len(prefix):].split("/")
