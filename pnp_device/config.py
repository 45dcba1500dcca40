"""
Configuration schema for the thermostat device service.

This module defines the configuration structure for one device: identity,
MQTT settings, thermostat property bounds and the identifiers the device
reports at startup.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from pnp_twin.schemas import Bounds, parse_firmware_version


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0  # Telemetry QoS (fire-and-forget)
    topic_prefix: str = "pnp"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if not self.topic_prefix:
            raise ValueError("topic_prefix cannot be empty")


@dataclass(frozen=True)
class ThermostatConfig:
    """
    Writable setpoint property of the thermostat component.

    Bounds are passed to the reconciler at construction; nothing reads them
    from module state.
    """

    component: str = "thermostatComponent"
    property_name: str = "targetTemperature"
    telemetry_name: str = "currentTemp"
    bounds: Bounds = field(default_factory=lambda: Bounds(-15.0, 33.5))
    initial_target: float = 22.0
    tolerance: float = 1e-6

    def __post_init__(self):
        """Validate thermostat configuration."""
        if not self.component:
            raise ValueError("thermostat component cannot be empty")

        if not self.property_name:
            raise ValueError("thermostat property_name cannot be empty")

        if not self.bounds.contains(self.initial_target):
            raise ValueError(
                f"initial_target {self.initial_target} outside bounds "
                f"[{self.bounds.min_value}, {self.bounds.max_value}]"
            )

        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")


@dataclass(frozen=True)
class DeviceInfoConfig:
    """Identifiers reported on the device configuration component."""

    component: str = "deviceConfig"
    serial_number: str = "JAMESD1234"
    hardware_version: str = "1.2.4"
    number_of_sensors: int = 1
    firmware_version: str = "1.0.0"

    def __post_init__(self):
        """Validate device info."""
        if self.number_of_sensors < 0:
            raise ValueError(
                f"number_of_sensors must be >= 0, got {self.number_of_sensors}"
            )
        parse_firmware_version(self.firmware_version)


@dataclass(frozen=True)
class DeviceConfig:
    """
    Main configuration for ThermostatDeviceService.

    This configuration is loaded from YAML and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    # Device identification
    device_id: str
    model_id: str = "dtmi:pnp:thermostat;1"

    # Timing
    telemetry_interval_s: float = 5.0
    command_timeout_s: float = 10.0

    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)
    thermostat: ThermostatConfig = field(default_factory=ThermostatConfig)
    device_info: DeviceInfoConfig = field(default_factory=DeviceInfoConfig)

    def __post_init__(self):
        """Validate device configuration."""
        if not self.device_id:
            raise ValueError("device_id cannot be empty")

        if self.telemetry_interval_s <= 0:
            raise ValueError(
                f"telemetry_interval_s must be > 0, got {self.telemetry_interval_s}"
            )

        if self.command_timeout_s <= 0:
            raise ValueError(
                f"command_timeout_s must be > 0, got {self.command_timeout_s}"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceConfig":
        """Build from parsed YAML/JSON data."""
        mqtt_config = MQTTConfig(**data.get("mqtt_config", {}))

        thermostat_data = dict(data.get("thermostat", {}))
        if "bounds" in thermostat_data:
            thermostat_data["bounds"] = Bounds.from_list(thermostat_data["bounds"])
        thermostat = ThermostatConfig(**thermostat_data)

        device_info = DeviceInfoConfig(**data.get("device_info", {}))

        return cls(
            device_id=data["device_id"],
            model_id=data.get("model_id", "dtmi:pnp:thermostat;1"),
            telemetry_interval_s=float(data.get("telemetry_interval_s", 5.0)),
            command_timeout_s=float(data.get("command_timeout_s", 10.0)),
            mqtt_config=mqtt_config,
            thermostat=thermostat,
            device_info=device_info,
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "DeviceConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            device_id: "thermostat-01"
            model_id: "dtmi:pnp:thermostat;1"
            telemetry_interval_s: 5
            command_timeout_s: 10

            mqtt_config:
              broker: "localhost"
              port: 1883
              topic_prefix: "pnp"

            thermostat:
              component: "thermostatComponent"
              property_name: "targetTemperature"
              bounds: [-15.0, 33.5]
              initial_target: 22.0

            device_info:
              serial_number: "JAMESD1234"
              hardware_version: "1.2.4"
              number_of_sensors: 1
              firmware_version: "1.0.0"
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Config file {yaml_path} must contain a mapping")

        return cls.from_dict(data)
