"""
pnp_device - Thermostat device application

This package provides the device side of a Plug-and-Play thermostat: the
writable-property reconciler, the actuation boundary, configuration and the
service that wires them to the MQTT adapters.

Architecture:
- ThermostatDeviceService: Main orchestrator
- PropertyReconciler: Writable-property decisions (ACCEPTED/UNCHANGED/REJECTED)
- ActuationSink: Hardware boundary (SimulatedThermostat for demos and tests)
- DeviceConfig: Configuration management

Threading Model:
- Control Plane Thread (paho-mqtt internal, commands + outbound replies)
- Subscriber Thread (paho-mqtt internal, desired-property writes)
- Telemetry Thread (our thread)
"""

from pnp_device.config import DeviceConfig, MQTTConfig, ThermostatConfig, DeviceInfoConfig
from pnp_device.reconciler import PropertyReconciler, reconcile, parse_numeric, check_bounds
from pnp_device.actuation import ActuationSink, SimulatedThermostat
from pnp_device.service import ThermostatDeviceService

__all__ = [
    "DeviceConfig",
    "MQTTConfig",
    "ThermostatConfig",
    "DeviceInfoConfig",
    "PropertyReconciler",
    "reconcile",
    "parse_numeric",
    "check_bounds",
    "ActuationSink",
    "SimulatedThermostat",
    "ThermostatDeviceService",
]
