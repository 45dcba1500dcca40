"""
PnP CLI - Command-line interface for thermostat devices.

This package provides a CLI for sending commands and desired-property writes
to a device over MQTT without manually writing JSON.

Usage:
    pnp-cli reboot
    pnp-cli reboot --at 2026-01-01T03:00:00+00:00
    pnp-cli set-property thermostatComponent targetTemperature 25 --version 3
    pnp-cli patch config/commands/patch_target.yaml
    pnp-cli command deviceConfig reboot config/commands/reboot.yaml
"""

__version__ = "1.0.0"
