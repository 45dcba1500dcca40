"""
Test Device Configuration
=========================

Usage:
    pytest test_config.py -v
"""

from pathlib import Path

import pytest

from pnp_device.config import DeviceConfig, MQTTConfig, ThermostatConfig, DeviceInfoConfig
from pnp_twin.schemas import Bounds


def test_sample_config_loads():
    config = DeviceConfig.from_yaml(Path(__file__).parent / "config" / "device_config.yaml")

    assert config.device_id == "thermostat-01"
    assert config.thermostat.bounds == Bounds(-15.0, 33.5)
    assert config.thermostat.initial_target == 22.0
    assert config.mqtt_config.topic_prefix == "pnp"
    assert config.device_info.serial_number == "JAMESD1234"


def test_from_yaml_applies_defaults(tmp_path):
    path = tmp_path / "device.yaml"
    path.write_text(
        "device_id: lab-7\n"
        "thermostat:\n"
        "  bounds: [10, 30]\n"
        "  initial_target: 20\n"
    )

    config = DeviceConfig.from_yaml(path)

    assert config.device_id == "lab-7"
    assert config.telemetry_interval_s == 5.0
    assert config.command_timeout_s == 10.0
    assert config.thermostat.bounds == Bounds(10.0, 30.0)
    assert config.mqtt_config == MQTTConfig()
    assert config.device_info == DeviceInfoConfig()


def test_from_yaml_rejects_non_mapping(tmp_path):
    path = tmp_path / "device.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        DeviceConfig.from_yaml(path)


@pytest.mark.parametrize("kwargs", [
    {"device_id": ""},
    {"device_id": "d", "telemetry_interval_s": 0},
    {"device_id": "d", "command_timeout_s": -1},
])
def test_device_config_validation(kwargs):
    with pytest.raises(ValueError):
        DeviceConfig(**kwargs)


def test_nested_config_validation():
    with pytest.raises(ValueError):
        MQTTConfig(port=0)
    with pytest.raises(ValueError):
        MQTTConfig(qos=3)
    with pytest.raises(ValueError):
        ThermostatConfig(bounds=Bounds(-15.0, 33.5), initial_target=40.0)
    with pytest.raises(ValueError):
        DeviceInfoConfig(firmware_version="latest")
    with pytest.raises(ValueError):
        DeviceConfig.from_dict({"device_id": "d", "thermostat": {"bounds": [30, 10]}})
