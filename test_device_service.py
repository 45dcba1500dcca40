"""
Test Thermostat Device Service (No Broker)
==========================================

Wires ThermostatDeviceService to in-memory control plane, publishers,
subscriber and a recording actuation sink.

Usage:
    pytest test_device_service.py -v
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from pnp_control import CommandDispatcher, CommandTransport
from pnp_device import DeviceConfig, SimulatedThermostat, ThermostatDeviceService
from pnp_device.config import DeviceInfoConfig
from pnp_twin.errors import UnknownCommandError
from pnp_twin.schemas import (
    AckStatus,
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    RebootRequest,
    WritablePropertyRequest,
)


NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeControlPlane(CommandTransport):
    """Control plane double: real dispatcher, scripted outbound replies."""

    def __init__(self, reply=None, connect_ok=True):
        self.reply = reply
        self.connect_ok = connect_ok
        self.sent = []
        self.statuses = []
        self.status_details = []
        self.disconnected = False
        self.dispatcher = CommandDispatcher(transport=self)

    def connect(self, timeout=5.0):
        return self.connect_ok

    def disconnect(self):
        self.disconnected = True

    def publish_status(self, status, details=None):
        self.statuses.append(status)
        self.status_details.append(details)

    def send_request(self, component, command_name, payload, on_reply):
        self.sent.append((component, command_name, payload))
        if self.reply is not None:
            on_reply(*self.reply)
        return f"rid-{len(self.sent)}"

    def discard(self, request_id):
        pass


class FakePublisher:
    """Stands in for both TelemetryPublisher and ReportedPropertyPublisher."""

    def __init__(self):
        self.properties = []
        self.acks = []
        self.telemetry = []
        self.connected = False

    def connect(self, timeout=10.0):
        self.connected = True
        return True

    def disconnect(self):
        self.connected = False

    def publish_properties(self, component, properties):
        self.properties.append((component, dict(properties)))
        return True

    def publish_ack(self, component, property_name, outcome):
        self.acks.append((component, property_name, outcome))
        return True

    def publish_telemetry(self, component, values):
        self.telemetry.append((component, dict(values)))
        return True


class FakeSubscriber:
    def __init__(self, connect_ok=True):
        self.on_property_write = None
        self.running = False
        self.connect_ok = connect_ok

    def connect(self, timeout=10.0):
        self.running = self.connect_ok
        return self.connect_ok

    def stop(self):
        self.running = False


class BrokenSensor(SimulatedThermostat):
    def read_temperature(self):
        raise OSError("sensor unplugged")


def make_service(reply=None, sink=None, connect_ok=True, **config_overrides):
    config = DeviceConfig(
        device_id="thermostat-01",
        telemetry_interval_s=config_overrides.pop("telemetry_interval_s", 0.01),
        command_timeout_s=config_overrides.pop("command_timeout_s", 0.1),
        **config_overrides,
    )
    service = ThermostatDeviceService(
        config=config,
        control_plane=FakeControlPlane(reply=reply, connect_ok=connect_ok),
        telemetry_publisher=FakePublisher(),
        reported_publisher=FakePublisher(),
        subscriber=FakeSubscriber(),
        sink=sink or SimulatedThermostat(),
        now=lambda tz=None: NOW if tz is not None else NOW.replace(tzinfo=None),
    )
    service.setup()
    return service


def no_update_reply():
    return (200, FirmwareUpdateResponse(False, "1.0.0").serialize())


# ─────────────────────────────────────────────────────────────────────────────
# Setup and property writes
# ─────────────────────────────────────────────────────────────────────────────

def test_setup_binds_handlers():
    service = make_service()

    assert service.subscriber.on_property_write == service.handle_property_write
    assert service.dispatcher.registry.is_available("deviceConfig", "reboot")
    assert service.reconciler.is_registered("thermostatComponent", "targetTemperature")


def test_property_write_out_of_range_is_rejected():
    print("\n" + "=" * 60)
    print("TEST: targetTemperature=40 → REJECTED(22.0)")
    print("=" * 60)

    sink = SimulatedThermostat()
    service = make_service(sink=sink)

    outcome = service.handle_property_write(
        WritablePropertyRequest("thermostatComponent", "targetTemperature", 40.0, 2)
    )

    assert outcome.status == AckStatus.REJECTED
    assert outcome.value == 22.0
    assert sink.target == 22.0
    component, name, acked = service.reported_publisher.acks[-1]
    assert (component, name, acked.ack_code, acked.version) == (
        "thermostatComponent", "targetTemperature", 400, 2
    )
    print(f"✓ {acked.to_dict()}")


def test_property_write_in_range_is_applied():
    sink = SimulatedThermostat()
    service = make_service(sink=sink)

    outcome = service.handle_property_write(
        WritablePropertyRequest("thermostatComponent", "targetTemperature", 25.0, 3)
    )

    assert outcome.status == AckStatus.ACCEPTED
    assert sink.target == 25.0
    assert service.reported_publisher.acks[-1][2].to_dict() == {
        "value": 25.0, "ac": 202, "ad": "Setting targetTemperature to 25.0", "av": 3
    }


# ─────────────────────────────────────────────────────────────────────────────
# Reboot command
# ─────────────────────────────────────────────────────────────────────────────

def test_reboot_now_and_scheduled():
    service = make_service()

    now = service.handle_reboot(RebootRequest(when_to_reboot=NOW - timedelta(minutes=1)))
    assert now.reboot_status == "Device is rebooting now."

    later = NOW + timedelta(hours=3)
    scheduled = service.handle_reboot(RebootRequest(when_to_reboot=later))
    assert scheduled.reboot_status == f"Device is scheduled to reboot {later.isoformat()}."


def test_reboot_via_dispatcher_with_naive_time():
    service = make_service()
    payload = b'{"when_to_reboot": "2025-12-31T23:00:00"}'

    response = service.dispatcher.dispatch("deviceConfig", "reboot", payload)

    assert response.reboot_status == "Device is rebooting now."


def test_reboot_on_wrong_component_is_unknown():
    service = make_service()
    with pytest.raises(UnknownCommandError):
        service.dispatcher.dispatch("thermostatComponent", "reboot", b"{}")


# ─────────────────────────────────────────────────────────────────────────────
# Firmware check
# ─────────────────────────────────────────────────────────────────────────────

def test_firmware_update_applied_and_reported():
    print("\n" + "=" * 60)
    print("TEST: Firmware update")
    print("=" * 60)

    sink = SimulatedThermostat()
    offer = FirmwareUpdateResponse(True, "1.1.0", b"new image")
    service = make_service(reply=(200, offer.serialize()), sink=sink)

    response = service.check_firmware()

    assert response == offer
    assert sink.firmware_images == [b"new image"]
    assert service.firmware_version == "1.1.0"
    assert ("deviceConfig", {"firm": "1.1.0"}) in service.reported_publisher.properties

    component, command_name, payload = service.control_plane.sent[0]
    assert (component, command_name) == ("deviceConfig", "updateFirmware")
    assert FirmwareUpdateRequest.deserialize(payload).firmware_version == "1.0.0"
    print("✓ Firmware 1.0.0 → 1.1.0")


def test_firmware_up_to_date():
    sink = SimulatedThermostat()
    service = make_service(reply=no_update_reply(), sink=sink)

    response = service.check_firmware()

    assert response.should_update is False
    assert sink.firmware_images == []
    assert service.firmware_version == "1.0.0"


@pytest.mark.parametrize("reply", [None, (500, b'{"error": "server"}'), (200, b"garbage")])
def test_firmware_check_failures_are_not_fatal(reply):
    service = make_service(reply=reply)

    assert service.check_firmware() is None
    assert service.firmware_version == "1.0.0"


def test_firmware_apply_failure_keeps_version():
    class FailingFlash(SimulatedThermostat):
        def apply_firmware(self, firmware):
            raise IOError("flash write failed")

    offer = FirmwareUpdateResponse(True, "1.1.0", b"img")
    service = make_service(reply=(200, offer.serialize()), sink=FailingFlash())

    service.check_firmware()

    assert service.firmware_version == "1.0.0"


# ─────────────────────────────────────────────────────────────────────────────
# Telemetry and lifecycle
# ─────────────────────────────────────────────────────────────────────────────

def test_send_telemetry_swallows_sensor_errors():
    service = make_service(sink=BrokenSensor())
    assert service.send_telemetry() is False


def test_start_reports_and_streams_telemetry():
    print("\n" + "=" * 60)
    print("TEST: Service lifecycle")
    print("=" * 60)

    service = make_service(
        reply=no_update_reply(),
        device_info=DeviceInfoConfig(serial_number="SN-42"),
    )

    service.start()
    try:
        deadline = time.monotonic() + 2.0
        while len(service.telemetry_publisher.telemetry) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        service.stop()

    assert service.wait(timeout=0.1)

    reported = service.reported_publisher.properties
    assert reported[0] == ("deviceConfig", {
        "serialNumber": "SN-42",
        "hardwareVersion": "1.2.4",
        "numberOfSensors": 1,
        "firm": "1.0.0",
    })
    assert reported[1][0] == "thermostatComponent"
    assert "currentTemp" in reported[1][1]

    initial_ack = service.reported_publisher.acks[0][2]
    assert initial_ack.status == AckStatus.UNCHANGED
    assert initial_ack.value == 22.0

    assert len(service.telemetry_publisher.telemetry) >= 3
    assert service.telemetry_publisher.telemetry[0][0] == "thermostatComponent"
    assert service.control_plane.statuses == ["running", "stopped"]
    assert service.control_plane.status_details[0] == {
        "model_id": "dtmi:pnp:thermostat;1",
        "firmware_version": "1.0.0",
    }
    assert service.control_plane.disconnected
    assert not service.subscriber.running
    print(f"✓ {len(service.telemetry_publisher.telemetry)} telemetry messages")


def test_start_fails_without_broker():
    service = make_service(connect_ok=False)

    with pytest.raises(RuntimeError):
        service.start()
    assert service.control_plane.sent == []


def test_start_warns_when_subscriber_not_connected(caplog):
    service = make_service(reply=no_update_reply())
    service.subscriber = FakeSubscriber(connect_ok=False)

    with caplog.at_level(logging.WARNING, logger="pnp_device.service"):
        service.start()
        service.stop()

    assert any("subscriber not connected" in r.getMessage() for r in caplog.records)
    assert service.control_plane.statuses == ["running", "stopped"]


def test_model_id_is_announced_from_config():
    service = make_service(reply=no_update_reply(), model_id="dtmi:lab:thermostat;2")

    service.start()
    service.stop()

    assert service.control_plane.status_details[0]["model_id"] == "dtmi:lab:thermostat;2"


def test_telemetry_loop_survives_publisher_failures():
    print("\n" + "=" * 60)
    print("TEST: Telemetry loop keeps ticking while broker is down")
    print("=" * 60)

    class DownPublisher(FakePublisher):
        def __init__(self):
            super().__init__()
            self.attempts = 0

        def publish_telemetry(self, component, values):
            self.attempts += 1
            raise ConnectionError("broker down")

    service = make_service()
    service.telemetry_publisher = DownPublisher()

    thread = threading.Thread(target=service._telemetry_loop, daemon=True)
    thread.start()
    try:
        deadline = time.monotonic() + 2.0
        while service.telemetry_publisher.attempts < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert thread.is_alive()
    finally:
        service.stop_event.set()
        thread.join(timeout=1.0)

    assert service.telemetry_publisher.attempts >= 3
    assert not thread.is_alive()
    print(f"✓ {service.telemetry_publisher.attempts} attempts, loop exited on stop")
