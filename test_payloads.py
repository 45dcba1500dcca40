"""
Test Payload Contract
=====================

Typed payloads, their wire shapes, the payload registry and the desired
property representations.

Usage:
    pytest test_payloads.py -v
"""

import json
import struct
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from pnp_twin.errors import ParseError
from pnp_twin.schemas import (
    AckOutcome,
    AckStatus,
    Bounds,
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    FirmwareUpdateResponseBinary,
    JsonPayload,
    PayloadRegistry,
    RebootRequest,
    RebootResponse,
    Timestamp,
    WritablePropertyRequest,
    create_default_registry,
    parse_firmware_version,
)


def test_ack_outcome_wire_shape():
    print("\n" + "=" * 60)
    print("TEST: Ack wire shape")
    print("=" * 60)

    outcome = AckOutcome.rejected(22.0, "targetTemperature 40.0 is out of range", version=3)
    wire = json.loads(outcome.serialize())

    assert wire == {
        "value": 22.0,
        "ac": 400,
        "ad": "targetTemperature 40.0 is out of range",
        "av": 3,
    }
    assert AckOutcome.deserialize(outcome.serialize()) == outcome
    assert AckOutcome.accepted(25.0, "ok").ack_code == 202
    assert AckOutcome.unchanged(25.0, "ok").ack_code == 200
    print(f"✓ {wire}")


def test_ack_outcome_unknown_code_is_parse_error():
    with pytest.raises(ParseError):
        AckOutcome.deserialize(b'{"value": 1, "ac": 418, "ad": "", "av": 1}')


def test_firmware_response_encodes_bytes_as_base64():
    response = FirmwareUpdateResponse(True, "1.1.0", b"\xde\xad\xbe\xef")
    wire = json.loads(response.serialize())

    assert wire["firmware_bytes"] == "3q2+7w=="
    assert FirmwareUpdateResponse.deserialize(response.serialize()) == response


@pytest.mark.parametrize("raw", [
    b'{"should_update": "yes", "firmware_version": "1.1.0", "firmware_bytes": ""}',
    b'{"should_update": false, "firmware_version": "one", "firmware_bytes": ""}',
    b'{"should_update": true, "firmware_version": "1.1.0", "firmware_bytes": ""}',
    b'{"should_update": false, "firmware_version": "1.1.0", "firmware_bytes": "***"}',
    b'{"firmware_version": "1.1.0"}',
    b'[1, 2, 3]',
    b'\xff\xfe',
])
def test_firmware_response_malformed_input(raw):
    with pytest.raises(ParseError):
        FirmwareUpdateResponse.deserialize(raw)


def test_firmware_binary_layout():
    payload = FirmwareUpdateResponseBinary(True, "2.0.1", b"IMG")
    data = payload.serialize()

    assert data[:2] == b"\x01\x01"
    assert struct.unpack_from(">I", data, 2) == (5,)
    assert FirmwareUpdateResponseBinary.deserialize(data) == payload
    assert payload.to_response() == FirmwareUpdateResponse(True, "2.0.1", b"IMG")


@pytest.mark.parametrize("data", [
    b"",
    b"\x02\x00",
    b"\x01\x07" + struct.pack(">I", 0) + struct.pack(">I", 0),
    b"\x01\x00" + struct.pack(">I", 99) + b"1.0",
    FirmwareUpdateResponseBinary(False, "1.0.0").serialize() + b"\x00",
])
def test_firmware_binary_malformed_input(data):
    with pytest.raises(ParseError):
        FirmwareUpdateResponseBinary.deserialize(data)


def test_reboot_request_keeps_timezone():
    when = datetime(2026, 1, 1, 3, 0, tzinfo=timezone.utc)
    data = RebootRequest(when_to_reboot=when).serialize()

    assert json.loads(data) == {"when_to_reboot": "2026-01-01T03:00:00+00:00"}
    assert RebootRequest.deserialize(data).when_to_reboot == when

    with pytest.raises(ParseError):
        RebootRequest.deserialize(b'{"when_to_reboot": "tomorrow"}')


def test_firmware_version_parsing():
    assert parse_firmware_version("1.2.4") == (1, 2, 4)
    assert parse_firmware_version("1.10.0") > parse_firmware_version("1.9.9")
    with pytest.raises(ValueError):
        parse_firmware_version("1.x")
    with pytest.raises(ValueError):
        FirmwareUpdateRequest(firmware_version="")


def test_timestamp_is_utc():
    ts = Timestamp.now()
    assert ts.to_datetime().tzinfo is not None
    with pytest.raises(ValueError):
        Timestamp("not a time").to_datetime()


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────

def test_default_registry_contains_builtin_payloads():
    registry = create_default_registry()

    assert registry.available_types == {
        "firmware.update.request",
        "firmware.update.response",
        "firmware.update.response.bin",
        "reboot.request",
        "reboot.response",
        "property.ack",
    }
    decoded = registry.deserialize("reboot.response", b'{"reboot_status": "ok"}')
    assert decoded == RebootResponse("ok")


def test_registry_unknown_type_is_parse_error():
    registry = create_default_registry()
    with pytest.raises(ParseError, match="reboot.request"):
        registry.deserialize("thermostat.report", b"{}")


@dataclass(frozen=True)
class MaxMinReport(JsonPayload):
    max_temp: float
    min_temp: float

    TYPE_ID = "thermostat.maxmin"

    def to_dict(self):
        return {"maxTemp": self.max_temp, "minTemp": self.min_temp}

    @classmethod
    def from_dict(cls, data):
        return cls(max_temp=float(data["maxTemp"]), min_temp=float(data["minTemp"]))


def test_registry_accepts_new_variants():
    registry = create_default_registry()
    registry.register(MaxMinReport)
    registry.register(MaxMinReport)

    report = MaxMinReport(30.5, 18.0)
    data = registry.serialize(report)
    assert registry.deserialize("thermostat.maxmin", data) == report


def test_registry_rejects_conflicting_type_id():
    registry = PayloadRegistry()
    registry.register(RebootRequest)

    with pytest.raises(ValueError):
        registry.register(RebootResponse, type_id="reboot.request")
    with pytest.raises(ParseError):
        registry.serialize(RebootResponse("ok"))


# ─────────────────────────────────────────────────────────────────────────────
# Desired property representations
# ─────────────────────────────────────────────────────────────────────────────

def test_desired_document_flattens_components_and_root_properties():
    requests = WritablePropertyRequest.from_desired_document({
        "$version": 12,
        "thermostatComponent": {"__t": "c", "targetTemperature": 25.0},
        "deviceLabel": "hall",
        "plainObject": {"a": 1},
    })

    assert [(r.component, r.name, r.proposed_value, r.version) for r in requests] == [
        ("thermostatComponent", "targetTemperature", 25.0, 12),
        ("", "deviceLabel", "hall", 12),
        ("", "plainObject", {"a": 1}, 12),
    ]


@pytest.mark.parametrize("document", [
    {"thermostatComponent": {"__t": "c", "targetTemperature": 25.0}},
    {"$version": -1},
    {"$version": True},
    {"$version": "seven"},
    "not an object",
])
def test_desired_document_invalid(document):
    with pytest.raises(ParseError):
        WritablePropertyRequest.from_desired_document(document)


def test_single_property_representation():
    request = WritablePropertyRequest.from_single_property(
        "thermostatComponent", "targetTemperature", b'{"value": "abc", "version": 4}'
    )
    assert request.proposed_value == "abc"
    assert request.version == 4

    with pytest.raises(ParseError):
        WritablePropertyRequest.from_single_property("c", "p", b'{"version": 4}')
    with pytest.raises(ParseError):
        WritablePropertyRequest.from_single_property("c", "p", b'{"value": 1}')
    with pytest.raises(ParseError):
        WritablePropertyRequest.from_single_property("c", "p", b"{broken")


def test_bounds_invariants():
    assert Bounds.from_list([-15, 33.5]) == Bounds(-15.0, 33.5)
    with pytest.raises(ValueError):
        Bounds(10.0, 10.0)
    with pytest.raises(ValueError):
        Bounds(float("-inf"), 0.0)
    with pytest.raises(ValueError):
        Bounds.from_list([1.0])


def test_ack_status_values():
    assert AckStatus("accepted") is AckStatus.ACCEPTED
