"""
Thermostat Device Service - Main device orchestrator.

This module provides the ThermostatDeviceService class which wires the
property reconciler, the command dispatcher and the MQTT adapters together
for one thermostat device.

Architecture:
- PropertyReconciler decides writable-property acknowledgements
- MQTTControlPlane.dispatcher routes inbound commands and sends outbound ones
- ReportedPropertyPublisher reports acks and device identifiers
- TelemetryPublisher sends currentTemp on a fixed interval

Threading Model:
- Control Plane Thread (paho-mqtt internal, command handlers + replies)
- Subscriber Thread (paho-mqtt internal, property writes)
- Telemetry Thread (our thread)
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional

from pnp_twin.errors import TwinError
from pnp_twin.schemas import (
    AckOutcome,
    FirmwareUpdateRequest,
    FirmwareUpdateResponse,
    RebootRequest,
    RebootResponse,
    WritablePropertyRequest,
)
from pnp_device.actuation import ActuationSink
from pnp_device.config import DeviceConfig
from pnp_device.reconciler import PropertyReconciler

logger = logging.getLogger(__name__)

REBOOT_COMMAND = "reboot"
UPDATE_FIRMWARE_COMMAND = "updateFirmware"
FIRMWARE_PROPERTY = "firm"


class ThermostatDeviceService:
    """
    Main device service.

    Lifecycle:
    1. setup(): register commands and writable properties
    2. start(): connect, report identifiers, check firmware, start telemetry
    3. wait(): block until stop()
    4. stop(): stop telemetry, disconnect

    Thread Safety:
    - reconciler: per-property locks
    - firmware version: protected by _firmware_lock
    - telemetry thread: stopped via stop_event

    Usage:
        config = DeviceConfig.from_yaml("config/device_config.yaml")

        service = ThermostatDeviceService(
            config=config,
            control_plane=control_plane,
            telemetry_publisher=telemetry_publisher,
            reported_publisher=reported_publisher,
            subscriber=subscriber,
            sink=SimulatedThermostat(),
        )

        service.setup()
        service.start()
        service.wait()
    """

    def __init__(
        self,
        config: DeviceConfig,
        control_plane,  # MQTTControlPlane
        telemetry_publisher,  # TelemetryPublisher
        reported_publisher,  # ReportedPropertyPublisher
        subscriber,  # DesiredPropertySubscriber
        sink: ActuationSink,
        now: Callable[..., datetime] = datetime.now,
    ):
        """
        Initialize device service.

        Args:
            config: Device configuration
            control_plane: MQTT control plane (commands + dispatcher)
            telemetry_publisher: Publisher for telemetry
            reported_publisher: Publisher for reported properties and acks
            subscriber: Desired property subscriber
            sink: Actuation sink (setpoint, firmware, sensor)
            now: Clock, called with the request's tzinfo
        """
        self.config = config
        self.control_plane = control_plane
        self.dispatcher = control_plane.dispatcher
        self.telemetry_publisher = telemetry_publisher
        self.reported_publisher = reported_publisher
        self.subscriber = subscriber
        self.sink = sink
        self._now = now

        self.reconciler = PropertyReconciler(default_tolerance=config.thermostat.tolerance)

        self._firmware_version = config.device_info.firmware_version
        self._firmware_lock = threading.Lock()

        self.telemetry_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        self._running = False
        self._stopped_event = threading.Event()

        logger.info(f"ThermostatDeviceService initialized for device_id={config.device_id}")

    @property
    def firmware_version(self) -> str:
        with self._firmware_lock:
            return self._firmware_version

    def setup(self):
        """
        Register command handlers and writable properties.

        Must be called before start().
        """
        thermostat = self.config.thermostat
        self.reconciler.register_property(
            thermostat.component,
            thermostat.property_name,
            bounds=thermostat.bounds,
            initial_value=thermostat.initial_target,
            actuate=self.sink.set_target_temperature,
        )

        self.dispatcher.register_handler(
            self.config.device_info.component,
            REBOOT_COMMAND,
            self.handle_reboot,
            request_type=RebootRequest,
            description="Reboot now or at a scheduled time",
        )

        self.subscriber.on_property_write = self.handle_property_write

        logger.info("Command handlers and writable properties registered")

    def start(self):
        """
        Start the device service (non-blocking).

        Lifecycle:
        1. Connect control plane, publishers and subscriber
           (only the control plane is required)
        2. Report device identifiers and initial property values
        3. Check for firmware updates (failures are logged, not fatal)
        4. Start telemetry thread and announce the model id
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting thermostat device service")

        if not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")

        if not self.telemetry_publisher.connect():
            logger.warning("⚠️ Telemetry publisher not connected, readings will be dropped")
        if not self.reported_publisher.connect():
            logger.warning("⚠️ Reported property publisher not connected")
        if not self.subscriber.connect():
            logger.warning(
                "⚠️ Desired property subscriber not connected, property writes will not arrive"
            )

        self.report_device_info()
        self.report_initial_properties()
        self.check_firmware()

        self.stop_event.clear()
        self.telemetry_thread = threading.Thread(
            target=self._telemetry_loop,
            name="TelemetryThread",
            daemon=True
        )
        self.telemetry_thread.start()
        logger.info("Telemetry thread started")

        self._running = True
        self._stopped_event.clear()
        self.control_plane.publish_status("running", {
            "model_id": self.config.model_id,
            "firmware_version": self.firmware_version,
        })
        logger.info("✅ Thermostat device service started")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until stop() completes.

        Returns:
            True if the service stopped, False on timeout
        """
        if not self._running:
            logger.warning("Service not running")
            return True
        return self._stopped_event.wait(timeout=timeout)

    def stop(self):
        """
        Stop the device service gracefully.

        Lifecycle:
        1. Stop telemetry thread
        2. Disconnect subscriber and publishers
        3. Publish stopped status and disconnect control plane
        """
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping thermostat device service")

        self.stop_event.set()
        if self.telemetry_thread:
            self.telemetry_thread.join(timeout=5.0)
            logger.info("Telemetry thread stopped")

        self.subscriber.stop()
        self.telemetry_publisher.disconnect()
        self.reported_publisher.disconnect()

        self.control_plane.publish_status("stopped")
        self.control_plane.disconnect()

        self._running = False
        self._stopped_event.set()
        logger.info("✅ Thermostat device service stopped")

    # ─────────────────────────────────────────────────────────────────────
    # Reporting
    # ─────────────────────────────────────────────────────────────────────

    def report_device_info(self) -> bool:
        """Report serial number, hardware version, sensor count and firmware."""
        info = self.config.device_info
        return self.reported_publisher.publish_properties(info.component, {
            "serialNumber": info.serial_number,
            "hardwareVersion": info.hardware_version,
            "numberOfSensors": info.number_of_sensors,
            FIRMWARE_PROPERTY: self.firmware_version,
        })

    def report_initial_properties(self) -> bool:
        """Report the current reading and the setpoint the device starts with."""
        thermostat = self.config.thermostat
        state = self.reconciler.get_state(thermostat.component, thermostat.property_name)

        reading_ok = self.reported_publisher.publish_properties(
            thermostat.component, {thermostat.telemetry_name: self.sink.read_temperature()}
        )
        ack_ok = self.reported_publisher.publish_ack(
            thermostat.component,
            thermostat.property_name,
            AckOutcome.unchanged(state.value, "Initial value", state.version),
        )
        return reading_ok and ack_ok

    # ─────────────────────────────────────────────────────────────────────
    # Property writes (called by Subscriber Thread)
    # ─────────────────────────────────────────────────────────────────────

    def handle_property_write(self, request: WritablePropertyRequest) -> AckOutcome:
        """Reconcile a writable-property request and report the acknowledgement."""
        outcome = self.reconciler.handle_write(request)

        if not self.reported_publisher.publish_ack(request.component, request.name, outcome):
            logger.warning(
                f"⚠️ Ack for {request.component}/{request.name} v{request.version} not published"
            )
        return outcome

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (called by Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def handle_reboot(self, request: RebootRequest) -> RebootResponse:
        """Handle reboot command (Control Plane Thread)."""
        when = request.when_to_reboot
        now = self._now(when.tzinfo)

        if when <= now:
            status = "Device is rebooting now."
        else:
            status = f"Device is scheduled to reboot {when.isoformat()}."

        logger.info(f"🔄 {status}")
        return RebootResponse(reboot_status=status)

    # ─────────────────────────────────────────────────────────────────────
    # Firmware
    # ─────────────────────────────────────────────────────────────────────

    def check_firmware(self) -> Optional[FirmwareUpdateResponse]:
        """
        Ask the counterpart for newer firmware and apply it if offered.

        Returns:
            The counterpart's response, or None if the check failed
        """
        request = FirmwareUpdateRequest(firmware_version=self.firmware_version)

        try:
            response = self.dispatcher.send_command(
                self.config.device_info.component,
                UPDATE_FIRMWARE_COMMAND,
                request,
                response_type=FirmwareUpdateResponse,
                timeout=self.config.command_timeout_s,
            )
        except TwinError as e:
            logger.warning(f"⚠️ Firmware check failed: {e}")
            return None

        if not response.should_update:
            logger.info(f"Firmware {self.firmware_version} is up to date")
            return response

        try:
            self.sink.apply_firmware(response.firmware_bytes)
        except Exception as e:
            logger.error(f"❌ Error applying firmware {response.firmware_version}: {e}", exc_info=True)
            return response

        with self._firmware_lock:
            self._firmware_version = response.firmware_version

        self.reported_publisher.publish_properties(
            self.config.device_info.component,
            {FIRMWARE_PROPERTY: response.firmware_version},
        )
        logger.info(f"💾 Firmware updated to {response.firmware_version}")
        return response

    # ─────────────────────────────────────────────────────────────────────
    # Telemetry (Telemetry Thread)
    # ─────────────────────────────────────────────────────────────────────

    def send_telemetry(self) -> bool:
        """
        Read the sensor and publish one telemetry message.

        Never raises: failures are logged and reported as False.
        """
        thermostat = self.config.thermostat
        try:
            reading = self.sink.read_temperature()
            return self.telemetry_publisher.publish_telemetry(
                thermostat.component, {thermostat.telemetry_name: reading}
            )
        except Exception as e:
            logger.error(f"❌ Error sending telemetry: {e}", exc_info=True)
            return False

    def _telemetry_loop(self):
        """
        Telemetry thread loop.

        Sends one reading per interval until stop_event is set.
        """
        logger.info("Telemetry loop started")

        while not self.stop_event.is_set():
            self.send_telemetry()
            self.stop_event.wait(self.config.telemetry_interval_s)

        logger.info("Telemetry loop stopped")
