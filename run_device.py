#!/usr/bin/env python3
"""
Thermostat Device - Entry Point
===============================

This script starts a simulated Plug-and-Play thermostat, which:
- Accepts, rejects or ignores targetTemperature writes (bounded setpoint)
- Answers the reboot command
- Asks the cloud for a firmware update at startup (updateFirmware)
- Publishes currentTemp telemetry on a fixed interval

Usage:
    python run_device.py --config config/device_config.yaml

Architecture:
    - ThermostatDeviceService: Main orchestrator (pnp_device)
    - MQTTControlPlane: Commands in both directions (pnp_control)
    - TelemetryPublisher / ReportedPropertyPublisher (pnp_twin)
    - DesiredPropertySubscriber: Property writes (pnp_twin)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create control plane, publishers and subscriber
    4. Create ThermostatDeviceService
    5. Setup handlers and properties
    6. Start service (non-blocking)
    7. Wait for stop signal (Ctrl+C or SIGTERM)
    8. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/device.log (INFO level)
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from pnp_device import ThermostatDeviceService, SimulatedThermostat
from pnp_device.config import DeviceConfig
from pnp_control import MQTTControlPlane
from pnp_twin import (
    DesiredPropertySubscriber,
    ReportedPropertyPublisher,
    TelemetryPublisher,
    TopicLayout,
    create_logger,
)


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the device.

    Args:
        log_file: Optional path to log file (default: logs/device.log)

    Returns:
        Logger instance for the device application
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class DeviceApp:
    """
    Main application wrapper for ThermostatDeviceService.

    Handles:
    - Configuration loading
    - Component initialization (control plane, publishers, subscriber)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[DeviceConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.service: Optional[ThermostatDeviceService] = None

        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create structured logger for MQTT adapters
        3. Create control plane
        4. Create publishers and subscriber
        5. Create ThermostatDeviceService and register handlers
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 PnP Thermostat Device - Starting")
        self.logger.info("=" * 80)

        # 1. Load configuration
        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = DeviceConfig.from_yaml(self.config_path)
        self.logger.info(f"✅ Configuration loaded (device_id={self.config.device_id})")

        mqtt_config = self.config.mqtt_config
        device_id = self.config.device_id
        layout = TopicLayout(prefix=mqtt_config.topic_prefix, device_id=device_id)

        # 2. Structured logger for MQTT adapters
        mqtt_logger = create_logger(component="mqtt")

        # 3. Control plane
        self.logger.info("🔌 Creating MQTT control plane")
        self.control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            layout=layout,
            client_id=f"{device_id}_control",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        # 4. Publishers and subscriber
        self.logger.info("📤 Creating MQTT publishers and subscriber")
        telemetry_publisher = TelemetryPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            layout=layout,
            logger=mqtt_logger,
            client_id=f"{device_id}_telemetry",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        reported_publisher = ReportedPropertyPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            layout=layout,
            logger=mqtt_logger,
            client_id=f"{device_id}_reported",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )
        subscriber = DesiredPropertySubscriber(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            layout=layout,
            logger=mqtt_logger,
            client_id=f"{device_id}_desired",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )
        self.logger.info(f"  - Topic root: {layout.root}")

        # 5. Service
        self.logger.info("🏗️  Creating thermostat device service")
        self.service = ThermostatDeviceService(
            config=self.config,
            control_plane=self.control_plane,
            telemetry_publisher=telemetry_publisher,
            reported_publisher=reported_publisher,
            subscriber=subscriber,
            sink=SimulatedThermostat(
                target=self.config.thermostat.initial_target,
                temperature=self.config.thermostat.initial_target,
            ),
        )
        self.service.setup()
        self.logger.info("✅ Setup complete")
        self.logger.info("=" * 80)

    def run(self):
        """
        Run the device service.

        Blocks until shutdown is requested (via signal or exception).
        """
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()

            self.logger.info("✅ Device started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            self.service.wait()

        except KeyboardInterrupt:
            self.logger.info("\n⚠️  KeyboardInterrupt received")
            self.shutdown()

        except Exception as e:
            self.logger.error(f"❌ Device error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Stop service (telemetry, publishers, subscriber)
        2. Disconnect control plane
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down thermostat device")
        self.logger.info("=" * 80)

        if self.service:
            try:
                self.service.stop()
                self.logger.info("✅ Service stopped")
            except Exception as e:
                self.logger.error(f"❌ Error stopping service: {e}")

        if self.control_plane:
            try:
                self.control_plane.disconnect()
            except Exception as e:
                self.logger.error(f"❌ Error disconnecting control plane: {e}")

        self.logger.info("✅ Shutdown complete")

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"\n⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="PnP Thermostat Device - twin properties, commands and telemetry over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_device.py --config config/device_config.yaml

  # Start with custom log file
  python run_device.py --config config/device_config.yaml --log-file logs/custom.log

  # Start without file logging (console only)
  python run_device.py --config config/device_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to device configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/device.log'),
        help='Path to log file (default: logs/device.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments
    2. Create DeviceApp
    3. Setup components
    4. Run service (blocks until stopped)
    """
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = DeviceApp(config_path=args.config, log_file=log_file)

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
