"""
Actuation Sink - Physical (or simulated) effects of device decisions.

The reconciler and command handlers decide *that* and *what* to actuate;
an ActuationSink decides *how*.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List

logger = logging.getLogger(__name__)


class ActuationSink(ABC):
    """Hardware boundary of the thermostat."""

    @abstractmethod
    def set_target_temperature(self, value: float) -> None:
        """Apply a new setpoint."""

    @abstractmethod
    def apply_firmware(self, firmware: bytes) -> None:
        """Flash a firmware image."""

    @abstractmethod
    def read_temperature(self) -> float:
        """Current sensor reading."""


class SimulatedThermostat(ActuationSink):
    """
    In-memory thermostat.

    The simulated room temperature drifts toward the setpoint by drift_step
    on every reading.
    """

    def __init__(self, target: float = 22.0, temperature: float = 22.0, drift_step: float = 0.5):
        self._lock = threading.Lock()
        self._target = target
        self._temperature = temperature
        self.drift_step = drift_step
        self.firmware_images: List[bytes] = []

    @property
    def target(self) -> float:
        with self._lock:
            return self._target

    def set_target_temperature(self, value: float) -> None:
        with self._lock:
            self._target = value
        logger.info(f"🌡️ Setpoint set to {value}")

    def apply_firmware(self, firmware: bytes) -> None:
        with self._lock:
            self.firmware_images.append(firmware)
        logger.info(f"💾 Firmware applied ({len(firmware)} bytes)")

    def read_temperature(self) -> float:
        with self._lock:
            delta = self._target - self._temperature
            if abs(delta) <= self.drift_step:
                self._temperature = self._target
            else:
                self._temperature += self.drift_step if delta > 0 else -self.drift_step
            return round(self._temperature, 2)
