from __future__ import annotations

import logging
import threading
from typing import TextIO

import psutil

from health_tap.models import BatteryHealth, BatteryInfo, BatteryStatus

# Reported when the device has no battery and runs from mains power.
AC_POWER_INFO = BatteryInfo(
    charger_ac_online=True,
    max_charging_current=5000000,
    max_charging_voltage=12000000,
    battery_present=False,
    battery_charge_counter=1,
    battery_current=0,
    battery_level=0,
    battery_status=BatteryStatus.UNKNOWN,
    battery_health=BatteryHealth.UNKNOWN,
    battery_technology="AC Power",
)


class BatteryMonitor:
    """Battery state source used by the health service.

    The monitor must be initialized with ``init`` before ``refresh`` is
    called; until then the service treats it as unavailable.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._info = AC_POWER_INFO
        self._initialized = False
        self._refresh_count = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def info(self) -> BatteryInfo:
        with self._lock:
            return self._info

    def init(self, config: object | None = None) -> None:
        self.logger.debug("Initializing battery monitor (config=%s).", config)
        self._initialized = True

    def refresh(self) -> bool:
        """Re-read battery state and return whether a charger is online."""
        if not hasattr(psutil, "sensors_battery"):
            self.logger.debug("Battery sensors not supported on this platform.")
            info = AC_POWER_INFO
        else:
            battery = psutil.sensors_battery()
            if battery is None:
                self.logger.debug("No battery present, reporting AC power.")
                info = AC_POWER_INFO
            else:
                info = self._from_psutil(battery)
        with self._lock:
            self._info = info
            self._refresh_count += 1
        return info.charger_online

    @staticmethod
    def _from_psutil(battery: psutil._common.sbattery) -> BatteryInfo:
        plugged = battery.power_plugged is True
        level = int(round(battery.percent))
        if plugged and level >= 100:
            status = BatteryStatus.FULL
        elif plugged:
            status = BatteryStatus.CHARGING
        elif battery.power_plugged is False:
            status = BatteryStatus.DISCHARGING
        else:
            status = BatteryStatus.UNKNOWN
        return BatteryInfo(
            charger_ac_online=plugged,
            battery_present=True,
            battery_level=level,
            battery_status=status,
            battery_health=BatteryHealth.UNKNOWN,
        )

    def dump_state(self, out: TextIO) -> None:
        info = self.info
        out.write(
            f"ac: {int(info.charger_ac_online)} usb: {int(info.charger_usb_online)} "
            f"wireless: {int(info.charger_wireless_online)} "
            f"current_max: {info.max_charging_current} "
            f"voltage_max: {info.max_charging_voltage}\n"
        )
        out.write(
            f"status: {info.battery_status.name} health: {info.battery_health.name} "
            f"present: {int(info.battery_present)} level: {info.battery_level} "
            f"technology: {info.battery_technology}\n"
        )
        out.write(f"refreshes: {self._refresh_count}\n")
