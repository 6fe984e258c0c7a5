from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum
from typing import Any


class Result(str, Enum):
    SUCCESS = "SUCCESS"
    NOT_SUPPORTED = "NOT_SUPPORTED"
    UNKNOWN = "UNKNOWN"
    NOT_FOUND = "NOT_FOUND"
    NOT_INITIALIZED = "NOT_INITIALIZED"


class BatteryStatus(IntEnum):
    UNKNOWN = 1
    CHARGING = 2
    DISCHARGING = 3
    NOT_CHARGING = 4
    FULL = 5


class BatteryHealth(IntEnum):
    UNKNOWN = 1
    GOOD = 2
    OVERHEAT = 3
    DEAD = 4
    OVER_VOLTAGE = 5
    UNSPECIFIED_FAILURE = 6
    COLD = 7


@dataclass(frozen=True)
class BatteryInfo:
    """Battery and charger state as reported by the battery monitor.

    Units follow the kernel power_supply class: currents in microamps,
    voltages in microvolts, temperature in tenths of a degree Celsius.
    """

    charger_ac_online: bool = False
    charger_usb_online: bool = False
    charger_wireless_online: bool = False
    max_charging_current: int = 0
    max_charging_voltage: int = 0
    battery_present: bool = False
    battery_level: int = 0
    battery_voltage: int = 0
    battery_temperature: int = 0
    battery_current: int = 0
    battery_current_average: int = 0
    battery_cycle_count: int = 0
    battery_full_charge: int = 0
    battery_charge_counter: int = 0
    energy_counter: int = 0
    battery_status: BatteryStatus = BatteryStatus.UNKNOWN
    battery_health: BatteryHealth = BatteryHealth.UNKNOWN
    battery_technology: str = ""

    @property
    def charger_online(self) -> bool:
        return (
            self.charger_ac_online
            or self.charger_usb_online
            or self.charger_wireless_online
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["battery_status"] = self.battery_status.name
        data["battery_health"] = self.battery_health.name
        return data


@dataclass(frozen=True)
class StorageRecord:
    name: str = ""
    is_internal: bool = False
    is_boot_device: bool = False
    # End-of-life estimate, 0 means unknown.
    eol: int = 0
    lifetime_a: int = 0
    lifetime_b: int = 0
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StorageReport:
    """Storage records in controller scan order.

    An empty report means storage telemetry is not supported on this device.
    """

    records: tuple[StorageRecord, ...] = ()

    @property
    def supported(self) -> bool:
        return bool(self.records)

    @property
    def result(self) -> Result:
        return Result.SUCCESS if self.records else Result.NOT_SUPPORTED

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def to_list(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.records]


@dataclass(frozen=True)
class DiskStatsRecord:
    name: str
    reads: int = 0
    read_merges: int = 0
    read_bytes: int = 0
    read_time_ms: int = 0
    writes: int = 0
    write_merges: int = 0
    write_bytes: int = 0
    write_time_ms: int = 0
    busy_time_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DiskStatsReport:
    records: tuple[DiskStatsRecord, ...] = ()

    @property
    def supported(self) -> bool:
        return bool(self.records)

    @property
    def result(self) -> Result:
        return Result.SUCCESS if self.records else Result.NOT_SUPPORTED

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def to_list(self) -> list[dict[str, Any]]:
        return [record.to_dict() for record in self.records]


@dataclass(frozen=True)
class HealthSnapshot:
    battery: BatteryInfo = field(default_factory=BatteryInfo)
    storage: StorageReport = field(default_factory=StorageReport)
    disk_stats: DiskStatsReport = field(default_factory=DiskStatsReport)

    def to_dict(self) -> dict[str, Any]:
        return {
            "battery": self.battery.to_dict(),
            "storage_infos": self.storage.to_list(),
            "disk_stats": self.disk_stats.to_list(),
        }
