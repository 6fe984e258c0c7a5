from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import json
import logging
import threading
from typing import Any, TextIO

from health_tap.battery import AC_POWER_INFO, BatteryMonitor
from health_tap.disk_stats import DiskStatsCollector
from health_tap.models import (
    BatteryInfo,
    DiskStatsReport,
    HealthSnapshot,
    Result,
    StorageReport,
)
from health_tap.registry import ListenerHandle, ListenerRegistry
from health_tap.storage import StorageTelemetryCollector


class PipelineState(str, Enum):
    IDLE = "idle"
    UPDATING = "updating"


class HealthService:
    """Refreshes health data and pushes snapshots to registered listeners.

    The monitor refresh runs outside the registry lock, so subscription
    changes are never blocked by a slow refresh. Fan-out runs under the lock.
    """

    def __init__(
        self,
        monitor: BatteryMonitor | None,
        storage: StorageTelemetryCollector,
        disk_stats: DiskStatsCollector | None = None,
        period_hook: Callable[[bool], None] | None = None,
        registry: ListenerRegistry | None = None,
    ) -> None:
        self.monitor = monitor
        self.storage = storage
        self.disk_stats = disk_stats
        self.period_hook = period_hook
        self.registry = registry if registry is not None else ListenerRegistry()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._state = PipelineState.IDLE
        self._state_lock = threading.Lock()
        self._latest: HealthSnapshot | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def latest_snapshot(self) -> HealthSnapshot | None:
        return self._latest

    @property
    def initialized(self) -> bool:
        return self.monitor is not None and self.monitor.initialized

    def subscribe(self, handle: ListenerHandle | None) -> Result:
        if handle is None:
            return Result.SUCCESS
        self.registry.register(handle)
        return self.update()

    def unsubscribe(self, handle_or_identity: Any) -> Result:
        if self.registry.unregister(handle_or_identity):
            return Result.SUCCESS
        return Result.NOT_FOUND

    def force_update(self) -> Result:
        return self.update()

    def update(self) -> Result:
        if not self.initialized:
            self.logger.warning(
                "update: not initialized. update() should not be called in "
                "charger / recovery mode."
            )
            return Result.NOT_INITIALIZED

        self._set_state(PipelineState.UPDATING)
        try:
            try:
                charger_online = self.monitor.refresh()
            except Exception:
                self.logger.exception("Battery monitor refresh failed.")
                return Result.UNKNOWN

            if self.period_hook is not None:
                try:
                    self.period_hook(charger_online)
                except Exception:
                    self.logger.exception("Poll period adjustment failed.")

            snapshot = self.get_snapshot()
            self._latest = snapshot
            delivered = self.notify(snapshot)
            self.logger.debug(
                "Update complete: charger_online=%s, delivered to %s listener(s).",
                charger_online,
                delivered,
            )
            return Result.SUCCESS
        finally:
            self._set_state(PipelineState.IDLE)

    def notify(self, snapshot: HealthSnapshot) -> int:
        return self.registry.notify(snapshot)

    def get_snapshot(self) -> HealthSnapshot:
        return HealthSnapshot(
            battery=self._battery_info(),
            storage=self.get_storage_report(),
            disk_stats=self.get_disk_stats(),
        )

    def get_storage_report(self) -> StorageReport:
        return self.storage.collect()

    def get_disk_stats(self) -> DiskStatsReport:
        if self.disk_stats is None:
            return DiskStatsReport()
        return self.disk_stats.collect()

    def dump(self, out: TextIO) -> None:
        """Write a human-readable diagnostic report to ``out``."""
        if self.monitor is not None:
            self.monitor.dump_state(out)
        else:
            out.write("battery monitor: not initialized\n")

        snapshot = self.get_snapshot()
        out.write("\ngetHealthInfo -> ")
        out.write(json.dumps(snapshot.to_dict(), indent=2))
        out.write("\n")

        out.write("\ngetStorageInfo -> ")
        if snapshot.storage.supported:
            out.write(json.dumps(snapshot.storage.to_list(), indent=2))
        else:
            out.write(snapshot.storage.result.value)
        out.write("\n")

        out.write("\ngetDiskStats -> ")
        if snapshot.disk_stats.supported:
            out.write(json.dumps(snapshot.disk_stats.to_list(), indent=2))
        else:
            out.write(snapshot.disk_stats.result.value)
        out.write("\n")

        out.write(f"\nlisteners: {len(self.registry)}\n")
        out.flush()

    def _battery_info(self) -> BatteryInfo:
        if self.monitor is None:
            return AC_POWER_INFO
        return self.monitor.info

    def _set_state(self, state: PipelineState) -> None:
        with self._state_lock:
            self._state = state
