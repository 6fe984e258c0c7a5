"""Health Tap device health service."""

from health_tap.battery import BatteryMonitor
from health_tap.config import AppConfig, load_config
from health_tap.models import HealthSnapshot, Result, StorageRecord, StorageReport
from health_tap.registry import CallbackListener, DeadListenerError, ListenerRegistry
from health_tap.service import HealthService
from health_tap.storage import StorageTelemetryCollector

__all__ = [
    "AppConfig",
    "BatteryMonitor",
    "CallbackListener",
    "DeadListenerError",
    "HealthService",
    "HealthSnapshot",
    "ListenerRegistry",
    "Result",
    "StorageRecord",
    "StorageReport",
    "StorageTelemetryCollector",
    "load_config",
]
