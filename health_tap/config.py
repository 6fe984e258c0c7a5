from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import configparser

SERVICE_MODES = ("normal", "charger", "recovery")


@dataclass(frozen=True)
class MqttConfig:
    host: str
    port: int
    base_topic: str
    client_id: str
    username: str | None
    password: str | None
    qos: int
    retain: bool
    tls_enabled: bool
    ca_cert: str | None
    keepalive: int = 60


@dataclass(frozen=True)
class ServiceConfig:
    mode: str = "normal"

    @property
    def monitor_enabled(self) -> bool:
        # Charger and recovery modes run without the battery update path.
        return self.mode == "normal"


@dataclass(frozen=True)
class PublishConfig:
    interval_fast_s: int = 60
    # -1 keeps the fast interval while the charger is offline.
    interval_slow_s: int = 600


@dataclass(frozen=True)
class StorageConfig:
    root: str = "/sys/class/mmc_host"
    prefix: str = "mmc"
    internal_type: str = "MMC"
    name_file: str = "name"
    type_file: str = "type"
    eol_file: str = "pre_eol_info"
    lifetime_file: str = "life_time"
    version_file: str = "rev"


@dataclass(frozen=True)
class DiskConfig:
    devices: list[str]


@dataclass(frozen=True)
class AppConfig:
    service: ServiceConfig
    publish: PublishConfig
    storage: StorageConfig
    disk: DiskConfig
    mqtt: MqttConfig | None


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_mqtt(parser: configparser.ConfigParser) -> MqttConfig | None:
    if not parser.has_section("mqtt"):
        return None
    mqtt_section = parser["mqtt"]
    return MqttConfig(
        host=mqtt_section.get("host", "localhost"),
        port=mqtt_section.getint("port", 1883),
        base_topic=mqtt_section.get("base_topic", "telemetry/health"),
        client_id=mqtt_section.get("client_id", "health-tap"),
        username=_get_optional(mqtt_section.get("username")),
        password=_get_optional(mqtt_section.get("password")),
        qos=mqtt_section.getint("qos", 0),
        retain=mqtt_section.getboolean("retain", False),
        tls_enabled=mqtt_section.getboolean("tls", False),
        ca_cert=_get_optional(mqtt_section.get("ca_cert")),
        keepalive=mqtt_section.getint("keepalive", 60),
    )


def load_config(path: str | Path) -> AppConfig:
    parser = configparser.ConfigParser()
    read_files = parser.read(path)
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    mode = parser.get("service", "mode", fallback="normal").strip().lower()
    if mode not in SERVICE_MODES:
        raise ValueError(
            f"Invalid service mode {mode!r}, expected one of {', '.join(SERVICE_MODES)}"
        )
    service = ServiceConfig(mode=mode)

    publish = PublishConfig(
        interval_fast_s=parser.getint("publish", "interval_fast_s", fallback=60),
        interval_slow_s=parser.getint("publish", "interval_slow_s", fallback=600),
    )

    defaults = StorageConfig()
    storage = StorageConfig(
        root=parser.get("storage", "root", fallback=defaults.root),
        prefix=parser.get("storage", "prefix", fallback=defaults.prefix),
        internal_type=parser.get(
            "storage", "internal_type", fallback=defaults.internal_type
        ),
        name_file=parser.get("storage", "name_file", fallback=defaults.name_file),
        type_file=parser.get("storage", "type_file", fallback=defaults.type_file),
        eol_file=parser.get("storage", "eol_file", fallback=defaults.eol_file),
        lifetime_file=parser.get(
            "storage", "lifetime_file", fallback=defaults.lifetime_file
        ),
        version_file=parser.get(
            "storage", "version_file", fallback=defaults.version_file
        ),
    )

    disk = DiskConfig(
        devices=_get_list(parser.get("disk", "devices", fallback=None)),
    )

    return AppConfig(
        service=service,
        publish=publish,
        storage=storage,
        disk=disk,
        mqtt=_load_mqtt(parser),
    )
