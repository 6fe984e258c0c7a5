from __future__ import annotations

from collections.abc import Iterator
import logging
from pathlib import Path

from health_tap.config import StorageConfig
from health_tap.logging_utils import TRACE_LEVEL
from health_tap.models import StorageRecord, StorageReport

logger = logging.getLogger(__name__)


def read_attribute(path: Path) -> str | None:
    """Read a sysfs attribute and return its first line stripped.

    Returns None if the file is missing, unreadable or blank.
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            line = handle.readline()
    except OSError as exc:
        logger.log(TRACE_LEVEL, "Cannot read %s: %s", path, exc)
        return None
    return line.strip() or None


def parse_hex(value: str | None, path: Path | None = None) -> int:
    if not value:
        return 0
    try:
        number = int(value, 16)
    except ValueError:
        number = -1
    if number < 0 or "_" in value:
        logger.debug("Malformed hex value %r in %s.", value, path)
        return 0
    return number


class StorageDeviceScanner:
    """Find storage devices under a controller hierarchy.

    Only the first matching device of each controller is reported.
    """

    def __init__(self, root: str | Path, prefix: str) -> None:
        self.root = Path(root)
        self.prefix = prefix
        self.logger = logging.getLogger(self.__class__.__name__)

    def _matching_entries(self, directory: Path) -> list[Path]:
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            self.logger.debug("Cannot list %s: %s", directory, exc)
            return []
        matches: list[Path] = []
        for entry in entries:
            if not entry.name.startswith(self.prefix):
                continue
            try:
                if entry.is_dir():
                    matches.append(entry)
            except OSError as exc:
                self.logger.debug("Cannot stat %s: %s", entry, exc)
        return matches

    def scan(self) -> Iterator[Path]:
        if not self.root.is_dir():
            self.logger.debug("Storage root %s not present.", self.root)
            return
        for controller in self._matching_entries(self.root):
            devices = self._matching_entries(controller)
            if not devices:
                self.logger.log(TRACE_LEVEL, "No device under %s.", controller)
                continue
            if len(devices) > 1:
                self.logger.log(
                    TRACE_LEVEL,
                    "Controller %s exposes %s devices, reporting %s.",
                    controller.name,
                    len(devices),
                    devices[0].name,
                )
            yield devices[0]


class StorageTelemetryCollector:
    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self.scanner = StorageDeviceScanner(config.root, config.prefix)
        self.logger = logging.getLogger(self.__class__.__name__)

    def collect(self) -> StorageReport:
        records: list[StorageRecord] = []
        try:
            for device in self.scanner.scan():
                records.append(self.read_device(device))
        except OSError as exc:
            self.logger.debug("Storage scan aborted: %s", exc)
        self.logger.debug("Collected %s storage record(s).", len(records))
        return StorageReport(records=tuple(records))

    def read_device(self, device: Path) -> StorageRecord:
        files = self.config
        name = read_attribute(device / files.name_file) or ""
        device_type = read_attribute(device / files.type_file)
        internal = device_type == files.internal_type

        eol_path = device / files.eol_file
        eol = parse_hex(read_attribute(eol_path), eol_path)

        lifetime_path = device / files.lifetime_file
        lifetime = (read_attribute(lifetime_path) or "").split()
        lifetime_a = parse_hex(lifetime[0], lifetime_path) if lifetime else 0
        lifetime_b = parse_hex(lifetime[1], lifetime_path) if len(lifetime) > 1 else 0

        version = read_attribute(device / files.version_file) or ""

        self.logger.log(
            TRACE_LEVEL,
            "Device %s: name=%r type=%r eol=%s life_time=(%s, %s) rev=%r",
            device,
            name,
            device_type,
            eol,
            lifetime_a,
            lifetime_b,
            version,
        )
        return StorageRecord(
            name=name,
            is_internal=internal,
            is_boot_device=internal,
            eol=eol,
            lifetime_a=lifetime_a,
            lifetime_b=lifetime_b,
            version=version,
        )
