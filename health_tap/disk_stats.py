from __future__ import annotations

import logging

import psutil

from health_tap.config import DiskConfig
from health_tap.models import DiskStatsRecord, DiskStatsReport


class DiskStatsCollector:
    """Per block device I/O counters from psutil."""

    def __init__(self, config: DiskConfig) -> None:
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    def collect(self) -> DiskStatsReport:
        try:
            io_stats = psutil.disk_io_counters(perdisk=True)
        except (OSError, RuntimeError) as exc:
            self.logger.debug("Disk IO counters unavailable: %s", exc)
            return DiskStatsReport()
        if not io_stats:
            self.logger.debug("No disk IO counters reported.")
            return DiskStatsReport()

        wanted = self.config.devices
        records: list[DiskStatsRecord] = []
        for name in sorted(io_stats):
            if wanted and name not in wanted:
                continue
            entry = io_stats[name]
            records.append(
                DiskStatsRecord(
                    name=name,
                    reads=int(entry.read_count),
                    read_merges=int(getattr(entry, "read_merged_count", 0)),
                    read_bytes=int(entry.read_bytes),
                    read_time_ms=int(entry.read_time),
                    writes=int(entry.write_count),
                    write_merges=int(getattr(entry, "write_merged_count", 0)),
                    write_bytes=int(entry.write_bytes),
                    write_time_ms=int(entry.write_time),
                    busy_time_ms=int(getattr(entry, "busy_time", 0)),
                )
            )
        missing = set(wanted) - {record.name for record in records}
        if missing:
            self.logger.debug("Configured disks without counters: %s", sorted(missing))
        return DiskStatsReport(records=tuple(records))
