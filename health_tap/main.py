from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from health_tap.battery import BatteryMonitor
from health_tap.config import AppConfig, load_config
from health_tap.disk_stats import DiskStatsCollector
from health_tap.logging_utils import configure_logging, resolve_log_level
from health_tap.models import HealthSnapshot, Result
from health_tap.mqtt_client import MqttSnapshotListener
from health_tap.registry import CallbackListener
from health_tap.scheduler import PollScheduler
from health_tap.schema import validate_payload
from health_tap.service import HealthService
from health_tap.storage import StorageTelemetryCollector


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Health Tap device health service")
    parser.add_argument(
        "--config",
        default="config/example.cfg",
        help="Path to CFG configuration file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log snapshots without publishing to MQTT",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single update cycle, then exit",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Write the diagnostic dump to stdout and exit",
    )
    return parser


def build_service(config: AppConfig, scheduler: PollScheduler) -> HealthService:
    monitor = None
    if config.service.monitor_enabled:
        monitor = BatteryMonitor()
        monitor.init(config.publish)
    return HealthService(
        monitor=monitor,
        storage=StorageTelemetryCollector(config.storage),
        disk_stats=DiskStatsCollector(config.disk),
        period_hook=scheduler.adjust,
    )


def log_snapshot(snapshot: HealthSnapshot) -> None:
    logger = logging.getLogger("health_tap")
    payload = snapshot.to_dict()
    schema_errors = validate_payload(payload)
    if schema_errors:
        logger.warning("Schema validation failed with %s errors.", len(schema_errors))
        logger.debug("Schema errors: %s", schema_errors)
    logger.info("Snapshot: %s", json.dumps(payload))


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    level = resolve_log_level(args.verbose, args.log_level)
    configure_logging(level)
    logger = logging.getLogger("health_tap")
    config = load_config(args.config)

    scheduler = PollScheduler(config.publish)
    service = build_service(config, scheduler)

    if args.dump:
        service.dump(sys.stdout)
        return

    publisher = None
    if args.dry_run or config.mqtt is None:
        if config.mqtt is None:
            logger.info("No [mqtt] section configured; logging snapshots only.")
        service.subscribe(CallbackListener(log_snapshot, identity="log"))
    else:
        publisher = MqttSnapshotListener(config.mqtt)
        publisher.connect()
        service.subscribe(publisher)

    try:
        if args.once:
            logger.info("Single-run mode enabled; exiting after initial update.")
            return

        if not service.initialized:
            logger.warning(
                "Service mode %s has no battery monitor; serving diagnostics only.",
                config.service.mode,
            )
        logger.info("Health Tap started. Polling every %s seconds.", scheduler.interval_s)
        while True:
            time.sleep(scheduler.interval_s)
            result = service.update()
            if result is not Result.SUCCESS:
                logger.debug("Update result: %s", result.value)
    except KeyboardInterrupt:
        logger.info("Health Tap stopped.")
    finally:
        if publisher is not None:
            publisher.close()


if __name__ == "__main__":
    main()
