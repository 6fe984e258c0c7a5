"""Tests for sysfs storage telemetry collection."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from health_tap.config import StorageConfig
from health_tap.models import Result, StorageRecord
from health_tap.storage import (
    StorageDeviceScanner,
    StorageTelemetryCollector,
    parse_hex,
    read_attribute,
)


class TestReadAttribute:
    def test_returns_first_line_stripped(self, tmp_path):
        path = tmp_path / "name"
        path.write_text("  DG4016 \nsecond line\n")
        assert read_attribute(path) == "DG4016"

    def test_missing_file(self, tmp_path):
        assert read_attribute(tmp_path / "missing") is None

    def test_blank_file(self, tmp_path):
        path = tmp_path / "rev"
        path.write_text("\n")
        assert read_attribute(path) is None

    def test_directory_is_not_readable(self, tmp_path):
        assert read_attribute(tmp_path) is None


class TestParseHex:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("0x01", 1),
            ("0a", 10),
            ("FF", 255),
            ("", 0),
            (None, 0),
            ("zz", 0),
            ("-1", 0),
            ("-0x05", 0),
            ("1_0", 0),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_hex(value) == expected


class TestScanner:
    def test_missing_root(self, tmp_path):
        scanner = StorageDeviceScanner(tmp_path / "absent", "mmc")
        assert list(scanner.scan()) == []

    def test_prefix_filter(self, make_device, mmc_root):
        make_device(mmc_root, "mmc0", "mmc0:0001")
        make_device(mmc_root, "sdhci0", "mmc1:0001")
        make_device(mmc_root, "mmc1", "power")
        scanner = StorageDeviceScanner(mmc_root, "mmc")
        assert [p.name for p in scanner.scan()] == ["mmc0:0001"]

    def test_only_first_device_per_controller(self, make_device, mmc_root):
        # Additional devices under one controller are not reported.
        make_device(mmc_root, "mmc0", "mmc0:0002")
        make_device(mmc_root, "mmc0", "mmc0:0001")
        scanner = StorageDeviceScanner(mmc_root, "mmc")
        devices = list(scanner.scan())
        assert len(devices) == 1
        assert devices[0].name == "mmc0:0001"

    def test_unstatable_entry_skips_only_that_controller(self, make_device, mmc_root):
        for index in range(3):
            make_device(mmc_root, f"mmc{index}", f"mmc{index}:0001")
        is_dir = Path.is_dir

        def guarded_is_dir(path):
            if path.name == "mmc1":
                raise PermissionError(13, "Permission denied", str(path))
            return is_dir(path)

        scanner = StorageDeviceScanner(mmc_root, "mmc")
        with patch.object(Path, "is_dir", autospec=True, side_effect=guarded_is_dir):
            devices = list(scanner.scan())
        assert [p.name for p in devices] == ["mmc0:0001", "mmc2:0001"]

    def test_ignores_plain_files(self, make_device, mmc_root):
        (mmc_root / "mmc_uevent").write_text("x")
        make_device(mmc_root, "mmc0", "mmc0:aaaa")
        scanner = StorageDeviceScanner(mmc_root, "mmc")
        assert [p.parent.name for p in scanner.scan()] == ["mmc0"]


class TestStorageTelemetryCollector:
    def test_empty_hierarchy_is_not_supported(self, storage_config):
        report = StorageTelemetryCollector(storage_config).collect()
        assert len(report) == 0
        assert report.supported is False
        assert report.result is Result.NOT_SUPPORTED

    def test_missing_root_is_not_supported(self, tmp_path):
        config = StorageConfig(root=str(tmp_path / "nope"))
        report = StorageTelemetryCollector(config).collect()
        assert report.records == ()

    def test_full_record(self, make_device, mmc_root, storage_config):
        make_device(
            mmc_root,
            "mmc0",
            "mmc0:0001",
            name="DG4016\n",
            type="MMC\n",
            pre_eol_info="0x01\n",
            life_time="0x0a 0x0b\n",
            rev="0x8\n",
        )
        report = StorageTelemetryCollector(storage_config).collect()
        assert report.result is Result.SUCCESS
        assert report.records == (
            StorageRecord(
                name="DG4016",
                is_internal=True,
                is_boot_device=True,
                eol=1,
                lifetime_a=10,
                lifetime_b=11,
                version="0x8",
            ),
        )

    def test_lifetime_without_prefix(self, make_device, mmc_root, storage_config):
        make_device(mmc_root, "mmc0", "mmc0:0001", life_time="0a 0b")
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert (record.lifetime_a, record.lifetime_b) == (10, 11)

    def test_missing_attributes_default(self, make_device, mmc_root, storage_config):
        make_device(mmc_root, "mmc0", "mmc0:0001")
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert record == StorageRecord()

    @pytest.mark.parametrize("device_type", ["SD", "SDIO", "mmc", "MMC2"])
    def test_non_internal_types(self, make_device, mmc_root, storage_config, device_type):
        make_device(mmc_root, "mmc0", "mmc0:0001", type=device_type)
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert record.is_internal is False
        assert record.is_boot_device is False

    def test_malformed_numbers_degrade_to_zero(self, make_device, mmc_root, storage_config):
        make_device(
            mmc_root,
            "mmc0",
            "mmc0:0001",
            name="card",
            pre_eol_info="not-hex",
            life_time="0x05 garbage",
        )
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert record.name == "card"
        assert record.eol == 0
        assert (record.lifetime_a, record.lifetime_b) == (5, 0)

    def test_single_lifetime_value(self, make_device, mmc_root, storage_config):
        make_device(mmc_root, "mmc0", "mmc0:0001", life_time="0x02")
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert (record.lifetime_a, record.lifetime_b) == (2, 0)

    def test_one_record_per_controller_in_scan_order(self, make_device, mmc_root, storage_config):
        for index in (2, 0, 1):
            make_device(
                mmc_root, f"mmc{index}", f"mmc{index}:0001", name=f"card{index}"
            )
        # mmc0 has a second device that is dropped
        make_device(mmc_root, "mmc0", "mmc0:0002", name="extra")
        report = StorageTelemetryCollector(storage_config).collect()
        assert [r.name for r in report] == ["card0", "card1", "card2"]

    def test_custom_attribute_names(self, make_device, mmc_root):
        make_device(mmc_root, "host0", "host0:1", kind="UFS", label="ufs0")
        config = StorageConfig(
            root=str(mmc_root),
            prefix="host",
            internal_type="UFS",
            type_file="kind",
            name_file="label",
        )
        record = StorageTelemetryCollector(config).collect().records[0]
        assert record.name == "ufs0"
        assert record.is_internal is True

    def test_negative_eol_is_treated_as_malformed(self, make_device, mmc_root, storage_config):
        make_device(mmc_root, "mmc0", "mmc0:0001", pre_eol_info="-1", life_time="-2 0x03")
        record = StorageTelemetryCollector(storage_config).collect().records[0]
        assert record.eol == 0
        assert (record.lifetime_a, record.lifetime_b) == (0, 3)

    def test_scan_error_does_not_raise(self, storage_config):
        collector = StorageTelemetryCollector(storage_config)
        with patch.object(collector.scanner, "scan", side_effect=OSError("gone")):
            report = collector.collect()
        assert report.records == ()

    def test_records_are_fresh_each_pass(self, make_device, mmc_root, storage_config):
        device = make_device(mmc_root, "mmc0", "mmc0:0001", pre_eol_info="01")
        collector = StorageTelemetryCollector(storage_config)
        first = collector.collect()
        (device / "pre_eol_info").write_text("03")
        second = collector.collect()
        assert first.records[0].eol == 1
        assert second.records[0].eol == 3
