"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from pathlib import Path

import pytest

from health_tap.config import StorageConfig


def write_device(root: Path, controller: str, device: str, **attributes: str) -> Path:
    """Create ``root/controller/device`` with the given attribute files."""
    path = root / controller / device
    path.mkdir(parents=True, exist_ok=True)
    for name, content in attributes.items():
        (path / name).write_text(content)
    return path


@pytest.fixture
def mmc_root(tmp_path):
    """An empty mmc_host style root directory."""
    root = tmp_path / "mmc_host"
    root.mkdir()
    return root


@pytest.fixture
def storage_config(mmc_root):
    """Storage config pointing at the temporary hierarchy."""
    return StorageConfig(root=str(mmc_root))


@pytest.fixture
def make_device():
    """Factory that creates controller/device directories with attributes."""
    return write_device
