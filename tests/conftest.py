"""
Shared test fixtures and configuration.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from buildconf.core.models.cmd_args import CmdArgs


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """A source root with the output tree beside it, not above it."""
    src = tmp_path / "src"
    src.mkdir()
    return src


@pytest.fixture
def soong_out_dir(tmp_path: Path) -> Path:
    """Return the build output directory (not created)."""
    return tmp_path / "out" / "soong"


@pytest.fixture
def cmd_args(tmp_path: Path, soong_out_dir: Path) -> CmdArgs:
    """Invocation args pointing at the temp output tree."""
    return CmdArgs(out_dir=str(tmp_path / "out"), soong_out_dir=str(soong_out_dir))


@pytest.fixture
def write_product_vars(soong_out_dir: Path) -> Callable[[dict], Path]:
    """Return a helper that writes ``soong.variables`` from a dict."""

    def _write(data: dict) -> Path:
        soong_out_dir.mkdir(parents=True, exist_ok=True)
        path = soong_out_dir / "soong.variables"
        path.write_text(json.dumps(data, indent=4))
        return path

    return _write


@pytest.fixture
def device_product_vars() -> dict:
    """A small arm64 + arm device product, as written by product config."""
    return {
        "DeviceName": "generic_arm64",
        "DeviceProduct": "aosp_arm64",
        "Platform_sdk_version": 33,
        "Platform_sdk_codename": "UpsideDownCake",
        "Platform_sdk_final": False,
        "HostArch": "x86_64",
        "HostSecondaryArch": "x86",
        "DeviceArch": "arm64",
        "DeviceArchVariant": "armv8-a",
        "DeviceCpuVariant": "generic",
        "DeviceAbi": ["arm64-v8a"],
        "DeviceSecondaryArch": "arm",
        "DeviceSecondaryArchVariant": "armv8-a",
        "DeviceSecondaryCpuVariant": "generic",
        "DeviceSecondaryAbi": ["armeabi-v7a", "armeabi"],
    }


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """CLI tests configure the package logger; undo it so caplog sees records."""
    yield
    pkg = logging.getLogger("buildconf")
    pkg.handlers.clear()
    pkg.propagate = True
    pkg.setLevel(logging.NOTSET)
