"""
Toolchain settings — compiler locations and wrappers chosen by environment.

Two groups of settings:

    ClangToolchain    prebuilt clang location and version, plus an
                      optional compiler wrapper (CC_WRAPPER)
    SDClangSettings   an optional vendor clang described by JSON config
                      files, with per-product overrides and a static
                      analysis switch

Every environment variable is read through the ledger, so changing one
forces reconfiguration.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from buildconf.core.env.ledger import EnvironmentLedger
from buildconf.core.errors import ConfigError, ConfigIOError

logger = logging.getLogger(__name__)

CLANG_DEFAULT_BASE = "prebuilts/clang/host"
CLANG_DEFAULT_VERSION = "clang-4691093"
CLANG_DEFAULT_SHORT_VERSION = "6.0.2"


@dataclass(frozen=True)
class ClangToolchain:
    """Prebuilt clang used for native compilation."""

    base: str
    version: str
    short_version: str
    host_prebuilt_tag: str
    cc_wrapper: str = ""

    @property
    def path(self) -> str:
        return f"{self.base}/{self.host_prebuilt_tag}/{self.version}"

    @property
    def bin_dir(self) -> str:
        return f"{self.path}/bin"

    @property
    def asan_lib_dir(self) -> str:
        return f"{self.base}/linux-x86/{self.version}/lib64/clang/{self.short_version}/lib/linux"

    @classmethod
    def from_ledger(cls, ledger: EnvironmentLedger, host_prebuilt_tag: str) -> ClangToolchain:
        wrapper = ledger.getenv("CC_WRAPPER")
        return cls(
            base=ledger.getenv_with_default("LLVM_PREBUILTS_BASE", CLANG_DEFAULT_BASE),
            version=ledger.getenv_with_default("LLVM_PREBUILTS_VERSION", CLANG_DEFAULT_VERSION),
            short_version=ledger.getenv_with_default("LLVM_RELEASE_VERSION", CLANG_DEFAULT_SHORT_VERSION),
            host_prebuilt_tag=host_prebuilt_tag,
            # The wrapper is prepended to compiler command lines.
            cc_wrapper=wrapper + " " if wrapper else "",
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "base": self.base,
            "version": self.version,
            "short_version": self.short_version,
            "path": self.path,
            "cc_wrapper": self.cc_wrapper,
        }


# ── SD clang ────────────────────────────────────────────────────

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(value: str) -> bool | None:
    """Parse the strict boolean spellings; None for anything else."""
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    return None


def _load_json_file(path: Path, what: str) -> Any | None:
    """Decode ``path``; None if it doesn't exist."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ConfigIOError(f"{what}: could not open {path}: {e}") from e
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{what}: {path} did not parse correctly: {e}") from e


def _block_value(block: dict, key: str, kind: type, source: Path) -> Any:
    value = block[key]
    if not isinstance(value, kind):
        raise ConfigError(f"{source}: {key} must be a {kind.__name__}")
    return value


@dataclass(frozen=True)
class SDClangSettings:
    """Vendor clang configuration after file and environment overrides."""

    enabled: bool = False
    path: str = ""
    path2: str = ""
    flags: str = ""
    flags2: str = ""
    static_analysis: bool = False

    @classmethod
    def load(cls, ledger: EnvironmentLedger, android_root: Path, product: str) -> SDClangSettings:
        """Resolve SD clang settings for ``product``.

        Raises:
            ConfigError: Malformed config files, or SD clang enabled without a path.
        """
        enabled = False
        path = path2 = flags = flags2 = ""
        ae_flag = ""
        static_analysis = False

        ae_config = ledger.getenv("SDCLANG_AE_CONFIG")
        if ae_config:
            ae_path = android_root / ae_config
            data = _load_json_file(ae_path, "SD clang AE config")
            if data is not None:
                if not isinstance(data, dict):
                    raise ConfigError(f"SD clang AE config: {ae_path} must be a JSON object")
                ae_flag = str(data.get("SDCLANG_AE_FLAG", ""))

        sdclang_config = ledger.getenv("SDCLANG_CONFIG")
        config_path = android_root / sdclang_config if sdclang_config else None
        data = _load_json_file(config_path, "SD clang config") if config_path else None
        if data is not None:
            if not isinstance(data, dict) or not isinstance(data.get("default"), dict):
                raise ConfigError(f"{config_path}: Default block is required in the SD Clang config file")
            default = data["default"]
            for required in ("SDCLANG_PATH", "SDCLANG_PATH_2"):
                if required not in default:
                    raise ConfigError(f"{config_path}: {required} is required in the default block")

            # The product block, when present, overrides the default block.
            blocks = [default]
            if isinstance(data.get(product), dict):
                blocks.append(data[product])
            for block in blocks:
                if "SDCLANG" in block:
                    enabled = _block_value(block, "SDCLANG", bool, config_path)
                if "SDCLANG_PATH" in block:
                    path = _block_value(block, "SDCLANG_PATH", str, config_path)
                if "SDCLANG_PATH_2" in block:
                    path2 = _block_value(block, "SDCLANG_PATH_2", str, config_path)
                if "SDCLANG_FLAGS" in block:
                    flags = _block_value(block, "SDCLANG_FLAGS", str, config_path)
                if "SDCLANG_FLAGS_2" in block:
                    flags2 = _block_value(block, "SDCLANG_FLAGS_2", str, config_path)

            if parse_bool(ledger.getenv("SDCLANG_SA_ENABLED")):
                static_analysis = True
                flags = " ".join([flags, "--compile-and-analyze", f"{android_root}/llvmsa"])
                logger.info("Clang SA is enabled: %s", flags)
            else:
                logger.debug("Clang SA is not enabled")

        override = parse_bool(ledger.getenv("SDCLANG"))
        if override is not None:
            enabled = override

        path = ledger.getenv_with_default("SDCLANG_PATH", path)
        path2 = ledger.getenv_with_default("SDCLANG_PATH_2", path2)
        if enabled and not path:
            raise ConfigError("SDCLANG_PATH can not be empty")
        if enabled and not path2:
            raise ConfigError("SDCLANG_PATH_2 can not be empty")

        return cls(
            enabled=enabled,
            path=path,
            path2=path2,
            flags=ledger.getenv_with_default("SDCLANG_COMMON_FLAGS", f"{ae_flag} {flags}"),
            flags2=ledger.getenv_with_default("SDCLANG_COMMON_FLAGS_2", f"{ae_flag} {flags2}"),
            static_analysis=static_analysis,
        )

    def asan_lib_dir(self, android_root: Path) -> str:
        """Sanitizer runtime directory of the SD clang install.

        ``path`` is the clang ``bin`` directory, relative to
        ``android_root`` unless absolute. Its ``../lib/clang`` must hold
        exactly one version directory.

        Raises:
            ConfigError: SD clang is disabled, or the version directory isn't unique.
            ConfigIOError: ``lib/clang`` can't be listed.
        """
        if not self.enabled:
            raise ConfigError("SD clang is not enabled, no sanitizer libraries")
        base = Path(self.path)
        if not base.is_absolute():
            base = android_root / base
        clang_lib = Path(os.path.normpath(base / ".." / "lib" / "clang"))
        try:
            entries = sorted(clang_lib.iterdir())
        except OSError as e:
            raise ConfigIOError(f"could not list {clang_lib}: {e}") from e
        if len(entries) != 1 or not entries[0].is_dir():
            raise ConfigError(f"Failed to find sanitizer libraries in {clang_lib}")
        return str(entries[0] / "lib" / "linux")
