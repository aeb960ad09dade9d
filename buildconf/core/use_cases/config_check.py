"""
Product variables check use case — validate a ``soong.variables`` file.

Runs the same decoding and normalization as a real configuration, plus
target resolution, without writing anything to disk.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from buildconf.core.config.facade import create_dirs_map, split_boot_jar
from buildconf.core.config.loader import normalize_product_variables, read_product_variables
from buildconf.core.errors import BuildConfError
from buildconf.core.models.product_vars import ProductVariables, product_variable_aliases
from buildconf.core.models.target import OsType
from buildconf.core.targets.resolver import determine_build_os, find_multilib_conflicts, resolve_targets


@dataclass
class ProductVarsCheckResult:
    """Result of product variables validation."""

    valid: bool = False
    path: Path | None = None
    product_vars: ProductVariables | None = None
    target_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        pv = self.product_vars
        return {
            "valid": self.valid,
            "path": str(self.path) if self.path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "device_name": pv.device_name if pv else None,
            "device_product": pv.device_product if pv else None,
            "platform_sdk_version_or_codename": pv.platform_sdk_version_or_codename if pv else None,
            "target_count": self.target_count,
        }


def _unknown_keys(path: Path) -> list[str]:
    # The file already decoded once, so this read can't fail on syntax.
    data = json.loads(path.read_text(encoding="utf-8"))
    return sorted(set(data) - product_variable_aliases())


def check_product_variables(
    path: Path,
    host_platform: str | None = None,
    machine: str | None = None,
) -> ProductVarsCheckResult:
    """Validate a product variables file and report issues.

    Args:
        path: Path to the product variables JSON file.
        host_platform: Override the build host platform.
        machine: Override the build host CPU.

    Returns:
        ProductVarsCheckResult with validation status and any issues.
    """
    result = ProductVarsCheckResult(path=path)

    # Decode and normalize
    try:
        pv = read_product_variables(path)
        if pv is None:
            result.errors.append(f"No product variables file at {path}.")
            return result
        pv = normalize_product_variables(pv, path)
        result.product_vars = pv
    except BuildConfError as e:
        result.errors.append(str(e))
        return result

    unknown = _unknown_keys(path)
    if unknown:
        result.warnings.append(f"Unknown product variables (ignored): {', '.join(unknown)}")

    # Targets
    try:
        build_os, _ = determine_build_os(pv, host_platform, machine)
        targets = resolve_targets(pv, build_os)
        result.target_count = sum(len(ts) for os_type, ts in targets.items() if os_type is not OsType.COMMON_OS)
        conflicts = find_multilib_conflicts(targets.get(OsType.ANDROID, []))
        if conflicts:
            result.warnings.append(f"Multilib conflicts: {', '.join(sorted(conflicts))}")
    except BuildConfError as e:
        result.errors.append(str(e))

    # Boot jars
    for entry in (pv.boot_jars or []) + (pv.apex_boot_jars or []):
        try:
            split_boot_jar(entry)
        except BuildConfError as e:
            result.errors.append(str(e))

    # Override rules
    for alias, rules in (
        ("ManifestPackageNameOverrides", pv.manifest_package_name_overrides),
        ("PackageNameOverrides", pv.package_name_overrides),
        ("CertificateOverrides", pv.certificate_overrides),
    ):
        for rule in rules or []:
            if rule.count(":") != 1:
                result.errors.append(f"{alias}: invalid override rule {rule!r}, expected <from>:<to>")

    # Snapshot directories
    for label, excluded, included in (
        ("VendorSnapshotDirs", pv.vendor_snapshot_dirs_excluded, pv.vendor_snapshot_dirs_included),
        ("RecoverySnapshotDirs", pv.recovery_snapshot_dirs_excluded, pv.recovery_snapshot_dirs_included),
    ):
        try:
            create_dirs_map(included, create_dirs_map(excluded))
        except BuildConfError as e:
            result.warnings.append(f"{label}: {e}")

    if pv.device_arch is None:
        result.warnings.append("No DeviceArch set. Only host targets will be built.")

    result.valid = len(result.errors) == 0
    return result
