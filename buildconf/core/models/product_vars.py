"""
ProductVariables — the persisted, product-tunable build options.

Loaded from ``soong.variables`` (JSON). Every field is optional: ``None``
means "not configured" and accessors apply their own default. The JSON
key of each field is its alias (``Platform_sdk_version``, ``DeviceArch``,
…); unknown keys in the file are ignored so older binaries can read
files written by newer product configuration.

The model is frozen. The loader produces one normalized instance and
nothing mutates it afterwards; late-bound overrides live on the Config.
"""

from __future__ import annotations

import sys

from pydantic import BaseModel, ConfigDict, Field

# Field marker: module properties may be conditioned on this variable.
# Every marked field needs an entry in PRODUCT_VARIABLE_VARIANCE.
_CONDITION = {"condition": True}


class ProductVariables(BaseModel):
    """All product variables, keyed on disk by their alias."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # ── Build identity ───────────────────────────────────────────
    build_id: str | None = Field(None, alias="BuildId")
    build_number_file: str | None = Field(None, alias="BuildNumberFile")

    platform_version_name: str | None = Field(None, alias="Platform_version_name")
    platform_sdk_version: int | None = Field(None, alias="Platform_sdk_version", json_schema_extra=_CONDITION)
    platform_sdk_codename: str | None = Field(None, alias="Platform_sdk_codename")
    platform_sdk_version_or_codename: str | None = Field(
        None, alias="Platform_sdk_version_or_codename", json_schema_extra=_CONDITION,
    )
    platform_sdk_final: bool | None = Field(None, alias="Platform_sdk_final")
    platform_sdk_extension_version: int | None = Field(
        None, alias="Platform_sdk_extension_version", json_schema_extra=_CONDITION,
    )
    platform_base_sdk_extension_version: int | None = Field(None, alias="Platform_base_sdk_extension_version")
    platform_version_active_codenames: list[str] | None = Field(None, alias="Platform_version_active_codenames")
    platform_version_all_preview_codenames: list[str] | None = Field(
        None, alias="Platform_version_all_preview_codenames"
    )
    platform_vndk_version: str | None = Field(None, alias="Platform_vndk_version")
    platform_systemsdk_versions: list[str] | None = Field(None, alias="Platform_systemsdk_versions")
    platform_security_patch: str | None = Field(None, alias="Platform_security_patch")
    platform_preview_sdk_version: str | None = Field(None, alias="Platform_preview_sdk_version")
    platform_min_supported_target_sdk_version: str | None = Field(
        None, alias="Platform_min_supported_target_sdk_version"
    )
    platform_base_os: str | None = Field(None, alias="Platform_base_os")
    platform_version_last_stable: str | None = Field(None, alias="Platform_version_last_stable")
    platform_version_known_codenames: str | None = Field(None, alias="Platform_version_known_codenames")
    apps_default_version_name: str | None = Field(None, alias="AppsDefaultVersionName")

    # ── Host architecture ────────────────────────────────────────
    host_arch: str | None = Field(None, alias="HostArch")
    host_secondary_arch: str | None = Field(None, alias="HostSecondaryArch")
    host_static_binaries: bool | None = Field(None, alias="HostStaticBinaries")
    host_musl: bool | None = Field(None, alias="HostMusl")

    cross_host: str | None = Field(None, alias="CrossHost")
    cross_host_arch: str | None = Field(None, alias="CrossHostArch")
    cross_host_secondary_arch: str | None = Field(None, alias="CrossHostSecondaryArch")

    # ── Device architecture ──────────────────────────────────────
    device_name: str | None = Field(None, alias="DeviceName")
    device_product: str | None = Field(None, alias="DeviceProduct")
    device_arch: str | None = Field(None, alias="DeviceArch")
    device_arch_variant: str | None = Field(None, alias="DeviceArchVariant")
    device_cpu_variant: str | None = Field(None, alias="DeviceCpuVariant")
    device_abi: list[str] | None = Field(None, alias="DeviceAbi")
    device_vndk_version: str | None = Field(None, alias="DeviceVndkVersion")
    device_current_api_level_for_vendor_modules: str | None = Field(
        None, alias="DeviceCurrentApiLevelForVendorModules"
    )
    device_system_sdk_versions: list[str] | None = Field(None, alias="DeviceSystemSdkVersions")
    device_max_page_size_supported: str | None = Field(
        None, alias="DeviceMaxPageSizeSupported", json_schema_extra=_CONDITION,
    )

    device_secondary_arch: str | None = Field(None, alias="DeviceSecondaryArch")
    device_secondary_arch_variant: str | None = Field(None, alias="DeviceSecondaryArchVariant")
    device_secondary_cpu_variant: str | None = Field(None, alias="DeviceSecondaryCpuVariant")
    device_secondary_abi: list[str] | None = Field(None, alias="DeviceSecondaryAbi")

    native_bridge_arch: str | None = Field(None, alias="NativeBridgeArch")
    native_bridge_arch_variant: str | None = Field(None, alias="NativeBridgeArchVariant")
    native_bridge_cpu_variant: str | None = Field(None, alias="NativeBridgeCpuVariant")
    native_bridge_abi: list[str] | None = Field(None, alias="NativeBridgeAbi")
    native_bridge_relative_path: str | None = Field(None, alias="NativeBridgeRelativePath")

    aml_abis: bool | None = Field(None, alias="Aml_abis")
    ndk_abis: bool | None = Field(None, alias="Ndk_abis")

    # ── Resource packaging ───────────────────────────────────────
    aapt_config: list[str] | None = Field(None, alias="AAPTConfig")
    aapt_preferred_config: str | None = Field(None, alias="AAPTPreferredConfig")
    aapt_characteristics: str | None = Field(None, alias="AAPTCharacteristics")
    aapt_prebuilt_dpi: list[str] | None = Field(None, alias="AAPTPrebuiltDPI")

    device_resource_overlays: list[str] | None = Field(None, alias="DeviceResourceOverlays")
    product_resource_overlays: list[str] | None = Field(None, alias="ProductResourceOverlays")
    enforce_rro_targets: list[str] | None = Field(None, alias="EnforceRROTargets")
    enforce_rro_excluded_overlays: list[str] | None = Field(None, alias="EnforceRROExcludedOverlays")

    # ── Build flavour ────────────────────────────────────────────
    allow_missing_dependencies: bool | None = Field(
        None, alias="Allow_missing_dependencies", json_schema_extra=_CONDITION,
    )
    unbundled_build: bool | None = Field(None, alias="Unbundled_build", json_schema_extra=_CONDITION)
    unbundled_build_apps: list[str] | None = Field(None, alias="Unbundled_build_apps")
    unbundled_build_image: bool | None = Field(None, alias="Unbundled_build_image", json_schema_extra=_CONDITION)
    always_use_prebuilt_sdks: bool | None = Field(None, alias="Always_use_prebuilt_sdks", json_schema_extra=_CONDITION)
    debuggable: bool | None = Field(None, alias="Debuggable", json_schema_extra=_CONDITION)
    eng: bool | None = Field(None, alias="Eng", json_schema_extra=_CONDITION)
    minimize_java_debug_info: bool | None = Field(None, alias="MinimizeJavaDebugInfo")
    build_from_text_stub: bool | None = Field(None, alias="Build_from_text_stub", json_schema_extra=_CONDITION)

    malloc_not_svelte: bool | None = Field(None, alias="Malloc_not_svelte", json_schema_extra=_CONDITION)
    malloc_zero_contents: bool | None = Field(None, alias="Malloc_zero_contents", json_schema_extra=_CONDITION)
    malloc_pattern_fill_contents: bool | None = Field(
        None, alias="Malloc_pattern_fill_contents", json_schema_extra=_CONDITION,
    )
    safestack: bool | None = Field(None, alias="Safestack", json_schema_extra=_CONDITION)
    binder32bit: bool | None = Field(None, alias="Binder32bit", json_schema_extra=_CONDITION)
    uml: bool | None = Field(None, alias="Uml", json_schema_extra=_CONDITION)
    treble_linker_namespaces: bool | None = Field(None, alias="Treble_linker_namespaces", json_schema_extra=_CONDITION)
    enforce_vintf_manifest: bool | None = Field(None, alias="Enforce_vintf_manifest", json_schema_extra=_CONDITION)
    override_rs_driver: str | None = Field(None, alias="Override_rs_driver", json_schema_extra=_CONDITION)
    device_page_size_agnostic: bool | None = Field(
        None, alias="Device_page_size_agnostic", json_schema_extra=_CONDITION,
    )

    # ── APEX ─────────────────────────────────────────────────────
    flatten_apex: bool | None = Field(None, alias="Flatten_apex", json_schema_extra=_CONDITION)
    compressed_apex: bool | None = Field(None, alias="CompressedApex", json_schema_extra=_CONDITION)
    trimmed_apex: bool | None = Field(None, alias="TrimmedApex", json_schema_extra=_CONDITION)
    art_use_read_barrier: bool | None = Field(None, alias="ArtUseReadBarrier")

    # ── Remote execution ─────────────────────────────────────────
    use_goma: bool | None = Field(None, alias="UseGoma")
    use_rbe: bool | None = Field(None, alias="UseRBE")
    use_rbe_javac: bool | None = Field(None, alias="UseRBEJAVAC")
    use_rbe_r8: bool | None = Field(None, alias="UseRBER8")
    use_rbe_d8: bool | None = Field(None, alias="UseRBED8")

    # ── Sanitizers ───────────────────────────────────────────────
    sanitize_host: list[str] | None = Field(None, alias="SanitizeHost")
    sanitize_device: list[str] | None = Field(None, alias="SanitizeDevice")
    sanitize_device_diag: list[str] | None = Field(None, alias="SanitizeDeviceDiag")
    sanitize_device_arch: list[str] | None = Field(None, alias="SanitizeDeviceArch")

    enable_cfi: bool | None = Field(None, alias="EnableCFI")
    disable_scudo: bool | None = Field(None, alias="DisableScudo")
    cfi_exclude_paths: list[str] | None = Field(None, alias="CFIExcludePaths")
    cfi_include_paths: list[str] | None = Field(None, alias="CFIIncludePaths")
    integer_overflow_exclude_paths: list[str] | None = Field(None, alias="IntegerOverflowExcludePaths")
    memtag_heap_exclude_paths: list[str] | None = Field(None, alias="MemtagHeapExcludePaths")
    memtag_heap_async_include_paths: list[str] | None = Field(None, alias="MemtagHeapAsyncIncludePaths")
    memtag_heap_sync_include_paths: list[str] | None = Field(None, alias="MemtagHeapSyncIncludePaths")
    hwasan_include_paths: list[str] | None = Field(None, alias="HWASanIncludePaths")

    # ── Coverage ─────────────────────────────────────────────────
    gcov_coverage: bool | None = Field(None, alias="GcovCoverage")
    clang_coverage: bool | None = Field(None, alias="ClangCoverage")
    clang_coverage_continuous_mode: bool | None = Field(None, alias="ClangCoverageContinuousMode")
    native_coverage: bool | None = Field(None, alias="Native_coverage", json_schema_extra=_CONDITION)
    native_coverage_paths: list[str] | None = Field(None, alias="NativeCoveragePaths")
    native_coverage_exclude_paths: list[str] | None = Field(None, alias="NativeCoverageExcludePaths")
    java_coverage_paths: list[str] | None = Field(None, alias="JavaCoveragePaths")
    java_coverage_exclude_paths: list[str] | None = Field(None, alias="JavaCoverageExcludePaths")

    # ── Static analysis ──────────────────────────────────────────
    clang_tidy: bool | None = Field(None, alias="ClangTidy")
    tidy_checks: str | None = Field(None, alias="TidyChecks")

    # ── Partitions ───────────────────────────────────────────────
    vendor_path: str | None = Field(None, alias="VendorPath")
    odm_path: str | None = Field(None, alias="OdmPath")
    product_path: str | None = Field(None, alias="ProductPath")
    system_ext_path: str | None = Field(None, alias="SystemExtPath")

    # ── Package overrides ("from:to" rules) ──────────────────────
    manifest_package_name_overrides: list[str] | None = Field(None, alias="ManifestPackageNameOverrides")
    package_name_overrides: list[str] | None = Field(None, alias="PackageNameOverrides")
    certificate_overrides: list[str] | None = Field(None, alias="CertificateOverrides")
    default_app_certificate: str | None = Field(None, alias="DefaultAppCertificate")

    # ── Source tree shape ────────────────────────────────────────
    namespaces_to_export: list[str] | None = Field(None, alias="NamespacesToExport")
    source_root_dirs: list[str] | None = Field(None, alias="SourceRootDirs")
    include_tags: list[str] | None = Field(None, alias="IncludeTags")

    # ── Snapshots ────────────────────────────────────────────────
    directed_vendor_snapshot: bool = Field(False, alias="DirectedVendorSnapshot")
    vendor_snapshot_modules: dict[str, bool] | None = Field(None, alias="VendorSnapshotModules")
    vendor_snapshot_dirs_included: list[str] | None = Field(None, alias="VendorSnapshotDirsIncluded")
    vendor_snapshot_dirs_excluded: list[str] | None = Field(None, alias="VendorSnapshotDirsExcluded")
    directed_recovery_snapshot: bool = Field(False, alias="DirectedRecoverySnapshot")
    recovery_snapshot_modules: dict[str, bool] | None = Field(None, alias="RecoverySnapshotModules")
    recovery_snapshot_dirs_included: list[str] | None = Field(None, alias="RecoverySnapshotDirsIncluded")
    recovery_snapshot_dirs_excluded: list[str] | None = Field(None, alias="RecoverySnapshotDirsExcluded")
    host_fake_snapshot_enabled: bool = Field(False, alias="HostFakeSnapshotEnabled")

    # ── Boot jars ("apex:jar" entries) ───────────────────────────
    boot_jars: list[str] | None = Field(None, alias="BootJars")
    apex_boot_jars: list[str] | None = Field(None, alias="ApexBootJars")

    # ── Profiles ─────────────────────────────────────────────────
    pgo_additional_profile_dirs: list[str] | None = Field(None, alias="PgoAdditionalProfileDirs")
    afdo_profiles: list[str] | None = Field(None, alias="AfdoProfiles")

    shipping_api_level: str | None = Field(None, alias="ShippingApiLevel")
    multitree_update_meta: bool = Field(False, alias="MultitreeUpdateMeta")

    # ── Vendor-defined variables: namespace -> {name: value} ─────
    vendor_vars: dict[str, dict[str, str]] | None = Field(None, alias="VendorVars")

    @classmethod
    def defaults(cls, host_platform: str | None = None) -> ProductVariables:
        """The product used when no product variables file exists yet.

        Args:
            host_platform: ``sys.platform``-style name; Linux hosts also get
                a Windows cross-host target.
        """
        platform = host_platform if host_platform is not None else sys.platform
        values: dict = {
            "build_number_file": "build_number.txt",
            "platform_version_name": "S",
            "platform_base_sdk_extension_version": 30,
            "platform_sdk_version": 30,
            "platform_sdk_codename": "S",
            "platform_sdk_final": False,
            "platform_version_active_codenames": ["S"],
            "platform_version_all_preview_codenames": ["S"],
            "platform_vndk_version": "S",
            "host_arch": "x86_64",
            "host_secondary_arch": "x86",
            "device_name": "generic_arm64",
            "device_product": "aosp_arm-eng",
            "device_arch": "arm64",
            "device_arch_variant": "armv8-a",
            "device_cpu_variant": "generic",
            "device_abi": ["arm64-v8a"],
            "device_secondary_arch": "arm",
            "device_secondary_arch_variant": "armv8-a",
            "device_secondary_cpu_variant": "generic",
            "device_secondary_abi": ["armeabi-v7a", "armeabi"],
            "device_max_page_size_supported": "4096",
            "aapt_config": ["normal", "large", "xlarge", "hdpi", "xhdpi", "xxhdpi"],
            "aapt_preferred_config": "xhdpi",
            "aapt_characteristics": "nosdcard",
            "aapt_prebuilt_dpi": ["xhdpi", "xxhdpi"],
            "malloc_not_svelte": True,
            "malloc_zero_contents": True,
            "malloc_pattern_fill_contents": False,
            "safestack": False,
            "trimmed_apex": False,
            "boot_jars": [],
            "apex_boot_jars": [],
        }
        if platform.startswith("linux"):
            values.update(
                cross_host="windows",
                cross_host_arch="x86",
                cross_host_secondary_arch="x86_64",
            )
        return cls(**values)

    def to_json_dict(self) -> dict:
        """Serialize with on-disk key names, keeping unset fields as null."""
        return self.model_dump(mode="json", by_alias=True)


# ── Architecture variance ───────────────────────────────────────
#
# Product variables that can be used as conditions on module
# properties, and whether the condition may differ per target
# architecture. Exported next to the product variables for other
# build tools. Keys are exactly the aliases of the fields marked
# with _CONDITION.

PRODUCT_VARIABLE_VARIANCE: dict[str, bool] = {
    "Platform_sdk_version": False,
    "Platform_sdk_version_or_codename": False,
    "Platform_sdk_extension_version": False,
    "Unbundled_build": False,
    "Unbundled_build_image": False,
    "Always_use_prebuilt_sdks": False,
    "Build_from_text_stub": False,
    "Flatten_apex": False,
    "CompressedApex": False,
    "TrimmedApex": False,
    "Allow_missing_dependencies": False,
    "DeviceMaxPageSizeSupported": False,
    "Malloc_not_svelte": True,
    "Malloc_zero_contents": True,
    "Malloc_pattern_fill_contents": True,
    "Safestack": True,
    "Binder32bit": True,
    "Device_page_size_agnostic": True,
    "Override_rs_driver": True,
    "Eng": True,
    "Debuggable": True,
    "Uml": True,
    "Treble_linker_namespaces": True,
    "Enforce_vintf_manifest": True,
    "Native_coverage": True,
}


def product_variable_aliases() -> set[str]:
    """All on-disk names of ProductVariables fields."""
    return {info.alias or name for name, info in ProductVariables.model_fields.items()}


def condition_variable_aliases() -> set[str]:
    """On-disk names of the fields module properties may be conditioned on."""
    return {
        info.alias or name
        for name, info in ProductVariables.model_fields.items()
        if isinstance(info.json_schema_extra, dict) and info.json_schema_extra.get("condition")
    }


def check_variance_table(table: dict[str, bool] | None = None) -> None:
    """Raise unless the variance table covers exactly the condition variables.

    Raises:
        ValueError: The table names a field ProductVariables doesn't have,
            misses a condition variable, or lists one that isn't marked.
    """
    table = PRODUCT_VARIABLE_VARIANCE if table is None else table
    unknown = sorted(set(table) - product_variable_aliases())
    if unknown:
        raise ValueError(f"variance table names unknown product variables: {', '.join(unknown)}")
    conditions = condition_variable_aliases()
    missing = sorted(conditions - set(table))
    if missing:
        raise ValueError(f"variance table is missing condition variables: {', '.join(missing)}")
    unmarked = sorted(set(table) - conditions)
    if unmarked:
        raise ValueError(f"variance table lists variables not usable as conditions: {', '.join(unmarked)}")


def arch_variant_product_variables() -> list[str]:
    return [name.lower() for name, variant in PRODUCT_VARIABLE_VARIANCE.items() if variant]


def non_arch_variant_product_variables() -> list[str]:
    return [name.lower() for name, variant in PRODUCT_VARIABLE_VARIANCE.items() if not variant]


check_variance_table()
