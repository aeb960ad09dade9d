"""
Target resolver — turns product variables into compilation targets.

Produces a mapping of OS to an ordered list of Targets:

    build OS     primary host arch, optional secondary host arch
    cross host   optional cross-compiled host OS (usually Windows)
    android      device primary, secondary and native-bridge arches
    common_os    one synthetic target shared by every OS

Two named ABI presets (NDK and AML) replace the device list when the
product asks for them. Multilib conflicts (two device arches in the
same 32/64-bit class) are reported, never rejected.
"""

from __future__ import annotations

import logging
import platform as _platform
import sys
from collections.abc import Iterable, Sequence

from buildconf.core.errors import ConfigError
from buildconf.core.models.product_vars import ProductVariables
from buildconf.core.models.target import Arch, ArchConfig, ArchType, OsType, Target

logger = logging.getLogger(__name__)

# ── Known architecture variants ─────────────────────────────────

ARCH_VARIANTS: dict[ArchType, frozenset[str]] = {
    ArchType.ARM: frozenset({"armv7-a", "armv7-a-neon", "armv8-a", "armv8-2a"}),
    ArchType.ARM64: frozenset({
        "armv8-a", "armv8-a-branchprot", "armv8-2a", "armv8-2a-dotprod", "armv9-a",
    }),
    ArchType.RISCV64: frozenset(),
    ArchType.X86: frozenset({
        "amberlake", "atom", "broadwell", "goldmont", "goldmont-plus", "haswell",
        "icelake", "ivybridge", "kabylake", "sandybridge", "silvermont", "skylake",
        "stoneyridge", "tigerlake", "whiskeylake", "x86_64",
    }),
    ArchType.X86_64: frozenset({
        "amberlake", "broadwell", "goldmont", "goldmont-plus", "haswell", "icelake",
        "ivybridge", "kabylake", "sandybridge", "silvermont", "skylake", "stoneyridge",
        "tigerlake", "whiskeylake",
    }),
}

_ARM_CPUS = frozenset({
    "cortex-a53", "cortex-a55", "cortex-a72", "cortex-a73", "cortex-a75", "cortex-a76",
    "kryo", "kryo385", "exynos-m1", "exynos-m2",
})

CPU_VARIANTS: dict[ArchType, frozenset[str]] = {
    ArchType.ARM: _ARM_CPUS | {"cortex-a7", "cortex-a8", "cortex-a9", "cortex-a15", "krait"},
    ArchType.ARM64: _ARM_CPUS,
    ArchType.RISCV64: frozenset(),
    ArchType.X86: frozenset(),
    ArchType.X86_64: frozenset(),
}

_MACHINE_ARCH: dict[str, ArchType] = {
    "x86_64": ArchType.X86_64,
    "amd64": ArchType.X86_64,
    "aarch64": ArchType.ARM64,
    "arm64": ArchType.ARM64,
}


# ── ABI presets ─────────────────────────────────────────────────

def ndk_abis_config() -> list[ArchConfig]:
    """Every ABI the NDK ships prebuilts for."""
    return [
        ArchConfig("arm", "armv7-a", "", ("armeabi-v7a",)),
        ArchConfig("arm64", "armv8-a-branchprot", "", ("arm64-v8a",)),
        ArchConfig("riscv64", "", "", ("riscv64",)),
        ArchConfig("x86", "", "", ("x86",)),
        ArchConfig("x86_64", "", "", ("x86_64",)),
    ]


def aml_abis_config() -> list[ArchConfig]:
    """ABIs that updatable platform modules are built for."""
    return [
        ArchConfig("arm", "armv7-a-neon", "", ("armeabi-v7a",)),
        ArchConfig("arm64", "armv8-a", "", ("arm64-v8a",)),
        ArchConfig("x86", "", "", ("x86",)),
        ArchConfig("x86_64", "", "", ("x86_64",)),
    ]


# ── Build host ──────────────────────────────────────────────────

def determine_build_os(
    product_vars: ProductVariables,
    host_platform: str | None = None,
    machine: str | None = None,
) -> tuple[OsType, ArchType]:
    """Return the OS and architecture of the machine running the build.

    Raises:
        ConfigError: If the host platform or CPU is not supported.
    """
    host_platform = host_platform if host_platform is not None else sys.platform
    machine = (machine if machine is not None else _platform.machine()).lower()

    if host_platform.startswith("linux"):
        build_os = OsType.LINUX_MUSL if product_vars.host_musl else OsType.LINUX_GLIBC
    elif host_platform == "darwin":
        build_os = OsType.DARWIN
    else:
        raise ConfigError(f"unsupported build host platform {host_platform!r}")

    build_arch = _MACHINE_ARCH.get(machine)
    if build_arch is None:
        raise ConfigError(f"unsupported build host architecture {machine!r}")
    return build_os, build_arch


# ── Decoding ────────────────────────────────────────────────────

def _normalize_variant(value: str | None) -> str:
    if value is None or value == "generic":
        return ""
    return value


def decode_arch(
    os_type: OsType,
    arch_name: str,
    arch_variant: str | None = None,
    cpu_variant: str | None = None,
    abi: Sequence[str] | None = None,
) -> Arch:
    """Build an Arch from product-variable strings, validating the variants.

    Raises:
        ConfigError: Unknown architecture or variant.
    """
    try:
        arch_type = ArchType(arch_name)
    except ValueError:
        raise ConfigError(f"unknown arch {arch_name!r} for {os_type}") from None
    if arch_type is ArchType.COMMON:
        raise ConfigError(f"arch 'common' cannot be configured for {os_type}")

    variant = _normalize_variant(arch_variant)
    if variant and variant not in ARCH_VARIANTS[arch_type]:
        raise ConfigError(f"unknown arch variant {variant!r} for arch {arch_name}")

    cpu = _normalize_variant(cpu_variant)
    if cpu and cpu not in CPU_VARIANTS[arch_type]:
        raise ConfigError(f"unknown cpu variant {cpu!r} for arch {arch_name}")

    return Arch(arch_type=arch_type, arch_variant=variant, cpu_variant=cpu, abi=tuple(abi or ()))


def decode_arch_settings(os_type: OsType, arch_configs: Iterable[ArchConfig]) -> list[Target]:
    """Build targets for ``os_type`` from an ABI preset."""
    return [
        Target(os=os_type, arch=decode_arch(os_type, c.arch, c.arch_variant, c.cpu_variant, c.abi))
        for c in arch_configs
    ]


def resolve_targets(product_vars: ProductVariables, build_os: OsType) -> dict[OsType, list[Target]]:
    """Derive the per-OS compilation targets from product variables.

    Raises:
        ConfigError: Missing host arch, unknown cross host, unknown arch or variant.
    """
    targets: dict[OsType, list[Target]] = {}

    def add(os_type: OsType, arch: Arch, **extra: object) -> None:
        host_cross = os_type.is_host and os_type is not build_os
        targets.setdefault(os_type, []).append(
            Target(os=os_type, arch=arch, host_cross=host_cross, **extra)
        )

    pv = product_vars
    if not pv.host_arch:
        raise ConfigError("No host primary architecture set")

    # The primary host target, which must always exist.
    add(build_os, decode_arch(build_os, pv.host_arch))
    if pv.host_secondary_arch:
        add(build_os, decode_arch(build_os, pv.host_secondary_arch))

    # Optional cross-compiled host targets, generally Windows.
    if pv.cross_host:
        cross_os = OsType.by_name(pv.cross_host)
        if cross_os is None or not cross_os.is_host:
            raise ConfigError(f"Unknown cross host OS {pv.cross_host!r}")
        if not pv.cross_host_arch:
            raise ConfigError("No cross-host primary architecture set")
        add(cross_os, decode_arch(cross_os, pv.cross_host_arch))
        if pv.cross_host_secondary_arch:
            add(cross_os, decode_arch(cross_os, pv.cross_host_secondary_arch))

    # Optional device targets.
    if pv.device_arch:
        android = OsType.ANDROID
        add(android, decode_arch(android, pv.device_arch, pv.device_arch_variant,
                                 pv.device_cpu_variant, pv.device_abi))
        if pv.device_secondary_arch:
            add(android, decode_arch(android, pv.device_secondary_arch,
                                     pv.device_secondary_arch_variant,
                                     pv.device_secondary_cpu_variant, pv.device_secondary_abi))
        if pv.native_bridge_arch:
            add(android,
                decode_arch(android, pv.native_bridge_arch, pv.native_bridge_arch_variant,
                            pv.native_bridge_cpu_variant, pv.native_bridge_abi),
                native_bridge=True,
                native_bridge_host_arch=pv.device_arch,
                native_bridge_relative_path=pv.native_bridge_relative_path or "")

    # An ABI preset replaces whatever the product configured for the device.
    preset = None
    if pv.ndk_abis:
        preset = ndk_abis_config()
    elif pv.aml_abis:
        preset = aml_abis_config()
    if preset is not None:
        targets[OsType.ANDROID] = decode_arch_settings(OsType.ANDROID, preset)

    targets[OsType.COMMON_OS] = [common_target(OsType.COMMON_OS)]

    logger.debug(
        "Resolved targets: %s",
        {os_type.value: [str(t) for t in ts] for os_type, ts in targets.items()},
    )
    return targets


# ── Target selection ────────────────────────────────────────────

def common_target(os_type: OsType) -> Target:
    return Target(os=os_type, arch=Arch(arch_type=ArchType.COMMON))


def common_targets(targets: Iterable[Target]) -> list[Target]:
    """One common-arch target per OS appearing in ``targets``, in order."""
    seen: set[OsType] = set()
    result = []
    for target in targets:
        if target.os not in seen:
            seen.add(target.os)
            result.append(common_target(target.os))
    return result


def first_target(targets: Sequence[Target], *multilibs: str) -> list[Target]:
    """Targets of the first multilib in ``multilibs`` that has any.

    Returns an empty list when none match; callers must check.
    """
    for multilib in multilibs:
        matching = [t for t in targets if t.multilib == multilib]
        if matching:
            return matching
    return []


def find_multilib_conflicts(targets: Iterable[Target]) -> set[ArchType]:
    """Arch types whose multilib class was claimed by an earlier target."""
    claimed: set[str] = set()
    conflicts: set[ArchType] = set()
    for target in targets:
        multilib = target.arch.arch_type.multilib
        if multilib in claimed:
            conflicts.add(target.arch.arch_type)
        claimed.add(multilib)
    if conflicts:
        logger.info("Multilib conflicts for %s", ", ".join(sorted(conflicts)))
    return conflicts
