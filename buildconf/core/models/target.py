"""
Target model — the (OS, architecture, variant) tuples the build compiles for.

A Target pairs an ``OsType`` with an ``Arch``. Every architecture type
belongs to one multilib class ("lib32" or "lib64"); the synthetic
``common`` architecture is used for artifacts that don't depend on the
architecture at all (java, resources) and has multilib "common".
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class OsClass(StrEnum):
    """Where code for an OS runs."""

    HOST = "host"
    DEVICE = "device"
    GENERIC = "generic"


class OsType(StrEnum):
    """Operating systems a target can be compiled for."""

    LINUX_GLIBC = "linux_glibc"
    LINUX_MUSL = "linux_musl"
    LINUX_BIONIC = "linux_bionic"
    DARWIN = "darwin"
    WINDOWS = "windows"
    ANDROID = "android"
    COMMON_OS = "common_os"

    @property
    def os_class(self) -> OsClass:
        return _OS_CLASS[self]

    @property
    def is_host(self) -> bool:
        return self.os_class is OsClass.HOST

    @classmethod
    def by_name(cls, name: str) -> OsType | None:
        """Look up an OS by name, accepting the short aliases used on the command line."""
        name = _OS_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return None


_OS_CLASS: dict[OsType, OsClass] = {
    OsType.LINUX_GLIBC: OsClass.HOST,
    OsType.LINUX_MUSL: OsClass.HOST,
    OsType.LINUX_BIONIC: OsClass.HOST,
    OsType.DARWIN: OsClass.HOST,
    OsType.WINDOWS: OsClass.HOST,
    OsType.ANDROID: OsClass.DEVICE,
    OsType.COMMON_OS: OsClass.GENERIC,
}

_OS_ALIASES = {"linux": "linux_glibc", "musl": "linux_musl"}


class ArchType(StrEnum):
    """CPU architecture families."""

    ARM = "arm"
    ARM64 = "arm64"
    RISCV64 = "riscv64"
    X86 = "x86"
    X86_64 = "x86_64"
    COMMON = "common"

    @property
    def multilib(self) -> str:
        return _MULTILIB[self]


_MULTILIB: dict[ArchType, str] = {
    ArchType.ARM: "lib32",
    ArchType.ARM64: "lib64",
    ArchType.RISCV64: "lib64",
    ArchType.X86: "lib32",
    ArchType.X86_64: "lib64",
    ArchType.COMMON: "common",
}


@dataclass(frozen=True)
class Arch:
    """A concrete architecture: type plus optional variant and CPU tuning."""

    arch_type: ArchType
    arch_variant: str = ""
    cpu_variant: str = ""
    abi: tuple[str, ...] = ()

    def __str__(self) -> str:
        parts = [self.arch_type.value]
        if self.arch_variant:
            parts.append(self.arch_variant)
        if self.cpu_variant:
            parts.append(self.cpu_variant)
        return "_".join(parts)


@dataclass(frozen=True)
class Target:
    """One compilation target: an OS and an architecture."""

    os: OsType
    arch: Arch
    native_bridge: bool = False
    native_bridge_host_arch: str = ""
    native_bridge_relative_path: str = ""
    host_cross: bool = False

    @property
    def multilib(self) -> str:
        return self.arch.arch_type.multilib

    def os_variation(self) -> str:
        return self.os.value

    def arch_variation(self) -> str:
        prefix = "native_bridge_" if self.native_bridge else ""
        return prefix + str(self.arch)

    def __str__(self) -> str:
        return f"{self.os_variation()}_{self.arch_variation()}"

    def to_dict(self) -> dict:
        return {
            "os": self.os.value,
            "arch": self.arch.arch_type.value,
            "arch_variant": self.arch.arch_variant,
            "cpu_variant": self.arch.cpu_variant,
            "abi": list(self.arch.abi),
            "multilib": self.multilib,
            "native_bridge": self.native_bridge,
            "host_cross": self.host_cross,
        }


@dataclass(frozen=True)
class ArchConfig:
    """A preset device architecture, as used by the NDK / AML ABI sets."""

    arch: str
    arch_variant: str
    cpu_variant: str
    abi: tuple[str, ...]
