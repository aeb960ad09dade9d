"""
Config facade — the assembled, read-mostly configuration for one build.

``new_config()`` is the only way to build a Config from disk. It runs a
fixed pipeline:

    1. record invocation args
    2. check the output directories against the source root (no I/O yet)
    3. load product variables from ``<soong_out_dir>/soong.variables``
    4. detect the kati marker, determine the build host
    5. resolve targets (ABI presets included)
    6. record multilib conflicts, fill the host/common/device target slots
    7. select the build mode
    8. build the force-enabled module set and the Bazel handle

After construction the Config is shared by many analysis workers. The
only state that still changes is the environment ledger, the memo
tables, the mixed-build log, and a few late-bound flags, all guarded.
"""

from __future__ import annotations

import logging
import os
import posixpath
import threading
from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeVar

from buildconf.core.bazel.context import BazelContext, MixedBuildBazelContext, NoopBazelContext
from buildconf.core.build_mode import select_build_mode
from buildconf.core.config.loader import load_product_variables
from buildconf.core.env.ledger import EnvironmentLedger
from buildconf.core.errors import ConfigError, InvariantViolation
from buildconf.core.models.build_mode import BuildMode
from buildconf.core.models.cmd_args import CmdArgs
from buildconf.core.models.product_vars import ProductVariables
from buildconf.core.models.target import Arch, ArchType, OsType, Target
from buildconf.core.observability.metrics import LOAD_PRODUCT_VARIABLES, MIXED_BUILD_MODULES, MetricsRegistry
from buildconf.core.once import OnceKey, OncePer
from buildconf.core.persistence.product_vars_file import PRODUCT_VARIABLES_FILE_NAME
from buildconf.core.targets.resolver import (
    common_targets,
    determine_build_os,
    find_multilib_conflicts,
    first_target,
    resolve_targets,
)
from buildconf.core.toolchain import ClangToolchain, SDClangSettings
from buildconf.core.util import (
    copy_of,
    has_any_prefix,
    in_list,
    match_pattern,
    parse_uint,
    split_comma_list,
    subst_pattern,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

KATI_ENABLED_MARKER = ".soong.kati_enabled"
DEFAULT_RBE_WRAPPER = "prebuilts/remoteexecution-client/live/rewrapper"
DEFAULT_XREF_CU_ENCODING = "json"
DEFAULT_XREF_CU_JAVA_SOURCE_MAX = "1000"

_MIXED_BUILDS_SUPPORT_KEY = OnceKey("globalMixedBuildsSupport")
_BOOT_JARS_KEY = OnceKey("bootJars")
_CLANG_TOOLCHAIN_KEY = OnceKey("clangToolchain")
_SDCLANG_KEY = OnceKey("sdclangSettings")
_SDCLANG_ASAN_LIB_DIR_KEY = OnceKey("SDClangAsanLibDir")
_VENDOR_SNAPSHOT_DIRS_EXCLUDED_KEY = OnceKey("VendorSnapshotDirsExcludedMap")
_VENDOR_SNAPSHOT_DIRS_INCLUDED_KEY = OnceKey("VendorSnapshotDirsIncludedMap")
_RECOVERY_SNAPSHOT_DIRS_EXCLUDED_KEY = OnceKey("RecoverySnapshotDirsExcludedMap")
_RECOVERY_SNAPSHOT_DIRS_INCLUDED_KEY = OnceKey("RecoverySnapshotDirsIncludedMap")

# Bazel handle of a config that was never assembled (null_config).
_NOOP_BAZEL_CONTEXT = NoopBazelContext()


# ── Directory sets ──────────────────────────────────────────────


class DuplicatePolicy(StrEnum):
    """What ``create_dirs_map`` does with a directory listed twice."""

    ERROR = "error"
    WARN = "warn"
    IGNORE = "ignore"


def create_dirs_map(
    dirs: Iterable[str] | None,
    previous: Mapping[str, bool] | None = None,
    policy: DuplicatePolicy = DuplicatePolicy.ERROR,
) -> dict[str, bool]:
    """Build a set of cleaned directory paths.

    An entry is a duplicate if it repeats within ``dirs`` or already
    appears in ``previous`` (the paired exclusion set).

    Raises:
        ConfigError: A duplicate entry under ``DuplicatePolicy.ERROR``.
    """
    previous = previous or {}
    result: dict[str, bool] = {}
    for directory in dirs or ():
        clean = posixpath.normpath(directory)
        if previous.get(clean) or result.get(clean):
            if policy is DuplicatePolicy.ERROR:
                raise ConfigError(f"Duplicate entry {directory}")
            if policy is DuplicatePolicy.WARN:
                logger.warning("Duplicate entry %s", directory)
            continue
        result[clean] = True
    return result


def _find_override(overrides: list[str] | None, name: str, product_var: str, to_name: str) -> str | None:
    for rule in overrides or ():
        parts = rule.split(":")
        if len(parts) != 2:
            raise ConfigError(
                f"invalid override rule {rule!r} in {product_var} should be <module_name>:<{to_name}>"
            )
        if match_pattern(parts[0], name):
            return subst_pattern(parts[0], parts[1], name)
    return None


def split_boot_jar(entry: str) -> tuple[str, str]:
    """Split an ``apex:jar`` boot jar entry.

    Raises:
        ConfigError: Missing separator or empty apex name.
    """
    apex, sep, jar = entry.partition(":")
    if not sep:
        raise ConfigError(f"malformed (apex, jar) pair: {entry!r}, expected format: <apex>:<jar>")
    if not apex:
        raise ConfigError(
            f"invalid apex {apex!r} in <apex>:<jar> pair {entry!r}, expected a non-empty apex name"
        )
    return apex, jar


# ── Config ──────────────────────────────────────────────────────


class Config:
    """Read-only view over one build's configuration.

    Built by ``new_config()``, ``test_config()`` or ``null_config()``;
    not meant to be constructed directly.
    """

    def __init__(
        self,
        *,
        cmd_args: CmdArgs,
        out_dir: Path,
        soong_out_dir: Path,
        source_dir: Path,
        product_vars: ProductVariables,
        ledger: EnvironmentLedger,
        metrics: MetricsRegistry,
        duplicate_policy: DuplicatePolicy = DuplicatePolicy.ERROR,
    ) -> None:
        self._cmd_args = cmd_args
        self._out_dir = out_dir
        self._soong_out_dir = soong_out_dir
        self._source_dir = source_dir
        self._product_vars = product_vars
        self._ledger = ledger
        self._metrics = metrics
        self._once = OncePer(metrics)
        self._duplicate_policy = duplicate_policy

        # Resolved once by _assemble(), read-only afterwards.
        self._layout_resolved = False
        self._kati_enabled = False
        self._build_os: OsType | None = None
        self._build_arch: ArchType | None = None
        self._targets: Mapping[OsType, tuple[Target, ...]] = MappingProxyType({})
        self._build_os_target: Target | None = None
        self._build_os_common_target: Target | None = None
        self._android_common_target: Target | None = None
        self._android_first_device_target: Target | None = None
        self._multilib_conflicts: frozenset[ArchType] = frozenset()
        self._build_mode: BuildMode | None = None
        self._bazel_context: BazelContext | None = None

        # Late-bound state, guarded by _lock.
        self._lock = threading.Lock()
        self._allow_missing_dependencies = bool(product_vars.allow_missing_dependencies)
        self._build_from_text_stub = cmd_args.build_from_text_stub
        self._force_enabled_modules: set[str] = set()
        self._mixed_build_enabled_modules: set[str] = set()
        self._mixed_build_disabled_modules: set[str] = set()

        self.device_config = DeviceConfig(self)

    # ── Invocation and directories ──────────────────────────────

    @property
    def cmd_args(self) -> CmdArgs:
        return self._cmd_args

    @property
    def out_dir(self) -> Path:
        return self._out_dir

    @property
    def soong_out_dir(self) -> Path:
        return self._soong_out_dir

    @property
    def source_dir(self) -> Path:
        return self._source_dir

    @property
    def product_variables_file(self) -> Path:
        return self._soong_out_dir / PRODUCT_VARIABLES_FILE_NAME

    @property
    def product_vars(self) -> ProductVariables:
        return self._product_vars

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    @property
    def duplicate_policy(self) -> DuplicatePolicy:
        return self._duplicate_policy

    @property
    def module_list_file(self) -> str:
        return self._cmd_args.module_list_file

    @property
    def run_go_tests(self) -> bool:
        return self._cmd_args.run_go_tests

    @property
    def multitree_build(self) -> bool:
        return self._cmd_args.multitree_build

    # ── Resolved layout ─────────────────────────────────────────

    @property
    def kati_enabled(self) -> bool:
        return self._kati_enabled

    @property
    def build_os(self) -> OsType | None:
        return self._build_os

    @property
    def build_arch(self) -> ArchType | None:
        return self._build_arch

    @property
    def targets(self) -> Mapping[OsType, tuple[Target, ...]]:
        """Enabled targets per OS, in priority order. Read-only."""
        return self._targets

    @property
    def build_os_target(self) -> Target | None:
        return self._build_os_target

    @property
    def build_os_common_target(self) -> Target | None:
        return self._build_os_common_target

    @property
    def android_common_target(self) -> Target | None:
        return self._android_common_target

    @property
    def android_first_device_target(self) -> Target | None:
        return self._android_first_device_target

    @property
    def multilib_conflicts(self) -> frozenset[ArchType]:
        return self._multilib_conflicts

    @property
    def build_mode(self) -> BuildMode:
        return self._build_mode or BuildMode.ANALYSIS_NO_BAZEL

    @build_mode.setter
    def build_mode(self, mode: BuildMode) -> None:
        """Set the build mode. It may be set only once.

        Raises:
            InvariantViolation: A different mode is already active.
        """
        with self._lock:
            if self._build_mode is not None and self._build_mode is not mode:
                raise InvariantViolation(
                    f"build mode is already {self._build_mode.value}, cannot change it to {mode.value}"
                )
            self._build_mode = mode

    @property
    def bazel_context(self) -> BazelContext:
        return self._bazel_context or _NOOP_BAZEL_CONTEXT

    def _resolve_layout(
        self,
        build_os: OsType,
        build_arch: ArchType,
        targets: Mapping[OsType, Iterable[Target]],
        *,
        kati_enabled: bool,
    ) -> None:
        """Record the build host and targets and fill the target slots."""
        with self._lock:
            if self._layout_resolved:
                raise InvariantViolation("targets are already resolved for this config")
            self._layout_resolved = True

        self._kati_enabled = kati_enabled
        self._build_os = build_os
        self._build_arch = build_arch
        self._targets = MappingProxyType({os_type: tuple(ts) for os_type, ts in targets.items()})

        host = self._targets[build_os]
        android = self._targets.get(OsType.ANDROID, ())
        self._multilib_conflicts = frozenset(find_multilib_conflicts(android))
        self._build_os_target = host[0]
        self._build_os_common_target = common_targets(host)[0]
        if android:
            self._android_common_target = common_targets(android)[0]
            self._android_first_device_target = next(iter(first_target(android, "lib64", "lib32")), None)

    def _set_bazel_context(self, context: BazelContext) -> None:
        with self._lock:
            if self._bazel_context is not None:
                raise InvariantViolation("the Bazel context is already set for this config")
            self._bazel_context = context

    def prebuilt_os(self) -> str:
        """Directory tag for host prebuilts (``linux-x86`` / ``darwin-x86``)."""
        if self.build_os is OsType.DARWIN:
            return "darwin-x86"
        if self.build_os in (OsType.LINUX_GLIBC, OsType.LINUX_MUSL, OsType.LINUX_BIONIC):
            return "linux-x86"
        raise ConfigError(f"no prebuilt tag for build OS {self.build_os}")

    def host_tool_dir(self) -> Path:
        """Where host tools are installed.

        With kati enabled the tools live under the top-level out dir,
        otherwise under the soong out dir.
        """
        base = self._out_dir if self.kati_enabled else self._soong_out_dir
        return base / "host" / self.prebuilt_os() / "bin"

    def host_tool_path(self, tool: str) -> Path:
        return self.host_tool_dir() / tool

    def cp_preserve_symlinks_flags(self) -> str:
        if self.build_os is OsType.DARWIN:
            return "-R"
        return "-d"

    # ── Environment ─────────────────────────────────────────────

    def getenv(self, name: str) -> str:
        return self._ledger.getenv(name)

    def getenv_with_default(self, name: str, default: str) -> str:
        return self._ledger.getenv_with_default(name, default)

    def is_env_true(self, name: str) -> bool:
        return self._ledger.is_env_true(name)

    def is_env_false(self, name: str) -> bool:
        return self._ledger.is_env_false(name)

    def env_deps(self) -> dict[str, str]:
        """Every environment variable read so far. Freezes the ledger."""
        return self._ledger.env_deps()

    # ── Memoization ─────────────────────────────────────────────

    def once(self, key: OnceKey, compute: Callable[[], T]) -> T:
        return self._once.once(key, compute)

    # ── Targets ─────────────────────────────────────────────────

    def has_multilib_conflict(self, arch_type: ArchType) -> bool:
        return arch_type in self.multilib_conflicts

    def android64(self) -> bool:
        return any(t.multilib == "lib64" for t in self.targets.get(OsType.ANDROID, ()))

    def device_primary_arch_type(self) -> ArchType | None:
        android = self.targets.get(OsType.ANDROID)
        if not android:
            return None
        return android[0].arch.arch_type

    def ndk_abis(self) -> bool:
        return bool(self._product_vars.ndk_abis)

    def aml_abis(self) -> bool:
        return bool(self._product_vars.aml_abis)

    # ── Build mode and mixed builds ─────────────────────────────

    def is_mixed_builds_enabled(self) -> bool:
        """True when part of analysis is handed to Bazel.

        Requires a Bazel build mode and a product that mixed builds
        support (no riscv64 device, no global ThinLTO, no sanitizers).
        """
        pv = self._product_vars

        def supported() -> bool:
            if pv.device_arch == "riscv64":
                return False
            if self.is_env_true("GLOBAL_THINLTO"):
                return False
            return not (
                pv.sanitize_host or pv.sanitize_device
                or pv.sanitize_device_diag or pv.sanitize_device_arch
            )

        return self._once.once(_MIXED_BUILDS_SUPPORT_KEY, supported) and self.build_mode.is_bazel_mode

    def log_mixed_build(self, module_name: str, use_bazel: bool) -> None:
        """Record whether ``module_name`` was analysed by Bazel."""
        with self._lock:
            if use_bazel:
                self._mixed_build_enabled_modules.add(module_name)
            else:
                self._mixed_build_disabled_modules.add(module_name)
        self._metrics.counter(MIXED_BUILD_MODULES, enabled=str(use_bazel).lower()).inc()

    def mixed_build_enabled_modules(self) -> list[str]:
        with self._lock:
            return sorted(self._mixed_build_enabled_modules)

    def mixed_build_disabled_modules(self) -> list[str]:
        with self._lock:
            return sorted(self._mixed_build_disabled_modules)

    def bazel_modules_force_enabled_by_flag(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._force_enabled_modules)

    def add_force_enabled_modules(self, modules: Iterable[str]) -> None:
        with self._lock:
            self._force_enabled_modules.update(modules)

    # ── Late-bound flags ────────────────────────────────────────

    def allow_missing_dependencies(self) -> bool:
        with self._lock:
            return self._allow_missing_dependencies

    def set_allow_missing_dependencies(self) -> None:
        with self._lock:
            self._allow_missing_dependencies = True
        logger.debug("allow_missing_dependencies enabled after construction")

    def build_from_text_stub(self) -> bool:
        with self._lock:
            return self._build_from_text_stub

    def set_build_from_text_stub(self, value: bool) -> None:
        with self._lock:
            self._build_from_text_stub = value

    # ── Product identity ────────────────────────────────────────

    def build_id(self) -> str:
        return self._product_vars.build_id or ""

    def build_number_file(self) -> str:
        return self._product_vars.build_number_file or ""

    def device_name(self) -> str:
        return self._product_vars.device_name or ""

    def device_product(self) -> str:
        return self._product_vars.device_product or ""

    def has_device_product(self) -> bool:
        return self._product_vars.device_product is not None

    def device_resource_overlays(self) -> list[str]:
        return copy_of(self._product_vars.device_resource_overlays)

    def product_resource_overlays(self) -> list[str]:
        return copy_of(self._product_vars.product_resource_overlays)

    def platform_version_name(self) -> str:
        return self._product_vars.platform_version_name or ""

    def platform_sdk_version(self) -> int | None:
        return self._product_vars.platform_sdk_version

    def platform_sdk_final(self) -> bool:
        return bool(self._product_vars.platform_sdk_final)

    def platform_sdk_codename(self) -> str:
        return self._product_vars.platform_sdk_codename or ""

    def platform_sdk_version_or_codename(self) -> str:
        return self._product_vars.platform_sdk_version_or_codename or ""

    def platform_sdk_extension_version(self) -> int:
        return self._product_vars.platform_sdk_extension_version or 0

    def platform_base_sdk_extension_version(self) -> int:
        return self._product_vars.platform_base_sdk_extension_version or 0

    def platform_security_patch(self) -> str:
        return self._product_vars.platform_security_patch or ""

    def platform_base_os(self) -> str:
        return self._product_vars.platform_base_os or ""

    def platform_version_active_codenames(self) -> list[str]:
        return copy_of(self._product_vars.platform_version_active_codenames)

    def platform_version_all_preview_codenames(self) -> list[str]:
        return copy_of(self._product_vars.platform_version_all_preview_codenames)

    def apps_default_version_name(self) -> str:
        return self._product_vars.apps_default_version_name or ""

    def default_app_target_sdk(self) -> str:
        """SDK level apps target when they don't pick one.

        Final SDKs use the version number, previews the codename. A
        host-only build without a codename has no default ("").

        Raises:
            ConfigError: Preview SDK on a device build without a codename,
                or a codename of ``REL``.
        """
        if self.platform_sdk_final():
            return str(self._product_vars.platform_sdk_version)
        codename = self.platform_sdk_codename()
        if not codename:
            if self._product_vars.device_arch is None:
                return ""
            raise ConfigError("Platform_sdk_codename must be set")
        if codename == "REL":
            raise ConfigError("Platform_sdk_codename should not be REL when Platform_sdk_final is true")
        return codename

    def product_aapt_config(self) -> list[str]:
        return copy_of(self._product_vars.aapt_config)

    def product_aapt_preferred_config(self) -> str:
        return self._product_vars.aapt_preferred_config or ""

    def product_aapt_characteristics(self) -> str:
        return self._product_vars.aapt_characteristics or ""

    def product_aapt_prebuilt_dpi(self) -> list[str]:
        return copy_of(self._product_vars.aapt_prebuilt_dpi)

    # ── Build flavour ───────────────────────────────────────────

    def unbundled_build(self) -> bool:
        return bool(self._product_vars.unbundled_build)

    def unbundled_build_apps(self) -> bool:
        return bool(self._product_vars.unbundled_build_apps)

    def unbundled_build_image(self) -> bool:
        return bool(self._product_vars.unbundled_build_image)

    def always_use_prebuilt_sdks(self) -> bool:
        return bool(self._product_vars.always_use_prebuilt_sdks)

    def eng(self) -> bool:
        return bool(self._product_vars.eng)

    def debuggable(self) -> bool:
        return bool(self._product_vars.debuggable)

    def minimize_java_debug_info(self) -> bool:
        return bool(self._product_vars.minimize_java_debug_info) and not self.eng()

    def host_static_binaries(self) -> bool:
        return bool(self._product_vars.host_static_binaries)

    def use_host_musl(self) -> bool:
        return bool(self._product_vars.host_musl)

    def flatten_apex(self) -> bool:
        return bool(self._product_vars.flatten_apex)

    def apex_compression_enabled(self) -> bool:
        return bool(self._product_vars.compressed_apex)

    def apex_trim_enabled(self) -> bool:
        return bool(self._product_vars.trimmed_apex)

    def art_use_read_barrier(self) -> bool:
        return bool(self._product_vars.art_use_read_barrier)

    def target_multitree_update_meta(self) -> bool:
        return self._product_vars.multitree_update_meta

    def vendor_config(self, namespace: str) -> dict[str, str]:
        """Vendor variables in ``namespace`` (empty if none)."""
        return dict((self._product_vars.vendor_vars or {}).get(namespace, {}))

    # ── Sanitizers ──────────────────────────────────────────────

    def sanitize_host(self) -> list[str]:
        return copy_of(self._product_vars.sanitize_host)

    def sanitize_device(self) -> list[str]:
        return copy_of(self._product_vars.sanitize_device)

    def sanitize_device_diag(self) -> list[str]:
        return copy_of(self._product_vars.sanitize_device_diag)

    def sanitize_device_arch(self) -> list[str]:
        return copy_of(self._product_vars.sanitize_device_arch)

    def enable_cfi(self) -> bool:
        # CFI is on unless the product turns it off.
        if self._product_vars.enable_cfi is None:
            return True
        return self._product_vars.enable_cfi

    def disable_scudo(self) -> bool:
        return bool(self._product_vars.disable_scudo)

    def integer_overflow_disabled_for_path(self, path: str) -> bool:
        return has_any_prefix(path, self._product_vars.integer_overflow_exclude_paths)

    def cfi_disabled_for_path(self, path: str) -> bool:
        return has_any_prefix(path, self._product_vars.cfi_exclude_paths)

    def cfi_enabled_for_path(self, path: str) -> bool:
        if not self._product_vars.cfi_include_paths or self.cfi_disabled_for_path(path):
            return False
        return has_any_prefix(path, self._product_vars.cfi_include_paths)

    def memtag_heap_disabled_for_path(self, path: str) -> bool:
        return has_any_prefix(path, self._product_vars.memtag_heap_exclude_paths)

    def memtag_heap_async_enabled_for_path(self, path: str) -> bool:
        include = self._product_vars.memtag_heap_async_include_paths
        if not include or self.memtag_heap_disabled_for_path(path):
            return False
        return has_any_prefix(path, include)

    def memtag_heap_sync_enabled_for_path(self, path: str) -> bool:
        include = self._product_vars.memtag_heap_sync_include_paths
        if not include or self.memtag_heap_disabled_for_path(path):
            return False
        return has_any_prefix(path, include)

    def hwasan_enabled_for_path(self, path: str) -> bool:
        return has_any_prefix(path, self._product_vars.hwasan_include_paths)

    def is_java_coverage_enabled(self) -> bool:
        return (
            self.is_env_true("EMMA_INSTRUMENT")
            or self.is_env_true("EMMA_INSTRUMENT_STATIC")
            or self.is_env_true("EMMA_INSTRUMENT_FRAMEWORK")
        )

    # ── Remote execution ────────────────────────────────────────

    def use_goma(self) -> bool:
        return bool(self._product_vars.use_goma)

    def use_rbe(self) -> bool:
        return bool(self._product_vars.use_rbe)

    def use_rbe_javac(self) -> bool:
        return bool(self._product_vars.use_rbe_javac)

    def use_rbe_r8(self) -> bool:
        return bool(self._product_vars.use_rbe_r8)

    def use_rbe_d8(self) -> bool:
        return bool(self._product_vars.use_rbe_d8)

    def use_remote_build(self) -> bool:
        return self.use_goma() or self.use_rbe()

    def rbe_wrapper(self) -> str:
        return self.getenv_with_default("RBE_WRAPPER", DEFAULT_RBE_WRAPPER)

    # ── Cross-reference and static analysis ─────────────────────

    def run_error_prone(self) -> bool:
        return self.is_env_true("RUN_ERROR_PRONE")

    def xref_corpus_name(self) -> str:
        return self.getenv("XREF_CORPUS")

    def emit_xref_rules(self) -> bool:
        return self.xref_corpus_name() != ""

    def xref_cu_encoding(self) -> str:
        return self.getenv("KYTHE_KZIP_ENCODING") or DEFAULT_XREF_CU_ENCODING

    def xref_cu_java_source_max(self) -> str:
        """Maximum number of java sources per compilation unit, as a string."""
        size = self.getenv("KYTHE_JAVA_SOURCE_BATCH_SIZE")
        if not size:
            return DEFAULT_XREF_CU_JAVA_SOURCE_MAX
        if parse_uint(size) is None:
            logger.warning(
                "bad KYTHE_JAVA_SOURCE_BATCH_SIZE value: %r, will use %s",
                size, DEFAULT_XREF_CU_JAVA_SOURCE_MAX,
            )
            return DEFAULT_XREF_CU_JAVA_SOURCE_MAX
        return size

    def clang_tidy(self) -> bool:
        return bool(self._product_vars.clang_tidy)

    def tidy_checks(self) -> str:
        return self._product_vars.tidy_checks or ""

    # ── Resource overlays and namespaces ────────────────────────

    def enforce_rro_for_module(self, name: str) -> bool:
        enforce = self._product_vars.enforce_rro_targets
        if not enforce:
            return False
        return in_list("*", enforce) or in_list(name, enforce)

    def enforce_rro_excluded_overlay(self, path: str) -> bool:
        return has_any_prefix(path, self._product_vars.enforce_rro_excluded_overlays)

    def exported_namespaces(self) -> list[str]:
        return copy_of(self._product_vars.namespaces_to_export)

    def source_root_dirs(self) -> list[str]:
        return copy_of(self._product_vars.source_root_dirs)

    def include_tags(self) -> list[str]:
        return copy_of(self._product_vars.include_tags)

    # ── Boot jars ───────────────────────────────────────────────

    def non_apex_boot_jars(self) -> list[tuple[str, str]]:
        return [split_boot_jar(e) for e in self._product_vars.boot_jars or ()]

    def apex_boot_jars(self) -> list[tuple[str, str]]:
        return [split_boot_jar(e) for e in self._product_vars.apex_boot_jars or ()]

    def boot_jars(self) -> list[str]:
        """Jar names of every boot jar, platform jars first."""
        jars = self._once.once(
            _BOOT_JARS_KEY,
            lambda: [jar for _, jar in self.non_apex_boot_jars() + self.apex_boot_jars()],
        )
        return list(jars)

    # ── Toolchains ──────────────────────────────────────────────

    def clang_toolchain(self) -> ClangToolchain:
        return self._once.once(
            _CLANG_TOOLCHAIN_KEY,
            lambda: ClangToolchain.from_ledger(self._ledger, self.prebuilt_os()),
        )

    def sdclang_settings(self) -> SDClangSettings:
        return self._once.once(
            _SDCLANG_KEY,
            lambda: SDClangSettings.load(self._ledger, self._source_dir, self.device_product()),
        )

    def sdclang_asan_lib_dir(self) -> str:
        """ASan runtime directory of the SD clang install. Requires SD clang enabled."""
        return self._once.once(
            _SDCLANG_ASAN_LIB_DIR_KEY,
            lambda: self.sdclang_settings().asan_lib_dir(self._source_dir),
        )

    # ── Serialization ───────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Summary of the resolved configuration for CLI output."""
        return {
            "out_dir": str(self._out_dir),
            "soong_out_dir": str(self._soong_out_dir),
            "source_dir": str(self._source_dir),
            "build_os": self.build_os.value if self.build_os else None,
            "build_arch": self.build_arch.value if self.build_arch else None,
            "build_mode": self.build_mode.value,
            "kati_enabled": self.kati_enabled,
            "device_name": self.device_name(),
            "device_product": self.device_product(),
            "platform_sdk_version_or_codename": self.platform_sdk_version_or_codename(),
            "targets": {
                os_type.value: [t.to_dict() for t in targets]
                for os_type, targets in self.targets.items()
            },
            "android_first_device_target": (
                str(self.android_first_device_target) if self.android_first_device_target else None
            ),
            "multilib_conflicts": sorted(a.value for a in self.multilib_conflicts),
            "mixed_builds_enabled": self.is_mixed_builds_enabled(),
            "bazel_enabled": self.bazel_context.enabled,
            "bazel_force_enabled_modules": sorted(self.bazel_modules_force_enabled_by_flag()),
            "allow_missing_dependencies": self.allow_missing_dependencies(),
        }


# ── Device config ───────────────────────────────────────────────


class DeviceConfig:
    """Device-specific view of a Config, with its own memo table."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._once = OncePer(config.metrics)

    @property
    def _pv(self) -> ProductVariables:
        return self._config.product_vars

    def arches(self) -> list[Arch]:
        return [t.arch for t in self._config.targets.get(OsType.ANDROID, ())]

    def device_arch(self) -> str:
        return self._pv.device_arch or ""

    def device_arch_variant(self) -> str:
        return self._pv.device_arch_variant or ""

    def device_secondary_arch(self) -> str:
        return self._pv.device_secondary_arch or ""

    def device_secondary_arch_variant(self) -> str:
        return self._pv.device_secondary_arch_variant or ""

    def binder_bitness(self) -> str:
        return "32" if self._pv.binder32bit else "64"

    # ── Partitions ──────────────────────────────────────────────

    def vendor_path(self) -> str:
        return self._pv.vendor_path or "vendor"

    def odm_path(self) -> str:
        return self._pv.odm_path or "odm"

    def product_path(self) -> str:
        return self._pv.product_path or "product"

    def system_ext_path(self) -> str:
        return self._pv.system_ext_path or "system_ext"

    # ── VNDK and SDK levels ─────────────────────────────────────

    def vndk_version(self) -> str:
        return self._pv.device_vndk_version or ""

    def platform_vndk_version(self) -> str:
        return self._pv.platform_vndk_version or ""

    def current_api_level_for_vendor_modules(self) -> str:
        return self._pv.device_current_api_level_for_vendor_modules or "current"

    def system_sdk_versions(self) -> list[str]:
        return copy_of(self._pv.device_system_sdk_versions)

    def platform_system_sdk_versions(self) -> list[str]:
        return copy_of(self._pv.platform_systemsdk_versions)

    def shipping_api_level(self) -> int | None:
        """The product's shipping API level, or None if it isn't set or numeric."""
        level = self._pv.shipping_api_level
        if level is None:
            return None
        try:
            return int(level)
        except ValueError:
            return None

    # ── Coverage ────────────────────────────────────────────────

    def native_coverage_enabled(self) -> bool:
        return bool(self._pv.gcov_coverage) or bool(self._pv.clang_coverage)

    def gcov_coverage_enabled(self) -> bool:
        return bool(self._pv.gcov_coverage)

    def clang_coverage_enabled(self) -> bool:
        return bool(self._pv.clang_coverage)

    def clang_coverage_continuous_mode(self) -> bool:
        return bool(self._pv.clang_coverage_continuous_mode)

    def native_coverage_enabled_for_path(self, path: str) -> bool:
        include = self._pv.native_coverage_paths
        exclude = self._pv.native_coverage_exclude_paths
        coverage = bool(include) and (in_list("*", include) or has_any_prefix(path, include))
        if coverage and exclude:
            if in_list("*", exclude) or has_any_prefix(path, exclude):
                coverage = False
        return coverage

    def java_coverage_enabled_for_path(self, path: str) -> bool:
        # An empty include list covers everything.
        include = self._pv.java_coverage_paths
        exclude = self._pv.java_coverage_exclude_paths
        coverage = not include or in_list("*", include) or has_any_prefix(path, include)
        if coverage and has_any_prefix(path, exclude):
            coverage = False
        return coverage

    # ── Profiles ────────────────────────────────────────────────

    def pgo_additional_profile_dirs(self) -> list[str]:
        return copy_of(self._pv.pgo_additional_profile_dirs)

    def afdo_profile(self, name: str) -> str | None:
        """Profile label for module ``name``, or None if it has none.

        Entries are ``<module>:<fully-qualified-label>``, where the label
        itself contains one colon.

        Raises:
            ConfigError: An entry with the wrong shape.
        """
        for entry in self._pv.afdo_profiles or ():
            parts = entry.split(":")
            if len(parts) != 3:
                raise ConfigError(
                    f"AFDO_PROFILES has invalid value: {entry}. "
                    "The expected format is <module>:<fully-qualified-path-to-fdo_profile>"
                )
            if parts[0] == name:
                return f"{parts[1]}:{parts[2]}"
        return None

    # ── Package overrides ───────────────────────────────────────

    def override_manifest_package_name_for(self, name: str) -> str | None:
        return _find_override(
            self._pv.manifest_package_name_overrides, name,
            "PRODUCT_MANIFEST_PACKAGE_NAME_OVERRIDES", "manifest_name",
        )

    def override_certificate_for(self, name: str) -> str | None:
        return _find_override(
            self._pv.certificate_overrides, name,
            "PRODUCT_CERTIFICATE_OVERRIDES", "certificate_module_name",
        )

    def override_package_name_for(self, name: str) -> str:
        overridden = _find_override(
            self._pv.package_name_overrides, name,
            "PRODUCT_PACKAGE_NAME_OVERRIDES", "package_name",
        )
        return name if overridden is None else overridden

    # ── Snapshots ───────────────────────────────────────────────

    def directed_vendor_snapshot(self) -> bool:
        return self._pv.directed_vendor_snapshot

    def vendor_snapshot_modules(self) -> dict[str, bool]:
        return dict(self._pv.vendor_snapshot_modules or {})

    def directed_recovery_snapshot(self) -> bool:
        return self._pv.directed_recovery_snapshot

    def recovery_snapshot_modules(self) -> dict[str, bool]:
        return dict(self._pv.recovery_snapshot_modules or {})

    def host_fake_snapshot_enabled(self) -> bool:
        return self._pv.host_fake_snapshot_enabled

    def _dirs_map_once(self, key: OnceKey, previous: Mapping[str, bool] | None, dirs: list[str] | None) -> dict[str, bool]:
        policy = self._config.duplicate_policy

        def compute() -> dict[str, bool]:
            try:
                return create_dirs_map(dirs, previous, policy)
            except ConfigError as e:
                raise ConfigError(f"{key.name}: {e}") from e

        return self._once.once(key, compute)

    def vendor_snapshot_dirs_excluded_map(self) -> dict[str, bool]:
        return self._dirs_map_once(
            _VENDOR_SNAPSHOT_DIRS_EXCLUDED_KEY, None, self._pv.vendor_snapshot_dirs_excluded,
        )

    def vendor_snapshot_dirs_included_map(self) -> dict[str, bool]:
        return self._dirs_map_once(
            _VENDOR_SNAPSHOT_DIRS_INCLUDED_KEY,
            self.vendor_snapshot_dirs_excluded_map(),
            self._pv.vendor_snapshot_dirs_included,
        )

    def recovery_snapshot_dirs_excluded_map(self) -> dict[str, bool]:
        return self._dirs_map_once(
            _RECOVERY_SNAPSHOT_DIRS_EXCLUDED_KEY, None, self._pv.recovery_snapshot_dirs_excluded,
        )

    def recovery_snapshot_dirs_included_map(self) -> dict[str, bool]:
        return self._dirs_map_once(
            _RECOVERY_SNAPSHOT_DIRS_INCLUDED_KEY,
            self.recovery_snapshot_dirs_excluded_map(),
            self._pv.recovery_snapshot_dirs_included,
        )


# ── Construction ────────────────────────────────────────────────


def _abspath(path: str | Path) -> Path:
    # os.path.abspath is purely lexical, so nothing on disk is touched.
    return Path(os.path.abspath(path))


def check_build_dirs(cmd_args: CmdArgs, source_dir: Path) -> None:
    """Reject output directories that are the source root or contain it.

    Raises:
        ConfigError: An output directory is an ancestor of ``source_dir``.
    """
    for flag, value in (("--out-dir", cmd_args.out_dir), ("--soong-out-dir", cmd_args.soong_out_dir)):
        build_dir = _abspath(value)
        if source_dir.is_relative_to(build_dir):
            raise ConfigError(
                f"Build dir must not contain source directory: {flag} {build_dir} contains {source_dir}"
            )


def _assemble(
    config: Config,
    build_os: OsType,
    build_arch: ArchType,
    *,
    kati_enabled: bool = False,
) -> Config:
    """Steps 5 to 8 of construction: targets, slots, mode, Bazel handle."""
    targets = resolve_targets(config.product_vars, build_os)
    config._resolve_layout(build_os, build_arch, targets, kati_enabled=kati_enabled)

    config.build_mode = select_build_mode(config.cmd_args)

    config.add_force_enabled_modules(split_comma_list(config.cmd_args.bazel_force_enabled_modules))
    force_enabled = config.bazel_modules_force_enabled_by_flag()
    if config.build_mode.is_bazel_mode:
        config._set_bazel_context(MixedBuildBazelContext.from_environment(
            config._ledger,
            config.out_dir,
            use_proxy=config.cmd_args.use_bazel_proxy,
            force_enabled_modules=force_enabled,
        ))
    else:
        config._set_bazel_context(NoopBazelContext(force_enabled_modules=force_enabled))
    return config


def new_config(
    cmd_args: CmdArgs,
    env: Mapping[str, str] | None = None,
    source_dir: str | Path | None = None,
    *,
    host_platform: str | None = None,
    machine: str | None = None,
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.ERROR,
    metrics: MetricsRegistry | None = None,
) -> Config:
    """Build the configuration for one invocation.

    Args:
        cmd_args: Invocation options from the CLI layer.
        env: Environment snapshot. Defaults to ``os.environ``.
        source_dir: Source root. Defaults to the current directory.
        host_platform: Override ``sys.platform`` (tests).
        machine: Override the host CPU name (tests).
        duplicate_policy: How snapshot directory maps treat duplicates.
        metrics: Registry to record into; a fresh one by default.

    Returns:
        A fully assembled Config.

    Raises:
        ConfigError: Any user-correctable configuration problem.
        ConfigIOError: Product variables can't be read or written.
    """
    metrics = metrics or MetricsRegistry()
    ledger = EnvironmentLedger(dict(os.environ) if env is None else env, metrics=metrics)
    source = _abspath(source_dir if source_dir is not None else os.getcwd())

    check_build_dirs(cmd_args, source)

    out_dir = _abspath(cmd_args.out_dir)
    soong_out_dir = _abspath(cmd_args.soong_out_dir)

    with metrics.timer(LOAD_PRODUCT_VARIABLES):
        product_vars = load_product_variables(soong_out_dir / PRODUCT_VARIABLES_FILE_NAME)

    config = Config(
        cmd_args=cmd_args,
        out_dir=out_dir,
        soong_out_dir=soong_out_dir,
        source_dir=source,
        product_vars=product_vars,
        ledger=ledger,
        metrics=metrics,
        duplicate_policy=duplicate_policy,
    )

    kati_enabled = (soong_out_dir / KATI_ENABLED_MARKER).exists()
    build_os, build_arch = determine_build_os(product_vars, host_platform, machine)

    _assemble(config, build_os, build_arch, kati_enabled=kati_enabled)
    logger.info(
        "Configured %s for %s (%s), mode %s",
        config.device_product() or "host-only build", build_os, build_arch, config.build_mode,
    )
    return config


def null_config(out_dir: str | Path, soong_out_dir: str | Path) -> Config:
    """A Config with directories only, for tools that need no product."""
    return Config(
        cmd_args=CmdArgs(out_dir=str(out_dir), soong_out_dir=str(soong_out_dir)),
        out_dir=Path(out_dir),
        soong_out_dir=Path(soong_out_dir),
        source_dir=_abspath(os.getcwd()),
        product_vars=ProductVariables(),
        ledger=EnvironmentLedger(ignore_environment=True),
        metrics=MetricsRegistry(),
    )


def test_product_variables() -> ProductVariables:
    """The fixed product used by ``test_config``."""
    return ProductVariables(
        device_name="test_device",
        device_product="test_product",
        platform_sdk_version=30,
        platform_sdk_codename="S",
        platform_sdk_final=False,
        platform_version_active_codenames=["S", "Tiramisu"],
        platform_version_all_preview_codenames=["S", "Tiramisu"],
        platform_vndk_version="S",
        host_arch="x86_64",
        host_secondary_arch="x86",
        device_arch="arm64",
        device_arch_variant="armv8-a",
        device_abi=["arm64-v8a"],
        device_secondary_arch="arm",
        device_secondary_arch_variant="armv7-a-neon",
        device_secondary_abi=["armeabi-v7a"],
        aapt_config=["normal", "large", "xlarge", "hdpi", "xhdpi", "xxhdpi"],
        aapt_preferred_config="xhdpi",
        aapt_characteristics="nosdcard",
        aapt_prebuilt_dpi=["xhdpi", "xxhdpi"],
        unbundled_build_apps=[],
        malloc_not_svelte=True,
        malloc_zero_contents=True,
        safestack=False,
        trimmed_apex=False,
        boot_jars=[],
        apex_boot_jars=[],
    )


test_product_variables.__test__ = False  # type: ignore[attr-defined]


def test_config(
    build_dir: str | Path,
    env: Mapping[str, str] | None = None,
    product_vars: ProductVariables | None = None,
    *,
    cmd_args: CmdArgs | None = None,
    source_dir: str | Path = "/src",
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.ERROR,
) -> Config:
    """A Config for tests: no disk access, a linux x86_64 build host.

    ``env=None`` makes every environment read return "".
    """
    build_dir = Path(build_dir)
    cmd_args = cmd_args or CmdArgs(out_dir=str(build_dir), soong_out_dir=str(build_dir / "soong"))
    metrics = MetricsRegistry()
    ledger = EnvironmentLedger(env, ignore_environment=env is None, metrics=metrics)
    pv = product_vars if product_vars is not None else test_product_variables()

    config = Config(
        cmd_args=cmd_args,
        out_dir=build_dir,
        soong_out_dir=Path(cmd_args.soong_out_dir),
        source_dir=Path(source_dir),
        product_vars=pv,
        ledger=ledger,
        metrics=metrics,
        duplicate_policy=duplicate_policy,
    )
    build_os, build_arch = determine_build_os(pv, "linux", "x86_64")
    return _assemble(config, build_os, build_arch)


test_config.__test__ = False  # type: ignore[attr-defined]
