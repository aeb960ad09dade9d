"""
Tests for the Config facade — construction pipeline, accessors, memo tables.
"""

import logging
import threading
from pathlib import Path

import pytest

from buildconf.core.bazel.context import MixedBuildBazelContext, NoopBazelContext
from buildconf.core.config.facade import (
    DEFAULT_RBE_WRAPPER,
    KATI_ENABLED_MARKER,
    DuplicatePolicy,
    check_build_dirs,
    create_dirs_map,
    new_config,
    null_config,
    split_boot_jar,
    test_config,
    test_product_variables,
)
from buildconf.core.errors import BuildModeConflictError, ConfigError, EnvFrozenError, InvariantViolation
from buildconf.core.models.build_mode import BuildMode
from buildconf.core.models.cmd_args import CmdArgs
from buildconf.core.models.target import ArchType, OsType

BAZEL_ENV = {
    "BAZEL_HOME": "/home/bazel",
    "BAZEL_PATH": "/usr/bin/bazel",
    "BAZEL_OUTPUT_BASE": "/out/bazel/output",
    "BAZEL_WORKSPACE": "/src",
    "BAZEL_METRICS_DIR": "/out/bazel_metrics",
}


def _pv(**updates):
    return test_product_variables().model_copy(update=updates)


def _new(cmd_args, source_dir, env=None, **kwargs):
    return new_config(cmd_args, env or {}, source_dir, host_platform="linux", machine="x86_64", **kwargs)


# ── Construction ────────────────────────────────────────────────


class TestNewConfig:
    def test_missing_product_vars_written(self, cmd_args, source_dir, soong_out_dir):
        config = _new(cmd_args, source_dir)
        assert (soong_out_dir / "soong.variables").is_file()
        assert config.product_variables_file == soong_out_dir / "soong.variables"
        assert config.build_os is OsType.LINUX_GLIBC
        assert config.build_arch is ArchType.X86_64
        assert config.build_mode is BuildMode.ANALYSIS_NO_BAZEL

    def test_device_product(self, cmd_args, source_dir, write_product_vars, device_product_vars):
        write_product_vars(device_product_vars)
        config = _new(cmd_args, source_dir)

        assert config.device_name() == "generic_arm64"
        assert config.device_product() == "aosp_arm64"
        assert config.platform_sdk_version_or_codename() == "UpsideDownCake"
        assert config.build_os_target.arch.arch_type is ArchType.X86_64
        assert config.build_os_common_target.arch.arch_type is ArchType.COMMON
        assert config.android_common_target.os is OsType.ANDROID
        assert config.android_first_device_target.arch.arch_type is ArchType.ARM64
        assert config.android64()
        assert config.device_primary_arch_type() is ArchType.ARM64
        assert config.multilib_conflicts == frozenset()

    def test_host_only_build(self, cmd_args, source_dir, write_product_vars):
        write_product_vars({"HostArch": "x86_64"})
        config = _new(cmd_args, source_dir)
        assert config.android_first_device_target is None
        assert config.android_common_target is None
        assert config.device_primary_arch_type() is None
        assert not config.android64()

    def test_multilib_conflict_recorded(self, cmd_args, source_dir, write_product_vars, device_product_vars):
        device_product_vars.update({
            "DeviceSecondaryArch": "x86_64",
            "DeviceSecondaryArchVariant": None,
            "DeviceSecondaryCpuVariant": None,
            "DeviceSecondaryAbi": ["x86_64"],
        })
        write_product_vars(device_product_vars)
        config = _new(cmd_args, source_dir)
        assert config.multilib_conflicts == frozenset({ArchType.X86_64})
        assert config.has_multilib_conflict(ArchType.X86_64)
        assert not config.has_multilib_conflict(ArchType.ARM64)

    def test_records_load_timing(self, cmd_args, source_dir):
        config = _new(cmd_args, source_dir)
        names = [h["name"] for h in config.metrics.to_dict()["histograms"]]
        assert "config.load_product_variables" in names

    def test_uses_process_environment_by_default(self, cmd_args, source_dir, monkeypatch):
        monkeypatch.setenv("RBE_WRAPPER", "/opt/rewrapper")
        config = new_config(cmd_args, source_dir=source_dir, host_platform="linux", machine="x86_64")
        assert config.rbe_wrapper() == "/opt/rewrapper"

    def test_unsupported_host(self, cmd_args, source_dir):
        with pytest.raises(ConfigError, match="win32"):
            new_config(cmd_args, {}, source_dir, host_platform="win32", machine="x86_64")


class TestKatiMarker:
    def test_marker_absent(self, cmd_args, source_dir, soong_out_dir):
        config = _new(cmd_args, source_dir)
        assert not config.kati_enabled
        assert config.host_tool_dir() == soong_out_dir / "host" / "linux-x86" / "bin"

    def test_marker_present(self, cmd_args, source_dir, soong_out_dir, tmp_path):
        soong_out_dir.mkdir(parents=True)
        (soong_out_dir / KATI_ENABLED_MARKER).touch()
        config = _new(cmd_args, source_dir)
        assert config.kati_enabled
        assert config.host_tool_path("aapt2") == tmp_path / "out" / "host" / "linux-x86" / "bin" / "aapt2"


class TestBuildDirCheck:
    def test_out_dir_containing_source_fails_before_io(self, tmp_path: Path):
        source = tmp_path / "src"
        args = CmdArgs(out_dir=str(tmp_path), soong_out_dir=str(tmp_path / "soong"))
        with pytest.raises(ConfigError, match="Build dir must not contain source directory"):
            _new(args, source)
        assert not (tmp_path / "soong").exists()

    def test_out_dir_equal_to_source(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path), soong_out_dir=str(tmp_path / "out" / "soong"))
        with pytest.raises(ConfigError, match="--out-dir"):
            check_build_dirs(args, tmp_path)

    def test_soong_out_dir_checked_too(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path / "out"), soong_out_dir=str(tmp_path))
        with pytest.raises(ConfigError, match="--soong-out-dir"):
            check_build_dirs(args, tmp_path / "src")

    def test_out_dir_inside_source_allowed(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path / "out"), soong_out_dir=str(tmp_path / "out" / "soong"))
        check_build_dirs(args, tmp_path)

    def test_sibling_prefix_is_not_ancestor(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path / "src"), soong_out_dir=str(tmp_path / "src" / "soong"))
        check_build_dirs(args, tmp_path / "src2")


class TestBuildModeSelection:
    def test_conflict_surfaces(self, tmp_path: Path, source_dir):
        args = CmdArgs(
            out_dir=str(tmp_path / "out"),
            soong_out_dir=str(tmp_path / "out" / "soong"),
            bp2build_marker="out/bp2build",
            doc_file="docs.html",
        )
        with pytest.raises(BuildModeConflictError):
            _new(args, source_dir)

    def test_bazel_mode_requires_env(self, tmp_path: Path, source_dir):
        args = CmdArgs(out_dir=str(tmp_path / "out"), soong_out_dir=str(tmp_path / "out" / "soong"), bazel_mode=True)
        with pytest.raises(ConfigError, match="BAZEL_HOME"):
            _new(args, source_dir)

    def test_bazel_mode_with_env(self, tmp_path: Path, source_dir):
        args = CmdArgs(
            out_dir=str(tmp_path / "out"),
            soong_out_dir=str(tmp_path / "out" / "soong"),
            bazel_mode_dev=True,
            use_bazel_proxy=True,
        )
        config = _new(args, source_dir, env=BAZEL_ENV)
        assert config.build_mode is BuildMode.BAZEL_DEV
        assert isinstance(config.bazel_context, MixedBuildBazelContext)
        assert config.bazel_context.workspace_dir == "/src"
        assert config.bazel_context.proxy_socket == tmp_path / "out" / "bazelsocket.sock"
        assert "BAZEL_PATH" in config.env_deps()

    def test_no_bazel_by_default(self, cmd_args, source_dir):
        config = _new(cmd_args, source_dir)
        assert isinstance(config.bazel_context, NoopBazelContext)
        assert not config.bazel_context.enabled


class TestNullConfig:
    def test_directories_only(self, tmp_path: Path):
        config = null_config(tmp_path / "out", tmp_path / "out" / "soong")
        assert config.out_dir == tmp_path / "out"
        assert config.soong_out_dir == tmp_path / "out" / "soong"
        assert config.device_name() == ""
        assert dict(config.targets) == {}
        assert config.getenv("HOME") == ""

    def test_build_mode_can_be_set_once(self, tmp_path: Path):
        config = null_config(tmp_path / "out", tmp_path / "out" / "soong")
        assert config.build_mode is BuildMode.ANALYSIS_NO_BAZEL
        config.build_mode = BuildMode.BP2BUILD
        assert config.build_mode is BuildMode.BP2BUILD
        with pytest.raises(InvariantViolation):
            config.build_mode = BuildMode.GENERATE_DOC_FILE


class TestResolvedLayoutIsReadOnly:
    def test_build_mode_cannot_change(self, tmp_path: Path):
        config = test_config(tmp_path)
        with pytest.raises(InvariantViolation, match="build mode is already analysis"):
            config.build_mode = BuildMode.BP2BUILD
        assert config.build_mode is BuildMode.ANALYSIS_NO_BAZEL

    def test_same_build_mode_is_accepted(self, tmp_path: Path):
        config = test_config(tmp_path)
        config.build_mode = BuildMode.ANALYSIS_NO_BAZEL
        assert config.build_mode is BuildMode.ANALYSIS_NO_BAZEL

    @pytest.mark.parametrize("name", [
        "targets",
        "build_os",
        "build_os_target",
        "android_first_device_target",
        "multilib_conflicts",
        "bazel_context",
        "kati_enabled",
    ])
    def test_slots_cannot_be_reassigned(self, tmp_path: Path, name):
        config = test_config(tmp_path)
        with pytest.raises(AttributeError):
            setattr(config, name, None)

    def test_targets_cannot_be_mutated(self, tmp_path: Path):
        config = test_config(tmp_path)
        android = config.targets[OsType.ANDROID]
        assert isinstance(android, tuple)
        with pytest.raises(TypeError):
            config.targets[OsType.ANDROID] = ()  # type: ignore[index]
        with pytest.raises(AttributeError):
            android.clear()  # type: ignore[attr-defined]
        assert len(config.targets[OsType.ANDROID]) == 2
        assert [a.arch_type for a in config.device_config.arches()] == [ArchType.ARM64, ArchType.ARM]

    def test_layout_resolves_once(self, tmp_path: Path):
        config = test_config(tmp_path)
        with pytest.raises(InvariantViolation, match="already resolved"):
            config._resolve_layout(OsType.LINUX_GLIBC, ArchType.X86_64, {}, kati_enabled=False)


class TestTestConfig:
    def test_fixed_product(self, tmp_path: Path):
        config = test_config(tmp_path)
        assert config.device_name() == "test_device"
        assert config.soong_out_dir == tmp_path / "soong"
        assert config.build_os is OsType.LINUX_GLIBC
        assert [a.arch_type for a in config.device_config.arches()] == [ArchType.ARM64, ArchType.ARM]

    def test_ignores_environment(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("RUN_ERROR_PRONE", "true")
        assert not test_config(tmp_path).run_error_prone()

    def test_explicit_environment(self, tmp_path: Path):
        assert test_config(tmp_path, {"RUN_ERROR_PRONE": "true"}).run_error_prone()

    def test_no_disk_access(self, tmp_path: Path):
        test_config(tmp_path / "out")
        assert not (tmp_path / "out").exists()


# ── Environment and mixed builds ────────────────────────────────


class TestEnvironment:
    def test_reads_are_recorded(self, tmp_path: Path):
        config = test_config(tmp_path, {"XREF_CORPUS": "android.googlesource.com"})
        assert config.emit_xref_rules()
        assert config.env_deps() == {"XREF_CORPUS": "android.googlesource.com"}

    def test_new_read_after_freeze_fails(self, tmp_path: Path):
        config = test_config(tmp_path, {})
        config.rbe_wrapper()
        config.env_deps()
        assert config.rbe_wrapper() == DEFAULT_RBE_WRAPPER
        with pytest.raises(EnvFrozenError):
            config.run_error_prone()

    def test_java_coverage_env(self, tmp_path: Path):
        assert test_config(tmp_path, {"EMMA_INSTRUMENT_FRAMEWORK": "true"}).is_java_coverage_enabled()
        assert not test_config(tmp_path, {}).is_java_coverage_enabled()


class TestMixedBuilds:
    def _bazel_config(self, tmp_path: Path, env=None, **pv_updates):
        args = CmdArgs(out_dir=str(tmp_path), soong_out_dir=str(tmp_path / "soong"), bazel_mode=True)
        return test_config(tmp_path, {**BAZEL_ENV, **(env or {})}, _pv(**pv_updates), cmd_args=args)

    def test_enabled_in_bazel_mode(self, tmp_path: Path):
        assert self._bazel_config(tmp_path).is_mixed_builds_enabled()

    def test_disabled_outside_bazel_mode(self, tmp_path: Path):
        assert not test_config(tmp_path).is_mixed_builds_enabled()

    def test_global_thinlto_disables(self, tmp_path: Path):
        config = self._bazel_config(tmp_path, env={"GLOBAL_THINLTO": "true"})
        assert not config.is_mixed_builds_enabled()
        assert config.env_deps()["GLOBAL_THINLTO"] == "true"

    @pytest.mark.parametrize("field", [
        "sanitize_host", "sanitize_device", "sanitize_device_diag", "sanitize_device_arch",
    ])
    def test_sanitizers_disable(self, tmp_path: Path, field: str):
        assert not self._bazel_config(tmp_path, **{field: ["address"]}).is_mixed_builds_enabled()

    def test_riscv64_disables(self, tmp_path: Path):
        config = self._bazel_config(
            tmp_path, device_arch="riscv64", device_arch_variant=None,
            device_secondary_arch=None, device_secondary_arch_variant=None,
        )
        assert not config.is_mixed_builds_enabled()

    def test_support_check_memoized(self, tmp_path: Path):
        config = self._bazel_config(tmp_path)
        config.is_mixed_builds_enabled()
        config.is_mixed_builds_enabled()
        hits = [c for c in config.metrics.to_dict()["counters"] if c["name"] == "once.hit"]
        assert hits and hits[0]["value"] >= 1

    def test_log_mixed_build(self, tmp_path: Path):
        config = test_config(tmp_path)
        threads = [
            threading.Thread(target=config.log_mixed_build, args=(f"mod{i}", i % 2 == 0))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(config.mixed_build_enabled_modules()) == 10
        assert len(config.mixed_build_disabled_modules()) == 10
        assert config.metrics.counter("mixed_build.modules", enabled="true").value == 10
        assert config.metrics.counter("mixed_build.modules", enabled="false").value == 10

    def test_force_enabled_modules(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path), soong_out_dir=str(tmp_path / "soong"),
                       bazel_force_enabled_modules="libfoo,,libbar")
        config = test_config(tmp_path, cmd_args=args)
        assert config.bazel_modules_force_enabled_by_flag() == {"libfoo", "libbar"}
        assert config.bazel_context.force_enabled_modules == {"libfoo", "libbar"}

        config.add_force_enabled_modules(["libbaz"])
        assert "libbaz" in config.bazel_modules_force_enabled_by_flag()


class TestLateBoundFlags:
    def test_allow_missing_dependencies(self, tmp_path: Path):
        config = test_config(tmp_path)
        assert not config.allow_missing_dependencies()
        config.set_allow_missing_dependencies()
        assert config.allow_missing_dependencies()
        assert config.to_dict()["allow_missing_dependencies"] is True

    def test_allow_missing_dependencies_from_product(self, tmp_path: Path):
        assert test_config(tmp_path, product_vars=_pv(allow_missing_dependencies=True)).allow_missing_dependencies()

    def test_build_from_text_stub(self, tmp_path: Path):
        args = CmdArgs(out_dir=str(tmp_path), soong_out_dir=str(tmp_path / "soong"), build_from_text_stub=True)
        config = test_config(tmp_path, cmd_args=args)
        assert config.build_from_text_stub()
        config.set_build_from_text_stub(False)
        assert not config.build_from_text_stub()


# ── Accessors ───────────────────────────────────────────────────


class TestProductAccessors:
    def test_list_accessors_return_copies(self, tmp_path: Path):
        config = test_config(tmp_path)
        config.product_aapt_config().append("mutated")
        assert "mutated" not in config.product_aapt_config()

    def test_minimize_java_debug_info_not_for_eng(self, tmp_path: Path):
        assert test_config(tmp_path, product_vars=_pv(minimize_java_debug_info=True)).minimize_java_debug_info()
        pv = _pv(minimize_java_debug_info=True, eng=True)
        assert not test_config(tmp_path, product_vars=pv).minimize_java_debug_info()

    def test_enable_cfi_defaults_on(self, tmp_path: Path):
        assert test_config(tmp_path).enable_cfi()
        assert not test_config(tmp_path, product_vars=_pv(enable_cfi=False)).enable_cfi()

    def test_vendor_config(self, tmp_path: Path):
        config = test_config(tmp_path, product_vars=_pv(vendor_vars={"acme": {"feature": "on"}}))
        assert config.vendor_config("acme") == {"feature": "on"}
        assert config.vendor_config("other") == {}

    def test_prebuilt_os_and_cp_flags(self, tmp_path: Path):
        config = test_config(tmp_path)
        assert config.prebuilt_os() == "linux-x86"
        assert config.cp_preserve_symlinks_flags() == "-d"

    def test_remote_build(self, tmp_path: Path):
        assert not test_config(tmp_path).use_remote_build()
        assert test_config(tmp_path, product_vars=_pv(use_rbe=True)).use_remote_build()

    def test_to_dict(self, tmp_path: Path):
        data = test_config(tmp_path).to_dict()
        assert data["device_product"] == "test_product"
        assert data["build_mode"] == "analysis_no_bazel"
        assert data["targets"].keys() >= {"android", "linux_glibc"}
        assert data["multilib_conflicts"] == []
        assert data["bazel_enabled"] is False


class TestDefaultAppTargetSdk:
    def test_final(self, tmp_path: Path):
        pv = _pv(platform_sdk_final=True, platform_sdk_version=34, platform_sdk_codename="REL")
        assert test_config(tmp_path, product_vars=pv).default_app_target_sdk() == "34"

    def test_preview_codename(self, tmp_path: Path):
        assert test_config(tmp_path).default_app_target_sdk() == "S"

    def test_missing_codename_on_device(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Platform_sdk_codename must be set"):
            test_config(tmp_path, product_vars=_pv(platform_sdk_codename=None)).default_app_target_sdk()

    def test_missing_codename_host_only(self, tmp_path: Path):
        pv = _pv(platform_sdk_codename=None, device_arch=None, device_arch_variant=None,
                 device_secondary_arch=None, device_secondary_arch_variant=None)
        assert test_config(tmp_path, product_vars=pv).default_app_target_sdk() == ""

    def test_rel_codename_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="REL"):
            test_config(tmp_path, product_vars=_pv(platform_sdk_codename="REL")).default_app_target_sdk()


class TestXref:
    def test_defaults(self, tmp_path: Path):
        config = test_config(tmp_path)
        assert not config.emit_xref_rules()
        assert config.xref_cu_encoding() == "json"
        assert config.xref_cu_java_source_max() == "1000"

    def test_batch_size(self, tmp_path: Path):
        assert test_config(tmp_path, {"KYTHE_JAVA_SOURCE_BATCH_SIZE": "250"}).xref_cu_java_source_max() == "250"

    def test_bad_batch_size_warns(self, tmp_path: Path, caplog):
        caplog.set_level(logging.WARNING, logger="buildconf")
        config = test_config(tmp_path, {"KYTHE_JAVA_SOURCE_BATCH_SIZE": "lots"})
        assert config.xref_cu_java_source_max() == "1000"
        assert "bad KYTHE_JAVA_SOURCE_BATCH_SIZE value" in caplog.text

    @pytest.mark.parametrize("size", ["-5", "+5", " 5", "5 ", "08", "1_", "99999999999999999999"])
    def test_batch_size_must_be_unsigned_literal(self, tmp_path: Path, caplog, size):
        caplog.set_level(logging.WARNING, logger="buildconf")
        config = test_config(tmp_path, {"KYTHE_JAVA_SOURCE_BATCH_SIZE": size})
        assert config.xref_cu_java_source_max() == "1000"
        assert "bad KYTHE_JAVA_SOURCE_BATCH_SIZE value" in caplog.text

    @pytest.mark.parametrize("size", ["0x10", "0o17", "017", "1_000", "0"])
    def test_batch_size_prefixed_literals(self, tmp_path: Path, size):
        config = test_config(tmp_path, {"KYTHE_JAVA_SOURCE_BATCH_SIZE": size})
        assert config.xref_cu_java_source_max() == size

    def test_encoding(self, tmp_path: Path):
        assert test_config(tmp_path, {"KYTHE_KZIP_ENCODING": "proto"}).xref_cu_encoding() == "proto"


class TestPathPredicates:
    def test_cfi(self, tmp_path: Path):
        pv = _pv(cfi_include_paths=["system/core"], cfi_exclude_paths=["system/core/tests"])
        config = test_config(tmp_path, product_vars=pv)
        assert config.cfi_enabled_for_path("system/core/libcutils")
        assert not config.cfi_enabled_for_path("system/core/tests/foo")
        assert config.cfi_disabled_for_path("system/core/tests/foo")
        assert not config.cfi_enabled_for_path("frameworks/base")

    def test_cfi_without_include_list(self, tmp_path: Path):
        assert not test_config(tmp_path).cfi_enabled_for_path("system/core")

    def test_memtag(self, tmp_path: Path):
        pv = _pv(
            memtag_heap_async_include_paths=["external"],
            memtag_heap_sync_include_paths=["system"],
            memtag_heap_exclude_paths=["external/skip"],
        )
        config = test_config(tmp_path, product_vars=pv)
        assert config.memtag_heap_async_enabled_for_path("external/zlib")
        assert not config.memtag_heap_async_enabled_for_path("external/skip/x")
        assert config.memtag_heap_sync_enabled_for_path("system/bt")
        assert not config.memtag_heap_sync_enabled_for_path("external/zlib")

    def test_integer_overflow_and_hwasan(self, tmp_path: Path):
        pv = _pv(integer_overflow_exclude_paths=["bionic"], hwasan_include_paths=["art"])
        config = test_config(tmp_path, product_vars=pv)
        assert config.integer_overflow_disabled_for_path("bionic/libc")
        assert config.hwasan_enabled_for_path("art/runtime")
        assert not config.hwasan_enabled_for_path("bionic/libc")

    def test_rro(self, tmp_path: Path):
        config = test_config(tmp_path, product_vars=_pv(enforce_rro_targets=["Settings"],
                                                        enforce_rro_excluded_overlays=["vendor/overlay"]))
        assert config.enforce_rro_for_module("Settings")
        assert not config.enforce_rro_for_module("Launcher")
        assert config.enforce_rro_excluded_overlay("vendor/overlay/res")

    def test_rro_wildcard(self, tmp_path: Path):
        assert test_config(tmp_path, product_vars=_pv(enforce_rro_targets=["*"])).enforce_rro_for_module("Any")


class TestCoverageForPath:
    def test_native_include_exclude(self, tmp_path: Path):
        pv = _pv(clang_coverage=True, native_coverage_paths=["external"],
                 native_coverage_exclude_paths=["external/skip"])
        dc = test_config(tmp_path, product_vars=pv).device_config
        assert dc.native_coverage_enabled()
        assert dc.clang_coverage_enabled()
        assert dc.native_coverage_enabled_for_path("external/zlib")
        assert not dc.native_coverage_enabled_for_path("external/skip/a")
        assert not dc.native_coverage_enabled_for_path("system/core")

    def test_native_wildcards(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(native_coverage_paths=["*"])).device_config
        assert dc.native_coverage_enabled_for_path("anything")
        pv = _pv(native_coverage_paths=["*"], native_coverage_exclude_paths=["*"])
        assert not test_config(tmp_path, product_vars=pv).device_config.native_coverage_enabled_for_path("x")

    def test_native_empty_include(self, tmp_path: Path):
        assert not test_config(tmp_path).device_config.native_coverage_enabled_for_path("x")

    def test_java_empty_include_covers_everything(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(java_coverage_exclude_paths=["cts"])).device_config
        assert dc.java_coverage_enabled_for_path("frameworks/base")
        assert not dc.java_coverage_enabled_for_path("cts/tests")


class TestDeviceConfig:
    def test_partition_defaults(self, tmp_path: Path):
        dc = test_config(tmp_path).device_config
        assert (dc.vendor_path(), dc.odm_path(), dc.product_path(), dc.system_ext_path()) == (
            "vendor", "odm", "product", "system_ext",
        )
        assert dc.binder_bitness() == "64"
        assert dc.current_api_level_for_vendor_modules() == "current"

    def test_partition_override(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(vendor_path="system/vendor", binder32bit=True)).device_config
        assert dc.vendor_path() == "system/vendor"
        assert dc.binder_bitness() == "32"

    @pytest.mark.parametrize("level,expected", [(None, None), ("30", 30), ("abc", None)])
    def test_shipping_api_level(self, tmp_path: Path, level, expected):
        dc = test_config(tmp_path, product_vars=_pv(shipping_api_level=level)).device_config
        assert dc.shipping_api_level() == expected

    def test_device_arch_strings(self, tmp_path: Path):
        dc = test_config(tmp_path).device_config
        assert dc.device_arch() == "arm64"
        assert dc.device_secondary_arch_variant() == "armv7-a-neon"


class TestAfdoProfile:
    def test_lookup(self, tmp_path: Path):
        pv = _pv(afdo_profiles=["libfoo://toolchain/pgo:libfoo_afdo", "libbar://toolchain/pgo:libbar_afdo"])
        dc = test_config(tmp_path, product_vars=pv).device_config
        assert dc.afdo_profile("libbar") == "//toolchain/pgo:libbar_afdo"
        assert dc.afdo_profile("libbaz") is None

    def test_malformed_entry(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(afdo_profiles=["libfoo"])).device_config
        with pytest.raises(ConfigError, match="AFDO_PROFILES has invalid value: libfoo"):
            dc.afdo_profile("libfoo")


class TestOverrides:
    def test_exact_rule(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(certificate_overrides=["Settings:platform_cert"])).device_config
        assert dc.override_certificate_for("Settings") == "platform_cert"
        assert dc.override_certificate_for("Launcher") is None

    def test_pattern_rule(self, tmp_path: Path):
        pv = _pv(package_name_overrides=["com.android.%:com.acme.%"])
        dc = test_config(tmp_path, product_vars=pv).device_config
        assert dc.override_package_name_for("com.android.settings") == "com.acme.settings"
        assert dc.override_package_name_for("org.other") == "org.other"

    def test_first_match_wins(self, tmp_path: Path):
        pv = _pv(manifest_package_name_overrides=["Foo:first", "F%:second"])
        assert test_config(tmp_path, product_vars=pv).device_config.override_manifest_package_name_for("Foo") == "first"

    def test_malformed_rule(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(certificate_overrides=["a:b:c"])).device_config
        with pytest.raises(ConfigError, match="PRODUCT_CERTIFICATE_OVERRIDES"):
            dc.override_certificate_for("a")


class TestBootJars:
    def test_split(self):
        assert split_boot_jar("com.android.art:core-oj") == ("com.android.art", "core-oj")
        assert split_boot_jar("platform:framework") == ("platform", "framework")

    def test_missing_separator(self):
        with pytest.raises(ConfigError, match="malformed"):
            split_boot_jar("framework")

    def test_empty_apex(self):
        with pytest.raises(ConfigError, match="invalid apex"):
            split_boot_jar(":framework")

    def test_boot_jars_order_and_copy(self, tmp_path: Path):
        pv = _pv(boot_jars=["platform:framework"], apex_boot_jars=["com.android.art:core-oj"])
        config = test_config(tmp_path, product_vars=pv)
        assert config.boot_jars() == ["framework", "core-oj"]
        config.boot_jars().append("mutated")
        assert config.boot_jars() == ["framework", "core-oj"]

    def test_malformed_not_cached(self, tmp_path: Path):
        config = test_config(tmp_path, product_vars=_pv(boot_jars=["framework"]))
        for _ in range(2):
            with pytest.raises(ConfigError):
                config.boot_jars()


# ── Snapshot directory sets ─────────────────────────────────────


class TestCreateDirsMap:
    def test_cleans_paths(self):
        assert create_dirs_map(["vendor/foo/", "vendor/./bar"]) == {"vendor/foo": True, "vendor/bar": True}

    def test_empty(self):
        assert create_dirs_map(None) == {}

    def test_duplicate_raises(self):
        with pytest.raises(ConfigError, match="Duplicate entry vendor/foo/"):
            create_dirs_map(["vendor/foo", "vendor/foo/"])

    def test_duplicate_against_previous(self):
        with pytest.raises(ConfigError, match="Duplicate entry"):
            create_dirs_map(["vendor/foo"], previous={"vendor/foo": True})

    def test_warn_policy(self, caplog):
        caplog.set_level(logging.WARNING, logger="buildconf")
        result = create_dirs_map(["a", "a"], policy=DuplicatePolicy.WARN)
        assert result == {"a": True}
        assert "Duplicate entry a" in caplog.text

    def test_ignore_policy(self, caplog):
        caplog.set_level(logging.WARNING, logger="buildconf")
        assert create_dirs_map(["a", "a"], policy=DuplicatePolicy.IGNORE) == {"a": True}
        assert caplog.text == ""


class TestSnapshotDirMaps:
    def test_included_checked_against_excluded(self, tmp_path: Path):
        pv = _pv(vendor_snapshot_dirs_excluded=["vendor/x"], vendor_snapshot_dirs_included=["vendor/x"])
        dc = test_config(tmp_path, product_vars=pv).device_config
        assert dc.vendor_snapshot_dirs_excluded_map() == {"vendor/x": True}
        with pytest.raises(ConfigError, match="VendorSnapshotDirsIncludedMap: Duplicate entry vendor/x"):
            dc.vendor_snapshot_dirs_included_map()

    def test_recovery_maps(self, tmp_path: Path):
        pv = _pv(recovery_snapshot_dirs_excluded=["a"], recovery_snapshot_dirs_included=["b/"])
        dc = test_config(tmp_path, product_vars=pv).device_config
        assert dc.recovery_snapshot_dirs_included_map() == {"b": True}
        assert dc.recovery_snapshot_dirs_excluded_map() == {"a": True}

    def test_policy_flows_from_config(self, tmp_path: Path):
        pv = _pv(vendor_snapshot_dirs_excluded=["v", "v"])
        dc = test_config(tmp_path, product_vars=pv, duplicate_policy=DuplicatePolicy.IGNORE).device_config
        assert dc.vendor_snapshot_dirs_excluded_map() == {"v": True}

    def test_memoized(self, tmp_path: Path):
        dc = test_config(tmp_path, product_vars=_pv(vendor_snapshot_dirs_excluded=["v"])).device_config
        assert dc.vendor_snapshot_dirs_excluded_map() is dc.vendor_snapshot_dirs_excluded_map()
