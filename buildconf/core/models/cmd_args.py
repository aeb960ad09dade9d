"""
CmdArgs — the raw invocation options handed over by the CLI layer.

String options mean "not requested" when empty and "requested" when
non-empty. Nothing here is validated beyond types; the config facade
decides what the combination means.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CmdArgs(BaseModel):
    """Invocation options for one configuration run."""

    model_config = ConfigDict(frozen=True)

    out_dir: str = "out"
    soong_out_dir: str = "out/soong"
    module_list_file: str = ""
    run_go_tests: bool = False

    # ── Build-mode markers (at most one may be non-empty / true) ──
    symlink_forest_marker: str = ""
    bp2build_marker: str = ""
    bazel_queryview_dir: str = ""
    bazel_api_bp2build_dir: str = ""
    module_graph_file: str = ""
    doc_file: str = ""

    bazel_mode: bool = False
    bazel_mode_dev: bool = False
    bazel_mode_staging: bool = False
    bazel_force_enabled_modules: str = ""

    multitree_build: bool = False
    use_bazel_proxy: bool = False
    build_from_text_stub: bool = False
