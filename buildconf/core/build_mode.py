"""
Build mode selector — picks the one mode an invocation runs in.

Each request is either empty / false ("not requested") or set. Requests
are walked in a fixed order; the first set one becomes the mode, and any
later set one is a user error naming the conflicting flag.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from buildconf.core.errors import BuildModeConflictError
from buildconf.core.models.build_mode import BuildMode
from buildconf.core.models.cmd_args import CmdArgs

logger = logging.getLogger(__name__)

# (CmdArgs field, command-line flag, mode), in selection order.
MODE_REQUESTS: tuple[tuple[str, str, BuildMode], ...] = (
    ("symlink_forest_marker", "--symlink-forest-marker", BuildMode.SYMLINK_FOREST),
    ("bp2build_marker", "--bp2build-marker", BuildMode.BP2BUILD),
    ("bazel_queryview_dir", "--bazel-queryview-dir", BuildMode.GENERATE_QUERY_VIEW),
    ("bazel_api_bp2build_dir", "--bazel-api-bp2build-dir", BuildMode.API_BP2BUILD),
    ("module_graph_file", "--module-graph-file", BuildMode.GENERATE_MODULE_GRAPH),
    ("doc_file", "--doc-file", BuildMode.GENERATE_DOC_FILE),
    ("bazel_mode_dev", "--bazel-mode-dev", BuildMode.BAZEL_DEV),
    ("bazel_mode", "--bazel-mode", BuildMode.BAZEL_PROD),
    ("bazel_mode_staging", "--bazel-mode-staging", BuildMode.BAZEL_STAGING),
)


def requested_modes(cmd_args: CmdArgs) -> Iterable[tuple[str, BuildMode]]:
    """Yield ``(flag, mode)`` for every mode request set in ``cmd_args``."""
    for field_name, flag, mode in MODE_REQUESTS:
        if getattr(cmd_args, field_name):
            yield flag, mode


def select_build_mode(cmd_args: CmdArgs) -> BuildMode:
    """Return the single requested build mode.

    Raises:
        BuildModeConflictError: More than one mode was requested.
    """
    mode = BuildMode.ANALYSIS_NO_BAZEL
    for flag, requested in requested_modes(cmd_args):
        if mode is not BuildMode.ANALYSIS_NO_BAZEL:
            raise BuildModeConflictError(flag, mode.value)
        mode = requested

    logger.debug("Build mode: %s", mode)
    return mode
