"""
Build modes — the single high-level operation an invocation performs.
"""

from __future__ import annotations

from enum import StrEnum


class BuildMode(StrEnum):
    """Mutually exclusive modes of operation.

    ``ANALYSIS_NO_BAZEL`` is the default and the only mode that is active
    without a flag asking for it.
    """

    ANALYSIS_NO_BAZEL = "analysis_no_bazel"
    SYMLINK_FOREST = "symlink_forest"
    BP2BUILD = "bp2build"
    GENERATE_QUERY_VIEW = "generate_query_view"
    API_BP2BUILD = "api_bp2build"
    GENERATE_MODULE_GRAPH = "generate_module_graph"
    GENERATE_DOC_FILE = "generate_doc_file"
    BAZEL_DEV = "bazel_dev"
    BAZEL_STAGING = "bazel_staging"
    BAZEL_PROD = "bazel_prod"

    @property
    def is_bazel_mode(self) -> bool:
        """True for the modes that hand part of analysis to Bazel."""
        return self in (BuildMode.BAZEL_DEV, BuildMode.BAZEL_STAGING, BuildMode.BAZEL_PROD)
