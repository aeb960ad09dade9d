"""
Bazel context — the narrow handle the configuration keeps on Bazel.

The Bazel-interop subsystem itself lives elsewhere. The configuration
only decides whether it is in play, validates the environment it will
need, and records where to reach it. Nothing is spawned or connected here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from buildconf.core.env.ledger import EnvironmentLedger
from buildconf.core.errors import ConfigError

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = (
    "BAZEL_HOME",
    "BAZEL_PATH",
    "BAZEL_OUTPUT_BASE",
    "BAZEL_WORKSPACE",
    "BAZEL_METRICS_DIR",
)

PROXY_SOCKET_NAME = "bazelsocket.sock"


class BazelContext(Protocol):
    """What the rest of the build may ask about Bazel."""

    @property
    def enabled(self) -> bool: ...

    @property
    def force_enabled_modules(self) -> frozenset[str]: ...


@dataclass(frozen=True)
class NoopBazelContext:
    """Used whenever the build mode doesn't involve Bazel."""

    force_enabled_modules: frozenset[str] = frozenset()

    @property
    def enabled(self) -> bool:
        return False


@dataclass(frozen=True)
class MixedBuildBazelContext:
    """Settings for a build that hands part of its analysis to Bazel."""

    bazel_path: str
    home_dir: str
    output_base: str
    workspace_dir: str
    metrics_dir: str
    proxy_socket: Path | None = None
    force_enabled_modules: frozenset[str] = field(default_factory=frozenset)

    @property
    def enabled(self) -> bool:
        return True

    @property
    def use_proxy(self) -> bool:
        return self.proxy_socket is not None

    @classmethod
    def from_environment(
        cls,
        ledger: EnvironmentLedger,
        out_dir: Path,
        *,
        use_proxy: bool = False,
        force_enabled_modules: frozenset[str] = frozenset(),
    ) -> MixedBuildBazelContext:
        """Read the Bazel environment through ``ledger``.

        Raises:
            ConfigError: If any required variable is unset.
        """
        values = {name: ledger.getenv(name) for name in REQUIRED_ENV_VARS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigError(f"missing required env vars to use bazel: {', '.join(missing)}")

        proxy_socket = out_dir / PROXY_SOCKET_NAME if use_proxy else None
        logger.info("Bazel enabled (workspace=%s, proxy=%s)", values["BAZEL_WORKSPACE"], proxy_socket)
        return cls(
            bazel_path=values["BAZEL_PATH"],
            home_dir=values["BAZEL_HOME"],
            output_base=values["BAZEL_OUTPUT_BASE"],
            workspace_dir=values["BAZEL_WORKSPACE"],
            metrics_dir=values["BAZEL_METRICS_DIR"],
            proxy_socket=proxy_socket,
            force_enabled_modules=force_enabled_modules,
        )
