"""
Environment ledger — tracked, single-read access to environment variables.

Every environment variable the configuration consults is recorded here
with the value seen on its first read. Later reads return the recorded
value even if the process environment changed in between, so one run
makes every decision from a single snapshot.

``env_deps()`` hands the full record to whoever serializes it as a
regeneration dependency and freezes the ledger. A read of a name that
was never recorded after that point is a caller bug: the input would
influence the build without being tracked.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping

from buildconf.core.errors import EnvFrozenError
from buildconf.core.observability.metrics import ENV_READS, MetricsRegistry

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({"1", "y", "yes", "on", "true"})
FALSE_VALUES = frozenset({"0", "n", "no", "off", "false"})


class EnvironmentLedger:
    """Records every environment variable read during configuration.

    Args:
        env: Snapshot of the environment available to this run.
        ignore_environment: If True, every read records and returns "".
            Used by test configurations.
        metrics: Optional registry; first reads bump ``env.reads``.
    """

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        *,
        ignore_environment: bool = False,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._env: Mapping[str, str] = env if env is not None else {}
        self._ignore_environment = ignore_environment
        self._metrics = metrics
        self._lock = threading.Lock()
        self._deps: dict[str, str] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        with self._lock:
            return self._frozen

    def getenv(self, name: str) -> str:
        """Return the value of ``name``, recording it on first read."""
        with self._lock:
            if name in self._deps:
                return self._deps[name]
            if self._frozen:
                raise EnvFrozenError(name)
            value = "" if self._ignore_environment else self._env.get(name, "")
            self._deps[name] = value

        logger.debug("env read %s=%r", name, value)
        if self._metrics is not None:
            self._metrics.counter(ENV_READS).inc()
        return value

    def getenv_with_default(self, name: str, default: str) -> str:
        """Like ``getenv`` but returns ``default`` when the value is empty."""
        return self.getenv(name) or default

    def is_env_true(self, name: str) -> bool:
        return self.getenv(name) in TRUE_VALUES

    def is_env_false(self, name: str) -> bool:
        return self.getenv(name) in FALSE_VALUES

    def env_deps(self) -> dict[str, str]:
        """Return every variable read so far and freeze the ledger.

        Freezing is irreversible. Calling this again returns an equal
        mapping (names already recorded stay readable).
        """
        with self._lock:
            if not self._frozen:
                logger.debug("freezing environment ledger with %d entries", len(self._deps))
            self._frozen = True
            return dict(self._deps)
