"""
Error taxonomy for the configuration core.

Three kinds of failure, matching how the CLI reacts to them:

    ConfigError         → user configuration problem (bad file, bad flag).
                          Message names the offending file, flag or field.
    ConfigIOError       → environment / filesystem problem. Wraps the OSError.
    InvariantViolation  → a bug in a caller. Never caught as a user error.

Nothing in ``buildconf.core`` terminates the process. Errors propagate to
``buildconf.main``, which prints them and exits non-zero.
"""

from __future__ import annotations


class BuildConfError(Exception):
    """Base class for all recoverable-by-the-user configuration failures."""


class ConfigError(BuildConfError):
    """Raised when configuration input is malformed or contradictory."""


class BuildModeConflictError(ConfigError):
    """Raised when more than one build mode is requested."""

    def __init__(self, flag: str, active: str) -> None:
        self.flag = flag
        self.active = active
        super().__init__(
            f"build mode is already set to {active!r}, illegal argument: {flag}"
        )


class ConfigIOError(BuildConfError):
    """Raised when a configuration file or directory cannot be read or written."""


class InvariantViolation(RuntimeError):
    """Raised when a caller breaks a programming invariant of the core."""


class EnvFrozenError(InvariantViolation):
    """Raised when an untracked env var is read after the ledger was frozen."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Cannot access new environment variable {name!r} after envdeps are frozen"
        )
