"""
Logging configuration — central setup for the buildconf CLI.

Called once at startup by ``buildconf.main``. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug > --verbose > --quiet  >  BUILDCONF_LOG_LEVEL env var  >  WARNING

Optional file output via BUILDCONF_LOG_FILE / BUILDCONF_LOG_FILE_LEVEL.
These variables configure diagnostics only; they are read straight from
the process environment and never recorded in the environment ledger.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping

PACKAGE_LOGGER = "buildconf"

LOG_LEVEL_ENV = "BUILDCONF_LOG_LEVEL"
LOG_FILE_ENV = "BUILDCONF_LOG_FILE"
LOG_FILE_LEVEL_ENV = "BUILDCONF_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

# Full diagnostic with file:line; also used for the log file
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

# (highest level, format, datefmt); first match wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, _FMT_DEBUG, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "buildconf: %(message)s", None),
)

_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level name from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return (environ or {}).get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the ``buildconf`` logger hierarchy.

    Handlers are replaced, not added, so calling this twice is safe.
    Records stop at the package logger and never reach the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = parse_level(level)
    fmt, datefmt = next((f, d) for lvl, f, d in _CONSOLE_FORMATS if numeric_level <= lvl)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    pkg = logging.getLogger(PACKAGE_LOGGER)
    pkg.handlers.clear()
    pkg.addHandler(console)
    pkg.propagate = False

    effective_level = numeric_level
    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_FILE))
        pkg.addHandler(fh)

    pkg.setLevel(effective_level)


def setup_from_environment(
    environ: Mapping[str, str],
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> None:
    """``setup_logging`` driven by CLI flags plus the BUILDCONF_LOG_* variables."""
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet, environ=environ),
        log_file=environ.get(LOG_FILE_ENV),
        log_file_level=environ.get(LOG_FILE_LEVEL_ENV),
    )


def parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant (WARNING if unknown)."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
