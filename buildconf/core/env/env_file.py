"""
Env-deps file — the serialized ledger used to decide on reconfiguration.

The file is a JSON list of ``{"Key": ..., "Value": ...}`` objects sorted
by key. A later invocation compares it against the live environment: if
any tracked variable changed, configuration must run again.
"""

from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Mapping
from pathlib import Path

from buildconf.core.errors import ConfigError, ConfigIOError

logger = logging.getLogger(__name__)


def write_env_file(path: Path, env_deps: Mapping[str, str]) -> None:
    """Write the env deps to ``path`` (atomic write)."""
    entries = [{"Key": k, "Value": env_deps[k]} for k in sorted(env_deps)]
    content = json.dumps(entries, indent=4) + "\n"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".env_", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with open(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ConfigIOError(f"env file: could not write {path}: {e}") from e

    logger.debug("Wrote %d env deps to %s", len(entries), path)


def _read_env_file(path: Path) -> dict[str, str]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigIOError(f"env file: could not open {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"env file: {path} did not parse correctly: {e}") from e

    if not isinstance(data, list):
        raise ConfigError(f"env file: {path} must contain a JSON list")

    recorded: dict[str, str] = {}
    for entry in data:
        if not isinstance(entry, dict) or "Key" not in entry:
            raise ConfigError(f"env file: {path} has a malformed entry: {entry!r}")
        recorded[str(entry["Key"])] = str(entry.get("Value", ""))
    return recorded


def changed_env_vars(path: Path, env: Mapping[str, str]) -> list[str]:
    """Return the sorted names whose value in ``env`` differs from ``path``."""
    recorded = _read_env_file(path)
    changed = []
    for name, old in sorted(recorded.items()):
        new = env.get(name, "")
        if new != old:
            logger.info("environment variable %s changed: %r -> %r", name, old, new)
            changed.append(name)
    return changed


def stale_env_file(path: Path, env: Mapping[str, str]) -> bool:
    """Return True if ``path`` is missing or any recorded variable changed."""
    if not path.is_file():
        logger.info("No env file at %s, treating as stale", path)
        return True
    return bool(changed_env_vars(path, env))
