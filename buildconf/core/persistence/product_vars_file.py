"""
Product variables file — atomic write of ``soong.variables``.

The file is written only when it doesn't exist yet (defaults). Writes
are atomic (write to temp file in the same directory, then rename) so a
second process running alongside, such as documentation generation,
never sees a partial file.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from buildconf.core.errors import ConfigIOError
from buildconf.core.models.product_vars import ProductVariables

logger = logging.getLogger(__name__)

# The product variables file name, written by product configuration.
PRODUCT_VARIABLES_FILE_NAME = "soong.variables"


def serialize_product_variables(product_vars: ProductVariables) -> str:
    """Render product variables the way they are stored on disk."""
    return json.dumps(product_vars.to_json_dict(), indent=4) + "\n"


def save_product_variables(product_vars: ProductVariables, path: Path) -> None:
    """Save product variables to ``path`` (atomic write).

    Raises:
        ConfigIOError: If the temp file can't be created, written or renamed.
    """
    content = serialize_product_variables(product_vars)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigIOError(f"cannot create directory for config file {path}: {e}") from e

    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".config_", suffix=".tmp")
    except OSError as e:
        raise ConfigIOError(f"cannot create empty config file {path}: {e}") from e

    tmp = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise ConfigIOError(f"default config file: {path} could not be written: {e}") from e

    logger.debug("Product variables saved to %s", path)
