"""
Product variables loader — reads ``soong.variables`` into a ProductVariables.

This is the single entry point for product configuration. It reads
JSON, validates against the pydantic schema, applies the derived
fields, and exports the build-tool-agnostic copy as a side effect.
When the file doesn't exist yet, defaults are written first so that
later runs (and the dependency tracker) always have a file to look at.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from buildconf.core.errors import ConfigError, ConfigIOError
from buildconf.core.models.product_vars import ProductVariables
from buildconf.core.persistence.product_vars_file import save_product_variables
from buildconf.core.persistence.starlark_export import export_product_variables

logger = logging.getLogger(__name__)


def read_product_variables(path: Path) -> ProductVariables | None:
    """Decode ``path`` without normalizing it.

    Returns:
        The decoded record, or None if the file doesn't exist.

    Raises:
        ConfigIOError: If the file exists but can't be read.
        ConfigError: If the content is not a valid product variables object.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ConfigIOError(f"config file: could not open {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file: {path} did not parse correctly: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(
            f"config file: {path} did not parse correctly: "
            f"expected a JSON object, got {type(data).__name__}"
        )

    try:
        return ProductVariables.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"config file: {path} did not parse correctly: {e}") from e


def normalize_product_variables(product_vars: ProductVariables, source: Path | str) -> ProductVariables:
    """Check cross-field constraints and fill in the derived fields.

    Raises:
        ConfigError: Both coverage modes set, or a final SDK without a version.
    """
    gcov = bool(product_vars.gcov_coverage)
    clang = bool(product_vars.clang_coverage)
    if gcov and clang:
        raise ConfigError(f"{source}: GcovCoverage and ClangCoverage cannot both be set")

    # A final SDK is identified by its number, a preview by its codename.
    if product_vars.platform_sdk_final:
        if product_vars.platform_sdk_version is None:
            raise ConfigError(
                f"{source}: Platform_sdk_version must be set when Platform_sdk_final is true"
            )
        version_or_codename = str(product_vars.platform_sdk_version)
    else:
        version_or_codename = product_vars.platform_sdk_codename or ""

    return product_vars.model_copy(update={
        "native_coverage": gcov or clang,
        "platform_sdk_version_or_codename": version_or_codename,
    })


def load_product_variables(path: Path, *, export: bool = True) -> ProductVariables:
    """Load product variables, creating the file with defaults if it's missing.

    Args:
        path: Path to ``soong.variables``.
        export: Also write the Starlark copy next to the file.

    Returns:
        Normalized, frozen ProductVariables.

    Raises:
        ConfigError: Malformed file or contradictory options.
        ConfigIOError: The file or the export can't be read or written.
    """
    product_vars = read_product_variables(path)
    if product_vars is None:
        logger.info("No product variables at %s, writing defaults", path)
        product_vars = ProductVariables.defaults()
        save_product_variables(product_vars, path)
    else:
        logger.debug("Loaded product variables from %s", path)

    product_vars = normalize_product_variables(product_vars, path)

    if export:
        export_product_variables(product_vars, path.parent)
    return product_vars
