"""
Starlark export — a build-tool-agnostic copy of the product variables.

Written next to the product variables file under
``soong_injection/product_config/``:

    product_variables.bzl           the JSON blob plus both name lists
    product_variable_constants.bzl  just the name lists
    BUILD                           marker so the directory is a package

Files are rewritten only when their content changes, so tools watching
mtimes don't rebuild for nothing. This is a one-way export; nothing in
this package reads it back.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from buildconf.core.errors import ConfigIOError
from buildconf.core.models.product_vars import (
    ProductVariables,
    arch_variant_product_variables,
    non_arch_variant_product_variables,
)
from buildconf.core.persistence.product_vars_file import serialize_product_variables

logger = logging.getLogger(__name__)

INJECTION_DIR_NAME = "soong_injection"
PRODUCT_CONFIG_DIR_NAME = "product_config"

GENERATED_FILE_WARNING = "# GENERATED FOR BAZEL FROM SOONG. DO NOT EDIT."


def print_string_list(items: Sequence[str], indent_level: int = 0) -> str:
    """Format a list of strings as a Starlark list literal."""
    if not items:
        return "[]"
    inner = " " * 4 * (indent_level + 1)
    outer = " " * 4 * indent_level
    lines = ["["]
    lines.extend(f'{inner}"{item}",' for item in items)
    lines.append(f"{outer}]")
    return "\n".join(lines)


def write_file_if_changed(path: Path, content: str) -> bool:
    """Write ``content`` to ``path`` unless it already holds exactly that.

    Returns:
        True if the file was written.
    """
    try:
        if path.is_file() and path.read_text(encoding="utf-8") == content:
            return False
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ConfigIOError(f"Could not write config file {path}: {e}") from e
    return True


def render_product_variables_bzl(product_vars: ProductVariables) -> str:
    # The JSON goes inside a Starlark string literal, so backslashes
    # must be escaped once more.
    config_json = serialize_product_variables(product_vars).rstrip("\n").replace("\\", "\\\\")
    non_arch = print_string_list(non_arch_variant_product_variables())
    arch = print_string_list(arch_variant_product_variables())
    return "\n".join([
        GENERATED_FILE_WARNING,
        f'_product_vars = json.decode("""{config_json}""")',
        f"_product_var_constraints = {non_arch}",
        f"_arch_variant_product_var_constraints = {arch}",
        "",
        "product_vars = _product_vars",
        "product_var_constraints = _product_var_constraints",
        "arch_variant_product_var_constraints = _arch_variant_product_var_constraints",
        "",
    ])


def render_constants_bzl() -> str:
    non_arch = print_string_list(non_arch_variant_product_variables())
    arch = print_string_list(arch_variant_product_variables())
    return (
        f"product_var_constraints = {non_arch}\n"
        f"arch_variant_product_var_constraints = {arch}\n"
    )


def export_product_variables(product_vars: ProductVariables, out_dir: Path) -> Path:
    """Write the Starlark copy of ``product_vars`` below ``out_dir``.

    Returns:
        The product_config directory.

    Raises:
        ConfigIOError: If the directory or a file can't be written.
    """
    target_dir = out_dir / INJECTION_DIR_NAME / PRODUCT_CONFIG_DIR_NAME
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigIOError(f"Could not create dir {target_dir}: {e}") from e

    written = [
        write_file_if_changed(target_dir / "product_variables.bzl",
                              render_product_variables_bzl(product_vars)),
        write_file_if_changed(target_dir / "product_variable_constants.bzl",
                              render_constants_bzl()),
        write_file_if_changed(target_dir / "BUILD", GENERATED_FILE_WARNING + "\n"),
    ]
    logger.debug("Exported product variables to %s (%d files changed)", target_dir, sum(written))
    return target_dir
