"""
Domain models — the typed records the configuration core passes around.

All models are re-exported here for convenient access:

    from buildconf.core.models import ProductVariables, Target, BuildMode, CmdArgs
"""

from buildconf.core.models.build_mode import BuildMode
from buildconf.core.models.cmd_args import CmdArgs
from buildconf.core.models.product_vars import (
    PRODUCT_VARIABLE_VARIANCE,
    ProductVariables,
    arch_variant_product_variables,
    check_variance_table,
    non_arch_variant_product_variables,
)
from buildconf.core.models.target import (
    Arch,
    ArchConfig,
    ArchType,
    OsClass,
    OsType,
    Target,
)

__all__ = [
    # target.py
    "Arch",
    "ArchConfig",
    "ArchType",
    # build_mode.py
    "BuildMode",
    # cmd_args.py
    "CmdArgs",
    "OsClass",
    "OsType",
    # product_vars.py
    "PRODUCT_VARIABLE_VARIANCE",
    "ProductVariables",
    "Target",
    "arch_variant_product_variables",
    "check_variance_table",
    "non_arch_variant_product_variables",
]
