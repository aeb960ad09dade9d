"""
Environment access — the ledger every configuration read goes through.

    from buildconf.core.env import EnvironmentLedger
"""

from buildconf.core.env.env_file import changed_env_vars, stale_env_file, write_env_file
from buildconf.core.env.ledger import EnvironmentLedger

__all__ = [
    "EnvironmentLedger",
    "changed_env_vars",
    "stale_env_file",
    "write_env_file",
]
