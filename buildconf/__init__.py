"""buildconf — configuration core for a native build orchestrator."""

__version__ = "0.1.0"
