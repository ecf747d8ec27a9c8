"""
benchctl - Orchestrator for distributed load-test runs.
"""

__version__ = "0.1.0"

from .core.config import load_config
from .core.runtime import RuntimeContext
from .core.schema import RunConfig

__all__ = [
    "load_config",
    "RunConfig",
    "RuntimeContext",
]
