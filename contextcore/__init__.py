"""Context memory and rule prioritization core for conversational agents"""

from .bootstrap import Core, create_core
from .config import CoreConfig
from .exceptions import ConfigError, ContextCoreError, RuleSetNotFoundError, StoreError

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "ContextCoreError",
    "Core",
    "CoreConfig",
    "RuleSetNotFoundError",
    "StoreError",
    "create_core",
]
