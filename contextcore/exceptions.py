"""
Exception types raised by the context core.

Most failures inside the core degrade silently (logged, best-effort result);
these types exist for the few seams where a caller can opt into errors.
"""


class ContextCoreError(Exception):
    """Base class for context core errors"""


class ConfigError(ContextCoreError):
    """Raised when configuration values are missing or invalid"""


class StoreError(ContextCoreError):
    """Raised when the durable store rejects a get or put"""

    def __init__(self, key: str, message: str):
        super().__init__(f"{message} (key={key})")
        self.key = key


class RuleSetNotFoundError(ContextCoreError, KeyError):
    """Raised when a rule set name is not known to the registry"""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown rule set: {self.name}"
