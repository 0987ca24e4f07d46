"""
Exceptions raised by livesubset.

Validation failures are not errors: invalid records are dropped and the
preparation step reports False. Exceptions raised by membership predicates
are never wrapped and reach the caller of the triggering mutation as-is.
"""


class LiveSubsetError(Exception):
    """Base exception for livesubset."""
    pass


class SubsetConfigurationError(LiveSubsetError):
    """Raised when a subset cannot be built or used (no parent, no predicate, disposed)."""
    pass


class SubsetParseError(LiveSubsetError):
    """Raised when a subset definition cannot be parsed."""
    pass


class SubsetNotFoundError(LiveSubsetError):
    """Raised when a subset definition is not found in the registry."""
    pass


class ConfigError(LiveSubsetError):
    """Raised when a configuration file cannot be read."""
    pass
