"""Exception types raised by push_forks."""


class PushForksError(Exception):
    """Base class for fatal push-forks errors."""


class ConfigError(PushForksError):
    """Raised when the configuration file cannot be loaded."""


class OperationCancelled(PushForksError):
    """Raised when the run is interrupted by a signal."""
