"""Exception types raised by velofuse."""


class FusionError(Exception):
    """Base class for all velofuse errors."""


class ConfigurationError(FusionError, ValueError):
    """Raised at construction time when a tuning parameter is out of range."""


class InvalidSampleError(FusionError, ValueError):
    """Raised when an input sample is non-finite and cannot be applied."""
