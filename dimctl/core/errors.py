"""Domain-specific errors for dimctl."""


class DimctlError(Exception):
    """Base error for dimctl."""


class ConfigLoadError(DimctlError):
    """Raised when reading a configuration source fails."""


class ConfigValidationError(DimctlError):
    """Raised when configuration does not conform to schema or semantics."""


class ButtonResolutionError(DimctlError):
    """Raised when a button name cannot be resolved to a configured button."""


class TransportError(DimctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when a device cannot be reached."""


class TransportTimeoutError(TransportError):
    """Raised when a device does not answer in time."""


class TransportResponseError(TransportError):
    """Raised when a device answers with an error or an unparseable body."""
