"""Custom exception types for the DORA metrics collector."""


class DoraMetricsError(Exception):
    """Base exception for all recoverable metric collection errors."""


class ConfigurationError(DoraMetricsError):
    """Raised when runtime configuration values are missing or invalid."""


class SourceUnavailableError(DoraMetricsError):
    """Raised when an external source cannot be reached or returns a non-2xx response."""


class MalformedResponseError(DoraMetricsError):
    """Raised when an external source returns a payload with an unexpected shape."""


class InvalidArgumentError(DoraMetricsError):
    """Raised when a metric is invoked with an argument it cannot interpret."""
