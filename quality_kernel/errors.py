"""Exception taxonomy for the goal-assessment pipeline."""

from typing import Optional


class QualityKernelError(Exception):
    """Base class for every error raised by the kernel."""
    pass


class ConfigurationError(QualityKernelError):
    """Raised when an operation is invoked without its required collaborators."""
    pass


class NotConfiguredError(ConfigurationError):
    """Raised when an assessment is requested without a telemetry source or goals."""
    pass


class StorageError(QualityKernelError):
    """Base class for telemetry store failures."""
    pass


class StorageReadError(StorageError):
    """Raised when a store's backing resource cannot be parsed."""
    pass


class StorageWriteError(StorageError):
    """Raised when a store cannot persist its content."""
    pass


class MetricComputationError(QualityKernelError):
    """Raised when a single metric fails to produce a valid value."""

    def __init__(self, metric_name: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Metric '{metric_name}': {message}")
        self.metric_name = metric_name
        self.cause = cause
