# perfaudit/core/exceptions.py


class AuditError(Exception):
    """Base class for every error raised by the audit pipeline."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(AuditError):
    """The batch request is unusable (e.g. no URLs left after normalization)."""


class MeasurementFailure(AuditError):
    """A single Lighthouse pass failed. Contained by the pass runner."""


class OrchestrationFailure(AuditError):
    """The whole batch failed and no results can be returned."""


class BrowserLaunchError(OrchestrationFailure):
    """The shared browser could not be started or never became reachable."""
