"""
Domain exceptions for CrisisSync.

Payload validation failures are pydantic ``ValidationError``s and an update
that targets an unknown incident is reported as zero changed rows, so
neither has a class here.
"""


class CrisisSyncError(Exception):
    """Base class for all CrisisSync errors."""
    pass


class StorageError(CrisisSyncError):
    """Raised when the incident store rejects a write (constraint violation, I/O fault)."""
    pass


class TransportError(CrisisSyncError):
    """Raised by the API client when the backend is unreachable or answers non-2xx."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamClassifierError(CrisisSyncError):
    """Raised when the AI classifier call fails or returns an unusable reply."""
    pass


class AuthenticationFailed(CrisisSyncError):
    """Raised when an admin login presents the wrong credential."""
    pass


class PermissionDenied(CrisisSyncError):
    """Raised locally when the session lacks a permission. Never reaches the network."""
    pass


class ReportSubmissionError(CrisisSyncError):
    """User-facing failure of a report submission."""

    def __init__(self, message: str = "Failed to submit report. Please try again."):
        super().__init__(message)
