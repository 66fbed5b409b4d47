"""
Error taxonomy shared by the store, the HTTP layer and the CLI.
"""


class JobTrackError(Exception):
    """Base class for all jobtrack errors."""
    pass


class PersistenceError(JobTrackError):
    """Raised when the store is unreachable or a write fails."""
    pass


class ParseError(JobTrackError):
    """Raised for malformed dates, JSON bodies or record ids."""
    pass


class ProtocolError(JobTrackError):
    """Raised when an HTTP request cannot be parsed."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


class NotFoundError(JobTrackError):
    """Raised for unmatched routes."""
    pass
