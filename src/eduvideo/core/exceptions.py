"""Custom exceptions for the upload service."""


class UploadServiceError(Exception):
    """Base exception for the upload service."""
    pass


class NotFoundError(UploadServiceError):
    """Exception raised when an upload session or content record is unknown."""
    pass


class ForbiddenError(UploadServiceError):
    """Exception raised when the caller does not own the resource."""
    pass


class InvalidStateError(UploadServiceError):
    """Exception raised for incomplete uploads and malformed requests.

    ``conflict`` marks errors caused by a competing operation on the same
    session (finalize racing cancel), which map to HTTP 409 instead of 400.
    """

    def __init__(self, message: str, conflict: bool = False):
        super().__init__(message)
        self.conflict = conflict


class UploadError(UploadServiceError):
    """Exception raised when a cloud provider rejects or fails an operation."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class UnexpectedError(UploadServiceError):
    """Exception raised for failures outside the taxonomy, such as merge I/O."""
    pass
