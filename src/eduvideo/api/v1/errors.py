"""Translation of service errors into HTTP errors."""

from fastapi import HTTPException

from eduvideo.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UploadError,
    UploadServiceError,
)


def to_http_exception(error: UploadServiceError) -> HTTPException:
    """Map the service error taxonomy onto status codes.

    UnexpectedError and anything unknown become a generic 500.
    """
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ForbiddenError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, InvalidStateError):
        return HTTPException(status_code=409 if error.conflict else 400, detail=str(error))
    if isinstance(error, UploadError):
        return HTTPException(status_code=502, detail="Cloud storage request failed")
    return HTTPException(status_code=500, detail="Internal server error")
