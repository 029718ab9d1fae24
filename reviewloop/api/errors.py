"""Translate domain errors into HTTP errors"""
from fastapi import HTTPException

from reviewloop.core.exceptions import (
    FileTooLargeError, NotFoundError, PlatformAPIError, PreconditionFailedError, ReviewLoopError,
    StorageError, SubmissionTokenError, ValidationError, WebhookSignatureError
)

_TOKEN_STATUS = {
    SubmissionTokenError.INVALID: 404,
    SubmissionTokenError.EXPIRED: 410,
    SubmissionTokenError.ALREADY_SUBMITTED: 409,
}


def to_http_exception(exc: ReviewLoopError) -> HTTPException:
    if isinstance(exc, SubmissionTokenError):
        return HTTPException(_TOKEN_STATUS.get(exc.kind, 404), {"kind": exc.kind, "message": str(exc)})
    if isinstance(exc, NotFoundError):
        return HTTPException(404, str(exc))
    if isinstance(exc, PreconditionFailedError):
        return HTTPException(409, str(exc))
    if isinstance(exc, FileTooLargeError):
        return HTTPException(413, str(exc))
    if isinstance(exc, (ValidationError, WebhookSignatureError)):
        return HTTPException(400, str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(502, str(exc))
    if isinstance(exc, PlatformAPIError):
        return HTTPException(502, "Commerce platform request failed")
    return HTTPException(500, "Internal server error")
