"""Domain error taxonomy

Routers translate these into HTTP responses; services raise them so callers
can tell "not found" apart from "wrong state".
"""
from typing import Optional


class ReviewLoopError(Exception):
    """Base class for all domain errors"""


class NotFoundError(ReviewLoopError):
    """A review, product config or merchant does not exist"""


class PreconditionFailedError(ReviewLoopError):
    """The operation is not allowed in the entity's current state"""


class ValidationError(ReviewLoopError):
    """Malformed input; rejected without side effects"""


class FileTooLargeError(ValidationError):
    """Upload exceeds MAX_UPLOAD_SIZE"""


class SubmissionTokenError(ReviewLoopError):
    """A public submission token cannot be used.

    ``kind`` is one of ``invalid``, ``expired`` or ``already_submitted`` and is
    the only detail ever shown to the customer.
    """

    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_SUBMITTED = "already_submitted"

    MESSAGES = {
        INVALID: "This review link is invalid",
        EXPIRED: "This link has expired",
        ALREADY_SUBMITTED: "This review has already been submitted",
    }

    def __init__(self, kind: str, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or self.MESSAGES.get(kind, "Invalid submission token"))


class StorageError(ReviewLoopError):
    """Media upload failed; the customer may retry"""


class PlatformAPIError(ReviewLoopError):
    """Commerce platform request failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class WebhookSignatureError(ReviewLoopError):
    """Inbound webhook signature missing or invalid"""
