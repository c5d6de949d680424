"""Domain errors raised by the collector services.

Every error carries the HTTP status the transport layer should answer with
and a human-readable message. Routers never build their own failure
payloads; the exception handler registered in ``main`` renders these as
``{"success": false, "error": <message>}``.
"""


class CollectorError(Exception):
    """Base class for all expected failures."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str = "") -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(CollectorError):
    status_code = 400
    default_message = "Bad request"


class ForbiddenError(CollectorError):
    status_code = 403
    default_message = "Access denied"


class RoomNotFoundError(CollectorError):
    status_code = 404
    default_message = "Room not found"


class SubmissionNotFoundError(CollectorError):
    status_code = 404
    default_message = "No submission found"


class NoFilesError(CollectorError):
    """Raised when a bundle is requested for a room nobody has submitted to."""

    status_code = 404
    default_message = "No files found"


class RoomExpiredError(CollectorError):
    """The room exists but is past its expiry; it has been torn down."""

    status_code = 410
    default_message = "Room has expired"


class PayloadTooLargeError(CollectorError):
    status_code = 413
    default_message = "File too large"


class StorageFaultError(CollectorError):
    status_code = 500
    default_message = "Storage failure"
