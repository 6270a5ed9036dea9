# snapcast/core/exceptions.py

from fastapi import status


class SnapCastError(Exception):
    """Base class for errors that map to a short, user-safe HTTP response."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "An internal server error occurred."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ConfigurationError(SnapCastError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The service is not configured for this operation."


class AuthenticationRequired(SnapCastError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class AuthorizationError(SnapCastError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."


class VideoAccessDenied(AuthorizationError):
    # Owner mismatch and missing record look the same to the caller.
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Video not found or you do not have permission to access it."


class VideoNotFound(SnapCastError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Video not found."


class VideoValidationError(SnapCastError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_detail = "Invalid video details."

    def __init__(self, field: str, reason: str):
        self.field = field
        super().__init__(reason)


class CdnError(SnapCastError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "The video service could not be reached. Please try again later."


class StorageError(SnapCastError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Could not create an upload URL at this time. Please try again later."


class UploadInitError(SnapCastError):
    default_detail = "An error occurred while preparing the video record."


class QueueError(SnapCastError):
    default_detail = "Failed to queue video for processing."
