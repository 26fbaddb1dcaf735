"""
Upload pipeline errors. Each one is terminal for the request and maps to exactly one HTTP status.
`message` goes to the client; `cause` is the underlying error and is only logged.
"""
from fastapi import status


class UploadPipelineError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "InternalError"
    default_message: str = "Internal server error"
    logged: bool = False

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code}: {self.message} ({self.cause})"
        return f"{self.code}: {self.message}"


class InvalidIdentifier(UploadPipelineError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidIdentifier"
    default_message = "Invalid ID"


class AuthMissing(UploadPipelineError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AuthMissing"
    default_message = "Couldn't find JWT"


class AuthInvalid(UploadPipelineError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AuthInvalid"
    default_message = "Couldn't validate JWT"


class NotFound(UploadPipelineError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"
    default_message = "Video not found"


class Forbidden(UploadPipelineError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "Forbidden"
    default_message = "You don't own this video"


class UnsupportedMediaType(UploadPipelineError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "UnsupportedMediaType"
    default_message = "Unsupported media type"


class BodyTooLarge(UploadPipelineError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "BodyTooLarge"
    default_message = "Request body too large"


class MalformedForm(UploadPipelineError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "MalformedForm"
    default_message = "Couldn't parse multipart form"


class RandomnessFailure(UploadPipelineError):
    code = "RandomnessFailure"
    default_message = "Couldn't generate random filename"


class AssetIOError(UploadPipelineError):
    code = "IOError"
    default_message = "Couldn't save asset"


class UploadError(UploadPipelineError):
    code = "UploadError"
    default_message = "Couldn't upload asset to object storage"


class PersistError(UploadPipelineError):
    code = "PersistError"
    default_message = "Couldn't update video record"
