from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class ValidationError(AppError):
    status_code = 400


class UnsupportedFileType(ValidationError):
    pass


class FileTooLarge(ValidationError):
    pass


class TooManyFiles(ValidationError):
    pass


class UpstreamError(AppError):
    """A store or AI provider call failed."""

    status_code = 502


class StorageUnavailable(UpstreamError):
    status_code = 503
