"""Application error taxonomy.

Every error raised by the stores and routes is an `AppError`; the API renders
them as `{"message": ..., "error": ...}` with the class's HTTP status.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(AppError):
    status_code = 400


class Conflict(AppError):
    # Duplicate registration; the frontend expects 400 here, not 409.
    status_code = 400


class InvalidCredentials(AppError):
    status_code = 400


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class UpstreamFailure(AppError):
    status_code = 500
