"""
Errors raised by the content modules and mapped to HTTP responses by routes.content_error_handler.
"""

from __future__ import annotations


class ContentError(Exception):
    """Base class for content rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self):
        return self.message


class NotFoundError(ContentError):
    status_code = 404


class ConflictError(ContentError):
    """Slug already taken, or the row still has children."""

    status_code = 409


class ValidationFailed(ContentError):
    """Carries one message per offending field, like the original form errors."""

    status_code = 422

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors

    @property
    def detail(self):
        return {"message": "Validation failed", "errors": self.errors}
