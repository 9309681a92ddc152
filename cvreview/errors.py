"""Application error taxonomy.

Each error carries the HTTP status it maps to; the exception handlers in
``main.py`` turn them into the standard error envelope.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class QuotaExceededError(AppError):
    status_code = 403
    default_message = "Free quota exceeded. Please upgrade to Pro."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class ExtractionError(AppError):
    default_message = "Failed to extract text from the uploaded file"


class GenerationError(AppError):
    default_message = "Internal server error during generation"


class EmailDeliveryError(AppError):
    default_message = "Error sending email"
