"""
Application error taxonomy.
Every failure a caller can observe is one of the variants below; the web layer
maps them to redirects and re-renders, the GraphQL layer exposes the message
and `extensions.code`.
"""
from pydantic import ValidationError as PydanticValidationError


class AppError(Exception):
    """Base class for expected, caller-visible failures."""

    code = "INTERNAL"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def extensions(self) -> dict:
        # graphql-core copies `extensions` from the original error
        return {"code": self.code}


class ValidationError(AppError):
    """A single field failed its input rules."""

    code = "BAD_USER_INPUT"
    default_message = "Invalid input"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message)


class NotFound(AppError):
    """Owner-scoped lookup missed. Never says whether the record exists at all."""

    code = "NOT_FOUND"
    default_message = "Todo not found"


class Unauthorized(AppError):
    code = "UNAUTHENTICATED"
    default_message = "Authentication required"


class InvalidCredentials(Unauthorized):
    # Same text for unknown user and wrong password
    default_message = "Invalid username or password"


class Conflict(AppError):
    """Integrity failure on a unique field."""

    code = "CONFLICT"
    default_message = "Already exists"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message)


class CSRFError(AppError):
    code = "FORBIDDEN"
    default_message = "Form tampering detected (invalid CSRF token). Please refresh and try again."


def field_errors(exc: PydanticValidationError) -> list[ValidationError]:
    """
    Flatten a pydantic validation failure into one ValidationError per field message.

    The field name is the first element of the error location (the alias when
    the model validated by alias).
    """
    errors = []
    for item in exc.errors():
        loc = item.get("loc") or ("__all__",)
        errors.append(ValidationError(str(loc[0]), item.get("msg")))
    return errors
