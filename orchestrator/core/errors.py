"""
Error taxonomy for the check-in pipeline.

Client errors are surfaced verbatim, dependency errors surface a generic
message while the detail goes to the log, and generation errors are
absorbed by the pipeline and never reach the caller.
"""

from typing import Any, Dict, Optional

from models import ErrorResponse


class CheckInError(Exception):
    """An error that maps onto an HTTP `{error, message, code}` body."""

    status_code: int = 500
    error: str = "Internal error"

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return ErrorResponse(error=self.error, message=self.message, code=self.code).model_dump()


class ClientInputError(CheckInError):
    """400/401/403/404 errors caused by the request itself."""

    status_code = 400
    error = "Bad request"


class DependencyError(CheckInError):
    """
    A fatal failure of a collaborator (store, config).
    The caller only sees the generic message; `detail` is for the log.
    """

    status_code = 500
    error = "Internal error"

    def __init__(self, code: str, message: str, detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(code, message, status_code=status_code)
        self.detail = detail


def validation_error(message: str) -> ClientInputError:
    return ClientInputError("VALIDATION_ERROR", message, error="Validation failed")


def parse_error(message: str = "Request body must be valid JSON") -> ClientInputError:
    return ClientInputError("PARSE_ERROR", message, error="Invalid JSON")


def unauthorized(message: str = "Missing or invalid Authorization header") -> ClientInputError:
    return ClientInputError("UNAUTHORIZED", message, status_code=401, error="Unauthorized")


def forbidden(message: str) -> ClientInputError:
    return ClientInputError("FORBIDDEN", message, status_code=403, error="Forbidden")


def not_found(code: str, message: str) -> ClientInputError:
    return ClientInputError(code, message, status_code=404, error="Not found")


# ============================================================================
# Collaborator Errors
# ============================================================================

class StorageError(Exception):
    """Transport or API failure talking to the relational or object store."""
    pass


class ChapterIndexConflict(StorageError):
    """Another chapter already holds the (goal_id, chapter_index) pair."""
    pass


class GenerationError(Exception):
    """Narrative provider failure: transport error, malformed JSON or timeout."""
    pass


class MalformedOutputError(GenerationError):
    """The provider answered, but not with the JSON shape asked for."""
    pass


class PanelGenerationError(Exception):
    """Image provider failure."""
    pass
