"""Error taxonomy surfaced by the API.

Malformed model output is deliberately absent: it is absorbed by the
fallback parser and never reaches the caller.
"""

from typing import Optional


class ReportAIError(Exception):
    """Base error carrying the HTTP status and the user-facing message."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidInput(ReportAIError):
    """A required request field is missing; no collaborator was called."""

    status_code = 400
    message = "Invalid request"


class PayloadTooLarge(InvalidInput):
    status_code = 413
    message = "File too large"


class AuthError(ReportAIError):
    status_code = 401
    message = "Access token required"


class InvalidToken(AuthError):
    status_code = 403
    message = "Invalid or expired token"


class NotFound(ReportAIError):
    """The referenced record does not exist or belongs to another user."""

    status_code = 404
    message = "Not found"


class UpstreamUnavailable(ReportAIError):
    """The model or the PDF extraction collaborator failed or timed out."""

    status_code = 502
    message = "Upstream service unavailable"


class LLMNotConfigured(UpstreamUnavailable):
    status_code = 500
    message = "LLM model not configured on server"
