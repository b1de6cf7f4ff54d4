"""Error kinds surfaced by the solve pipeline.

Every terminal failure maps to one subclass of ``SolveError``. The class
carries the wire ``kind``, the HTTP status, a coarse status category and a
stable human-readable message; ``main.py`` renders them with one handler.
"""
from typing import Optional


class SolveError(Exception):
    kind = "InternalError"
    status_code = 500
    category = "internal"
    message = "Error processing request"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {
            "success": False,
            "errorKind": self.kind,
            "message": self.message,
            "category": self.category,
        }


class InvalidInput(SolveError):
    kind = "InvalidInput"
    status_code = 400
    category = "bad-input"
    message = "Invalid request"


class ConfigurationError(SolveError):
    kind = "ConfigurationError"
    status_code = 500
    category = "internal"
    message = "API configuration error"


class InternalError(SolveError):
    pass


# --- completion call -----------------------------------------------------------

class CompletionError(SolveError):
    """Base for failures of the outbound generation call."""


class CompletionTimeout(CompletionError):
    kind = "Timeout"
    status_code = 408
    category = "timeout"
    message = "Request timeout - try a shorter question"


class RateLimited(CompletionError):
    kind = "RateLimited"
    status_code = 429
    category = "rate-limited"
    message = "Rate limit exceeded - please wait"


class SafetyBlocked(CompletionError):
    kind = "SafetyBlocked"
    status_code = 400
    category = "bad-input"
    message = "Question flagged by safety filters"


class EmptyCompletion(CompletionError):
    kind = "EmptyCompletion"
    status_code = 502
    category = "upstream-unavailable"
    message = "No response from AI"


class UpstreamError(CompletionError):
    kind = "UpstreamError"
    status_code = 502
    category = "upstream-unavailable"
    message = "AI service unavailable - please try again"


# --- persistence ----------------------------------------------------------------

class PersistenceFailure(Exception):
    """History write failed. Logged by the caller, never sent to the client."""
