"""
Domain Errors

Every failure a service can report to a caller. Each error knows the HTTP
status it maps to, so routes never translate exceptions by hand; the
handlers registered in ``bistro.main`` render them as::

    {"success": false, "error": "<message>", "detail": <details or null>}
"""

from typing import Any, Iterable, Optional


def field_errors(errors: Iterable[dict[str, Any]]) -> dict[str, str]:
    """
    Flatten pydantic error dicts into ``{"items.0.quantity": "reason"}``.

    The leading ``body``/``query`` segment FastAPI adds to locations is dropped.
    """
    details: dict[str, str] = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "__root__"
        details.setdefault(key, error.get("msg", "Invalid value"))
    return details


class BistroError(Exception):
    """Base class for all expected application errors."""

    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "detail": self.details,
        }


class ValidationError(BistroError):
    """Malformed or missing fields. ``details`` maps field paths to reasons."""

    status_code = 400
    default_message = "Invalid input"

    @classmethod
    def from_errors(cls, errors: Iterable[dict[str, Any]], message: Optional[str] = None) -> "ValidationError":
        return cls(message, details=field_errors(errors))


class AuthenticationRequired(BistroError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(BistroError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(BistroError):
    status_code = 404
    default_message = "Not found"


class TransientIOError(BistroError):
    """Store or socket temporarily unavailable."""

    status_code = 503
    default_message = "Service temporarily unavailable"


class PaymentProviderError(BistroError):
    """The payment provider declined or could not be reached."""

    status_code = 502
    default_message = "Payment provider error"
