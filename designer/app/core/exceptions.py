"""
Domain exceptions for the designer backend.

Every error raised by the services carries the HTTP status the API layer
answers with; the handlers in ``main.py`` render them as ``{error, message}``.
"""

import re
from typing import Any, Dict, List, Optional

_URL_CREDENTIALS = re.compile(r"(\w+://[^:/\s@]+):[^@\s]+@")
_PASSWORD_PAIR = re.compile(r"(password\s*[=:]\s*)[^\s,;'\")]+", re.IGNORECASE)


def redact_secrets(text: str) -> str:
    """Mask passwords in connection URLs and ``password=...`` pairs."""
    text = _URL_CREDENTIALS.sub(r"\1:****@", text)
    return _PASSWORD_PAIR.sub(r"\1****", text)


class DesignerError(Exception):
    """Base class for all designer errors."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        self.message = redact_secrets(message)
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(DesignerError):
    status_code = 404
    error = "Not found"


class InvalidNameError(DesignerError):
    """Raised for names that cannot be used as a YAML file or directory name."""

    status_code = 400
    error = "Invalid name"


class ConfigValidationError(DesignerError):
    status_code = 400
    error = "Validation failed"


class UnsupportedSourceError(DesignerError):
    status_code = 400
    error = "Unsupported data source type"


class MissingFieldError(DesignerError):
    """Raised when a required field is absent from source data."""

    status_code = 400
    error = "Missing required field"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Required field '{field_name}' is missing from source data")


class SourceQueryError(DesignerError):
    """Raised when MySQL, a REST API or the filesystem fails to answer a query."""

    status_code = 502
    error = "Data source query failed"
