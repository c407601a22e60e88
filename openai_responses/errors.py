"""
Error types for the Responses client.

ConfigError and SchemaError are programmer errors and are raised.
TransportError travels inside a Result unless the caller asks for the
raising variant of a call.
"""
from typing import Any, Dict, Optional


class ResponsesError(Exception):
    """Base class for every error raised or returned by this package."""

    def __init__(
        self,
        message: str,
        code: str = "responses_error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = {"error": {"message": self.message, "code": self.code}}
        if self.details:
            result["error"]["details"] = self.details
        return result


class ConfigError(ResponsesError):
    """Missing credential or missing required request option."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="config_error", details=details)


class SchemaError(ResponsesError, ValueError):
    """A field specification could not be turned into a JSON schema."""

    def __init__(self, message: str, spec: Any = None):
        super().__init__(message, code="schema_error", details={"spec": repr(spec)})
        self.spec = spec


class TransportError(ResponsesError):
    """
    The HTTP exchange failed: connection error, timeout or non-2xx status.

    `status_code` is None when no response was received. `body` holds the
    decoded `error` object from the API when there was one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        if body is not None:
            details["body"] = body
        super().__init__(message, code="transport_error", details=details)
        self.status_code = status_code
        self.body = body


class DecodeError(ResponsesError):
    """A single SSE frame could not be decoded. Never escapes the decoder."""

    def __init__(self, message: str, frame: str = ""):
        super().__init__(message, code="decode_error", details={"frame": frame[:200]})
        self.frame = frame
