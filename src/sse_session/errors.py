"""
Structured error types for sse_session.

Policy drops (throttled, rate-limited or unsubscribed sends) are not errors;
only caller mistakes and broken sinks surface here.
"""


class SSESessionError(Exception):
    """Base error with an optional fix suggestion."""

    def __init__(self, message: str, suggestion: str | None = None):
        self.suggestion = suggestion
        super().__init__(message)

    def to_message(self) -> str:
        """Format the error with suggestion."""
        parts = [str(self)]
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " | ".join(parts)


class PayloadSerializationError(SSESessionError):
    """The event payload could not be encoded as JSON."""

    def __init__(self, payload_type: str, reason: str):
        self.payload_type = payload_type
        super().__init__(
            f"Cannot serialize payload of type '{payload_type}': {reason}",
            suggestion="Send JSON-compatible data (dict, list, str, numbers, pydantic models)",
        )


class SinkClosedError(SSESessionError):
    """A write reached an output sink that has already been closed."""


class SessionConfigError(SSESessionError, ValueError):
    """Invalid session configuration."""


class InvalidFieldError(SSESessionError, ValueError):
    """A record field value would break SSE line framing."""

    def __init__(self, field: str, value: str):
        self.field = field
        super().__init__(
            f"Field '{field}' must be a single line, got {value!r}",
            suggestion="Remove CR/LF characters from event names and ids",
        )
