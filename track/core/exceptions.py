"""Neutral error taxonomy shared by every backend.

Each backend folds its own failures into one of these classes. The command
shell maps them to process exit codes through ``exit_code`` and renders them
in JSON mode through ``to_dict``.
"""
from typing import Any


EXIT_USER_ERROR = 1
EXIT_AUTH_ERROR = 2
EXIT_API_ERROR = 3
EXIT_NETWORK_ERROR = 4
EXIT_INTERRUPTED = 130


class TrackError(Exception):
    """Base exception for all track errors."""

    kind = "error"
    exit_code = EXIT_USER_ERROR

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for the JSON output mode.

        Returns:
            Mapping with the stable ``kind`` and human ``message`` plus any
            structured attributes the subclass carries.
        """
        return {"kind": self.kind, "message": str(self)}


class ConfigurationError(TrackError):
    """Raised when required configuration is missing or invalid."""

    kind = "configuration"


class HttpError(TrackError):
    """Raised when the network request itself fails (connect, timeout, TLS)."""

    kind = "http"
    exit_code = EXIT_NETWORK_ERROR

    def __init__(self, detail: str):
        super().__init__(f"HTTP error: {detail}")
        self.detail = detail


class ParseError(TrackError):
    """Raised when a response body cannot be decoded."""

    kind = "parse"
    exit_code = EXIT_NETWORK_ERROR

    def __init__(self, detail: str):
        super().__init__(f"Parse error: {detail}")
        self.detail = detail


class IoError(TrackError):
    """Raised when a local file cannot be read or written."""

    kind = "io"
    exit_code = EXIT_NETWORK_ERROR

    def __init__(self, detail: str):
        super().__init__(f"IO error: {detail}")
        self.detail = detail


class IssueNotFoundError(TrackError):
    """Raised when an issue does not exist."""

    kind = "issue_not_found"

    def __init__(self, issue_id: str):
        super().__init__(f"Issue not found: {issue_id}")
        self.issue_id = issue_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "id": self.issue_id}


class ProjectNotFoundError(TrackError):
    """Raised when a project cannot be found or resolved."""

    kind = "project_not_found"

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "id": self.project_id}


class NotFoundError(TrackError):
    """Raised when some other named resource (tag, article, link type) is missing."""

    kind = "not_found"

    def __init__(self, detail: str):
        super().__init__(f"Not found: {detail}")
        self.detail = detail


class UnauthorizedError(TrackError):
    """Raised when the backend rejects the credentials (401/403)."""

    kind = "unauthorized"
    exit_code = EXIT_AUTH_ERROR

    def __init__(self, message: str = "Unauthorized: check your token"):
        super().__init__(message)


class RateLimitedError(TrackError):
    """Raised when the backend throttles the client.

    Attributes:
        retry_after: Seconds to wait before retrying, if the server said so.
    """

    kind = "rate_limited"
    exit_code = EXIT_API_ERROR

    def __init__(self, retry_after: int | None = None):
        message = "Rate limited by backend"
        if retry_after is not None:
            message += f" (retry after {retry_after}s)"
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retry_after": self.retry_after}


class ApiError(TrackError):
    """Raised for any other non-success status reported by the backend.

    Attributes:
        status: HTTP status code.
        message: Server message, verbatim.
    """

    kind = "api"
    exit_code = EXIT_API_ERROR

    def __init__(self, status: int, message: str):
        super().__init__(f"API error ({status}): {message}")
        self.status = status
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "status": self.status, "message": self.message}


class UnsupportedError(TrackError):
    """Raised when the selected backend has no way to perform an operation."""

    kind = "unsupported"

    def __init__(self, operation: str):
        super().__init__(f"Unsupported operation: {operation}")
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "operation": self.operation}


class InvalidInputError(TrackError):
    """Raised when a caller-supplied value is rejected before reaching the wire."""

    kind = "invalid_input"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid input for {field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "field": self.field, "reason": self.reason}


class MockMissError(TrackError):
    """Raised by the mock harness when no manifest entry matches a call."""

    kind = "mock_miss"

    def __init__(self, op: str, args: dict[str, Any]):
        rendered = ", ".join(f"{k}={v}" for k, v in sorted(args.items()))
        super().__init__(f"No mock response for {op}({rendered})")
        self.op = op
        self.call_args = args

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "op": self.op, "args": self.call_args}
