"""
Error types surfaced by the API.

Every failure reaches the client as a JSON object with an ``error`` field
and, where a remediation is known, a ``hint``.
"""

from typing import Any, Optional


class ApiError(Exception):
    """Base error converted to a JSON response at the request boundary."""

    status_code: int = 500

    def __init__(self, message: str, hint: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.hint:
            body["hint"] = self.hint
        return body


class BadRequestError(ApiError):
    """Caller-supplied or derived data fails a precondition."""

    status_code = 400


class NotFoundError(ApiError):
    """Entity absent on the remote ledger."""

    status_code = 404


class ServiceUnavailableError(ApiError):
    """Required secret or configuration is missing."""

    status_code = 503


class UpstreamError(ApiError):
    """Subprocess or contract call failed."""

    status_code = 500


class AleoQueryError(Exception):
    """Explorer request failed (transport error or non-2xx response)."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Aleo query failed ({reason}): {url}")


class ProverError(Exception):
    """snarkos invocation failed (non-zero exit, timeout or missing binary)."""

    def __init__(self, message: str, stderr: str = "", timed_out: bool = False):
        self.message = message
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)
