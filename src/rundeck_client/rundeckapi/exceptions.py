"""Errors raised by the RunDeck API client.

Every failure is raised, never returned. Authentication failures are split
by auth mode so callers can tell a rejected login from a rejected token.
"""


class RundeckApiError(RuntimeError):
    """Raised when an API call fails (transport, HTTP status or server error)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = str(message)
        self.status_code = int(status_code) if status_code is not None else None


class RundeckApiDecodeError(RundeckApiError):
    """Raised when a response body is not well-formed or cannot be mapped."""


class RundeckApiAuthError(RundeckApiError):
    """Raised when authentication fails (either login or token)."""


class RundeckApiLoginError(RundeckApiAuthError):
    """Raised when login-based authentication fails."""


class RundeckApiTokenError(RundeckApiAuthError):
    """Raised when token-based authentication fails."""
