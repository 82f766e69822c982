"""Authentication and authorization failures, rendered as the API's JSON envelope."""

from starlette.responses import JSONResponse


class AuthError(Exception):
    status_code = 401
    message = "Authentication failed."

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"success": False, "message": self.message, "data": None},
        )


class AuthenticationRequired(AuthError):
    message = "Authentication required. Please login."


class InvalidToken(AuthError):
    # Expired, tampered and malformed tokens share this one message.
    message = "Invalid or expired token. Please login again."


class PermissionDenied(AuthError):
    status_code = 403
    message = "Access denied."


class TokenSigningError(Exception):
    """The signing library failed; a server misconfiguration, not a client error."""
