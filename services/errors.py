"""
Domain errors raised by the services layer.

Each error carries a stable ``kind``, an HTTP ``status`` and a generic
``message``. The HTTP error handlers render these verbatim, so messages must
never contain internal details or reveal whether an email is registered.
"""


class AuthError(Exception):
    kind = "AUTH_ERROR"
    status = 400
    message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class EmailAlreadyRegistered(AuthError):
    kind = "CONFLICT"
    status = 409
    message = "Email already registered"


class InvalidCredentials(AuthError):
    kind = "INVALID_CREDENTIALS"
    status = 401
    message = "Invalid credentials"


class InvalidRefreshToken(AuthError):
    kind = "INVALID_REFRESH_TOKEN"
    status = 401
    message = "Invalid refresh token"


class InvalidAccessToken(AuthError):
    kind = "UNAUTHORIZED"
    status = 401
    message = "Invalid or expired access token"


class UserNotFound(AuthError):
    kind = "NOT_FOUND"
    status = 404
    message = "User not found"
