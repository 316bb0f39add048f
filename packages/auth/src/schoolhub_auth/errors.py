"""Auth error taxonomy."""


class AuthError(Exception):
    """Base class for failures talking to the auth provider."""


class SessionInvalidError(AuthError):
    """The provider rejected the session (expired, revoked, or user deleted)."""


class AuthRequestError(AuthError):
    """The provider answered with an unexpected error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
