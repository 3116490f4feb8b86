"""Authentication-specific exceptions."""

from src.exceptions import AuthenticationError, InternalError


class MissingTokenError(AuthenticationError):
    """No bearer token or access_token cookie on the request."""

    def __init__(self) -> None:
        super().__init__("Missing authentication token")


class TokenExpiredError(AuthenticationError):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__("Token has expired")


class InvalidTokenError(AuthenticationError):
    """Invalid token provided."""

    def __init__(self, reason: str = "Invalid token") -> None:
        super().__init__(reason)


class UnknownAuthProviderError(InternalError):
    """AUTH_PROVIDER names a provider this service does not know."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Authentication provider '{provider}' is not supported")
