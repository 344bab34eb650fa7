from typing import Optional


class SpotimineError(RuntimeError):
    """Base class for every error the CLI reports instead of crashing."""


class AuthError(SpotimineError):
    pass


class ListenerBindError(AuthError):
    pass


class BrowserLaunchError(AuthError):
    pass


class RedirectParseError(AuthError):
    pass


class TokenExchangeError(AuthError):
    pass


class TokenRefreshError(AuthError):
    pass


class ApiError(SpotimineError):
    """
    HTTP-level failure talking to the Web API.
    `status` is None when no response was received at all.
    """

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class ClientError(ApiError):
    pass


class ServerError(ApiError):
    pass


class ForbiddenError(ApiError):
    pass


class UnknownStatusError(ApiError):
    pass


class TransportError(ApiError):
    pass


class InvalidJSONError(ApiError):
    pass


class ParseError(SpotimineError):
    def __init__(self, field: str, detail: str = ""):
        message = f"Failed to parse '{field}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.field = field


class ConfigError(SpotimineError):
    pass
