"""
Custom exceptions for provider clients.

Raised inside a client while talking to the upstream API. BasePlatform.safe_query
converts every one of them into a typed LLMError, so none of these escape the
adapter's public surface.
"""


class PlatformError(Exception):
    """Base exception for all provider errors."""

    pass


class TransientError(PlatformError):
    """
    Temporary upstream failure.

    Used for server errors (5xx) and network failures. The adapter does not
    retry; a retry is a new executor invocation.
    """

    pass


class ServerError(TransientError):
    """Upstream answered with a 5xx status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class PlatformTimeoutError(TransientError):
    """The per-call deadline elapsed before the provider answered."""

    def __init__(self, message: str, timeout_seconds: float | None = None):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds


class RateLimitError(PlatformError):
    """
    Rate limit exceeded error.

    Includes optional retry_after information from the provider.
    """

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class AuthenticationError(PlatformError):
    """
    Authentication/API key error.

    Used for 401/403 responses that indicate invalid credentials.
    """

    pass


class MissingCredentialsError(PlatformError):
    """No API key is configured for the requested provider."""

    pass


class UpstreamHTTPError(PlatformError):
    """Non-2xx response that is not otherwise classified."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(PlatformError):
    """
    Response format is invalid or unexpected.

    Used when the provider returns a payload that doesn't match the
    expected format for text extraction.
    """

    pass
