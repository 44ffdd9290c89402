"""
Base classes for provider clients.

Provides:
- AIRateLimiter: Token bucket rate limiting with burst capability
- BasePlatform: Abstract base class for all provider implementations
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Dict, Optional

import httpx

from app.utils.logger import get_logger

from .exceptions import (
    AuthenticationError,
    MalformedResponseError,
    MissingCredentialsError,
    PlatformError,
    PlatformTimeoutError,
    RateLimitError,
    ServerError,
    TransientError,
    UpstreamHTTPError,
)
from .results import LLMError, LLMErrorKind, LLMResponse, LLMResult

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 45.0


class AIRateLimiter:
    """
    Token bucket rate limiter with burst capability.

    Implements smooth rate limiting allowing for burst requests up to a configurable
    limit while maintaining an average rate over time.
    """

    def __init__(self, requests_per_minute: int, burst_limit: Optional[int] = None):
        """
        Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests allowed per minute
            burst_limit: Maximum burst requests allowed (defaults to RPM/4 or 10,
                whichever is smaller, and never below 1)
        """
        self.requests_per_minute = requests_per_minute
        self.burst_limit = burst_limit or max(1, min(requests_per_minute // 4, 10))
        self.requests = deque()
        self.tokens = self.burst_limit
        self.last_refill = time.time()
        self._lock = asyncio.Lock()

    async def acquire(self, tokens: int = 1) -> None:
        """Acquire tokens for a request, blocking if necessary."""
        async with self._lock:
            await self._wait_for_tokens(tokens)
            self._consume_tokens(tokens)
            self.requests.append(time.time())

    async def _wait_for_tokens(self, needed_tokens: int) -> None:
        while self.tokens < needed_tokens:
            self._refill_tokens()
            if self.tokens < needed_tokens:
                await asyncio.sleep(self._calculate_sleep_time())

    def _refill_tokens(self) -> None:
        """Refill tokens based on time passed."""
        now = time.time()
        time_passed = now - self.last_refill

        tokens_to_add = int(time_passed * (self.requests_per_minute / 60))
        if tokens_to_add:
            self.tokens = min(self.burst_limit, self.tokens + tokens_to_add)
            self.last_refill = now

        # Clean old requests (older than 1 minute)
        cutoff = now - 60
        while self.requests and self.requests[0] < cutoff:
            self.requests.popleft()

    def _calculate_sleep_time(self) -> float:
        return 60 / self.requests_per_minute

    def _consume_tokens(self, tokens: int) -> None:
        self.tokens -= tokens


class BasePlatform(ABC):
    """
    Abstract base class for all provider implementations.

    Provides:
    - Rate limiting per provider
    - A per-call deadline
    - A shared async HTTP client, closed through the async context manager
    - One non-raising entry point, safe_query, returning LLMResponse or LLMError
    """

    provider_name: str = ""

    def __init__(
        self,
        api_key: str,
        rate_limit: int = 60,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        **config,
    ):
        """
        Initialize provider client.

        Args:
            api_key: API key for the provider
            rate_limit: Requests per minute limit
            timeout: Deadline in seconds for one call
            **config: Additional provider-specific configuration; ``transport``
                is handed to httpx.AsyncClient
        """
        self.api_key = api_key
        self.rate_limiter = AIRateLimiter(rate_limit)
        self.timeout = float(timeout)
        self.config = config
        self.session: Optional[httpx.AsyncClient] = None
        if not self.provider_name:
            self.provider_name = self.__class__.__name__.lower().replace("platform", "")

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _ensure_session(self) -> httpx.AsyncClient:
        if self.session is None:
            self.session = httpx.AsyncClient(
                # Deadline is enforced around the whole call in safe_query
                timeout=httpx.Timeout(self.timeout + 5.0),
                headers=self._get_default_headers(),
                transport=self.config.get("transport"),
            )
        return self.session

    async def aclose(self) -> None:
        if self.session is not None:
            await self.session.aclose()
            self.session = None

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for HTTP requests."""
        pass

    @abstractmethod
    def _get_endpoint_url(self) -> str:
        """Get the API endpoint URL for this provider."""
        pass

    @abstractmethod
    def _prepare_request_payload(self, prompt_text: str, **kwargs) -> Dict[str, Any]:
        """Prepare provider-specific request payload."""
        pass

    @abstractmethod
    def parse_response(self, raw_response: Dict[str, Any]) -> LLMResponse:
        """
        Extract text, search queries, citations and metadata from a final
        provider response.

        Raises:
            MalformedResponseError: If the payload has no usable text
        """
        pass

    async def safe_query(self, prompt_text: str, **kwargs) -> LLMResult:
        """
        Public interface: one outbound call, no retries.

        Returns:
            LLMResponse on success, LLMError classifying the failure otherwise.
        """
        start_time = time.monotonic()

        if not prompt_text or not prompt_text.strip():
            return self._create_error(
                LLMErrorKind.INVALID_REQUEST, "Prompt text is empty", start_time
            )

        try:
            if not self.api_key:
                raise MissingCredentialsError(
                    f"No API key configured for provider {self.provider_name}"
                )
            await self.rate_limiter.acquire()
            try:
                raw = await asyncio.wait_for(
                    self._execute_query(prompt_text, **kwargs), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                raise PlatformTimeoutError(
                    f"Provider call exceeded {self.timeout:.0f}s",
                    timeout_seconds=self.timeout,
                )
            response = self._parse(raw)
        except PlatformError as e:
            kind = self._classify(e)
            logger.warning(
                "Provider call failed",
                platform=self.provider_name,
                error_kind=kind.value,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return self._create_error(kind, str(e), start_time)

        response.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Provider call succeeded",
            platform=self.provider_name,
            duration_ms=response.duration_ms,
            citations=len(response.citations),
            search_queries=len(response.search_queries),
        )
        return response

    def _parse(self, raw: Dict[str, Any]) -> LLMResponse:
        try:
            return self.parse_response(raw)
        except (AttributeError, TypeError, KeyError, ValueError) as e:
            # Valid JSON in a shape the parser does not expect
            raise MalformedResponseError(
                f"Unexpected {self.provider_name} response structure: {type(e).__name__}: {e}"
            )

    async def _execute_query(self, prompt_text: str, **kwargs) -> Dict[str, Any]:
        """
        Send one request and return the decoded JSON body.

        Raises:
            Various PlatformError subclasses
        """
        session = self._ensure_session()
        payload = self._prepare_request_payload(prompt_text, **kwargs)

        try:
            response = await session.post(self._get_endpoint_url(), json=payload)
        except httpx.TimeoutException as e:
            raise PlatformTimeoutError(f"Request timeout: {e}", self.timeout)
        except httpx.HTTPError as e:
            raise TransientError(f"Network error: {e}")

        status = response.status_code
        if status == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                "Rate limited",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status in (401, 403):
            raise AuthenticationError(f"Provider rejected credentials (HTTP {status})")
        if status >= 500:
            raise ServerError(f"Server error: {status}", status)
        if status < 200 or status >= 300:
            raise UpstreamHTTPError(f"HTTP {status}: {response.text[:500]}", status)

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}")
        if not isinstance(data, dict):
            raise MalformedResponseError("Response body is not a JSON object")
        return data

    @staticmethod
    def _classify(error: PlatformError) -> LLMErrorKind:
        if isinstance(error, PlatformTimeoutError):
            return LLMErrorKind.TIMEOUT
        if isinstance(error, RateLimitError):
            return LLMErrorKind.RATE_LIMITED
        if isinstance(error, AuthenticationError):
            return LLMErrorKind.AUTHENTICATION
        if isinstance(error, MissingCredentialsError):
            return LLMErrorKind.MISSING_CREDENTIALS
        if isinstance(error, MalformedResponseError):
            return LLMErrorKind.MALFORMED_RESPONSE
        if isinstance(error, (UpstreamHTTPError, ServerError)):
            return LLMErrorKind.HTTP_ERROR
        if isinstance(error, TransientError):
            return LLMErrorKind.NETWORK_ERROR
        return LLMErrorKind.HTTP_ERROR

    def _create_error(
        self, kind: LLMErrorKind, message: str, start_time: float
    ) -> LLMError:
        return LLMError(
            provider=self.provider_name,
            kind=kind,
            message=message,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )
