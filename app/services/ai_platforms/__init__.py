"""
Provider Adapter

Uniform interface for running one prompt against one LLM provider (ChatGPT,
Claude, Grok) with rate limiting, a per-call deadline and typed failures.
"""

from .anthropic_client import AnthropicPlatform
from .base import AIRateLimiter, BasePlatform
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
from .grok_client import GrokPlatform
from .openai_client import OpenAIPlatform
from .registry import PlatformRegistry
from .results import LLMError, LLMErrorKind, LLMResponse, LLMResult, UrlCitation

__all__ = [
    "BasePlatform",
    "AIRateLimiter",
    "PlatformError",
    "TransientError",
    "ServerError",
    "PlatformTimeoutError",
    "RateLimitError",
    "AuthenticationError",
    "MissingCredentialsError",
    "UpstreamHTTPError",
    "MalformedResponseError",
    "OpenAIPlatform",
    "AnthropicPlatform",
    "GrokPlatform",
    "PlatformRegistry",
    "LLMError",
    "LLMErrorKind",
    "LLMResponse",
    "LLMResult",
    "UrlCitation",
]
