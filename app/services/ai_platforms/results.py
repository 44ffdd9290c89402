"""
Uniform result types returned by every provider client.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class LLMErrorKind(str, Enum):
    """Classification of a failed provider call"""

    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    RATE_LIMITED = "rate_limited"
    AUTHENTICATION = "authentication"
    MALFORMED_RESPONSE = "malformed_response"
    MISSING_CREDENTIALS = "missing_credentials"
    UNSUPPORTED_PROVIDER = "unsupported_provider"
    INVALID_REQUEST = "invalid_request"


@dataclass
class UrlCitation:
    url: str
    title: str = ""
    snippet: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "title": self.title, "snippet": self.snippet}


@dataclass
class LLMResponse:
    """Successful provider call"""

    provider: str
    text: str
    search_queries: List[str] = field(default_factory=list)
    citations: List[UrlCitation] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    duration_ms: int = 0

    success = True


@dataclass
class LLMError:
    """Failed provider call, classified"""

    provider: str
    kind: LLMErrorKind
    message: str
    duration_ms: int = 0

    success = False

    def describe(self) -> str:
        return f"{self.kind.value}: {self.message}"


LLMResult = Union[LLMResponse, LLMError]


def is_llm_error(result: LLMResult) -> bool:
    return isinstance(result, LLMError)
