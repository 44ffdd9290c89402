"""
xAI (Grok) client.

OpenAI-compatible chat completions with live search turned on; cited URLs come
back as a flat list on the response body.
"""

from typing import Any, Dict, List

from .base import BasePlatform
from .exceptions import MalformedResponseError
from .results import LLMResponse, UrlCitation


class GrokPlatform(BasePlatform):
    provider_name = "grok"

    def __init__(self, api_key: str, rate_limit: int = 60, **config):
        super().__init__(api_key, rate_limit, **config)
        self.base_url = config.get("base_url", "https://api.x.ai/v1")
        self.default_model = config.get("default_model", "grok-4")
        self.max_tokens = config.get("max_tokens", 4096)

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": "GEO-Prompt-Engine/1.0",
        }

    def _get_endpoint_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _prepare_request_payload(self, prompt_text: str, **kwargs) -> Dict[str, Any]:
        return {
            "model": kwargs.get("model", self.default_model),
            "messages": [{"role": "user", "content": prompt_text}],
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
            "stream": False,
            "search_parameters": {"mode": "auto", "return_citations": True},
        }

    def parse_response(self, raw_response: Dict[str, Any]) -> LLMResponse:
        try:
            choice = raw_response["choices"][0]
            text = (choice["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError(f"Invalid Grok response format: {e}")
        if not text:
            raise MalformedResponseError("Invalid Grok response format: empty content")

        citations: List[UrlCitation] = []
        seen_urls = set()
        for entry in raw_response.get("citations") or []:
            # Plain URL strings; some responses use {url, title} objects
            if isinstance(entry, dict):
                url, title = entry.get("url"), entry.get("title") or ""
            else:
                url, title = entry, ""
            if not isinstance(url, str) or not url or url in seen_urls:
                continue
            seen_urls.add(url)
            citations.append(UrlCitation(url=url, title=title))

        usage = raw_response.get("usage") or {}
        return LLMResponse(
            provider=self.provider_name,
            text=text,
            search_queries=[],
            citations=citations,
            metadata={
                "model": raw_response.get("model", self.default_model),
                "tokens_used": usage.get("total_tokens"),
                "finish_reason": choice.get("finish_reason"),
            },
        )
