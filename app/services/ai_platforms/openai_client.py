"""
OpenAI (ChatGPT) client.

Uses the Responses API with the built-in web_search tool so that answers carry
the search queries the model issued and url_citation annotations.
"""

from typing import Any, Dict, List

from .base import BasePlatform
from .exceptions import MalformedResponseError
from .results import LLMResponse, UrlCitation


class OpenAIPlatform(BasePlatform):
    """
    ChatGPT provider implementation.

    Response shape consumed:
        output[]: web_search_call items (action.query) and message items whose
        content[] holds output_text parts with url_citation annotations.
    """

    provider_name = "chatgpt"

    def __init__(self, api_key: str, rate_limit: int = 50, **config):
        """
        Initialize the ChatGPT client.

        Args:
            api_key: OpenAI API key
            rate_limit: Requests per minute limit (default: 50)
            **config: base_url, default_model, max_tokens, timeout, transport
        """
        super().__init__(api_key, rate_limit, **config)
        self.base_url = config.get("base_url", "https://api.openai.com/v1")
        self.default_model = config.get("default_model", "gpt-5.1")
        self.max_tokens = config.get("max_tokens", 4096)

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": "GEO-Prompt-Engine/1.0",
        }

    def _get_endpoint_url(self) -> str:
        return f"{self.base_url}/responses"

    def _prepare_request_payload(self, prompt_text: str, **kwargs) -> Dict[str, Any]:
        return {
            "model": kwargs.get("model", self.default_model),
            "input": prompt_text,
            "tools": [{"type": "web_search"}],
            "reasoning": {"effort": "none"},
            "max_output_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

    def parse_response(self, raw_response: Dict[str, Any]) -> LLMResponse:
        output = raw_response.get("output")
        if not isinstance(output, list):
            raise MalformedResponseError("Invalid OpenAI response format: no output list")

        text_parts: List[str] = []
        search_queries: List[str] = []
        citations: List[UrlCitation] = []
        seen_urls = set()

        for item in output:
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")

            if item_type == "web_search_call":
                action = item.get("action")
                query = action.get("query") if isinstance(action, dict) else None
                if isinstance(query, str) and query:
                    search_queries.append(query)
                continue

            if item_type != "message":
                continue

            for part in item.get("content") or []:
                if not isinstance(part, dict) or part.get("type") != "output_text":
                    continue
                text_parts.append(part.get("text") or "")
                for annotation in part.get("annotations") or []:
                    if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
                        continue
                    url = annotation.get("url")
                    if not isinstance(url, str) or not url or url in seen_urls:
                        continue
                    seen_urls.add(url)
                    citations.append(
                        UrlCitation(url=url, title=annotation.get("title") or "")
                    )

        text = "".join(text_parts).strip()
        if not text:
            raise MalformedResponseError("Invalid OpenAI response format: no output_text")

        usage = raw_response.get("usage") or {}
        return LLMResponse(
            provider=self.provider_name,
            text=text,
            search_queries=search_queries,
            citations=citations,
            metadata={
                "model": raw_response.get("model", self.default_model),
                "tokens_used": usage.get("total_tokens"),
                "finish_reason": raw_response.get("status"),
            },
        )
