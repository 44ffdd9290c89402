"""
Anthropic (Claude) client.

Calls the Messages API with the web_search server tool enabled and reads search
queries and citations out of the final content blocks.
"""

from typing import Any, Dict, List

from .base import BasePlatform
from .exceptions import MalformedResponseError
from .results import LLMResponse, UrlCitation


class AnthropicPlatform(BasePlatform):
    """
    Claude provider implementation.

    Content blocks consumed: ``server_tool_use`` (name ``web_search``) for
    queries, ``text`` for the answer and its ``web_search_result_location``
    citations.
    """

    provider_name = "claude"

    def __init__(self, api_key: str, rate_limit: int = 50, **config):
        super().__init__(api_key, rate_limit, **config)
        self.base_url = config.get("base_url", "https://api.anthropic.com")
        self.default_model = config.get("default_model", "claude-sonnet-4-5")
        self.max_tokens = config.get("max_tokens", 4096)
        self.max_searches = config.get("max_searches", 5)

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01",
            "User-Agent": "GEO-Prompt-Engine/1.0",
        }

    def _get_endpoint_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    def _prepare_request_payload(self, prompt_text: str, **kwargs) -> Dict[str, Any]:
        return {
            "model": kwargs.get("model", self.default_model),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
            "messages": [{"role": "user", "content": prompt_text}],
            "tools": [
                {
                    "type": "web_search_20250305",
                    "name": "web_search",
                    "max_uses": self.max_searches,
                }
            ],
        }

    def parse_response(self, raw_response: Dict[str, Any]) -> LLMResponse:
        content = raw_response.get("content")
        if not isinstance(content, list):
            raise MalformedResponseError("Invalid Anthropic response format: no content")

        text_parts: List[str] = []
        search_queries: List[str] = []
        citations: List[UrlCitation] = []
        seen_urls = set()

        for block in content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")

            if block_type == "server_tool_use" and block.get("name") == "web_search":
                tool_input = block.get("input")
                query = tool_input.get("query") if isinstance(tool_input, dict) else None
                if isinstance(query, str) and query:
                    search_queries.append(query)
            elif block_type == "text":
                text_parts.append(block.get("text") or "")
                for citation in block.get("citations") or []:
                    if not isinstance(citation, dict):
                        continue
                    if citation.get("type") != "web_search_result_location":
                        continue
                    url = citation.get("url")
                    if not isinstance(url, str) or not url or url in seen_urls:
                        continue
                    seen_urls.add(url)
                    citations.append(
                        UrlCitation(
                            url=url,
                            title=citation.get("title") or "",
                            snippet=citation.get("cited_text") or None,
                        )
                    )

        text = "".join(text_parts).strip()
        if not text:
            raise MalformedResponseError("Invalid Anthropic response format: no text block")

        usage = raw_response.get("usage") or {}
        tokens = None
        if usage:
            tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)

        return LLMResponse(
            provider=self.provider_name,
            text=text,
            search_queries=search_queries,
            citations=citations,
            metadata={
                "model": raw_response.get("model", self.default_model),
                "tokens_used": tokens,
                "finish_reason": raw_response.get("stop_reason"),
            },
        )
