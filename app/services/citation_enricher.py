"""
Fill missing citation snippets with the cited page's meta description.

Best effort: any failure leaves the snippet empty and never fails the run.
"""

import asyncio
from html.parser import HTMLParser
from typing import List, Optional

import httpx

from app.core.run_config import get_run_settings
from app.services.ai_platforms.results import UrlCitation
from app.utils.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; GeoBot/1.0)"
# Only the document head is needed
MAX_BYTES = 256 * 1024


class _MetaDescriptionParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.og_description: Optional[str] = None
        self.description: Optional[str] = None

    def handle_starttag(self, tag, attrs):
        if tag != "meta":
            return
        values = {k.lower(): (v or "") for k, v in attrs if k}
        content = values.get("content", "").strip()
        if not content:
            return
        if values.get("property", "").lower() == "og:description" and self.og_description is None:
            self.og_description = content
        elif values.get("name", "").lower() == "description" and self.description is None:
            self.description = content


def extract_meta_description(html: str) -> Optional[str]:
    """og:description if present, else meta name=description, else None."""
    parser = _MetaDescriptionParser()
    try:
        parser.feed(html)
        parser.close()
    except AssertionError:
        # HTMLParser can assert on badly broken markup
        pass
    return parser.og_description or parser.description


class CitationEnricher:
    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or get_run_settings().PROMPT_RUN_ENRICH_TIMEOUT_SECONDS
        self._transport = transport

    async def enrich(self, citations: List[UrlCitation]) -> List[UrlCitation]:
        """Return citations with snippets filled where a description was found."""
        pending = [c for c in citations if not c.snippet]
        if not pending:
            return citations

        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
            transport=self._transport,
        ) as client:
            descriptions = await asyncio.gather(
                *(self._fetch_description(client, c.url) for c in pending)
            )

        for citation, description in zip(pending, descriptions):
            if description:
                citation.snippet = description
        return citations

    async def _fetch_description(self, client: httpx.AsyncClient, url: str) -> Optional[str]:
        try:
            html = await asyncio.wait_for(self._read_head(client, url), timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
            logger.debug("Citation fetch failed", url=url, error=str(e) or type(e).__name__)
            return None
        return extract_meta_description(html) if html else None

    async def _read_head(self, client: httpx.AsyncClient, url: str) -> Optional[str]:
        """Decoded start of an HTML page, at most MAX_BYTES of it."""
        async with client.stream("GET", url) as response:
            if response.status_code != 200:
                return None
            if "html" not in response.headers.get("content-type", "text/html"):
                return None

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) >= MAX_BYTES:
                    break
            encoding = response.encoding or "utf-8"

        try:
            return bytes(body[:MAX_BYTES]).decode(encoding, errors="replace")
        except LookupError:
            return bytes(body[:MAX_BYTES]).decode("utf-8", errors="replace")
