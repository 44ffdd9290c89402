"""
Secondary LLM call that lists the brands recommended in a response.

Talks to Groq through its OpenAI-compatible endpoint with the openai SDK.
"""

import json
import math
import re
from typing import Any, List, Optional

from openai import APIError, APITimeoutError, AsyncOpenAI

from app.core.config import is_configured_key, settings
from app.core.run_config import get_run_settings
from app.utils.logger import get_logger, preview

from ..models.brand_mention import ExtractedBrand

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are a brand extraction assistant. Your job is to analyze text and identify product/service brands that are being recommended or discussed as options.

INCLUDE:
- Product brands (e.g., Trek, Specialized, Nike, Apple)
- Software/SaaS brands (e.g., Calendly, Slack, Notion)
- Service provider brands (e.g., Acuity Scheduling, Squarespace)

DO NOT INCLUDE:
- Retailers or stores (e.g., REI, Amazon, Best Buy, Walmart)
- Blogs, publications, or media sites (e.g., Outdoor Life, TechCrunch, Wirecutter)
- Review sites or aggregators (e.g., Yelp, TripAdvisor)
- Sources/citations - only extract the actual brands being recommended, not who recommended them

For each brand you find, return:
- name: The brand/company name (properly capitalized)
- domain: The brand's official website domain (e.g., "calendly.com"). Just the domain, no https:// or paths.
- position: The order in which it appears (1 for first, 2 for second, etc.)
- citationUrl: If a URL is associated with this brand in the text, include it. Otherwise null.

Return ONLY a valid JSON array of brand objects. No explanations, no markdown, just the JSON array.

Example output:
[{"name": "Calendly", "domain": "calendly.com", "position": 1, "citationUrl": null}]

If no brands are mentioned, return an empty array: []"""

_FENCE = re.compile(r"```(?:json)?\s*")


class BrandExtractionError(Exception):
    """Classifier call failed or returned unusable content"""

    pass


def parse_brand_list(content: Optional[str]) -> List[ExtractedBrand]:
    """
    Parse the classifier's JSON array.

    Entries without a non-empty string name or a finite numeric position are
    dropped; non-string domain/citationUrl become None.

    Raises:
        BrandExtractionError: Empty content, invalid JSON or a non-array payload
    """
    if not content or not content.strip():
        raise BrandExtractionError("No content in classifier response")

    cleaned = _FENCE.sub("", content).strip()
    try:
        payload: Any = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise BrandExtractionError(f"Failed to parse brand extraction response: {e}")

    if not isinstance(payload, list):
        raise BrandExtractionError("Brand extraction response is not a JSON array")

    brands: List[ExtractedBrand] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        name = entry.get("name")
        position = entry.get("position")
        if not isinstance(name, str) or not name.strip():
            continue
        # bool is an int subclass; reject it
        if isinstance(position, bool) or not isinstance(position, (int, float)):
            continue
        # json.loads accepts NaN and Infinity
        if isinstance(position, float) and not math.isfinite(position):
            continue
        domain = entry.get("domain")
        citation_url = entry.get("citationUrl")
        brands.append(
            ExtractedBrand(
                name=name.strip(),
                domain=domain if isinstance(domain, str) and domain else None,
                position=int(position),
                citation_url=citation_url if isinstance(citation_url, str) and citation_url else None,
            )
        )
    return brands


class BrandClassifier:
    """Groq-backed brand list extraction"""

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        run_settings = get_run_settings()
        self.model = model or run_settings.PROMPT_RUN_CLASSIFIER_MODEL
        self.timeout = timeout or run_settings.PROMPT_RUN_CLASSIFIER_TIMEOUT_SECONDS
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or run_settings.PROMPT_RUN_CLASSIFIER_BASE_URL,
            max_retries=0,
            timeout=self.timeout,
        )

    @classmethod
    def from_settings(cls) -> Optional["BrandClassifier"]:
        """Classifier built from GROQ_API_KEY, or None when no key is set."""
        if not is_configured_key(settings.GROQ_API_KEY):
            logger.warning("GROQ_API_KEY not configured, brand classification disabled")
            return None
        return cls(api_key=settings.GROQ_API_KEY)

    async def extract(self, response_text: str) -> List[ExtractedBrand]:
        """
        Raises:
            BrandExtractionError: On any API failure or unusable output
        """
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": response_text},
                ],
                temperature=0.5,
                max_tokens=1024,
            )
        except (APIError, APITimeoutError) as e:
            raise BrandExtractionError(f"Classifier API error: {e}")

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise BrandExtractionError(f"Malformed classifier response: {e}")

        try:
            return parse_brand_list(content)
        except BrandExtractionError:
            logger.warning("Unparsable classifier output", content_preview=preview(content))
            raise

    async def aclose(self) -> None:
        await self._client.close()
