"""
Signal extraction for one model response.

Combines a literal tracked-brand heuristic with the classifier's brand list.
The MentionAnalysis verdict comes only from here; aggregation never
re-derives it from brand rows.
"""

import asyncio
import re
from typing import List, Optional
from urllib.parse import urlparse

from app.core.run_config import get_run_settings
from app.services.run_metrics import get_run_metrics
from app.utils.logger import get_logger

from ..models.brand_mention import ExtractedBrand, HeuristicMatch, SignalAnalysis
from .brand_classifier import BrandClassifier, BrandExtractionError
from .sentiment import SentimentAnalyzer

logger = get_logger(__name__)

_FRAGMENT_SPLIT = re.compile(r"[.\n]")


def normalize_domain(value: Optional[str]) -> str:
    """Lower-cased host without scheme, path or leading www."""
    if not value:
        return ""
    value = value.strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    value = value.split("/", 1)[0]
    if value.startswith("www."):
        value = value[4:]
    return value


def domain_base_label(domain: str) -> Optional[str]:
    """'fairlife.com' -> 'fairlife'; 'shop.fairlife.co' -> 'fairlife'. None if too short."""
    parts = [p for p in normalize_domain(domain).split(".") if p]
    if not parts:
        return None
    base = parts[-2] if len(parts) > 2 else parts[0]
    return base if len(base) > 2 else None


def tracked_variants(tracked_domain: str, tracked_brand_name: Optional[str]) -> List[str]:
    """Lower-cased strings that count as a mention of the tracked brand, in match order."""
    raw = (tracked_domain or "").strip().lower()
    bare = normalize_domain(raw)
    candidates = [raw, f"www.{bare}" if bare else "", bare]
    if tracked_brand_name:
        candidates.append(tracked_brand_name.strip().lower())
    base = domain_base_label(raw)
    if base:
        candidates.append(base)

    variants: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def find_tracked_mention(
    response_text: str,
    tracked_domain: str,
    tracked_brand_name: Optional[str],
    context_window: int = 100,
) -> Optional[HeuristicMatch]:
    """
    Case-insensitive search for the first variant present in the response.

    position is the count of non-empty sentence/line fragments before the hit,
    plus one.
    """
    if not response_text:
        return None
    lowered = response_text.lower()

    for variant in tracked_variants(tracked_domain, tracked_brand_name):
        index = lowered.find(variant)
        if index == -1:
            continue
        before = response_text[:index]
        fragments = [s for s in _FRAGMENT_SPLIT.split(before) if s.strip()]
        start = max(0, index - context_window)
        end = min(len(response_text), index + len(variant) + context_window)
        return HeuristicMatch(
            variant=variant,
            index=index,
            position=len(fragments) + 1,
            context_snippet=response_text[start:end],
        )
    return None


def matches_tracked(
    name: str,
    domain: Optional[str],
    tracked_domain: str,
    tracked_brand_name: Optional[str],
) -> bool:
    """Whether a brand name/domain pair refers to the tracked brand."""
    name = (name or "").strip().lower()
    tracked_name = (tracked_brand_name or "").strip().lower()
    if tracked_name and name == tracked_name:
        return True
    base = domain_base_label(tracked_domain)
    if base and name.replace(" ", "") == base:
        return True
    bare = normalize_domain(tracked_domain)
    brand_domain = normalize_domain(domain)
    return bool(bare and brand_domain) and (
        brand_domain == bare or brand_domain.endswith("." + bare)
    )


def is_tracked_brand(
    brand: ExtractedBrand, tracked_domain: str, tracked_brand_name: Optional[str]
) -> bool:
    return matches_tracked(brand.name, brand.domain, tracked_domain, tracked_brand_name)


class SignalExtractor:
    """
    analyze(response_text, tracked_domain, tracked_brand_name) -> SignalAnalysis

    A classifier failure yields the neutral analysis (not mentioned, no
    brands). Without a configured classifier the heuristic verdict stands
    and the brand list is empty.
    """

    def __init__(
        self,
        classifier: Optional[BrandClassifier] = None,
        sentiment_analyzer: Optional[SentimentAnalyzer] = None,
    ):
        self.classifier = classifier
        self.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer()
        self.settings = get_run_settings()
        self.metrics = get_run_metrics()

    @classmethod
    def from_settings(cls) -> "SignalExtractor":
        return cls(classifier=BrandClassifier.from_settings())

    async def analyze(
        self,
        response_text: str,
        tracked_domain: str,
        tracked_brand_name: Optional[str],
    ) -> SignalAnalysis:
        match = find_tracked_mention(
            response_text,
            tracked_domain,
            tracked_brand_name,
            context_window=self.settings.PROMPT_RUN_CONTEXT_WINDOW,
        )

        brands: List[ExtractedBrand] = []
        if self.classifier is not None:
            try:
                brands = await asyncio.wait_for(
                    self.classifier.extract(response_text),
                    timeout=self.settings.PROMPT_RUN_CLASSIFIER_TIMEOUT_SECONDS,
                )
            except (BrandExtractionError, asyncio.TimeoutError) as e:
                return self._classifier_failed(e)
            except Exception as e:
                return self._classifier_failed(e, unexpected=True)

        brands = sorted(brands, key=lambda b: b.position)
        tracked_entry: Optional[ExtractedBrand] = None
        for brand in brands:
            brand.is_tracked = is_tracked_brand(brand, tracked_domain, tracked_brand_name)
            brand.sentiment = self.sentiment_analyzer.score_around(response_text, brand.name)
            if brand.is_tracked and tracked_entry is None:
                tracked_entry = brand

        analysis = SignalAnalysis(brands=brands)
        if match is not None:
            analysis.mentioned = True
            analysis.position = match.position
            analysis.context_snippet = match.context_snippet
            analysis.sentiment = self.sentiment_analyzer.score(match.context_snippet)
            analysis.source = "heuristic"
        elif tracked_entry is not None:
            # Classifier recognised the brand under a form the heuristic missed
            analysis.mentioned = True
            analysis.position = tracked_entry.position
            analysis.sentiment = tracked_entry.sentiment
            analysis.source = "classifier"

        logger.debug("Signal analysis complete", **analysis.to_summary_dict())
        return analysis

    def _classifier_failed(self, error: Exception, unexpected: bool = False) -> SignalAnalysis:
        log = logger.error if unexpected else logger.warning
        log(
            "Brand classification failed, recording neutral analysis",
            error=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            exc_info=unexpected,
        )
        self.metrics.increment_classifier_failure()
        return SignalAnalysis.neutral(classifier_failed=True)

    async def aclose(self) -> None:
        if self.classifier is not None:
            await self.classifier.aclose()
