"""
Signal extraction tests: tracked-brand heuristic, classifier cross-check and
the neutral fallback on classifier failure.
"""

import asyncio
from typing import List
from unittest.mock import AsyncMock

import pytest

from app.services.brand_detection import (
    BrandExtractionError,
    ExtractedBrand,
    SignalExtractor,
    find_tracked_mention,
    matches_tracked,
    normalize_domain,
)
from app.services.brand_detection.core.detector import domain_base_label, tracked_variants


class FakeClassifier:
    def __init__(self, brands: List[ExtractedBrand] = None, error: Exception = None, delay: float = 0):
        self.brands = brands or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def extract(self, response_text: str) -> List[ExtractedBrand]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        # Fresh copies, the extractor mutates them
        return [
            ExtractedBrand(name=b.name, domain=b.domain, position=b.position, citation_url=b.citation_url)
            for b in self.brands
        ]


class TestDomainHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://www.Fairlife.com/products", "fairlife.com"),
            ("www.fairlife.com", "fairlife.com"),
            ("fairlife.com/", "fairlife.com"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize_domain(self, value, expected):
        assert normalize_domain(value) == expected

    def test_domain_base_label(self):
        assert domain_base_label("fairlife.com") == "fairlife"
        assert domain_base_label("shop.fairlife.co") == "fairlife"
        # Too short to be a safe match
        assert domain_base_label("hp.com") is None

    def test_tracked_variants_order_and_dedup(self):
        assert tracked_variants("fairlife.com", "Fairlife") == [
            "fairlife.com",
            "www.fairlife.com",
            "fairlife",
        ]


class TestFindTrackedMention:
    def test_brand_name_matches_case_insensitively(self):
        """A domain of fairlife.com is found through the brand name "Fairlife"."""
        text = "Here are options. Core Power is popular.\nFairlife has 13g of protein."

        match = find_tracked_mention(text, "fairlife.com", "Fairlife", context_window=10)

        assert match is not None
        assert match.variant == "fairlife"
        assert match.position == 3
        assert "Fairlife" in match.context_snippet
        assert len(match.context_snippet) <= len("fairlife") + 20

    def test_domain_variant_preferred_over_name(self):
        text = "Visit www.fairlife.com for Fairlife products."
        match = find_tracked_mention(text, "fairlife.com", "Fairlife")
        assert match.variant == "fairlife.com"
        assert match.index == text.index("fairlife.com")

    def test_no_mention(self):
        assert find_tracked_mention("Core Power and Premier Protein.", "fairlife.com", "Fairlife") is None
        assert find_tracked_mention("", "fairlife.com", "Fairlife") is None


class TestMatchesTracked:
    @pytest.mark.parametrize(
        "name,domain,expected",
        [
            ("Fairlife", None, True),
            ("fair life", None, True),
            ("Fairlife Core Power", "corepower.com", False),
            ("Core Power", "shop.fairlife.com", True),
            ("Core Power", "fairlife.com", True),
            ("Premier Protein", "premierprotein.com", False),
            ("Unfairlife", "unfairlife.com", False),
        ],
    )
    def test_matches(self, name, domain, expected):
        assert matches_tracked(name, domain, "fairlife.com", "Fairlife") is expected


class TestSignalExtractor:
    @pytest.mark.asyncio
    async def test_heuristic_verdict_with_classifier_brands(self):
        classifier = FakeClassifier(
            [
                ExtractedBrand(name="Core Power", domain="corepower.com", position=2),
                ExtractedBrand(name="Fairlife", domain="fairlife.com", position=1),
            ]
        )
        extractor = SignalExtractor(classifier=classifier)
        text = "Fairlife is excellent and delicious. Core Power is fine."

        analysis = await extractor.analyze(text, "fairlife.com", "Fairlife")

        assert analysis.mentioned is True
        assert analysis.source == "heuristic"
        assert analysis.position == 1
        assert analysis.sentiment is not None and analysis.sentiment > 0
        assert [b.name for b in analysis.brands] == ["Fairlife", "Core Power"]
        assert analysis.brands[0].is_tracked is True
        assert analysis.brands[1].is_tracked is False

    @pytest.mark.asyncio
    async def test_classifier_recognises_brand_the_heuristic_missed(self):
        classifier = FakeClassifier(
            [ExtractedBrand(name="FL Nutrition", domain="www.fairlife.com", position=4)]
        )
        extractor = SignalExtractor(classifier=classifier)

        analysis = await extractor.analyze("FL Nutrition shakes are great.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is True
        assert analysis.source == "classifier"
        assert analysis.position == 4
        assert analysis.context_snippet is None

    @pytest.mark.asyncio
    async def test_classifier_failure_yields_neutral_analysis(self):
        """Even an obvious literal mention is discarded when the classifier fails."""
        extractor = SignalExtractor(classifier=FakeClassifier(error=BrandExtractionError("boom")))

        analysis = await extractor.analyze("Fairlife is great.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is False
        assert analysis.position is None
        assert analysis.sentiment is None
        assert analysis.brands == []
        assert analysis.classifier_failed is True

    @pytest.mark.asyncio
    async def test_classifier_timeout_yields_neutral_analysis(self, run_settings):
        run_settings.PROMPT_RUN_CLASSIFIER_TIMEOUT_SECONDS = 0.05
        extractor = SignalExtractor(classifier=FakeClassifier(delay=1))

        analysis = await extractor.analyze("Fairlife is great.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is False
        assert analysis.classifier_failed is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ValueError("bad float"), OverflowError("huge position")])
    async def test_unexpected_classifier_error_yields_neutral_analysis(self, error):
        extractor = SignalExtractor(classifier=FakeClassifier(error=error))

        analysis = await extractor.analyze("Fairlife is great.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is False
        assert analysis.brands == []
        assert analysis.classifier_failed is True

    @pytest.mark.asyncio
    async def test_aclose_closes_classifier(self):
        classifier = FakeClassifier()
        classifier.aclose = AsyncMock()
        extractor = SignalExtractor(classifier=classifier)

        await extractor.aclose()

        classifier.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_without_classifier_heuristic_stands(self):
        extractor = SignalExtractor(classifier=None)

        analysis = await extractor.analyze("I like Fairlife.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is True
        assert analysis.brands == []

    @pytest.mark.asyncio
    async def test_not_mentioned(self):
        extractor = SignalExtractor(
            classifier=FakeClassifier([ExtractedBrand(name="Core Power", domain=None, position=1)])
        )

        analysis = await extractor.analyze("Core Power is good.", "fairlife.com", "Fairlife")

        assert analysis.mentioned is False
        assert analysis.source == "none"
        assert len(analysis.brands) == 1
