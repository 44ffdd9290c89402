"""
Signal Extractor

Decides whether the tracked brand appears in a model response, lists the other
brands the response recommends (via a classifier LLM) and scores sentiment.
"""

from .core.brand_classifier import BrandClassifier, BrandExtractionError, parse_brand_list
from .core.detector import (
    SignalExtractor,
    find_tracked_mention,
    matches_tracked,
    normalize_domain,
)
from .core.sentiment import SentimentAnalyzer, format_score
from .models.brand_mention import ExtractedBrand, HeuristicMatch, SignalAnalysis

__all__ = [
    "BrandClassifier",
    "BrandExtractionError",
    "parse_brand_list",
    "SignalExtractor",
    "find_tracked_mention",
    "matches_tracked",
    "normalize_domain",
    "SentimentAnalyzer",
    "format_score",
    "ExtractedBrand",
    "HeuristicMatch",
    "SignalAnalysis",
]
