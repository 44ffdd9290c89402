import re
from typing import Optional

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from app.utils.logger import get_logger

logger = get_logger(__name__)

_SENTENCE_BOUNDARY = re.compile(r"[.!?\n]")


class SentimentAnalyzer:
    """VADER compound scoring for brand context windows"""

    def __init__(self):
        self.vader_analyzer = SentimentIntensityAnalyzer()

    def score(self, text: Optional[str]) -> Optional[float]:
        """Compound score in [-1, 1] rounded to two decimals; None for empty text."""
        if not text or not text.strip():
            return None
        compound = self.vader_analyzer.polarity_scores(text)["compound"]
        return round(compound, 2)

    def score_around(self, text: str, needle: str) -> Optional[float]:
        """Score the sentence containing the first case-insensitive hit of needle."""
        if not needle:
            return None
        index = text.lower().find(needle.lower())
        if index == -1:
            return None
        return self.score(extract_sentence(text, index, index + len(needle)))


def extract_sentence(text: str, start: int, end: int) -> str:
    """Sentence (or line) that contains text[start:end]."""
    left = start
    while left > 0 and not _SENTENCE_BOUNDARY.match(text[left - 1]):
        left -= 1
    right = end
    while right < len(text) and not _SENTENCE_BOUNDARY.match(text[right]):
        right += 1
    return text[left : min(len(text), right + 1)].strip()


def format_score(score: Optional[float]) -> Optional[str]:
    """Decimal text for storage, e.g. 0.4519 -> "0.45"."""
    if score is None:
        return None
    rounded = round(score, 2)
    # Tiny negatives would otherwise render as "-0.00"
    return "0.00" if rounded == 0 else f"{rounded:.2f}"
