import pytest

from app.services.brand_detection.core.sentiment import (
    SentimentAnalyzer,
    extract_sentence,
    format_score,
)


@pytest.fixture(scope="module")
def analyzer():
    return SentimentAnalyzer()


def test_score_range_and_rounding(analyzer):
    positive = analyzer.score("Fairlife is absolutely wonderful and delicious!")
    negative = analyzer.score("Fairlife was terrible and awful.")

    assert 0 < positive <= 1
    assert -1 <= negative < 0
    assert positive == round(positive, 2)


def test_empty_text_has_no_score(analyzer):
    assert analyzer.score("") is None
    assert analyzer.score("   ") is None
    assert analyzer.score(None) is None


def test_score_around_uses_containing_sentence(analyzer):
    text = "Core Power is awful. Fairlife is great."
    assert analyzer.score_around(text, "fairlife") > 0
    assert analyzer.score_around(text, "core power") < 0
    assert analyzer.score_around(text, "Premier") is None
    assert analyzer.score_around(text, "") is None


def test_extract_sentence():
    text = "First one. Second has Brand inside! Third."
    start = text.index("Brand")
    assert extract_sentence(text, start, start + 5) == "Second has Brand inside!"


@pytest.mark.parametrize(
    "score,expected",
    [
        (0.4519, "0.45"),
        (-1.0, "-1.00"),
        (0.0, "0.00"),
        (-0.001, "0.00"),
        (-0.004, "0.00"),
        (None, None),
    ],
)
def test_format_score(score, expected):
    assert format_score(score) == expected
