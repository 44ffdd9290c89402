"""
Tests for the visibility rollups over recorded runs.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.services.dashboard import visibility_service
from app.services.dashboard.utils import resolve_window
from app.utils.error_handler import DomainNotFoundError, PromptNotFoundError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def window():
    return resolve_window(now=NOW, window_days=7)


@pytest.fixture
def domain(make_domain):
    return make_domain()


@pytest.fixture
def prompt(domain, make_prompt):
    return make_prompt(domain)


class TestVisibilityOverview:
    def test_empty_window_scores_zero(self, db_session, domain, window):
        overview = visibility_service.get_visibility_overview(db_session, domain.id, window)

        assert overview.visibility_score == 0.0
        assert overview.chart_data == []
        assert overview.industry_ranking == []

    def test_unknown_domain(self, db_session, window):
        with pytest.raises(DomainNotFoundError):
            visibility_service.get_visibility_overview(db_session, "missing", window)

    def test_score_counts_failed_runs_and_runs_without_analysis(
        self, db_session, domain, prompt, make_run, window
    ):
        make_run(prompt, executed_at=NOW - timedelta(days=1), mentioned=True, position=1)
        make_run(prompt, executed_at=NOW - timedelta(days=1), mentioned=False)
        make_run(prompt, executed_at=NOW - timedelta(days=2), mentioned=None)
        make_run(prompt, executed_at=NOW - timedelta(days=2), error="timeout: slow")
        # Outside the window
        make_run(prompt, executed_at=NOW - timedelta(days=30), mentioned=True)

        overview = visibility_service.get_visibility_overview(db_session, domain.id, window)

        assert overview.total_runs == 4
        assert overview.total_mentions == 1
        assert overview.visibility_score == 25.0
        assert [(p.date, p.visibility) for p in overview.chart_data] == [
            ("2026-10-17", 0.0),
            ("2026-10-18", 50.0),
        ]

    def test_provider_filter(self, db_session, domain, prompt, make_run, window):
        make_run(prompt, provider="chatgpt", executed_at=NOW - timedelta(hours=1), mentioned=True)
        make_run(prompt, provider="claude", executed_at=NOW - timedelta(hours=1), mentioned=False)

        overview = visibility_service.get_visibility_overview(
            db_session, domain.id, window, providers=["claude"]
        )

        assert overview.total_runs == 1
        assert overview.visibility_score == 0.0

    def test_ranking_uses_verdict_for_tracked_brand(
        self, db_session, domain, prompt, make_run, window
    ):
        """A BrandMention naming the tracked brand does not override a negative verdict."""
        at = NOW - timedelta(hours=2)
        make_run(
            prompt,
            executed_at=at,
            mentioned=True,
            position=2,
            brands=[
                {"brand_name": "Core Power", "brand_domain": "corepower.com", "position": 1},
                {"brand_name": "Fairlife", "brand_domain": "fairlife.com", "position": 2},
            ],
        )
        make_run(
            prompt,
            executed_at=at,
            mentioned=False,
            brands=[
                {"brand_name": "Core Power", "brand_domain": "corepower.com", "position": 1},
                {"brand_name": "Fairlife", "brand_domain": "fairlife.com", "position": 3},
            ],
        )
        make_run(
            prompt,
            executed_at=at,
            mentioned=False,
            brands=[{"brand_name": "Core Power", "brand_domain": None, "position": 3}],
        )

        overview = visibility_service.get_visibility_overview(db_session, domain.id, window)

        assert overview.visibility_score == 33.3
        ranking = {entry.brand: entry for entry in overview.industry_ranking}
        assert set(ranking) == {"Core Power", "Fairlife"}
        assert ranking["Core Power"].rank == 1
        assert ranking["Core Power"].mentions == 3
        assert ranking["Core Power"].visibility == 100.0
        assert ranking["Core Power"].position == 1.7
        assert ranking["Fairlife"].is_tracked_brand is True
        assert ranking["Fairlife"].mentions == 1
        assert ranking["Fairlife"].visibility == 33.3
        assert ranking["Fairlife"].position == 2.0

    def test_reconcile_flag_counts_tracked_brand_rows(
        self, db_session, domain, prompt, make_run, window
    ):
        make_run(
            prompt,
            executed_at=NOW - timedelta(hours=1),
            mentioned=False,
            brands=[{"brand_name": "Fairlife", "brand_domain": "fairlife.com", "position": 1}],
        )

        strict = visibility_service.get_visibility_overview(db_session, domain.id, window)
        reconciled = visibility_service.get_visibility_overview(
            db_session, domain.id, window, reconcile_brand_mentions=True
        )

        assert strict.visibility_score == 0.0
        assert reconciled.visibility_score == 100.0

    def test_brand_filter(self, db_session, domain, prompt, make_run, window):
        make_run(
            prompt,
            executed_at=NOW - timedelta(hours=1),
            brands=[
                {"brand_name": "Core Power", "position": 1},
                {"brand_name": "Premier Protein", "position": 2},
            ],
        )

        overview = visibility_service.get_visibility_overview(
            db_session, domain.id, window, brands=["premier"]
        )

        brands = [entry.brand for entry in overview.industry_ranking]
        assert "Premier Protein" in brands
        assert "Core Power" not in brands


class TestBreakdowns:
    def test_topic_visibility(self, db_session, domain, make_topic, make_prompt, make_run, window):
        drinks = make_topic(domain, "Drinks")
        snacks = make_topic(domain, "Snacks")
        make_topic(domain, "Unused")
        at = NOW - timedelta(hours=1)
        make_run(
            make_prompt(domain, topic=drinks),
            executed_at=at,
            mentioned=True,
            brands=[
                {"brand_name": "Fairlife", "brand_domain": "fairlife.com", "position": 1},
                {"brand_name": "Core Power", "position": 2},
                {"brand_name": "Premier", "position": 3},
                {"brand_name": "Muscle Milk", "position": 4},
            ],
        )
        make_run(make_prompt(domain, topic=snacks), executed_at=at, mentioned=False)
        make_run(make_prompt(domain), executed_at=at, mentioned=True)

        topics = visibility_service.get_topic_visibility(db_session, domain.id, window).topics

        assert [t.topic_name for t in topics] == ["Drinks", "Snacks", "Unused"]
        assert topics[0].visibility_score == 100.0
        assert topics[0].citation_share == 25.0
        assert topics[1].visibility_score == 0.0
        assert topics[1].citation_share == 0.0
        assert topics[2].total_runs == 0

    def test_model_performance(self, db_session, domain, prompt, make_run, window):
        at = NOW - timedelta(hours=1)
        make_run(prompt, provider="claude", executed_at=at, mentioned=True)
        make_run(prompt, provider="chatgpt", executed_at=at, mentioned=True)
        make_run(prompt, provider="chatgpt", executed_at=at, mentioned=False)
        make_run(prompt, provider="grok", executed_at=at, mentioned=True)

        models = visibility_service.get_model_performance(db_session, domain.id, window).models

        assert [(m.provider, m.visibility_rate) for m in models] == [
            ("claude", 100.0),
            ("grok", 100.0),
            ("chatgpt", 50.0),
        ]

    def test_source_domains(self, db_session, domain, prompt, make_run, window):
        make_run(
            prompt,
            executed_at=NOW - timedelta(hours=1),
            citations=[
                {"url": "https://www.example.com/a", "title": "A"},
                {"url": "http://example.com/b", "title": "B"},
                {"url": "https://other.org/c", "title": "C"},
                {"url": "garbage", "title": "ignored"},
            ],
        )

        result = visibility_service.get_source_domains(db_session, domain.id, window)

        assert [(d.domain, d.count, d.frequency) for d in result.domains] == [
            ("example.com", 2, 66.7),
            ("other.org", 1, 33.3),
        ]
        assert result.total_citations == 3
        assert result.unique_domains == 2


class TestQueries:
    def test_pagination_and_stats(self, db_session, domain, prompt, make_run, window):
        for hours in range(5):
            make_run(
                prompt,
                executed_at=NOW - timedelta(hours=hours + 1),
                mentioned=hours % 2 == 0,
                position=1 if hours % 2 == 0 else None,
                sentiment="0.50" if hours % 2 == 0 else None,
                citations=[
                    {"url": "https://fairlife.com/p", "title": "Own"},
                    {"url": "https://other.org/x", "title": "Other"},
                ],
                search_queries=["protein milk"],
            )

        page = visibility_service.list_queries(db_session, domain.id, window, page=2, limit=2)

        assert page.pagination.total == 5
        assert page.pagination.total_pages == 3
        assert len(page.queries) == 2
        assert page.queries[0].executed_at.replace(tzinfo=None) == (
            NOW - timedelta(hours=3)
        ).replace(tzinfo=None)
        assert page.queries[0].mentioned is True
        assert page.queries[0].sentiment == 0.5
        assert page.queries[0].search_queries == ["protein milk"]
        assert page.stats.total_queries == 5
        assert page.stats.total_mentions == 3
        assert page.stats.total_citations == 5

    def test_mentions_only(self, db_session, domain, prompt, make_run, window):
        make_run(prompt, executed_at=NOW - timedelta(hours=1), mentioned=True)
        make_run(prompt, executed_at=NOW - timedelta(hours=2), mentioned=False)
        make_run(prompt, executed_at=NOW - timedelta(hours=3), error="http_error: 500")

        result = visibility_service.list_queries(
            db_session, domain.id, window, mentions_only=True
        )

        assert result.stats.total_queries == 1
        assert all(q.mentioned for q in result.queries)

    def test_failed_runs_are_listed_with_error(self, db_session, domain, prompt, make_run, window):
        make_run(prompt, executed_at=NOW - timedelta(hours=1), error="timeout: slow")

        query = visibility_service.list_queries(db_session, domain.id, window).queries[0]

        assert query.error == "timeout: slow"
        assert query.mentioned is False
        assert query.position is None


class TestPromptCitations:
    def test_merges_by_normalized_url(self, db_session, domain, prompt, make_run):
        make_run(
            prompt,
            citations=[
                {"url": "https://Fairlife.com/Protein", "title": "", "snippet": None},
                {"url": "https://other.org/x", "title": "Other", "snippet": "first"},
            ],
        )
        make_run(
            prompt,
            citations=[
                {"url": "https://fairlife.com/protein ", "title": "Fairlife", "snippet": "Milk"},
                {"url": "https://other.org/x", "title": "Later", "snippet": "second"},
            ],
        )
        make_run(prompt, citations=[{"url": "https://shop.fairlife.com/", "title": "Shop"}])

        result = visibility_service.get_prompt_citations(db_session, domain.id, prompt.id)

        assert result.total_runs == 3
        by_url = {c.url: c for c in result.citations}
        own = by_url["https://fairlife.com/protein"]
        assert own.count == 2
        assert own.title == "Fairlife"
        assert own.snippet == "Milk"
        assert own.is_earned is True
        assert by_url["https://other.org/x"].snippet == "first"
        assert by_url["https://other.org/x"].is_earned is False
        assert by_url["https://shop.fairlife.com/"].is_earned is True
        assert [c.count for c in result.citations] == [2, 2, 1]

    def test_title_falls_back_to_url(self, db_session, domain, prompt, make_run):
        make_run(prompt, citations=[{"url": "https://other.org/x"}])

        citation = visibility_service.get_prompt_citations(db_session, domain.id, prompt.id).citations[0]

        assert citation.title == "https://other.org/x"

    def test_prompt_of_another_domain(self, db_session, domain, make_domain, make_prompt):
        foreign = make_prompt(make_domain("other.com", "Other"))

        with pytest.raises(PromptNotFoundError):
            visibility_service.get_prompt_citations(db_session, domain.id, foreign.id)
