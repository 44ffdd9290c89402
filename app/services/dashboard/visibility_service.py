"""Visibility rollups over persisted prompt runs.

Everything here is a read-only projection of PromptRun, MentionAnalysis and
BrandMention rows. The tracked brand's verdict comes from MentionAnalysis;
BrandMention rows feed competitor ranking and citation share.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.schemas import (
    AggregatedCitationView,
    ChartPointView,
    CitationView,
    ModelPerformanceResponse,
    ModelPerformanceView,
    PaginationView,
    PromptCitationsResponse,
    QueriesResponse,
    QueryStatsView,
    QueryView,
    RankingEntryView,
    SourceDomainsResponse,
    SourceDomainView,
    TopicVisibilityResponse,
    TopicVisibilityView,
    VisibilityOverviewView,
)
from app.models.domain import Domain, Topic
from app.models.prompt import Prompt
from app.models.prompt_run import BrandMention, MentionAnalysis, PromptRun
from app.services.brand_detection.core.detector import matches_tracked
from app.services.dashboard.utils import (
    DateWindow,
    average_position,
    extract_hostname,
    is_domain_hostname,
    normalize_url,
    parse_score,
    percent,
    visibility_score,
)
from app.utils.error_handler import DomainNotFoundError, PromptNotFoundError

__all__ = [
    "get_visibility_overview",
    "get_topic_visibility",
    "get_model_performance",
    "get_source_domains",
    "list_queries",
    "get_prompt_citations",
]

RANKING_LIMIT = 20


@dataclass
class _RunSet:
    """Runs of one domain inside a window, with their tracked-brand verdicts"""

    domain: Domain
    runs: List[PromptRun] = field(default_factory=list)
    topic_by_run: Dict[str, Optional[str]] = field(default_factory=dict)
    prompt_text_by_run: Dict[str, str] = field(default_factory=dict)
    analysis_by_run: Dict[str, MentionAnalysis] = field(default_factory=dict)

    @property
    def run_ids(self) -> List[str]:
        return [run.id for run in self.runs]

    def is_mentioned(self, run_id: str) -> bool:
        analysis = self.analysis_by_run.get(run_id)
        # No analysis row reads as not mentioned
        return bool(analysis and analysis.mentioned)


def _get_domain(db: Session, domain_id: str) -> Domain:
    domain = db.get(Domain, domain_id)
    if domain is None:
        raise DomainNotFoundError(domain_id)
    return domain


def _load_runs(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
) -> _RunSet:
    run_set = _RunSet(domain=_get_domain(db, domain_id))

    statement = (
        select(PromptRun, Prompt.topic_id, Prompt.prompt_text)
        .join(Prompt, PromptRun.prompt_id == Prompt.id)
        .where(Prompt.domain_id == domain_id)
        .where(PromptRun.executed_at >= window.start)
        .where(PromptRun.executed_at <= window.end)
        .order_by(PromptRun.executed_at.desc(), PromptRun.id)
    )
    if providers:
        statement = statement.where(PromptRun.llm_provider.in_(list(providers)))

    for run, topic_id, prompt_text in db.execute(statement):
        run_set.runs.append(run)
        run_set.topic_by_run[run.id] = topic_id
        run_set.prompt_text_by_run[run.id] = prompt_text

    if run_set.runs:
        analyses = db.execute(
            select(MentionAnalysis)
            .where(MentionAnalysis.prompt_run_id.in_(run_set.run_ids))
            .where(MentionAnalysis.domain_id == domain_id)
        ).scalars()
        run_set.analysis_by_run = {a.prompt_run_id: a for a in analyses}
    return run_set


def _load_brand_mentions(db: Session, run_ids: Iterable[str]) -> List[BrandMention]:
    run_ids = list(run_ids)
    if not run_ids:
        return []
    return list(
        db.execute(
            select(BrandMention).where(BrandMention.prompt_run_id.in_(run_ids))
        ).scalars()
    )


def _is_tracked_mention(domain: Domain, mention: BrandMention) -> bool:
    return matches_tracked(mention.brand_name, mention.brand_domain, domain.domain, domain.name)


def _iter_citations(run: PromptRun) -> Iterable[dict]:
    for citation in run.citations or []:
        if isinstance(citation, dict) and citation.get("url"):
            yield citation


# === Visibility overview ===


def get_visibility_overview(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
    brands: Optional[Sequence[str]] = None,
    reconcile_brand_mentions: bool = False,
) -> VisibilityOverviewView:
    """
    Visibility score, daily chart and industry ranking.

    ``reconcile_brand_mentions`` restores the older counting where a run is
    also mentioned when any of its BrandMention rows names the tracked brand.
    """
    run_set = _load_runs(db, domain_id, window, providers)
    domain = run_set.domain
    if not run_set.runs:
        return VisibilityOverviewView(visibility_score=0.0)

    brand_mentions = _load_brand_mentions(db, run_set.run_ids)

    mentioned_ids: Set[str] = {
        run_id for run_id in run_set.run_ids if run_set.is_mentioned(run_id)
    }
    if reconcile_brand_mentions:
        mentioned_ids |= {
            bm.prompt_run_id for bm in brand_mentions if _is_tracked_mention(domain, bm)
        }

    total_runs = len(run_set.runs)

    daily_total: Dict[str, int] = defaultdict(int)
    daily_mentioned: Dict[str, int] = defaultdict(int)
    for run in run_set.runs:
        key = run.executed_at.date().isoformat()
        daily_total[key] += 1
        if run.id in mentioned_ids:
            daily_mentioned[key] += 1
    chart_data = [
        ChartPointView(date=day, visibility=visibility_score(daily_mentioned[day], total))
        for day, total in sorted(daily_total.items())
    ]

    ranking = _industry_ranking(run_set, brand_mentions, mentioned_ids, total_runs, brands)

    return VisibilityOverviewView(
        visibility_score=visibility_score(len(mentioned_ids), total_runs),
        chart_data=chart_data,
        industry_ranking=ranking,
        total_runs=total_runs,
        total_mentions=len(mentioned_ids),
    )


def _industry_ranking(
    run_set: _RunSet,
    brand_mentions: List[BrandMention],
    mentioned_ids: Set[str],
    total_runs: int,
    brands: Optional[Sequence[str]],
) -> List[RankingEntryView]:
    domain = run_set.domain
    brand_filters = [b.lower() for b in brands or [] if b]

    names: Dict[str, str] = {}
    counts: Dict[str, int] = defaultdict(int)
    positions: Dict[str, List[int]] = defaultdict(list)
    runs_by_brand: Dict[str, Set[str]] = defaultdict(set)

    for bm in brand_mentions:
        # The tracked brand is ranked from its own verdict below
        if _is_tracked_mention(domain, bm):
            continue
        if brand_filters and not any(f in bm.brand_name.lower() for f in brand_filters):
            continue
        key = bm.brand_name.strip().lower()
        names.setdefault(key, bm.brand_name)
        counts[key] += 1
        if bm.position:
            positions[key].append(bm.position)
        runs_by_brand[key].add(bm.prompt_run_id)

    entries = [
        dict(
            brand=names[key],
            mentions=counts[key],
            position=average_position(positions[key]),
            visibility=visibility_score(len(runs_by_brand[key]), total_runs),
            run_count=len(runs_by_brand[key]),
            is_tracked_brand=False,
        )
        for key in names
    ]

    tracked_positions = [
        run_set.analysis_by_run[run_id].position
        for run_id in mentioned_ids
        if run_id in run_set.analysis_by_run
    ]
    entries.append(
        dict(
            brand=domain.name or domain.domain,
            mentions=len(mentioned_ids),
            position=average_position(tracked_positions),
            visibility=visibility_score(len(mentioned_ids), total_runs),
            run_count=len(mentioned_ids),
            is_tracked_brand=True,
        )
    )

    entries.sort(key=lambda e: (-e["run_count"], -e["mentions"], e["brand"].lower()))
    return [
        RankingEntryView(
            rank=index + 1,
            brand=entry["brand"],
            mentions=entry["mentions"],
            position=entry["position"],
            visibility=entry["visibility"],
            is_tracked_brand=entry["is_tracked_brand"],
        )
        for index, entry in enumerate(entries[:RANKING_LIMIT])
    ]


# === Topic and model breakdowns ===


def get_topic_visibility(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
) -> TopicVisibilityResponse:
    """Per topic: visibility and the tracked brand's share of brand mentions."""
    run_set = _load_runs(db, domain_id, window, providers)
    domain = run_set.domain
    topics = list(
        db.execute(
            select(Topic).where(Topic.domain_id == domain_id).order_by(Topic.name)
        ).scalars()
    )
    if not topics:
        return TopicVisibilityResponse(topics=[])

    total_runs: Dict[str, int] = defaultdict(int)
    mentioned_runs: Dict[str, int] = defaultdict(int)
    for run in run_set.runs:
        topic_id = run_set.topic_by_run.get(run.id)
        if topic_id is None:
            continue
        total_runs[topic_id] += 1
        if run_set.is_mentioned(run.id):
            mentioned_runs[topic_id] += 1

    all_mentions: Dict[str, int] = defaultdict(int)
    tracked_mentions: Dict[str, int] = defaultdict(int)
    for bm in _load_brand_mentions(db, run_set.run_ids):
        topic_id = run_set.topic_by_run.get(bm.prompt_run_id)
        if topic_id is None:
            continue
        all_mentions[topic_id] += 1
        if _is_tracked_mention(domain, bm):
            tracked_mentions[topic_id] += 1

    return TopicVisibilityResponse(
        topics=[
            TopicVisibilityView(
                topic_id=topic.id,
                topic_name=topic.name,
                visibility_score=visibility_score(mentioned_runs[topic.id], total_runs[topic.id]),
                citation_share=percent(tracked_mentions[topic.id], all_mentions[topic.id]),
                total_runs=total_runs[topic.id],
                mentioned_runs=mentioned_runs[topic.id],
            )
            for topic in topics
        ]
    )


def get_model_performance(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
) -> ModelPerformanceResponse:
    run_set = _load_runs(db, domain_id, window, providers)

    total_runs: Dict[str, int] = defaultdict(int)
    mentioned_runs: Dict[str, int] = defaultdict(int)
    for run in run_set.runs:
        total_runs[run.llm_provider] += 1
        if run_set.is_mentioned(run.id):
            mentioned_runs[run.llm_provider] += 1

    models = [
        ModelPerformanceView(
            provider=provider,
            visibility_rate=visibility_score(mentioned_runs[provider], total),
            total_runs=total,
            mentioned_runs=mentioned_runs[provider],
        )
        for provider, total in total_runs.items()
    ]
    models.sort(key=lambda m: (-m.visibility_rate, m.provider))
    return ModelPerformanceResponse(models=models)


# === Sources ===


def get_source_domains(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
) -> SourceDomainsResponse:
    """Citation hostnames by frequency; unresolvable URLs are left out of the total."""
    run_set = _load_runs(db, domain_id, window, providers)

    counts: Dict[str, int] = defaultdict(int)
    for run in run_set.runs:
        for citation in _iter_citations(run):
            hostname = extract_hostname(citation["url"])
            if hostname:
                counts[hostname] += 1

    total = sum(counts.values())
    domains = [
        SourceDomainView(domain=hostname, count=count, frequency=percent(count, total))
        for hostname, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
    return SourceDomainsResponse(
        domains=domains, total_citations=total, unique_domains=len(domains)
    )


# === Run history ===


def list_queries(
    db: Session,
    domain_id: str,
    window: DateWindow,
    providers: Optional[Sequence[str]] = None,
    page: int = 1,
    limit: int = 20,
    mentions_only: bool = False,
) -> QueriesResponse:
    """Newest-first run history with aggregate stats over the whole filtered set."""
    page = max(1, page)
    limit = max(1, limit)
    run_set = _load_runs(db, domain_id, window, providers)
    tracked_domain = run_set.domain.domain

    runs = run_set.runs
    if mentions_only:
        runs = [run for run in runs if run_set.is_mentioned(run.id)]

    branded_citations = sum(
        1
        for run in runs
        for citation in _iter_citations(run)
        if is_domain_hostname(extract_hostname(citation["url"]), tracked_domain)
    )

    total = len(runs)
    offset = (page - 1) * limit
    queries = []
    for run in runs[offset : offset + limit]:
        analysis = run_set.analysis_by_run.get(run.id)
        queries.append(
            QueryView(
                prompt_run_id=run.id,
                prompt_id=run.prompt_id,
                prompt_text=run_set.prompt_text_by_run[run.id],
                provider=run.llm_provider,
                executed_at=run.executed_at,
                mentioned=run_set.is_mentioned(run.id),
                position=analysis.position if analysis else None,
                sentiment=parse_score(analysis.sentiment_score) if analysis else None,
                error=run.error,
                search_queries=list(run.search_queries or []),
                citations=[
                    CitationView(
                        url=c["url"], title=c.get("title"), snippet=c.get("snippet")
                    )
                    for c in _iter_citations(run)
                ],
            )
        )

    return QueriesResponse(
        queries=queries,
        pagination=PaginationView(
            page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)
        ),
        stats=QueryStatsView(
            total_queries=total,
            total_mentions=len([run for run in runs if run_set.is_mentioned(run.id)]),
            total_citations=branded_citations,
        ),
    )


def get_prompt_citations(db: Session, domain_id: str, prompt_id: str) -> PromptCitationsResponse:
    """Every citation across one prompt's runs, merged by normalized URL."""
    domain = _get_domain(db, domain_id)
    prompt = db.get(Prompt, prompt_id)
    if prompt is None or prompt.domain_id != domain_id:
        raise PromptNotFoundError(prompt_id)

    runs = list(
        db.execute(
            select(PromptRun)
            .where(PromptRun.prompt_id == prompt_id)
            .order_by(PromptRun.executed_at, PromptRun.id)
        ).scalars()
    )

    merged: Dict[str, dict] = {}
    for run in runs:
        for citation in _iter_citations(run):
            key = normalize_url(citation["url"])
            entry = merged.setdefault(key, {"title": None, "snippet": None, "count": 0})
            entry["count"] += 1
            # First non-empty title and snippet win
            if not entry["title"] and citation.get("title"):
                entry["title"] = citation["title"]
            if not entry["snippet"] and citation.get("snippet"):
                entry["snippet"] = citation["snippet"]

    citations = [
        AggregatedCitationView(
            url=url,
            title=data["title"] or url,
            snippet=data["snippet"],
            count=data["count"],
            is_earned=is_domain_hostname(extract_hostname(url), domain.domain),
        )
        for url, data in merged.items()
    ]
    citations.sort(key=lambda c: (-c.count, c.url))
    return PromptCitationsResponse(citations=citations, total_runs=len(runs))
