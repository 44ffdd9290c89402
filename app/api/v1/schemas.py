"""Pydantic request/response schemas for the prompt-run API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

BatchStatusLabel = Literal["pending", "running", "completed", "failed"]


class BaseApiModel(BaseModel):
    """Base class enabling alias-friendly export."""

    model_config = ConfigDict(populate_by_name=True)


# === Batch trigger and status ===


class TriggerBatchRequest(BaseApiModel):
    provider: Optional[str] = None
    concurrency: Optional[int] = Field(default=None, ge=1)


class TriggerBatchResponse(BaseApiModel):
    accepted: bool
    total_prompts: int = Field(ge=0)
    status: BatchStatusLabel
    provider: str
    batch_id: str


class BatchStatusView(BaseApiModel):
    status: BatchStatusLabel
    progress: int = Field(ge=0)
    total: int = Field(ge=0)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RunPromptRequest(BaseApiModel):
    provider: Optional[str] = None


class RunResultView(BaseApiModel):
    prompt_id: str
    prompt_run_id: Optional[str] = None
    provider: str
    success: bool
    mentioned: bool = False
    error: Optional[str] = None
    response_preview: Optional[str] = None


class CronRunResponse(BaseApiModel):
    accepted: bool
    task_id: Optional[str] = None


# === Visibility ===


class ChartPointView(BaseApiModel):
    date: str
    visibility: float


class RankingEntryView(BaseApiModel):
    rank: int
    brand: str
    mentions: int
    position: Optional[float] = None
    visibility: float
    is_tracked_brand: bool = False


class VisibilityOverviewView(BaseApiModel):
    visibility_score: float = Field(ge=0, le=100)
    chart_data: List[ChartPointView] = []
    industry_ranking: List[RankingEntryView] = []
    total_runs: int = 0
    total_mentions: int = 0


class TopicVisibilityView(BaseApiModel):
    topic_id: str
    topic_name: str
    visibility_score: float
    citation_share: float
    total_runs: int
    mentioned_runs: int


class TopicVisibilityResponse(BaseApiModel):
    topics: List[TopicVisibilityView] = []


class ModelPerformanceView(BaseApiModel):
    provider: str
    visibility_rate: float
    total_runs: int
    mentioned_runs: int


class ModelPerformanceResponse(BaseApiModel):
    models: List[ModelPerformanceView] = []


class SourceDomainView(BaseApiModel):
    domain: str
    count: int
    frequency: float


class SourceDomainsResponse(BaseApiModel):
    domains: List[SourceDomainView] = []
    total_citations: int = 0
    unique_domains: int = 0


# === Run history ===


class CitationView(BaseApiModel):
    url: str
    title: Optional[str] = None
    snippet: Optional[str] = None


class QueryView(BaseApiModel):
    prompt_run_id: str
    prompt_id: str
    prompt_text: str
    provider: str
    executed_at: datetime
    mentioned: bool
    position: Optional[int] = None
    sentiment: Optional[float] = None
    error: Optional[str] = None
    search_queries: List[str] = []
    citations: List[CitationView] = []


class PaginationView(BaseApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


class QueryStatsView(BaseApiModel):
    total_queries: int
    total_mentions: int
    total_citations: int


class QueriesResponse(BaseApiModel):
    queries: List[QueryView] = []
    pagination: PaginationView
    stats: QueryStatsView


class AggregatedCitationView(BaseApiModel):
    url: str
    title: str
    snippet: Optional[str] = None
    count: int
    is_earned: bool


class PromptCitationsResponse(BaseApiModel):
    citations: List[AggregatedCitationView] = []
    total_runs: int = 0
