"""Visibility analytics endpoints over recorded prompt runs."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.v1.schemas import (
    ModelPerformanceResponse,
    PromptCitationsResponse,
    QueriesResponse,
    SourceDomainsResponse,
    TopicVisibilityResponse,
    VisibilityOverviewView,
)
from app.core.run_config import get_run_settings
from app.db.session import get_db
from app.services.dashboard import visibility_service
from app.services.dashboard.utils import DateWindow, resolve_window

router = APIRouter(prefix="/domains/{domain_id}", tags=["visibility"])


def get_window(
    start_date: Optional[str] = None, end_date: Optional[str] = None
) -> DateWindow:
    try:
        return resolve_window(
            start_date, end_date, window_days=get_run_settings().PROMPT_RUN_WINDOW_DAYS
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


@router.get("/visibility", response_model=VisibilityOverviewView)
async def get_visibility(
    domain_id: str,
    providers: Optional[str] = None,
    brands: Optional[str] = None,
    reconcile_brand_mentions: bool = False,
    window: DateWindow = Depends(get_window),
    db: Session = Depends(get_db),
) -> VisibilityOverviewView:
    return visibility_service.get_visibility_overview(
        db,
        domain_id,
        window,
        providers=_split(providers),
        brands=_split(brands),
        reconcile_brand_mentions=reconcile_brand_mentions,
    )


@router.get("/topic-visibility", response_model=TopicVisibilityResponse)
async def get_topic_visibility(
    domain_id: str,
    providers: Optional[str] = None,
    window: DateWindow = Depends(get_window),
    db: Session = Depends(get_db),
) -> TopicVisibilityResponse:
    return visibility_service.get_topic_visibility(db, domain_id, window, _split(providers))


@router.get("/model-performance", response_model=ModelPerformanceResponse)
async def get_model_performance(
    domain_id: str,
    providers: Optional[str] = None,
    window: DateWindow = Depends(get_window),
    db: Session = Depends(get_db),
) -> ModelPerformanceResponse:
    return visibility_service.get_model_performance(db, domain_id, window, _split(providers))


@router.get("/source-domains", response_model=SourceDomainsResponse)
async def get_source_domains(
    domain_id: str,
    providers: Optional[str] = None,
    window: DateWindow = Depends(get_window),
    db: Session = Depends(get_db),
) -> SourceDomainsResponse:
    return visibility_service.get_source_domains(db, domain_id, window, _split(providers))


@router.get("/queries", response_model=QueriesResponse)
async def list_queries(
    domain_id: str,
    providers: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    mentions_only: bool = False,
    window: DateWindow = Depends(get_window),
    db: Session = Depends(get_db),
) -> QueriesResponse:
    return visibility_service.list_queries(
        db,
        domain_id,
        window,
        providers=_split(providers),
        page=page,
        limit=limit,
        mentions_only=mentions_only,
    )


@router.get("/prompts/{prompt_id}/citations", response_model=PromptCitationsResponse)
async def get_prompt_citations(
    domain_id: str, prompt_id: str, db: Session = Depends(get_db)
) -> PromptCitationsResponse:
    return visibility_service.get_prompt_citations(db, domain_id, prompt_id)
