from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.schemas import (
    BatchStatusView,
    CronRunResponse,
    RunPromptRequest,
    RunResultView,
    TriggerBatchRequest,
    TriggerBatchResponse,
)
from app.core.config import settings
from app.core.run_config import get_run_settings
from app.db.session import get_db
from app.services.batch_orchestrator import BatchOrchestrator
from app.services.platform_manager import PlatformManager
from app.services.progress_tracker import ProgressTracker
from app.services.prompt_executor import PromptExecutor
from app.tasks.prompt_run_tasks import run_all_domains_task
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["prompt-runs"])


async def get_platform_manager() -> AsyncGenerator[PlatformManager, None]:
    manager = PlatformManager()
    try:
        yield manager
    finally:
        await manager.aclose()


@router.post(
    "/domains/{domain_id}/prompt-runs",
    response_model=TriggerBatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_prompt_runs(
    domain_id: str,
    payload: Optional[TriggerBatchRequest] = None,
    db: Session = Depends(get_db),
    platform_manager: PlatformManager = Depends(get_platform_manager),
) -> TriggerBatchResponse:
    """Validate, claim and queue a batch for every active prompt of the domain"""
    payload = payload or TriggerBatchRequest()
    orchestrator = BatchOrchestrator(db, platform_manager)
    try:
        plan = orchestrator.start_batch(domain_id, payload.provider, payload.concurrency)
    finally:
        await orchestrator.executor.aclose()
    return TriggerBatchResponse(
        accepted=True,
        total_prompts=plan.total,
        status="running",
        provider=plan.provider,
        batch_id=plan.batch_id,
    )


@router.get("/domains/{domain_id}/prompt-runs/status", response_model=BatchStatusView)
async def get_prompt_run_status(domain_id: str, db: Session = Depends(get_db)) -> BatchStatusView:
    batch_status = ProgressTracker(db, domain_id).get_status()
    return BatchStatusView(
        status=batch_status.status,
        progress=batch_status.progress,
        total=batch_status.total,
        started_at=batch_status.started_at,
        completed_at=batch_status.completed_at,
    )


@router.post("/prompts/{prompt_id}/run", response_model=RunResultView)
async def run_single_prompt(
    prompt_id: str,
    payload: Optional[RunPromptRequest] = None,
    db: Session = Depends(get_db),
    platform_manager: PlatformManager = Depends(get_platform_manager),
) -> RunResultView:
    """Run one prompt now and return its outcome"""
    payload = payload or RunPromptRequest()
    provider = payload.provider or get_run_settings().PROMPT_RUN_DEFAULT_PROVIDER
    platform_manager.ensure_configured(provider)

    executor = PromptExecutor(db, platform_manager)
    try:
        result = await executor.run_one(prompt_id, provider)
    finally:
        await executor.aclose()
    return RunResultView(**result.to_dict())


def _check_cron_secret(authorization: Optional[str]) -> None:
    if not settings.CRON_SECRET:
        return
    if authorization != f"Bearer {settings.CRON_SECRET}":
        logger.warning("Rejected cron trigger with bad credentials")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.api_route(
    "/cron/run-prompts",
    methods=["GET", "POST"],
    response_model=CronRunResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_scheduled_run(
    provider: Optional[str] = None,
    authorization: Optional[str] = Header(default=None),
) -> CronRunResponse:
    """Queue the all-domain run"""
    _check_cron_secret(authorization)
    task = run_all_domains_task.delay(provider)
    logger.info("Scheduled run queued", task_id=task.id, provider=provider)
    return CronRunResponse(accepted=True, task_id=task.id)
