"""
Celery tasks for prompt-run batches.

run_prompt_batch_task executes a batch that the HTTP trigger already claimed.
run_all_domains_task is the scheduled run: one batch per domain with active
prompts, one domain after another.

Neither task retries. A retried batch would append a second PromptRun per
prompt; re-running is always a new trigger.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

from celery.signals import task_failure, task_postrun, task_prerun
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.celery_app import celery_app
from app.db.session import SessionLocal
from app.models.prompt import Prompt
from app.services.batch_orchestrator import BatchOrchestrator, BatchPlan
from app.services.platform_manager import PlatformManager
from app.utils.error_handler import PromptRunError
from app.utils.logger import get_logger

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    soft_time_limit=25 * 60,
    time_limit=30 * 60,
)
def run_prompt_batch_task(
    self,
    domain_id: str,
    provider: str,
    prompt_ids: List[str],
    concurrency: int,
    batch_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Execute a claimed batch.

    The domain is already ``running`` when this task is queued; the task only
    drives the worker pool and finalisation.
    """
    plan = BatchPlan(
        domain_id=domain_id,
        provider=provider,
        prompt_ids=list(prompt_ids),
        concurrency=concurrency,
    )
    if batch_id:
        plan.batch_id = batch_id
    return asyncio.run(execute_claimed_batch(plan, task_id=self.request.id))


async def execute_claimed_batch(
    plan: BatchPlan,
    db: Optional[Session] = None,
    platform_manager_factory: Callable[[], PlatformManager] = PlatformManager,
    task_id: Optional[str] = None,
) -> Dict[str, Any]:
    owns_session = db is None
    db = db or SessionLocal()
    try:
        orchestrator = BatchOrchestrator(db, platform_manager_factory())
        summary = await orchestrator.execute_batch(plan)
        logger.info(
            "Batch task finished",
            task_id=task_id,
            domain_id=plan.domain_id,
            successful=summary.successful,
            failed=summary.failed,
        )
        return summary.to_dict()
    finally:
        if owns_session:
            db.close()


@celery_app.task(bind=True, soft_time_limit=6 * 60 * 60, time_limit=6 * 60 * 60 + 300)
def run_all_domains_task(self, provider: Optional[str] = None) -> Dict[str, Any]:
    """Scheduled run across every domain with active prompts."""
    return asyncio.run(run_all_domains(provider=provider, task_id=self.request.id))


def domains_with_active_prompts(db: Session) -> List[str]:
    statement = (
        select(Prompt.domain_id)
        .where(Prompt.is_active.is_(True))
        .where(Prompt.is_archived.is_(False))
        .distinct()
        .order_by(Prompt.domain_id)
    )
    return list(db.execute(statement).scalars().all())


def _record_skip(summary: Dict[str, Any], domain_id: str, reason: str) -> None:
    summary["domains_skipped"] += 1
    summary["skipped"].append({"domain_id": domain_id, "reason": reason})


async def run_all_domains(
    provider: Optional[str] = None,
    db: Optional[Session] = None,
    platform_manager_factory: Callable[[], PlatformManager] = PlatformManager,
    task_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run a batch for each domain in turn and summarise.

    Domains that cannot start are skipped and logged, whether rejected
    (already running, misconfigured provider) or failing unexpectedly while
    claiming. They never stop the remaining domains.
    """
    start_time = time.time()
    owns_session = db is None
    db = db or SessionLocal()

    summary: Dict[str, Any] = {
        "domains_processed": 0,
        "domains_skipped": 0,
        "total_prompts": 0,
        "successful_runs": 0,
        "failed_runs": 0,
        "mentions": 0,
        "skipped": [],
    }
    try:
        domain_ids = domains_with_active_prompts(db)
        logger.info("Scheduled run starting", task_id=task_id, domains=len(domain_ids))

        for domain_id in domain_ids:
            orchestrator = BatchOrchestrator(db, platform_manager_factory())
            try:
                plan = orchestrator.prepare_batch(domain_id, provider)
            except PromptRunError as e:
                await orchestrator.aclose()
                logger.warning(
                    "Skipping domain in scheduled run",
                    domain_id=domain_id,
                    reason=e.message,
                    category=e.category.value,
                )
                _record_skip(summary, domain_id, e.message)
                continue
            except Exception as e:
                db.rollback()
                await orchestrator.aclose()
                logger.error(
                    "Domain failed to start in scheduled run",
                    domain_id=domain_id,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                _record_skip(summary, domain_id, f"{type(e).__name__}: {e}")
                continue

            # execute_batch always finalises and closes the orchestrator
            batch = await orchestrator.execute_batch(plan)

            summary["domains_processed"] += 1
            summary["total_prompts"] += batch.total
            summary["successful_runs"] += batch.successful
            summary["failed_runs"] += batch.failed
            summary["mentions"] += batch.mentions
    finally:
        if owns_session:
            db.close()

    summary["duration_ms"] = int((time.time() - start_time) * 1000)
    logger.info(
        "Scheduled run completed",
        task_id=task_id,
        **{k: v for k, v in summary.items() if k != "skipped"},
    )
    return summary


# === Celery Signal Handlers ===


@task_prerun.connect
def task_prerun_handler(
    sender=None, task_id=None, task=None, args=None, kwargs=None, **kwds
):
    """Handle task pre-run signal for logging"""
    logger.info("Task starting", task_name=task.name, task_id=task_id)


@task_postrun.connect
def task_postrun_handler(
    sender=None,
    task_id=None,
    task=None,
    args=None,
    kwargs=None,
    retval=None,
    state=None,
    **kwds,
):
    """Handle task post-run signal for logging"""
    logger.info(
        "Task completed",
        task_name=task.name,
        task_id=task_id,
        state=state,
        return_value_type=type(retval).__name__ if retval else None,
    )


@task_failure.connect
def task_failure_handler(
    sender=None, task_id=None, exception=None, traceback=None, einfo=None, **kwds
):
    """Handle task failure signal for logging"""
    logger.error(
        "Task failed",
        task_name=sender.name,
        task_id=task_id,
        exception=str(exception),
        exception_type=type(exception).__name__,
    )
