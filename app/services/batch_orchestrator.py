"""
Batch orchestrator for prompt runs.

Runs every active, non-archived prompt of a domain against one provider through
a bounded worker pool. Each prompt gets exactly one executor call per batch;
progress is advanced durably after every unit whatever its outcome, and the
batch always ends in ``completed``, including when the pool itself faults.

Two entry styles:
    run_batch()    prepare + execute in the current event loop (worker, scripts)
    start_batch()  prepare, then hand execution to a Celery worker (HTTP trigger)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.run_config import PromptRunSettings, get_run_settings
from app.models.domain import Domain, PromptRunStatus
from app.models.prompt import Prompt
from app.services.platform_manager import PlatformManager
from app.services.progress_tracker import BatchStatus, ProgressTracker
from app.services.prompt_executor import PromptExecutor, RunResult
from app.services.run_context import add_batch_context, add_stage_context, new_batch_id
from app.services.run_metrics import get_run_metrics
from app.utils.error_handler import (
    BatchAlreadyRunningError,
    DomainNotFoundError,
    NoActivePromptsError,
    ProviderConfigurationError,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class BatchPlan:
    """A claimed batch, ready to execute"""

    domain_id: str
    provider: str
    prompt_ids: List[str]
    concurrency: int
    batch_id: str = field(default_factory=new_batch_id)

    @property
    def total(self) -> int:
        return len(self.prompt_ids)


@dataclass
class BatchSummary:
    """Outcome of one executed batch"""

    domain_id: str
    provider: str
    batch_id: str
    total: int
    results: List[RunResult] = field(default_factory=list)
    duration_ms: int = 0
    pool_fault: bool = False

    @property
    def successful(self) -> int:
        return len([r for r in self.results if r.success])

    @property
    def failed(self) -> int:
        return len([r for r in self.results if not r.success])

    @property
    def mentions(self) -> int:
        return len([r for r in self.results if r.mentioned])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain_id": self.domain_id,
            "provider": self.provider,
            "batch_id": self.batch_id,
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "mentions": self.mentions,
            "duration_ms": self.duration_ms,
            "pool_fault": self.pool_fault,
            "results": [r.to_dict() for r in self.results],
        }


class BatchOrchestrator:
    """
    Coordinates one domain's batch: validation, claim, pool, finalisation.

    The orchestrator shares one Session between its units. Every write block
    commits before the next await, so units never interleave inside a
    transaction.
    """

    def __init__(
        self,
        db: Session,
        platform_manager: Optional[PlatformManager] = None,
        executor: Optional[PromptExecutor] = None,
        settings: Optional[PromptRunSettings] = None,
    ):
        self.db = db
        self.settings = settings or get_run_settings()
        self.platform_manager = platform_manager or PlatformManager()
        self.executor = executor or PromptExecutor(
            db, self.platform_manager, settings=self.settings
        )
        self.metrics = get_run_metrics()

    # === Preparation ===

    def _active_prompt_ids(self, domain_id: str) -> List[str]:
        stmt = (
            select(Prompt.id)
            .where(Prompt.domain_id == domain_id)
            .where(Prompt.is_active.is_(True))
            .where(Prompt.is_archived.is_(False))
            .order_by(Prompt.created_at, Prompt.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def prepare_batch(
        self,
        domain_id: str,
        provider: Optional[str] = None,
        concurrency: Optional[int] = None,
    ) -> BatchPlan:
        """
        Validate the request and claim the domain for a new batch.

        Nothing observable changes unless every check passes; the claim is the
        commit point after which the batch is visible as running.

        Raises:
            DomainNotFoundError: Unknown domain
            ProviderConfigurationError: Unknown provider or missing API key
            NoActivePromptsError: No active, non-archived prompts
            BatchAlreadyRunningError: A live batch already holds the domain
        """
        provider = provider or self.settings.PROMPT_RUN_DEFAULT_PROVIDER

        if self.db.get(Domain, domain_id) is None:
            self.metrics.increment_batch_rejected("domain_not_found")
            raise DomainNotFoundError(domain_id)

        try:
            self.platform_manager.ensure_configured(provider)
        except ProviderConfigurationError:
            self.metrics.increment_batch_rejected("provider_configuration")
            raise

        prompt_ids = self._active_prompt_ids(domain_id)
        if not prompt_ids:
            self.metrics.increment_batch_rejected("no_active_prompts")
            raise NoActivePromptsError(domain_id)

        tracker = ProgressTracker(self.db, domain_id)
        if not tracker.claim(len(prompt_ids)):
            self.metrics.increment_batch_rejected("already_running")
            raise BatchAlreadyRunningError(domain_id)

        plan = BatchPlan(
            domain_id=domain_id,
            provider=provider,
            prompt_ids=prompt_ids,
            concurrency=self.settings.resolve_concurrency(concurrency),
        )
        logger.info(
            "Batch prepared",
            domain_id=domain_id,
            provider=provider,
            batch_id=plan.batch_id,
            total=plan.total,
            concurrency=plan.concurrency,
        )
        return plan

    # === Execution ===

    async def execute_batch(self, plan: BatchPlan) -> BatchSummary:
        """
        Run a claimed batch to completion.

        Unit failures are recorded and never abort the batch. A fault in the
        pool machinery is logged and the domain is still moved to completed.
        """
        summary = BatchSummary(
            domain_id=plan.domain_id,
            provider=plan.provider,
            batch_id=plan.batch_id,
            total=plan.total,
        )
        tracker = ProgressTracker(self.db, plan.domain_id)
        start_time = time.time()

        with add_batch_context(
            plan.domain_id, plan.provider, batch_id=plan.batch_id, total=plan.total
        ):
            self.metrics.increment_batch_started()
            try:
                with add_stage_context("pool_execution", concurrency=plan.concurrency):
                    await self._run_pool(plan, tracker, summary.results)
            except Exception as e:
                summary.pool_fault = True
                logger.error(
                    "Pool-level fault, forcing batch completion",
                    error=str(e),
                    error_type=type(e).__name__,
                    completed_units=len(summary.results),
                    exc_info=True,
                )
            finally:
                summary.duration_ms = int((time.time() - start_time) * 1000)
                with add_stage_context("finalization"):
                    self._finalize(tracker, summary)
                await self.aclose()

        return summary

    async def _run_pool(
        self, plan: BatchPlan, tracker: ProgressTracker, results: List[RunResult]
    ) -> None:
        queue: asyncio.Queue[str] = asyncio.Queue()
        for prompt_id in plan.prompt_ids:
            queue.put_nowait(prompt_id)

        async def worker() -> None:
            while True:
                try:
                    prompt_id = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results.append(await self._run_unit(plan, prompt_id, tracker))

        workers = [
            asyncio.create_task(worker())
            for _ in range(min(plan.concurrency, plan.total))
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        logger.info(
            "Worker pool drained",
            results=len(results),
            successful=len([r for r in results if r.success]),
            failed=len([r for r in results if not r.success]),
        )

    async def _run_unit(
        self, plan: BatchPlan, prompt_id: str, tracker: ProgressTracker
    ) -> RunResult:
        self.metrics.unit_started()
        try:
            result = await self.executor.run_one(prompt_id, plan.provider)
        except Exception as e:
            # One unit never takes the batch down with it
            self.db.rollback()
            logger.error(
                "Unit failed with unexpected error",
                prompt_id=prompt_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            result = RunResult(
                prompt_id=prompt_id,
                provider=plan.provider,
                success=False,
                error=f"{type(e).__name__}: {e}",
            )
        finally:
            self.metrics.unit_finished()

        progress = tracker.increment()
        self.metrics.update_progress(plan.domain_id, progress, plan.total)
        return result

    def _finalize(self, tracker: ProgressTracker, summary: BatchSummary) -> None:
        # Discard anything a faulted unit left behind before the final write
        self.db.rollback()
        tracker.complete()

        self.metrics.clear_progress(summary.domain_id)
        self.metrics.increment_batch_completed(pool_fault=summary.pool_fault)
        self.metrics.record_batch_duration(summary.duration_ms)
        logger.info(
            "Batch completed",
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
            mentions=summary.mentions,
            duration_ms=summary.duration_ms,
            pool_fault=summary.pool_fault,
        )

    async def aclose(self) -> None:
        """Release the provider and classifier HTTP pools."""
        await self.platform_manager.aclose()
        await self.executor.aclose()

    # === Entry points ===

    async def run_batch(
        self,
        domain_id: str,
        provider: Optional[str] = None,
        concurrency: Optional[int] = None,
    ) -> BatchSummary:
        """Prepare and execute a batch in the current event loop."""
        plan = self.prepare_batch(domain_id, provider, concurrency)
        return await self.execute_batch(plan)

    def start_batch(
        self,
        domain_id: str,
        provider: Optional[str] = None,
        concurrency: Optional[int] = None,
    ) -> BatchPlan:
        """
        Prepare a batch and queue its execution on a Celery worker.

        If the task cannot be queued the claim is released (back to pending)
        and the error propagates to the caller.
        """
        from app.tasks.prompt_run_tasks import run_prompt_batch_task

        plan = self.prepare_batch(domain_id, provider, concurrency)
        try:
            run_prompt_batch_task.delay(
                plan.domain_id,
                plan.provider,
                plan.prompt_ids,
                plan.concurrency,
                plan.batch_id,
            )
        except Exception as e:
            logger.error(
                "Failed to queue batch, releasing claim",
                domain_id=domain_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            ProgressTracker(self.db, domain_id).set_status(
                PromptRunStatus.PENDING, progress=0, total=0
            )
            raise

        logger.info(
            "Batch queued",
            domain_id=plan.domain_id,
            provider=plan.provider,
            batch_id=plan.batch_id,
            total=plan.total,
        )
        return plan

    def get_status(self, domain_id: str) -> BatchStatus:
        return ProgressTracker(self.db, domain_id).get_status()
