"""
Single-run executor.

Runs one prompt through one provider end to end:
dispatch -> (success: enrich citations, extract signals, persist run + analysis
+ brand mentions) | (failure: persist an error run).

Every invocation appends exactly one PromptRun unless persistence itself fails,
in which case the unit's transaction is rolled back and nothing is recorded.
Retries are new invocations.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.run_config import PromptRunSettings, get_run_settings
from app.models.domain import Domain
from app.models.prompt import Prompt
from app.models.prompt_run import BrandMention, MentionAnalysis, PromptRun
from app.services.ai_platforms.results import LLMError, LLMResponse
from app.services.brand_detection.core.detector import SignalExtractor
from app.services.brand_detection.core.sentiment import format_score
from app.services.brand_detection.models.brand_mention import SignalAnalysis
from app.services.citation_enricher import CitationEnricher
from app.services.platform_manager import PlatformManager
from app.services.run_context import add_unit_context
from app.services.run_metrics import get_run_metrics
from app.utils.error_handler import PromptNotFoundError
from app.utils.logger import get_logger, preview

logger = get_logger(__name__)

RESPONSE_PREVIEW_CHARS = 200


@dataclass
class RunResult:
    """Outcome of one executor invocation"""

    prompt_id: str
    provider: str
    success: bool
    prompt_run_id: Optional[str] = None
    mentioned: bool = False
    error: Optional[str] = None
    response_preview: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class _PromptTarget:
    """Plain values captured before any await, so expired ORM state is never touched mid-flight"""

    prompt_id: str
    prompt_text: str
    domain_id: str
    tracked_domain: str
    tracked_brand_name: str


class PromptExecutor:
    def __init__(
        self,
        db: Session,
        platform_manager: PlatformManager,
        signal_extractor: Optional[SignalExtractor] = None,
        citation_enricher: Optional[CitationEnricher] = None,
        settings: Optional[PromptRunSettings] = None,
    ):
        self.db = db
        self.platform_manager = platform_manager
        self.signal_extractor = signal_extractor or SignalExtractor.from_settings()
        self.settings = settings or get_run_settings()
        if citation_enricher is None and self.settings.PROMPT_RUN_ENRICH_CITATIONS:
            citation_enricher = CitationEnricher()
        self.citation_enricher = citation_enricher
        self.metrics = get_run_metrics()

    async def aclose(self) -> None:
        await self.signal_extractor.aclose()

    def _load_target(self, prompt_id: str) -> _PromptTarget:
        prompt = self.db.get(Prompt, prompt_id)
        if prompt is None:
            raise PromptNotFoundError(prompt_id)
        domain: Domain = prompt.domain
        return _PromptTarget(
            prompt_id=prompt.id,
            prompt_text=prompt.prompt_text,
            domain_id=domain.id,
            tracked_domain=domain.domain,
            tracked_brand_name=domain.name,
        )

    async def run_one(self, prompt_id: str, provider: str) -> RunResult:
        """
        Execute one prompt against one provider and record the outcome.

        Raises:
            PromptNotFoundError: Unknown prompt id (nothing is recorded)
        """
        target = self._load_target(prompt_id)

        with add_unit_context(prompt_id=prompt_id, unit_provider=provider):
            executed_at = datetime.now(timezone.utc)
            result = await self.platform_manager.run(target.prompt_text, provider)

            if isinstance(result, LLMError):
                return self._record_failure(target, provider, executed_at, result)
            return await self._record_success(target, provider, executed_at, result)

    def _record_failure(
        self,
        target: _PromptTarget,
        provider: str,
        executed_at: datetime,
        failure: LLMError,
    ) -> RunResult:
        run = PromptRun(
            prompt_id=target.prompt_id,
            llm_provider=provider,
            response_text=None,
            executed_at=executed_at,
            duration_ms=failure.duration_ms,
            error=failure.describe(),
        )
        try:
            self.db.add(run)
            self.db.commit()
        except SQLAlchemyError as e:
            return self._persistence_failed(target, provider, e)

        self.metrics.record_run(provider, success=False)
        logger.warning(
            "Prompt run recorded with dispatch error",
            prompt_run_id=run.id,
            error_kind=failure.kind.value,
            error=failure.message,
        )
        return RunResult(
            prompt_id=target.prompt_id,
            provider=provider,
            success=False,
            prompt_run_id=run.id,
            error=failure.describe(),
        )

    async def _record_success(
        self,
        target: _PromptTarget,
        provider: str,
        executed_at: datetime,
        response: LLMResponse,
    ) -> RunResult:
        if self.citation_enricher is not None and response.citations:
            try:
                response.citations = await self.citation_enricher.enrich(response.citations)
            except Exception as e:
                logger.error(
                    "Citation enrichment failed, keeping provider citations",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        # The answer is on record whatever happens during analysis
        try:
            analysis = await self.signal_extractor.analyze(
                response.text, target.tracked_domain, target.tracked_brand_name
            )
        except Exception as e:
            logger.error(
                "Signal extraction failed, recording neutral analysis",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            analysis = SignalAnalysis.neutral(classifier_failed=True)

        run = PromptRun(
            prompt_id=target.prompt_id,
            llm_provider=provider,
            response_text=response.text,
            response_metadata=response.metadata,
            search_queries=response.search_queries or None,
            citations=[c.to_dict() for c in response.citations] or None,
            executed_at=executed_at,
            duration_ms=response.duration_ms,
            error=None,
        )
        brand_rows = self._brand_rows(analysis)

        # Run, analysis and mentions land in one transaction
        try:
            self.db.add(run)
            self.db.flush()
            self.db.add(
                MentionAnalysis(
                    prompt_run_id=run.id,
                    domain_id=target.domain_id,
                    mentioned=analysis.mentioned,
                    position=analysis.position,
                    sentiment_score=format_score(analysis.sentiment),
                    context_snippet=analysis.context_snippet,
                )
            )
            for row in brand_rows:
                row.prompt_run_id = run.id
                self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            return self._persistence_failed(target, provider, e)

        self.metrics.record_run(provider, success=True)
        self.metrics.increment_brand_mentions(len(brand_rows))
        logger.info(
            "Prompt run recorded",
            prompt_run_id=run.id,
            mentioned=analysis.mentioned,
            mention_source=analysis.source,
            brands=len(brand_rows),
            citations=len(response.citations),
            duration_ms=response.duration_ms,
            response_preview=preview(response.text),
        )
        return RunResult(
            prompt_id=target.prompt_id,
            provider=provider,
            success=True,
            prompt_run_id=run.id,
            mentioned=analysis.mentioned,
            response_preview=response.text[:RESPONSE_PREVIEW_CHARS],
        )

    def _brand_rows(self, analysis: SignalAnalysis) -> List[BrandMention]:
        rows: List[BrandMention] = []
        seen = set()
        for brand in analysis.brands:
            key = brand.name.lower()
            if key in seen:
                continue
            seen.add(key)
            rows.append(
                BrandMention(
                    brand_name=brand.name,
                    brand_domain=brand.domain,
                    position=brand.position,
                    mentioned=True,
                    sentiment_score=format_score(brand.sentiment),
                    citation_url=brand.citation_url,
                )
            )
            if len(rows) >= self.settings.PROMPT_RUN_MAX_BRANDS:
                break
        return rows

    def _persistence_failed(
        self, target: _PromptTarget, provider: str, error: SQLAlchemyError
    ) -> RunResult:
        self.db.rollback()
        logger.error(
            "Failed to persist prompt run, unit rolled back",
            error=str(error),
            error_type=type(error).__name__,
            exc_info=True,
        )
        self.metrics.record_run(provider, success=False)
        return RunResult(
            prompt_id=target.prompt_id,
            provider=provider,
            success=False,
            error=f"persistence_error: {type(error).__name__}",
        )
