"""
Batch context helpers for structured logging.

Context managers that bind batch and stage fields into structlog's contextvars,
so every log line emitted inside the scope (including from worker tasks created
inside it) carries domain_id, provider and batch_id.
"""

import contextlib
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

import structlog

from app.utils.logger import get_logger

logger = get_logger(__name__)


def new_batch_id() -> str:
    return uuid.uuid4().hex[:8]


@contextlib.contextmanager
def add_batch_context(
    domain_id: str, provider: str, batch_id: str | None = None, **extra_context: Any
) -> Iterator[Dict[str, Any]]:
    """
    Bind batch fields to all log entries in the scope.

    Usage:
        with add_batch_context(domain_id="d1", provider="chatgpt"):
            logger.info("This will include batch context")
    """
    context = {
        "domain_id": domain_id,
        "provider": provider,
        "batch_id": batch_id or new_batch_id(),
        "batch_started_at": datetime.now(timezone.utc).isoformat(),
        **extra_context,
    }
    with structlog.contextvars.bound_contextvars(**context):
        logger.info("Batch context established")
        yield context


@contextlib.contextmanager
def add_stage_context(stage_name: str, **extra_context: Any) -> Iterator[None]:
    """
    Bind a processing stage (loading, pool, finalisation) for the scope.

    Usage:
        with add_stage_context("pool_execution", concurrency=15):
            logger.info("Processing stage")
    """
    with structlog.contextvars.bound_contextvars(
        stage=stage_name, stage_id=uuid.uuid4().hex[:8], **extra_context
    ):
        logger.info("Stage started")
        try:
            yield
        finally:
            logger.info("Stage completed")


@contextlib.contextmanager
def add_unit_context(prompt_id: str, **extra_context: Any) -> Iterator[None]:
    """Bind the prompt being executed by one unit of work."""
    with structlog.contextvars.bound_contextvars(prompt_id=prompt_id, **extra_context):
        yield
