"""
Shared fixtures: an in-memory SQLite database, seed helpers and provider
clients backed by httpx.MockTransport.
"""

import os
import sys
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generator, List, Optional

import httpx
import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()

# Tests never talk to a real broker
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from app.core.run_config import get_run_settings, update_run_settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.models.domain import Domain, Topic  # noqa: E402
from app.models.prompt import Prompt  # noqa: E402
from app.models.prompt_run import BrandMention, MentionAnalysis, PromptRun  # noqa: E402
from app.services.ai_platforms.openai_client import OpenAIPlatform  # noqa: E402
from app.services.platform_manager import PlatformManager  # noqa: E402


def openai_payload(
    text: str,
    citations: Optional[List[Dict[str, str]]] = None,
    queries: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Minimal Responses API body with web_search calls and url_citation annotations."""
    output: List[Dict[str, Any]] = [
        {"type": "web_search_call", "action": {"type": "search", "query": q}}
        for q in queries or []
    ]
    output.append(
        {
            "type": "message",
            "content": [
                {
                    "type": "output_text",
                    "text": text,
                    "annotations": [
                        {"type": "url_citation", "url": c["url"], "title": c.get("title", "")}
                        for c in citations or []
                    ],
                }
            ],
        }
    )
    return {
        "model": "gpt-5.1",
        "status": "completed",
        "output": output,
        "usage": {"total_tokens": 321},
    }


@pytest.fixture(autouse=True)
def run_settings() -> Generator:
    """Deterministic prompt-run settings; restored after every test."""
    current = get_run_settings()
    saved = current.model_dump()
    update_run_settings(PROMPT_RUN_ENRICH_CITATIONS=False)
    yield current
    update_run_settings(**saved)


# Fixture for an in-memory SQLite database for testing
@pytest.fixture(scope="function")
def db_engine() -> Generator:
    """Yield a SQLAlchemy engine for an in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine: Engine) -> Generator:
    """Yield a database session for a single test function."""
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = session_local()

    yield session

    session.close()


@pytest.fixture
def make_domain(db_session: Session) -> Callable[..., Domain]:
    def _make(domain: str = "fairlife.com", name: str = "Fairlife", **kwargs) -> Domain:
        row = Domain(domain=domain, name=name, **kwargs)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_topic(db_session: Session) -> Callable[..., Topic]:
    def _make(domain: Domain, name: str = "Protein drinks") -> Topic:
        row = Topic(domain_id=domain.id, name=name)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_prompt(db_session: Session) -> Callable[..., Prompt]:
    def _make(
        domain: Domain,
        text: str = "What is the best protein milk?",
        topic: Optional[Topic] = None,
        **kwargs,
    ) -> Prompt:
        row = Prompt(
            domain_id=domain.id,
            topic_id=topic.id if topic else None,
            prompt_text=text,
            **kwargs,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_run(db_session: Session) -> Callable[..., PromptRun]:
    """Persist a run with its verdict and brand rows, bypassing the executor."""

    def _make(
        prompt: Prompt,
        provider: str = "chatgpt",
        executed_at: Optional[datetime] = None,
        mentioned: Optional[bool] = False,
        position: Optional[int] = None,
        sentiment: Optional[str] = None,
        brands: Optional[List[Dict[str, Any]]] = None,
        citations: Optional[List[Dict[str, Any]]] = None,
        error: Optional[str] = None,
        search_queries: Optional[List[str]] = None,
    ) -> PromptRun:
        run = PromptRun(
            prompt_id=prompt.id,
            llm_provider=provider,
            response_text=None if error else "response",
            citations=citations,
            search_queries=search_queries,
            executed_at=executed_at or datetime.now(timezone.utc),
            duration_ms=1200,
            error=error,
        )
        db_session.add(run)
        db_session.flush()
        # None means the run has no analysis row at all
        if mentioned is not None and error is None:
            db_session.add(
                MentionAnalysis(
                    prompt_run_id=run.id,
                    domain_id=prompt.domain_id,
                    mentioned=mentioned,
                    position=position,
                    sentiment_score=sentiment,
                )
            )
        for brand in brands or []:
            db_session.add(BrandMention(prompt_run_id=run.id, **brand))
        db_session.commit()
        return run

    return _make


@pytest.fixture
def make_platform_manager() -> Callable[..., PlatformManager]:
    """PlatformManager whose chatgpt client answers through the given handler."""

    def _make(handler: Callable, timeout: float = 5.0, provider: str = "chatgpt") -> PlatformManager:
        manager = PlatformManager()
        manager.register_platform(
            provider,
            OpenAIPlatform(
                api_key="sk-test",
                rate_limit=6000,
                timeout=timeout,
                transport=httpx.MockTransport(handler),
            ),
        )
        return manager

    return _make
