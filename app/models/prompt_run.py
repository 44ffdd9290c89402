from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class PromptRun(Base):
    """One execution of one prompt against one provider. Append-only."""

    __tablename__ = "prompt_run"  # type: ignore
    prompt_id = Column(
        String(32), ForeignKey("prompt.id", ondelete="CASCADE"), nullable=False, index=True
    )
    llm_provider = Column(String, nullable=False, index=True)
    response_text = Column(Text, nullable=True)  # Null when dispatch failed
    response_metadata = Column(JSON, nullable=True)  # model, tokens_used, finish_reason
    search_queries = Column(JSON, nullable=True)  # Ordered web-search queries
    citations = Column(JSON, nullable=True)  # Ordered [{url, title, snippet}]
    executed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_ms = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)

    prompt = relationship("Prompt", back_populates="runs")
    mention_analyses = relationship(
        "MentionAnalysis", back_populates="prompt_run", cascade="all, delete-orphan"
    )
    brand_mentions = relationship(
        "BrandMention", back_populates="prompt_run", cascade="all, delete-orphan"
    )


class MentionAnalysis(Base):
    """Verdict on whether the tracked domain's own brand appears in one run"""

    __tablename__ = "mention_analysis"  # type: ignore
    __table_args__ = (
        UniqueConstraint("prompt_run_id", "domain_id", name="uq_mention_analysis_run_domain"),
    )
    prompt_run_id = Column(
        String(32),
        ForeignKey("prompt_run.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    domain_id = Column(
        String(32), ForeignKey("domain.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mentioned = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=True)
    sentiment_score = Column(String, nullable=True)  # Decimal text, e.g. "0.45"
    context_snippet = Column(Text, nullable=True)

    prompt_run = relationship("PromptRun", back_populates="mention_analyses")


class BrandMention(Base):
    """One brand reference found by the classifier inside a run's response"""

    __tablename__ = "brand_mention"  # type: ignore
    prompt_run_id = Column(
        String(32),
        ForeignKey("prompt_run.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    brand_name = Column(String, nullable=False, index=True)
    brand_domain = Column(String, nullable=True)
    position = Column(Integer, nullable=True)
    mentioned = Column(Boolean, nullable=False, default=True)
    sentiment_score = Column(String, nullable=True)
    citation_url = Column(Text, nullable=True)

    prompt_run = relationship("PromptRun", back_populates="brand_mentions")
