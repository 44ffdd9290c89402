from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class PromptRunStatus(str, Enum):
    """Batch status stored on the domain"""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    # Never written; reported for a running batch older than the stale threshold
    FAILED = "failed"


class Domain(Base):
    domain = Column(String, nullable=False)  # e.g. "fairlife.com"
    name = Column(String, nullable=False)  # Brand display name

    # Batch progress, owned by the batch orchestrator
    prompt_run_status = Column(
        String, nullable=False, default=PromptRunStatus.PENDING.value
    )
    prompt_run_progress = Column(Integer, nullable=False, default=0)
    prompt_run_total = Column(Integer, nullable=False, default=0)
    prompt_run_started_at = Column(DateTime(timezone=True), nullable=True)
    prompt_run_completed_at = Column(DateTime(timezone=True), nullable=True)

    topics = relationship(
        "Topic", back_populates="domain", cascade="all, delete-orphan"
    )
    prompts = relationship(
        "Prompt", back_populates="domain", cascade="all, delete-orphan"
    )


class Topic(Base):
    domain_id = Column(
        String(32), ForeignKey("domain.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)

    domain = relationship("Domain", back_populates="topics")
    prompts = relationship("Prompt", back_populates="topic")
