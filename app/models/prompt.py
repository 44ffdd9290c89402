from enum import Enum

from sqlalchemy import JSON, Boolean, Column, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class PromptCategory(str, Enum):
    BRAND = "brand"
    PRODUCT = "product"
    COMPARISON = "comparison"
    RECOMMENDATION = "recommendation"
    PROBLEM_SOLUTION = "problem_solution"


class LLMProvider(str, Enum):
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    GROK = "grok"


class Prompt(Base):
    domain_id = Column(
        String(32), ForeignKey("domain.id", ondelete="CASCADE"), nullable=False, index=True
    )
    topic_id = Column(
        String(32), ForeignKey("topic.id", ondelete="SET NULL"), nullable=True, index=True
    )
    prompt_text = Column(Text, nullable=False)
    category = Column(String, nullable=False, default=PromptCategory.RECOMMENDATION.value)
    is_active = Column(Boolean, nullable=False, default=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    location = Column(String, nullable=True)
    selected_providers = Column(
        JSON, nullable=False, default=lambda: [LLMProvider.CHATGPT.value]
    )

    domain = relationship("Domain", back_populates="prompts")
    topic = relationship("Topic", back_populates="prompts")
    runs = relationship(
        "PromptRun",
        back_populates="prompt",
        cascade="all, delete-orphan",
        order_by="PromptRun.executed_at",
    )
