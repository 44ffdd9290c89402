# Import all the models, so that Base has them before being
# imported by Alembic
from app.db.base_class import Base
from app.models.domain import Domain, Topic
from app.models.prompt import Prompt
from app.models.prompt_run import BrandMention, MentionAnalysis, PromptRun

__all__ = [
    "Base",
    "Domain",
    "Topic",
    "Prompt",
    "PromptRun",
    "MentionAnalysis",
    "BrandMention",
]  # noqa: F401
