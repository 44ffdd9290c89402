from .domain import Domain, PromptRunStatus, Topic
from .prompt import LLMProvider, Prompt, PromptCategory
from .prompt_run import BrandMention, MentionAnalysis, PromptRun

__all__ = [
    "Domain",
    "Topic",
    "PromptRunStatus",
    "Prompt",
    "PromptCategory",
    "LLMProvider",
    "PromptRun",
    "MentionAnalysis",
    "BrandMention",
]
