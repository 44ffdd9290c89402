"""
Provider-specific configurations.

Maps each supported provider id to its upstream endpoint, model identifier,
rate limit and the settings attribute holding its API key.
"""

from typing import Any, Dict

# Provider configurations
PLATFORM_CONFIGS: Dict[str, Dict[str, Any]] = {
    "chatgpt": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-5.1",
        "max_tokens": 4096,
        "rate_limit": 50,  # RPM
    },
    "claude": {
        "base_url": "https://api.anthropic.com",
        "default_model": "claude-sonnet-4-5",
        "max_tokens": 4096,
        "rate_limit": 50,
        "max_searches": 5,
    },
    "grok": {
        "base_url": "https://api.x.ai/v1",
        "default_model": "grok-4",
        "max_tokens": 4096,
        "rate_limit": 60,
    },
}

# Settings attribute holding each provider's key
REQUIRED_ENV_VARS = {
    "chatgpt": "OPENAI_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "grok": "XAI_API_KEY",
}


def get_all_platform_names() -> list[str]:
    """Get list of all configured provider ids."""
    return list(PLATFORM_CONFIGS.keys())
