"""
Provider registry and factory.

Maps provider ids to client classes and builds configured instances.
"""

from typing import Dict, List, Type

from .anthropic_client import AnthropicPlatform
from .base import BasePlatform
from .grok_client import GrokPlatform
from .openai_client import OpenAIPlatform


class PlatformRegistry:
    """Factory for creating provider clients by id."""

    _platforms: Dict[str, Type[BasePlatform]] = {
        "chatgpt": OpenAIPlatform,
        "claude": AnthropicPlatform,
        "grok": GrokPlatform,
    }

    @classmethod
    def create_platform(
        cls, platform_name: str, api_key: str, config: Dict = None
    ) -> BasePlatform:
        """
        Create a provider client by id.

        Raises:
            ValueError: If provider id is not recognized
        """
        if platform_name not in cls._platforms:
            raise ValueError(f"Unknown provider: {platform_name}")

        platform_class = cls._platforms[platform_name]
        platform_config = config or {}

        return platform_class(api_key=api_key, **platform_config)

    @classmethod
    def get_available_platforms(cls) -> List[str]:
        return list(cls._platforms.keys())

    @classmethod
    def register_platform(cls, name: str, platform_class: Type[BasePlatform]) -> None:
        """
        Register a new provider implementation.

        Raises:
            TypeError: If platform_class doesn't inherit from BasePlatform
        """
        if not issubclass(platform_class, BasePlatform):
            raise TypeError("Platform class must inherit from BasePlatform")

        cls._platforms[name] = platform_class

    @classmethod
    def is_platform_available(cls, platform_name: str) -> bool:
        return platform_name in cls._platforms

    @classmethod
    def unregister_platform(cls, platform_name: str) -> None:
        """
        Remove a provider from the registry.

        Raises:
            KeyError: If provider is not registered
        """
        if platform_name not in cls._platforms:
            raise KeyError(f"Platform '{platform_name}' is not registered")

        del cls._platforms[platform_name]
