"""
Registry and PlatformManager integration tests.
"""

import httpx
import pytest

from app.core.config import settings
from app.services.ai_platforms import (
    AnthropicPlatform,
    BasePlatform,
    GrokPlatform,
    OpenAIPlatform,
    PlatformRegistry,
)
from app.services.ai_platforms.results import LLMError, LLMErrorKind, LLMResponse
from app.services.platform_manager import PlatformManager
from app.utils.error_handler import ProviderConfigurationError
from conftest import openai_payload


@pytest.fixture
def no_provider_keys(monkeypatch):
    for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "XAI_API_KEY"):
        monkeypatch.setattr(settings, key, "dummy_key")


class TestPlatformRegistry:
    def test_known_providers(self):
        assert set(PlatformRegistry.get_available_platforms()) == {"chatgpt", "claude", "grok"}

    @pytest.mark.parametrize(
        "name,cls",
        [("chatgpt", OpenAIPlatform), ("claude", AnthropicPlatform), ("grok", GrokPlatform)],
    )
    def test_create_platform(self, name, cls):
        platform = PlatformRegistry.create_platform(name, "key", {"rate_limit": 10})
        assert isinstance(platform, cls)
        assert platform.provider_name == name

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            PlatformRegistry.create_platform("gemini", "key")

    def test_register_requires_base_platform(self):
        with pytest.raises(TypeError):
            PlatformRegistry.register_platform("bad", dict)

    def test_register_and_unregister(self):
        class CustomPlatform(OpenAIPlatform):
            provider_name = "custom"

        PlatformRegistry.register_platform("custom", CustomPlatform)
        try:
            assert PlatformRegistry.is_platform_available("custom")
            assert issubclass(PlatformRegistry._platforms["custom"], BasePlatform)
        finally:
            PlatformRegistry.unregister_platform("custom")
        assert not PlatformRegistry.is_platform_available("custom")

        with pytest.raises(KeyError):
            PlatformRegistry.unregister_platform("custom")


class TestPlatformManager:
    def test_missing_keys_are_recorded(self, no_provider_keys):
        manager = PlatformManager()

        assert manager.get_available_platforms() == []
        assert manager.missing_credentials == {
            "chatgpt": "OPENAI_API_KEY",
            "claude": "ANTHROPIC_API_KEY",
            "grok": "XAI_API_KEY",
        }

    def test_ensure_configured_unknown_provider(self, no_provider_keys):
        with pytest.raises(ProviderConfigurationError) as exc_info:
            PlatformManager().ensure_configured("gemini")

        assert exc_info.value.status_code == 400
        assert exc_info.value.category.value == "validation"

    def test_ensure_configured_missing_key(self, no_provider_keys):
        with pytest.raises(ProviderConfigurationError) as exc_info:
            PlatformManager().ensure_configured("claude")

        assert exc_info.value.status_code == 503
        assert "ANTHROPIC_API_KEY" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_run_never_raises_for_unknown_or_unconfigured(self, no_provider_keys):
        manager = PlatformManager()

        unknown = await manager.run("hi", "gemini")
        missing = await manager.run("hi", "grok")

        assert isinstance(unknown, LLMError)
        assert unknown.kind == LLMErrorKind.UNSUPPORTED_PROVIDER
        assert isinstance(missing, LLMError)
        assert missing.kind == LLMErrorKind.MISSING_CREDENTIALS

    @pytest.mark.asyncio
    async def test_configured_key_builds_client_with_overrides(self, monkeypatch, no_provider_keys):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-live")
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=openai_payload("Configured."))
        )

        async with PlatformManager(client_overrides={"chatgpt": {"transport": transport}}) as manager:
            manager.ensure_configured("chatgpt")
            platform = manager.get_platform("chatgpt")
            result = await manager.run("hi", "chatgpt")

        assert platform.api_key == "sk-live"
        assert platform.timeout == 45.0
        assert isinstance(result, LLMResponse)
        assert result.text == "Configured."
        assert platform.session is None

    def test_register_platform_clears_missing_credentials(self, no_provider_keys):
        manager = PlatformManager()
        manager.register_platform("chatgpt", OpenAIPlatform("sk-test"))

        manager.ensure_configured("chatgpt")
        assert "chatgpt" not in manager.missing_credentials
        assert manager.is_platform_available("chatgpt")

    def test_get_platform_unavailable(self, no_provider_keys):
        with pytest.raises(ValueError):
            PlatformManager().get_platform("claude")
