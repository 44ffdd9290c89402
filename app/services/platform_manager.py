"""
Platform manager for provider clients.

Builds one client per configured provider and exposes the adapter's single
entry point, ``run(prompt_text, provider)``, which always returns an
LLMResponse or a typed LLMError.
"""

from typing import Any, Dict, List, Optional

from app.core.config import is_configured_key, settings
from app.core.platform_settings import PLATFORM_CONFIGS, REQUIRED_ENV_VARS
from app.core.run_config import get_run_settings
from app.services.ai_platforms.base import BasePlatform
from app.services.ai_platforms.registry import PlatformRegistry
from app.services.ai_platforms.results import LLMError, LLMErrorKind, LLMResult
from app.services.run_metrics import get_run_metrics
from app.utils.error_handler import ProviderConfigurationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class PlatformManager:
    """
    Manages provider clients for one batch or one ad hoc run.

    Clients share an httpx.AsyncClient each; close the manager (``aclose`` or
    ``async with``) when done.
    """

    def __init__(self, client_overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        """
        Args:
            client_overrides: Extra per-provider config merged over
                PLATFORM_CONFIGS (e.g. an httpx transport in tests)
        """
        self.platforms: Dict[str, BasePlatform] = {}
        self.missing_credentials: Dict[str, str] = {}
        self._overrides = client_overrides or {}
        self.metrics = get_run_metrics()
        self._initialize_platforms()

    def _initialize_platforms(self) -> None:
        """Create clients for providers that have a usable API key."""
        timeout = get_run_settings().PROMPT_RUN_PROVIDER_TIMEOUT_SECONDS

        for platform_name, config in PLATFORM_CONFIGS.items():
            api_key_env = REQUIRED_ENV_VARS[platform_name]
            api_key = getattr(settings, api_key_env, None)

            if not is_configured_key(api_key):
                logger.warning(
                    "No valid API key found for provider, skipping",
                    platform=platform_name,
                    env_var=api_key_env,
                )
                self.missing_credentials[platform_name] = api_key_env
                continue

            client_config = {"timeout": timeout, **config}
            client_config.update(self._overrides.get(platform_name, {}))
            self.platforms[platform_name] = PlatformRegistry.create_platform(
                platform_name, api_key, client_config
            )
            logger.info(
                "Initialized provider",
                platform=platform_name,
                rate_limit=config.get("rate_limit", "unknown"),
                model=config.get("default_model"),
            )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        for platform in self.platforms.values():
            await platform.aclose()

    def ensure_configured(self, name: str) -> None:
        """
        Fail fast before a batch starts.

        Raises:
            ProviderConfigurationError: Unknown provider id or missing API key
        """
        if name not in PLATFORM_CONFIGS or not PlatformRegistry.is_platform_available(name):
            raise ProviderConfigurationError(
                name, f"Unsupported provider: {name}", unknown=True
            )
        if name not in self.platforms:
            env_var = self.missing_credentials.get(name, REQUIRED_ENV_VARS.get(name, ""))
            raise ProviderConfigurationError(name, f"{env_var} not configured")

    def get_platform(self, name: str) -> BasePlatform:
        """
        Raises:
            ValueError: If provider is not available
        """
        if name not in self.platforms:
            raise ValueError(f"Provider '{name}' not available")
        return self.platforms[name]

    def get_available_platforms(self) -> List[str]:
        return list(self.platforms.keys())

    def is_platform_available(self, name: str) -> bool:
        return name in self.platforms

    async def run(self, prompt_text: str, provider: str) -> LLMResult:
        """
        Execute one prompt against one provider.

        Never raises for provider-side problems: unknown ids and missing
        credentials come back as LLMError like any upstream failure.
        """
        if provider not in PLATFORM_CONFIGS:
            result: LLMResult = LLMError(
                provider=provider,
                kind=LLMErrorKind.UNSUPPORTED_PROVIDER,
                message=f"Unknown provider: {provider}",
            )
        elif provider not in self.platforms:
            result = LLMError(
                provider=provider,
                kind=LLMErrorKind.MISSING_CREDENTIALS,
                message=f"{REQUIRED_ENV_VARS[provider]} not configured",
            )
        else:
            result = await self.platforms[provider].safe_query(prompt_text)

        if isinstance(result, LLMError):
            self.metrics.increment_provider_error(provider, result.kind.value)
        else:
            self.metrics.record_provider_latency(provider, result.duration_ms)
        return result

    def register_platform(self, name: str, platform: BasePlatform) -> None:
        """Register an additional client (for testing or custom providers)."""
        self.platforms[name] = platform
        self.missing_credentials.pop(name, None)
        logger.info(
            "Manually registered provider",
            platform=name,
            class_name=type(platform).__name__,
        )
