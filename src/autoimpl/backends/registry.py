from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from autoimpl.backends.cloudflare import CloudflareBackend
from autoimpl.backends.ollama import OllamaBackend
from autoimpl.backends.protocol import SynthesisBackend
from autoimpl.config import AutoImplSettings
from autoimpl.exceptions import ConfigurationError

if TYPE_CHECKING:
    from typing_extensions import Self

logger = logging.getLogger(__name__)

BackendFactory = Callable[["ProviderConfig"], SynthesisBackend]


@dataclass(slots=True)
class ProviderConfig:
    """Named configuration of one backend type."""

    type: str
    default_model: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)


def _create_ollama(config: ProviderConfig) -> SynthesisBackend:
    return OllamaBackend(**config.settings)


def _create_cloudflare(config: ProviderConfig) -> SynthesisBackend:
    return CloudflareBackend(**config.settings)


class BackendRegistry:
    """Backend types plus the named provider configurations that use them.

    Type names are case-insensitive. Provider names are looked up exactly.
    """

    def __init__(self) -> None:
        self._factories: dict[str, BackendFactory] = {
            "ollama": _create_ollama,
            "cloudflare": _create_cloudflare,
        }
        self._configs: dict[str, ProviderConfig] = {
            "ollama": ProviderConfig(type="ollama", default_model="qwen3-coder"),
        }
        self._default_provider = "ollama"

    @classmethod
    def from_settings(cls, settings: AutoImplSettings) -> Self:
        """Build the registry described by ``settings``.

        Cloudflare is configured only when credentials are present.
        """
        registry = cls()
        registry.set_provider_config(
            "ollama",
            ProviderConfig(
                type="ollama",
                default_model=settings.default_model,
                settings={"endpoint": settings.ollama_endpoint},
            ),
        )
        if settings.has_cloudflare_credentials:
            token = settings.cloudflare_api_token
            registry.set_provider_config(
                "cloudflare",
                ProviderConfig(
                    type="cloudflare",
                    default_model=settings.cloudflare_model,
                    settings={
                        "account_id": settings.cloudflare_account_id,
                        "api_token": token.get_secret_value() if token is not None else None,
                        "api_url": settings.cloudflare_api_url,
                    },
                ),
            )
        if settings.default_provider in registry.configured_providers():
            registry.set_default_provider(settings.default_provider)
        else:
            logger.warning(
                "Default provider '%s' is not configured; using '%s'",
                settings.default_provider,
                registry.default_provider,
            )
        return registry

    def register_type(self, type_name: str, factory: BackendFactory) -> None:
        self._factories[type_name.lower()] = factory

    def available_types(self) -> list[str]:
        return list(self._factories)

    def set_provider_config(self, name: str, config: ProviderConfig) -> None:
        self._configs[name] = config

    def get_provider_config(self, name: str) -> ProviderConfig | None:
        return self._configs.get(name)

    def configured_providers(self) -> list[str]:
        return list(self._configs)

    @property
    def default_provider(self) -> str:
        return self._default_provider

    def set_default_provider(self, name: str) -> None:
        if name not in self._configs:
            msg = f"Provider '{name}' is not configured"
            raise ConfigurationError(msg)
        self._default_provider = name

    def create(self, name: str | None = None) -> tuple[SynthesisBackend, ProviderConfig]:
        """Instantiate the backend of a configured provider (default if None)."""
        provider_name = name or self._default_provider
        config = self._configs.get(provider_name)
        if config is None:
            msg = (
                f"No configuration found for provider: {provider_name}. "
                f"Configured providers: {', '.join(self._configs)}"
            )
            raise ConfigurationError(msg)
        factory = self._factories.get(config.type.lower())
        if factory is None:
            msg = (
                f"Unknown provider type: {config.type}. "
                f"Available providers: {', '.join(self._factories)}"
            )
            raise ConfigurationError(msg)
        return factory(config), config
