"""
Configuration Module

Loads environment variables from .env (python-dotenv) and defines the model
registry: which backend keys exist, which provider serves each one, and which
credential each provider needs.

The gateway does not read the environment on its own. Callers build a
GatewayConfig (usually GatewayConfig.from_env()) and hand it to ModelGateway,
so tests can pass credentials and models explicitly.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

load_dotenv()

DEFAULT_MODEL_KEY = os.getenv("LABDESIGN_DEFAULT_MODEL", "claude-sonnet")


class Provider(str, Enum):
    """Backend providers known to the registry."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    POE = "poe"
    GOOGLE = "google"
    REPLICATE = "replicate"
    MIDJOURNEY = "midjourney"


class Capability(str, Enum):
    """What a registered model can do."""
    TEXT = "text"
    IMAGE = "image"
    VISION = "vision"
    EMBEDDING = "embedding"


# Environment variable holding each provider's credential
PROVIDER_CREDENTIAL_ENV: dict[Provider, str] = {
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.POE: "POE_API_KEY",
    Provider.GOOGLE: "GOOGLE_GENERATIVE_AI_API_KEY",
    Provider.REPLICATE: "REPLICATE_API_TOKEN",
    Provider.MIDJOURNEY: "MIDJOURNEY_API_KEY",
}

# Poe and Google are reached through their OpenAI-compatible endpoints
PROVIDER_BASE_URL_ENV: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_BASE_URL",
    Provider.POE: "POE_BASE_URL",
    Provider.GOOGLE: "GOOGLE_OPENAI_BASE_URL",
}

DEFAULT_BASE_URLS: dict[Provider, str] = {
    Provider.POE: "https://api.poe.com/v1",
    Provider.GOOGLE: "https://generativelanguage.googleapis.com/v1beta/openai/",
}


class ModelConfig(BaseModel):
    """One entry of the model registry."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Registry key callers use, e.g. 'claude-sonnet'")
    id: str = Field(..., description="Provider-side model identifier")
    name: str = Field(..., description="Human-readable model name")
    provider: Provider
    capabilities: tuple[Capability, ...]
    max_tokens: Optional[int] = Field(default=None, description="Completion token cap")
    description: str = ""


def _model(key: str, model_id: str, name: str, provider: Provider, capabilities: tuple[Capability, ...],
           max_tokens: int | None = None, description: str = "") -> tuple[str, ModelConfig]:
    return key, ModelConfig(
        key=key,
        id=model_id,
        name=name,
        provider=provider,
        capabilities=capabilities,
        max_tokens=max_tokens,
        description=description,
    )


_TEXT_VISION = (Capability.TEXT, Capability.VISION)

MODELS: dict[str, ModelConfig] = dict([
    _model("claude-sonnet", "claude-sonnet-4-20250514", "Claude Sonnet 4", Provider.ANTHROPIC,
           _TEXT_VISION, 8192, "Best for complex reasoning and analysis"),
    _model("claude-haiku", "claude-3-5-haiku-20241022", "Claude 3.5 Haiku", Provider.ANTHROPIC,
           _TEXT_VISION, 8192, "Fast and efficient for simpler tasks"),
    _model("gpt-4o", "gpt-4o", "GPT-4o", Provider.OPENAI,
           _TEXT_VISION, 4096, "OpenAI GPT-4o"),
    _model("poe-gpt4o", "gpt-4o", "GPT-4o (via Poe)", Provider.POE,
           _TEXT_VISION, 4096, "OpenAI GPT-4o through Poe API"),
    _model("poe-claude", "claude-3-5-sonnet", "Claude 3.5 Sonnet (via Poe)", Provider.POE,
           _TEXT_VISION, 4096, "Anthropic Claude through Poe API"),
    _model("poe-gemini", "gemini-1.5-pro", "Gemini 1.5 Pro (via Poe)", Provider.POE,
           _TEXT_VISION, 4096, "Google Gemini through Poe API"),
    _model("gemini-pro", "gemini-2.0-flash", "Gemini 2.0 Flash", Provider.GOOGLE,
           _TEXT_VISION, 8192, "Google's multimodal model"),
    _model("sdxl", "stability-ai/sdxl", "Stable Diffusion XL", Provider.REPLICATE,
           (Capability.IMAGE,), None, "High-quality image generation"),
    _model("flux-schnell", "black-forest-labs/flux-schnell", "FLUX Schnell", Provider.REPLICATE,
           (Capability.IMAGE,), None, "Fast image generation"),
])


@dataclass
class GatewayConfig:
    """
    Explicit backend configuration handed to the ModelGateway.

    Attributes:
        models: Registry of backend keys to model configs.
        credentials: Provider -> API key. Missing or empty means unconfigured.
        base_urls: Provider -> base URL override for OpenAI-compatible endpoints.
    """

    models: dict[str, ModelConfig] = field(default_factory=lambda: dict(MODELS))
    credentials: dict[Provider, str] = field(default_factory=dict)
    base_urls: dict[Provider, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewayConfig":
        """Build a config from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ

        credentials = {}
        for provider, var in PROVIDER_CREDENTIAL_ENV.items():
            value = env.get(var, "").strip()
            if value:
                credentials[provider] = value

        base_urls = dict(DEFAULT_BASE_URLS)
        for provider, var in PROVIDER_BASE_URL_ENV.items():
            value = env.get(var, "").strip()
            if value:
                base_urls[provider] = value

        return cls(models=dict(MODELS), credentials=credentials, base_urls=base_urls)

    def resolve_text_model(self, backend_key: str) -> ModelConfig:
        """
        Look up a backend key that must support text generation.

        Raises:
            ConfigurationError: if the key is unknown or lacks the text capability.
        """
        model = self.models.get(backend_key)
        if model is None:
            raise ConfigurationError(
                f"Unknown model: {backend_key}",
                {"backend_key": backend_key, "known": sorted(self.models)},
            )
        if Capability.TEXT not in model.capabilities:
            raise ConfigurationError(
                f"Model {backend_key} ({model.provider.value}) does not support text generation",
                {"backend_key": backend_key},
            )
        return model

    def credential_for(self, provider: Provider) -> str:
        """
        Return the credential for a provider.

        Raises:
            ConfigurationError: if the credential is missing or empty.
        """
        api_key = self.credentials.get(provider, "").strip()
        if not api_key:
            raise ConfigurationError(
                f"{PROVIDER_CREDENTIAL_ENV[provider]} is not configured",
                {"provider": provider.value},
            )
        return api_key

    def base_url_for(self, provider: Provider) -> str | None:
        return self.base_urls.get(provider)

    def available_providers(self) -> list[Provider]:
        """Providers whose credentials are present."""
        return [p for p in Provider if self.credentials.get(p, "").strip()]

    def available_models(self, capability: Capability | None = None) -> list[ModelConfig]:
        """Registered models whose provider is configured, optionally filtered by capability."""
        providers = set(self.available_providers())
        return [
            m for m in self.models.values()
            if m.provider in providers and (capability is None or capability in m.capabilities)
        ]
