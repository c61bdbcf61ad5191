from __future__ import annotations

from adwizard.config import Settings, settings as default_settings
from adwizard.errors import ConfigurationError
from adwizard.providers.base import Copywriter, GenerationGateway
from adwizard.providers.gemini_provider import GeminiGateway
from adwizard.providers.openai_provider import OpenAICopywriter


def build_gateway(cfg: Settings | None = None) -> GenerationGateway:
    """
    Gemini does the vision and image work; copy can be routed to OpenAI.
    Raises ConfigurationError when a required key is missing.
    """
    cfg = cfg or default_settings
    provider = (cfg.copy_provider or "gemini").strip().lower()

    copywriter: Copywriter | None = None
    if provider == "openai":
        copywriter = OpenAICopywriter(api_key=cfg.openai_api_key, cfg=cfg)
    elif provider != "gemini":
        raise ConfigurationError(f"unknown copy provider '{cfg.copy_provider}'")

    return GeminiGateway(api_key=cfg.gemini_api_key, copywriter=copywriter, cfg=cfg)
