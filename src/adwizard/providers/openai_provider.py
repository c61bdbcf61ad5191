from __future__ import annotations

import json
import logging
import re

from adwizard.config import Settings, settings as default_settings
from adwizard.errors import ConfigurationError, RemoteOperationError
from adwizard.models import BODY_MAX_CHARS, HEADLINE_MAX_CHARS, AdCopy
from adwizard.providers.gemini_provider import ad_copy_from_payload

logger = logging.getLogger(__name__)


class OpenAICopywriter:
    name = "openai"

    def __init__(self, api_key: str | None, cfg: Settings | None = None) -> None:
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        from openai import AsyncOpenAI  # type: ignore

        self.client = AsyncOpenAI(api_key=api_key)
        self.settings = cfg or default_settings

    async def compose_text(self, materials: str, scene_description: str) -> AdCopy:
        """
        One headline + body (+ optional catchphrase) for the product in the chosen scene.
        """
        prompt = (
            "You are writing performance ad copy.\n"
            "Return ONE JSON object and nothing else, with keys: headline, body, catchphrase.\n"
            f"- headline: at most {HEADLINE_MAX_CHARS} characters\n"
            f"- body: at most {BODY_MAX_CHARS} characters\n"
            "- catchphrase: a short slogan\n"
            "No markdown, no commentary, no extra keys.\n"
            f"Write in {self.settings.content_language}.\n"
            f"\nProduct materials: {materials}\n"
            f"Scene: {scene_description}\n"
        )

        try:
            resp = await self.client.responses.create(
                model=self.settings.openai_text_model,
                input=prompt,
            )
        except Exception as exc:
            logger.warning("compose_text failed: %s", exc)
            raise RemoteOperationError("compose_text", f"Failed to generate ad text: {exc}") from exc

        raw = (getattr(resp, "output_text", "") or "").strip()

        # Best-effort JSON extraction (handles accidental pre/post text).
        m = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", raw, re.DOTALL | re.IGNORECASE)
        if m:
            raw = m.group(1).strip()
        else:
            start = raw.find("{")
            end = raw.rfind("}")
            if start != -1 and end != -1 and end > start:
                raw = raw[start : end + 1].strip()

        try:
            data = json.loads(raw)
        except ValueError:
            data = None

        copy = ad_copy_from_payload(data)
        if copy is None:
            raise RemoteOperationError("compose_text", "Failed to generate ad text: invalid response")
        return copy
