from __future__ import annotations

import json
import logging
from io import BytesIO
from typing import Any

from PIL import Image

from adwizard.config import Settings, settings as default_settings
from adwizard.errors import ConfigurationError, RemoteOperationError
from adwizard.models import (
    BODY_MAX_CHARS,
    HEADLINE_MAX_CHARS,
    AdCopy,
    AdSize,
    AdText,
    AnalysisResult,
    ProductAnalysis,
    SceneCategory,
    SceneDescriptor,
    UploadedImage,
)
from adwizard.providers.base import Copywriter, GeneratedImage

logger = logging.getLogger(__name__)


class GeminiGateway:
    name = "gemini"

    def __init__(
        self,
        api_key: str | None,
        copywriter: Copywriter | None = None,
        cfg: Settings | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set")
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self.client = genai.Client(api_key=api_key)
        self.copywriter = copywriter
        self.settings = cfg or default_settings

    async def analyze(self, image: UploadedImage) -> AnalysisResult:
        from google.genai import types  # type: ignore

        prompt = (
            "Analyze this product image.\n"
            "1. Identify the 5 most dominant colors as hex codes, most dominant first.\n"
            "2. Give a brief, one-sentence analysis of the product's materials/textures, "
            "the lighting, and the shadows.\n"
            "Return STRICT JSON only (no markdown) with keys:\n"
            "- colors: [hex string]\n"
            "- analysis: {materials, lighting, shadows}\n"
            f"Write the analysis text in {self.settings.content_language}.\n"
        )
        try:
            product = Image.open(BytesIO(image.raw_bytes))
            resp = await self.client.aio.models.generate_content(
                model=self.settings.gemini_vision_model,
                contents=[product, prompt],
                config=types.GenerateContentConfig(response_mime_type="application/json"),
            )
        except Exception as exc:
            logger.warning("analyze failed: %s", exc)
            raise RemoteOperationError("analyze", f"Image analysis failed: {exc}") from exc

        parsed = _parse_jsonish(getattr(resp, "text", None))
        if not isinstance(parsed, dict) or not isinstance(parsed.get("colors"), list) or not isinstance(
            parsed.get("analysis"), dict
        ):
            raise RemoteOperationError("analyze", "Image analysis failed: invalid JSON structure received from API")

        details = parsed["analysis"]
        return AnalysisResult(
            colors=tuple(str(c).strip() for c in parsed["colors"] if str(c).strip()),
            analysis=ProductAnalysis(
                materials=str(details.get("materials", "")).strip(),
                lighting=str(details.get("lighting", "")).strip(),
                shadows=str(details.get("shadows", "")).strip(),
            ),
        )

    async def describe_scenes(self, analysis: ProductAnalysis) -> list[SceneDescriptor]:
        from google.genai import types  # type: ignore

        categories = ", ".join(c.value for c in SceneCategory)
        prompt = (
            "Based on this product image analysis:\n"
            f"- Materials: {analysis.materials}\n"
            f"- Lighting: {analysis.lighting}\n"
            f"- Shadows: {analysis.shadows}\n"
            f"\nWrite {self.settings.scene_batch_size} varied, inventive scene descriptions, each clearly different "
            "from the others, that would work as a professional advertising background for the product. "
            "Keep each description short and suitable for generating an image from it.\n"
            "Return STRICT JSON only (no markdown): an array of objects with keys "
            f"description and category, where category is one of: {categories}.\n"
            f"Write the descriptions in {self.settings.content_language}.\n"
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.settings.gemini_text_model,
                contents=prompt,
                config=types.GenerateContentConfig(response_mime_type="application/json"),
            )
        except Exception as exc:
            logger.warning("describe_scenes failed: %s", exc)
            raise RemoteOperationError("describe_scenes", "Failed to generate scene descriptions") from exc

        descriptors = _descriptors_from_payload(_parse_jsonish(getattr(resp, "text", None)))
        if not descriptors:
            raise RemoteOperationError("describe_scenes", "The model did not return any scene descriptions")
        return descriptors

    async def categorize(self, description: str) -> SceneCategory:
        """
        Never raises: any failure or unexpected answer maps to Studio.
        """
        categories = ", ".join(c.value for c in SceneCategory)
        prompt = (
            f"Classify this advertising scene into exactly one of: {categories}.\n"
            "Answer with the category name only.\n"
            f"\nScene: {description}\n"
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.settings.gemini_text_model,
                contents=prompt,
            )
        except Exception as exc:
            logger.warning("categorize failed, falling back to Studio: %s", exc)
            return SceneCategory.STUDIO
        return SceneCategory.from_text(getattr(resp, "text", None))

    async def render_scene(self, description: str) -> GeneratedImage:
        from google.genai import types  # type: ignore

        prompt = (
            "Generate a photorealistic, high-quality, professional advertising background image "
            f'based on this description: "{description}"\n'
            "No text. No logos. No watermarks."
        )
        model = self.settings.gemini_image_model
        try:
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[prompt],
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except Exception as exc:
            logger.warning("render_scene failed for %r: %s", description, exc)
            raise RemoteOperationError("render_scene", f'Failed to generate scene image: "{description}"') from exc

        extracted = _extract_images_from_generate_content(resp)
        if not extracted:
            raise RemoteOperationError("render_scene", "No image data found in the API response")
        img, meta = extracted[0]
        return GeneratedImage(image=img, prompt_used=prompt, provider=self.name, model=model, raw_metadata=meta)

    async def compose_text(self, materials: str, scene_description: str) -> AdCopy:
        if self.copywriter is not None:
            return await self.copywriter.compose_text(materials, scene_description)

        from google.genai import types  # type: ignore

        prompt = (
            "You are writing performance ad copy for a product photo placed in a scene.\n"
            f"Product materials: {materials}\n"
            f"Scene: {scene_description}\n"
            "Return STRICT JSON only (no markdown) with keys:\n"
            f"- headline: at most {HEADLINE_MAX_CHARS} characters\n"
            f"- body: at most {BODY_MAX_CHARS} characters\n"
            "- catchphrase: a short slogan\n"
            f"Write in {self.settings.content_language}.\n"
        )
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.settings.gemini_text_model,
                contents=prompt,
                config=types.GenerateContentConfig(response_mime_type="application/json"),
            )
        except Exception as exc:
            logger.warning("compose_text failed: %s", exc)
            raise RemoteOperationError("compose_text", f"Failed to generate ad text: {exc}") from exc

        copy = ad_copy_from_payload(_parse_jsonish(getattr(resp, "text", None)))
        if copy is None:
            raise RemoteOperationError("compose_text", "Failed to generate ad text: invalid response")
        return copy

    async def render_final(
        self,
        product: UploadedImage,
        scene_description: str,
        size: AdSize,
        ad_text: AdText,
        instructions: str,
    ) -> GeneratedImage:
        from google.genai import types  # type: ignore

        prompt = (
            "IMPORTANT:\n"
            "- The provided image is the product. Preserve its shape, colors and details exactly.\n"
            "- Place it naturally into the scene with matching light and shadows.\n"
            f"\nScene: {scene_description}\n"
            f"Canvas: {size.value} pixels.\n"
            f'Headline text: "{ad_text.headline}"\n'
            f'Body text: "{ad_text.body}"\n'
            f"Typography style: {ad_text.font_style.value}\n"
            "Render the headline and body text legibly on the image. No other text, no watermarks.\n"
        )
        if instructions:
            prompt += f"\nAdditional instructions: {instructions}\n"

        model = self.settings.gemini_image_model
        try:
            product_img = Image.open(BytesIO(product.raw_bytes))
            resp = await self.client.aio.models.generate_content(
                model=model,
                contents=[prompt, product_img],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                    image_config=types.ImageConfig(aspect_ratio=size.aspect_ratio),
                ),
            )
        except Exception as exc:
            logger.warning("render_final failed: %s", exc)
            raise RemoteOperationError("render_final", f"Failed to create the final image: {exc}") from exc

        extracted = _extract_images_from_generate_content(resp)
        if not extracted:
            raise RemoteOperationError("render_final", "Failed to create the final image: no image in response")
        img, meta = extracted[0]
        return GeneratedImage(
            image=img,
            prompt_used=prompt,
            provider=self.name,
            model=model,
            raw_metadata=meta | {"aspect_ratio": size.aspect_ratio},
        )


def ad_copy_from_payload(data: Any) -> AdCopy | None:
    if not isinstance(data, dict):
        return None
    headline = str(data.get("headline", "")).strip()
    body = str(data.get("body", "")).strip()
    if not (headline and body):
        return None
    catchphrase = str(data.get("catchphrase", "") or "").strip() or None
    return AdCopy(
        headline=headline[:HEADLINE_MAX_CHARS],
        body=body[:BODY_MAX_CHARS],
        catchphrase=catchphrase,
    )


def _descriptors_from_payload(data: Any) -> list[SceneDescriptor]:
    # Older prompts returned a bare list of strings; accept both shapes.
    if isinstance(data, dict):
        data = data.get("scenes")
    if not isinstance(data, list):
        return []
    out: list[SceneDescriptor] = []
    for item in data:
        if isinstance(item, str):
            text, category = item.strip(), None
        elif isinstance(item, dict):
            text = str(item.get("description", "")).strip()
            category = item.get("category")
        else:
            continue
        if not text:
            continue
        out.append(SceneDescriptor(description=text, category=SceneCategory.from_text(category)))
    return out


def _strip_code_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        # Remove leading fence line
        first_nl = s.find("\n")
        if first_nl != -1:
            s = s[first_nl + 1 :]
        # Remove trailing fence
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def _parse_jsonish(raw_text: str | None) -> Any:
    if not raw_text:
        return None
    s = _strip_code_fences(raw_text)
    try:
        return json.loads(s)
    except ValueError:
        return None


def _extract_images_from_generate_content(resp: Any) -> list[tuple[Image.Image, dict[str, Any]]]:
    out: list[tuple[Image.Image, dict[str, Any]]] = []
    for cand in getattr(resp, "candidates", []) or []:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline = getattr(part, "inline_data", None)
            if not inline:
                continue
            mime = getattr(inline, "mime_type", None) or ""
            data = getattr(inline, "data", None)
            if not data:
                continue
            if mime and not mime.startswith("image/"):
                continue
            try:
                img = Image.open(BytesIO(data))
                img.load()
            except Exception:
                continue
            out.append((img, {"mime_type": mime}))
    return out
