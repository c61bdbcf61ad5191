from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from PIL import Image

from adwizard.assembly.render import pil_to_png_bytes, png_data_url
from adwizard.models import (
    AdCopy,
    AdSize,
    AdText,
    AnalysisResult,
    ProductAnalysis,
    SceneCategory,
    SceneDescriptor,
    UploadedImage,
)


@dataclass(frozen=True)
class GeneratedImage:
    image: Image.Image
    prompt_used: str
    provider: str
    model: str
    raw_metadata: dict[str, Any] = field(default_factory=dict)

    def to_png_bytes(self) -> bytes:
        return pil_to_png_bytes(self.image)

    def to_data_url(self) -> str:
        return png_data_url(self.image)


class GenerationGateway(Protocol):
    name: str

    async def analyze(self, image: UploadedImage) -> AnalysisResult: ...

    async def describe_scenes(self, analysis: ProductAnalysis) -> list[SceneDescriptor]: ...

    async def categorize(self, description: str) -> SceneCategory: ...

    async def render_scene(self, description: str) -> GeneratedImage: ...

    async def compose_text(self, materials: str, scene_description: str) -> AdCopy: ...

    async def render_final(
        self,
        product: UploadedImage,
        scene_description: str,
        size: AdSize,
        ad_text: AdText,
        instructions: str,
    ) -> GeneratedImage: ...


class Copywriter(Protocol):
    name: str

    async def compose_text(self, materials: str, scene_description: str) -> AdCopy: ...
