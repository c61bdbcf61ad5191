from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum


HEADLINE_MAX_CHARS = 50
BODY_MAX_CHARS = 150


class SceneCategory(str, Enum):
    OUTDOOR = "Outdoor"
    STUDIO = "Studio"
    MINIMALIST = "Minimalist"
    LUXURY = "Luxury"
    ABSTRACT = "Abstract"
    COZY = "Cozy"

    @classmethod
    def from_text(cls, text: str | None, default: SceneCategory | None = None) -> SceneCategory:
        """
        Match a free-form model answer against the known categories.
        Falls back to Studio when nothing matches.
        """
        s = (text or "").strip().lower()
        for member in cls:
            if s == member.value.lower():
                return member
        for member in cls:
            if member.value.lower() in s:
                return member
        return default or cls.STUDIO


class FontStyle(str, Enum):
    MODERN = "Modern"
    IMPACTFUL = "Impactful"
    ELEGANT = "Elegant"
    PLAYFUL = "Playful"
    BOLD = "Bold"
    CURSIVE = "Cursive"


class AdSize(str, Enum):
    SQUARE = "1080x1080"
    STORY = "1080x1920"
    LANDSCAPE = "1200x628"
    SQUARE_HD = "2000x2000"

    @property
    def dimensions(self) -> tuple[int, int]:
        w, h = self.value.split("x", 1)
        return int(w), int(h)

    @property
    def aspect_ratio(self) -> str:
        # Closest ratio the image models accept.
        return {
            AdSize.SQUARE: "1:1",
            AdSize.STORY: "9:16",
            AdSize.LANDSCAPE: "16:9",
            AdSize.SQUARE_HD: "1:1",
        }[self]


@dataclass(frozen=True)
class UploadedImage:
    data: str  # base64
    mime_type: str

    @classmethod
    def from_bytes(cls, content: bytes, mime_type: str) -> UploadedImage:
        return cls(data=base64.b64encode(content).decode("ascii"), mime_type=mime_type)

    @property
    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class ProductAnalysis:
    materials: str
    lighting: str
    shadows: str


@dataclass(frozen=True)
class AnalysisResult:
    colors: tuple[str, ...]
    analysis: ProductAnalysis


@dataclass(frozen=True)
class SceneDescriptor:
    description: str
    category: SceneCategory = SceneCategory.STUDIO


@dataclass(frozen=True)
class Scene:
    description: str
    image_url: str
    category: SceneCategory


@dataclass(frozen=True)
class AdText:
    headline: str
    body: str
    font_style: FontStyle = FontStyle.MODERN


@dataclass(frozen=True)
class AdCopy:
    headline: str
    body: str
    catchphrase: str | None = None


@dataclass(frozen=True)
class AdTemplate:
    id: str
    name: str
    description: str
    preview_image_url: str
    scene_description: str
    font_style: FontStyle
    text_prompt_instruction: str
    category: SceneCategory

    def to_scene(self) -> Scene:
        return Scene(
            description=self.scene_description,
            image_url=self.preview_image_url,
            category=self.category,
        )
