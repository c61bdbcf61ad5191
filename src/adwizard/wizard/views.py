"""
Per-stage view models. Each stage gets its own dataclass carrying exactly the
fields that stage shows, so a front end never has to null-check session fields.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from adwizard.catalog import AD_SIZE_LABELS
from adwizard.models import AdCopy, AdSize, AdTemplate, FontStyle, ProductAnalysis, SceneCategory
from adwizard.wizard.final import FinalPhase
from adwizard.wizard.scenes import SceneBoard, SlotStatus


@dataclass(frozen=True)
class UploadView:
    accepted_mime_types: tuple[str, ...]
    busy: bool
    error: str | None


@dataclass(frozen=True)
class SlotView:
    index: int
    status: SlotStatus
    description: str
    category: SceneCategory
    image_url: str | None
    error: str | None


@dataclass(frozen=True)
class SceneSelectView:
    product_image_url: str
    colors: tuple[str, ...]
    analysis: ProductAnalysis
    loading: bool
    slots: tuple[SlotView, ...]
    category_filter: SceneCategory | None
    templates: tuple[AdTemplate, ...]
    error: str | None
    custom_busy: bool
    custom_error: str | None


@dataclass(frozen=True)
class SizeOption:
    size: AdSize
    label: str
    platform: str
    width: int
    height: int


@dataclass(frozen=True)
class SizeSelectView:
    scene_description: str
    options: tuple[SizeOption, ...]
    selected: AdSize | None


@dataclass(frozen=True)
class TextComposeView:
    materials: str
    scene_description: str
    headline: str
    body: str
    font_style: FontStyle
    font_styles: tuple[FontStyle, ...]
    suggestion: AdCopy | None
    busy: bool
    error: str | None


@dataclass(frozen=True)
class CustomInstructionsView:
    instructions: str


@dataclass(frozen=True)
class ConfirmView:
    product_image_url: str
    scene_description: str
    size: AdSize
    headline: str
    body: str
    font_style: FontStyle
    instructions: str


@dataclass(frozen=True)
class ResultView:
    phase: FinalPhase
    image_url: str | None
    error: str | None
    download_name: str | None


StageView = Union[
    UploadView,
    SceneSelectView,
    SizeSelectView,
    TextComposeView,
    CustomInstructionsView,
    ConfirmView,
    ResultView,
]


def size_options() -> tuple[SizeOption, ...]:
    out: list[SizeOption] = []
    for size in AdSize:
        label, platform = AD_SIZE_LABELS[size]
        w, h = size.dimensions
        out.append(SizeOption(size=size, label=label, platform=platform, width=w, height=h))
    return tuple(out)


def scene_select_slots(board: SceneBoard) -> tuple[SlotView, ...]:
    return tuple(
        SlotView(
            index=i,
            status=slot.status,
            description=slot.descriptor.description,
            category=slot.descriptor.category,
            image_url=slot.scene.image_url if slot.scene else None,
            error=slot.error,
        )
        for i, slot in board.visible_slots()
    )
