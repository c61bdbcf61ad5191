from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from adwizard.models import AdSize, AdTemplate, AdText, AnalysisResult, Scene, UploadedImage


class Stage(IntEnum):
    UPLOAD = 1
    SCENE_SELECT = 2
    SIZE_SELECT = 3
    TEXT_COMPOSE = 4
    CUSTOM_INSTRUCTIONS = 5
    CONFIRM_AND_GENERATE = 6
    VIEW_RESULT = 7


_FINAL_INPUTS = ("uploaded_image", "analysis", "scene", "size", "ad_text")

# Fields that must be set before a stage may render. Cumulative by construction.
REQUIRED_FIELDS: dict[Stage, tuple[str, ...]] = {
    Stage.UPLOAD: (),
    Stage.SCENE_SELECT: ("uploaded_image", "analysis"),
    Stage.SIZE_SELECT: ("uploaded_image", "analysis", "scene"),
    Stage.TEXT_COMPOSE: ("uploaded_image", "analysis", "scene", "size"),
    Stage.CUSTOM_INSTRUCTIONS: _FINAL_INPUTS,
    Stage.CONFIRM_AND_GENERATE: _FINAL_INPUTS,
    Stage.VIEW_RESULT: _FINAL_INPUTS,
}


@dataclass
class WizardSession:
    stage: Stage = Stage.UPLOAD
    # Bumped on every restart; async completions launched under an older epoch are dropped.
    epoch: int = 0

    uploaded_image: UploadedImage | None = None
    analysis: AnalysisResult | None = None
    scene: Scene | None = None
    template: AdTemplate | None = None
    size: AdSize | None = None
    ad_text: AdText | None = None
    # None until the instructions stage has been submitted at least once.
    custom_instructions: str | None = None

    def missing_for(self, stage: Stage) -> list[str]:
        return [name for name in REQUIRED_FIELDS[stage] if getattr(self, name) is None]

    def can_render(self, stage: Stage) -> bool:
        return not self.missing_for(stage)

    def reset(self) -> None:
        self.stage = Stage.UPLOAD
        self.epoch += 1
        self.uploaded_image = None
        self.analysis = None
        self.scene = None
        self.template = None
        self.size = None
        self.ad_text = None
        self.custom_instructions = None
