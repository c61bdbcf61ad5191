from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from adwizard.errors import InvalidTransitionError
from adwizard.models import AdSize, AdText, AnalysisResult, Scene, UploadedImage
from adwizard.providers.base import GeneratedImage
from adwizard.wizard.session import Stage, WizardSession


class FinalPhase(str, Enum):
    CONFIRM = "confirm"
    GENERATING = "generating"
    RESULT = "result"
    ERROR = "error"


@dataclass(frozen=True)
class FinalRequest:
    product: UploadedImage
    scene: Scene
    size: AdSize
    ad_text: AdText
    analysis: AnalysisResult
    instructions: str

    @classmethod
    def from_session(cls, session: WizardSession) -> FinalRequest:
        missing = session.missing_for(Stage.CONFIRM_AND_GENERATE)
        if missing:
            raise InvalidTransitionError(f"cannot generate, missing: {', '.join(missing)}")
        return cls(
            product=session.uploaded_image,  # type: ignore[arg-type]
            scene=session.scene,  # type: ignore[arg-type]
            size=session.size,  # type: ignore[arg-type]
            ad_text=session.ad_text,  # type: ignore[arg-type]
            analysis=session.analysis,  # type: ignore[arg-type]
            instructions=session.custom_instructions or "",
        )


@dataclass
class FinalComposition:
    phase: FinalPhase = FinalPhase.CONFIRM
    # Every entry into GENERATING gets a new attempt id; completions for older ids are dropped.
    attempt: int = 0
    result: GeneratedImage | None = None
    error: str | None = None

    def begin(self) -> int:
        if self.phase is FinalPhase.GENERATING:
            raise InvalidTransitionError("final image is already being generated")
        self.attempt += 1
        self.phase = FinalPhase.GENERATING
        self.result = None
        self.error = None
        return self.attempt

    def is_current(self, attempt: int) -> bool:
        return self.phase is FinalPhase.GENERATING and attempt == self.attempt

    def succeed(self, attempt: int, image: GeneratedImage) -> bool:
        if not self.is_current(attempt):
            return False
        self.phase = FinalPhase.RESULT
        self.result = image
        return True

    def fail(self, attempt: int, message: str) -> bool:
        if not self.is_current(attempt):
            return False
        self.phase = FinalPhase.ERROR
        self.error = message
        return True

    def reset(self) -> None:
        self.attempt += 1
        self.phase = FinalPhase.CONFIRM
        self.result = None
        self.error = None
