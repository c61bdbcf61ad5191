"""Scene selection board and the fan-out renderer that fills it."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Sequence

from adwizard.models import AnalysisResult, Scene, SceneCategory, SceneDescriptor
from adwizard.providers.base import GenerationGateway

logger = logging.getLogger(__name__)

ALL_FAILED_MESSAGE = "None of the scenes could be generated. Please try again."


class SlotStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SceneSlot:
    descriptor: SceneDescriptor
    status: SlotStatus = SlotStatus.PENDING
    scene: Scene | None = None
    error: str | None = None


@dataclass(frozen=True)
class SlotUpdate:
    """A single render completion, addressed by batch and position in that batch."""

    batch_id: int
    index: int
    scene: Scene | None = None
    error: str | None = None


def pad_descriptors(
    descriptors: Sequence[SceneDescriptor],
    size: int,
    placeholder: str,
) -> list[SceneDescriptor]:
    out = list(descriptors[:size])
    while len(out) < size:
        out.append(SceneDescriptor(description=placeholder, category=SceneCategory.STUDIO))
    return out


@dataclass
class SceneBoard:
    source: AnalysisResult | None = None
    batch_id: int = 0
    started: bool = False
    loading: bool = False
    error: str | None = None
    category_filter: SceneCategory | None = None
    custom_busy: bool = False
    custom_error: str | None = None
    batch: list[SceneSlot] = field(default_factory=list)
    custom: list[SceneSlot] = field(default_factory=list)

    @property
    def slots(self) -> list[SceneSlot]:
        # User-written scenes are shown first, newest on top.
        return self.custom + self.batch

    def visible_slots(self) -> list[tuple[int, SceneSlot]]:
        return [
            (i, s)
            for i, s in enumerate(self.slots)
            if self.category_filter is None or s.descriptor.category == self.category_filter
        ]

    def begin(self, source: AnalysisResult, batch_id: int) -> None:
        self.source = source
        self.batch_id = batch_id
        self.started = True
        self.loading = True
        self.error = None
        self.batch = []

    def populate(self, descriptors: Sequence[SceneDescriptor]) -> None:
        self.batch = [SceneSlot(descriptor=d) for d in descriptors]

    def apply(self, update: SlotUpdate) -> bool:
        if update.batch_id != self.batch_id or not 0 <= update.index < len(self.batch):
            return False
        slot = self.batch[update.index]
        if slot.status is not SlotStatus.PENDING:
            return False
        if update.scene is not None:
            self.batch[update.index] = replace(slot, status=SlotStatus.READY, scene=update.scene)
        else:
            self.batch[update.index] = replace(slot, status=SlotStatus.FAILED, error=update.error)
        return True

    def finish(self) -> None:
        self.loading = False
        if self.all_failed:
            self.error = ALL_FAILED_MESSAGE

    def fail(self, message: str) -> None:
        self.loading = False
        self.error = message

    def prepend(self, scene: Scene) -> None:
        descriptor = SceneDescriptor(description=scene.description, category=scene.category)
        self.custom.insert(0, SceneSlot(descriptor=descriptor, status=SlotStatus.READY, scene=scene))

    @property
    def all_failed(self) -> bool:
        return bool(self.batch) and all(s.status is SlotStatus.FAILED for s in self.batch)

    @property
    def ready_count(self) -> int:
        return sum(1 for s in self.slots if s.status is SlotStatus.READY)


async def render_batch(
    gateway: GenerationGateway,
    batch_id: int,
    descriptors: Sequence[SceneDescriptor],
    deliver: Callable[[SlotUpdate], None],
) -> None:
    """
    Issue one render per descriptor without waiting for siblings. Each completion
    is handed to `deliver` as it lands; a failing render only fails its own slot.
    """

    async def render_one(index: int, descriptor: SceneDescriptor) -> None:
        try:
            generated = await gateway.render_scene(descriptor.description)
            scene = Scene(
                description=descriptor.description,
                image_url=generated.to_data_url(),
                category=descriptor.category,
            )
        except Exception as exc:
            logger.warning("scene %d of batch %d failed: %s", index, batch_id, exc)
            deliver(SlotUpdate(batch_id=batch_id, index=index, error=str(exc) or type(exc).__name__))
            return
        deliver(SlotUpdate(batch_id=batch_id, index=index, scene=scene))

    await asyncio.gather(*(render_one(i, d) for i, d in enumerate(descriptors)))
