from __future__ import annotations

import asyncio
from collections import Counter
from typing import Iterable

import pytest
from PIL import Image

from adwizard.config import Settings
from adwizard.errors import RemoteOperationError
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
from adwizard.providers.base import GeneratedImage
from adwizard.wizard.controller import WizardController
from adwizard.wizard.session import Stage

ANALYSIS = AnalysisResult(
    colors=("#8B5A2B", "#D2B48C", "#F5F5DC", "#3E2723", "#A0522D", "#FFFFFF"),
    analysis=ProductAnalysis(materials="wood", lighting="soft", shadows="soft"),
)

CATEGORIES = list(SceneCategory)

PRODUCT_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-payload"


def make_descriptors(n: int = 10) -> list[SceneDescriptor]:
    return [
        SceneDescriptor(description=f"scene {i}", category=CATEGORIES[i % len(CATEGORIES)])
        for i in range(n)
    ]


class StubGateway:
    """In-memory gateway. Operations can be made to fail or to wait on a gate."""

    name = "stub"

    def __init__(
        self,
        descriptors: list[SceneDescriptor] | None = None,
        fail: Iterable[str] = (),
        fail_scenes: Iterable[str] = (),
        category: SceneCategory = SceneCategory.LUXURY,
    ) -> None:
        self.descriptors = make_descriptors() if descriptors is None else descriptors
        self.fail = set(fail)
        self.fail_scenes = set(fail_scenes)
        self.category = category
        self.calls: Counter[str] = Counter()
        self.scene_calls: list[str] = []
        self.final_calls: list[tuple[str, AdSize, AdText, str]] = []
        self._gates: dict[str, asyncio.Event] = {}

    def block(self, key: str) -> asyncio.Event:
        """Hold calls for `key` (an operation name or a scene description) until released."""
        gate = asyncio.Event()
        self._gates[key] = gate
        return gate

    def release(self, key: str) -> None:
        self._gates.pop(key).set()

    async def _enter(self, op: str, key: str | None = None) -> None:
        self.calls[op] += 1
        for k in (op, key):
            gate = self._gates.get(k) if k else None
            if gate is not None:
                await gate.wait()
        if op in self.fail:
            raise RemoteOperationError(op, f"{op} exploded")

    async def analyze(self, image: UploadedImage) -> AnalysisResult:
        await self._enter("analyze")
        return ANALYSIS

    async def describe_scenes(self, analysis: ProductAnalysis) -> list[SceneDescriptor]:
        await self._enter("describe_scenes")
        return list(self.descriptors)

    async def categorize(self, description: str) -> SceneCategory:
        self.calls["categorize"] += 1
        return self.category

    async def render_scene(self, description: str) -> GeneratedImage:
        self.scene_calls.append(description)
        await self._enter("render_scene", description)
        if description in self.fail_scenes:
            raise RemoteOperationError("render_scene", f'Failed to generate scene image: "{description}"')
        return _image(description)

    async def compose_text(self, materials: str, scene_description: str) -> AdCopy:
        await self._enter("compose_text")
        return AdCopy(headline="Crafted in Wood", body=f"{materials} in {scene_description}", catchphrase="Warmth")

    async def render_final(self, product, scene_description, size, ad_text, instructions) -> GeneratedImage:
        self.final_calls.append((scene_description, size, ad_text, instructions))
        await self._enter("render_final")
        return _image("final", size=(120, 90))


def _image(prompt: str, size: tuple[int, int] = (16, 16)) -> GeneratedImage:
    return GeneratedImage(
        image=Image.new("RGB", size, (200, 120, 40)),
        prompt_used=prompt,
        provider="stub",
        model="stub-model",
    )


@pytest.fixture()
def cfg(tmp_path) -> Settings:
    return Settings(data_dir=str(tmp_path), gemini_api_key=None, openai_api_key=None)


@pytest.fixture()
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture()
def wizard(gateway: StubGateway, cfg: Settings) -> WizardController:
    return WizardController(gateway, cfg=cfg)


async def drive_to(wizard: WizardController, stage: Stage, *, scene_index: int = 2) -> None:
    """Walk the wizard forward through the happy path until `stage`."""
    assert wizard.stage is Stage.UPLOAD
    await wizard.upload(PRODUCT_BYTES, "image/jpeg")
    await wizard.wait_idle()
    if stage is Stage.SCENE_SELECT:
        return
    wizard.select_scene(scene_index)
    if stage is Stage.SIZE_SELECT:
        return
    wizard.select_size("1080x1080")
    if stage is Stage.TEXT_COMPOSE:
        return
    wizard.submit_text("Quality You Deserve", "Handmade from solid oak.", "Modern")
    if stage is Stage.CUSTOM_INSTRUCTIONS:
        return
    wizard.submit_instructions("")
    if stage is Stage.CONFIRM_AND_GENERATE:
        return
    await wizard.generate()
