from __future__ import annotations

import asyncio

import pytest

from adwizard.errors import ValidationError
from adwizard.models import SceneCategory, SceneDescriptor
from adwizard.wizard.controller import WizardController
from adwizard.wizard.scenes import ALL_FAILED_MESSAGE, SceneBoard, SlotStatus, SlotUpdate, pad_descriptors
from adwizard.wizard.session import Stage
from adwizard.wizard.views import SceneSelectView

from conftest import ANALYSIS, PRODUCT_BYTES, StubGateway, make_descriptors


async def settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def statuses(wizard: WizardController) -> list[SlotStatus]:
    return [s.status for s in wizard.board.slots]


def test_one_failed_scene_does_not_affect_siblings(cfg):
    gateway = StubGateway(fail_scenes={"scene 4"})
    wizard = WizardController(gateway, cfg=cfg)

    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/png")
        await wizard.wait_idle()

    asyncio.run(scenario())

    board = wizard.board
    assert statuses(wizard).count(SlotStatus.READY) == 9
    assert board.slots[4].status is SlotStatus.FAILED
    assert board.slots[4].error == 'Failed to generate scene image: "scene 4"'
    assert board.error is None
    assert board.loading is False

    with pytest.raises(ValidationError):
        wizard.select_scene(4)
    assert wizard.select_scene(5).description == "scene 5"


def test_slots_fill_in_as_renders_complete(wizard: WizardController, gateway: StubGateway):
    async def scenario():
        for i in range(10):
            gateway.block(f"scene {i}")
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await settle()
        assert wizard.board.loading is True
        assert statuses(wizard) == [SlotStatus.PENDING] * 10

        gateway.release("scene 7")
        await settle()
        assert wizard.board.slots[7].status is SlotStatus.READY
        assert statuses(wizard).count(SlotStatus.PENDING) == 9

        # A ready slot can be picked while siblings are still rendering.
        view = wizard.render()
        assert isinstance(view, SceneSelectView)
        assert view.loading is True
        assert view.slots[7].image_url.startswith("data:image/png;base64,")

        for i in range(10):
            if i != 7:
                gateway.release(f"scene {i}")
        await wizard.wait_idle()

    asyncio.run(scenario())
    assert statuses(wizard) == [SlotStatus.READY] * 10
    assert wizard.board.loading is False


def test_batch_is_requested_once_despite_rerenders(wizard: WizardController, gateway: StubGateway):
    async def scenario():
        gateway.block("render_scene")
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        for _ in range(5):
            assert wizard.ensure_scene_batch() is False
            assert wizard.render() is not None
            await settle(2)
        gateway.release("render_scene")
        await wizard.wait_idle()
        assert wizard.ensure_scene_batch() is False
        wizard.render()

    asyncio.run(scenario())
    assert gateway.calls["describe_scenes"] == 1
    assert len(gateway.scene_calls) == 10
    assert sorted(gateway.scene_calls) == sorted(f"scene {i}" for i in range(10))


def test_short_description_list_is_padded(cfg):
    gateway = StubGateway(descriptors=make_descriptors(4))
    wizard = WizardController(gateway, cfg=cfg)

    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()

    asyncio.run(scenario())

    slots = wizard.board.slots
    assert len(slots) == 10
    placeholders = slots[4:]
    assert all(s.descriptor.description == cfg.scene_placeholder_description for s in placeholders)
    assert all(s.descriptor.category is SceneCategory.STUDIO for s in placeholders)
    assert len(gateway.scene_calls) == 10


def test_long_description_list_is_truncated(cfg):
    gateway = StubGateway(descriptors=make_descriptors(14))
    wizard = WizardController(gateway, cfg=cfg)

    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()

    asyncio.run(scenario())
    assert [s.descriptor.description for s in wizard.board.slots] == [f"scene {i}" for i in range(10)]
    assert len(gateway.scene_calls) == 10


def test_all_scenes_failing_shows_page_error_and_retry(cfg):
    gateway = StubGateway(fail_scenes={f"scene {i}" for i in range(10)})
    wizard = WizardController(gateway, cfg=cfg)

    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()
        view = wizard.render()
        assert isinstance(view, SceneSelectView)
        assert view.error == ALL_FAILED_MESSAGE

        gateway.fail_scenes.clear()
        wizard.retry_scenes()
        await wizard.wait_idle()

    asyncio.run(scenario())
    assert wizard.board.error is None
    assert statuses(wizard) == [SlotStatus.READY] * 10
    assert gateway.calls["describe_scenes"] == 2


def test_description_failure_is_a_page_error(cfg):
    gateway = StubGateway(fail={"describe_scenes"})
    wizard = WizardController(gateway, cfg=cfg)

    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()
        assert wizard.stage is Stage.SCENE_SELECT
        assert wizard.board.error == "describe_scenes exploded"
        assert wizard.board.loading is False
        assert wizard.board.slots == []
        assert gateway.scene_calls == []

        gateway.fail.clear()
        wizard.retry_scenes()
        await wizard.wait_idle()

    asyncio.run(scenario())
    assert len(wizard.board.slots) == 10


def test_restart_drops_late_scene_completions(wizard: WizardController, gateway: StubGateway):
    async def scenario():
        gateway.block("render_scene")
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await settle()
        wizard.restart()
        gateway.release("render_scene")
        await wizard.wait_idle()

    asyncio.run(scenario())
    assert wizard.stage is Stage.UPLOAD
    assert wizard.board.slots == []
    assert wizard.board.started is False


def test_custom_scene_is_prepended_and_filtered(wizard: WizardController, gateway: StubGateway):
    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()
        return await wizard.add_custom_scene("  a red velvet sofa  ")

    assert asyncio.run(scenario()) is True
    assert gateway.calls["categorize"] == 1

    board = wizard.board
    assert board.slots[0].scene.description == "a red velvet sofa"
    assert board.slots[0].scene.category is SceneCategory.LUXURY
    assert board.category_filter is SceneCategory.LUXURY

    view = wizard.render()
    assert isinstance(view, SceneSelectView)
    # Custom scene plus the two luxury scenes of the batch, shifted by one.
    assert [s.index for s in view.slots] == [0, 4, 10]

    wizard.set_category_filter(None)
    assert len(wizard.render().slots) == 11

    assert wizard.select_scene(0).description == "a red velvet sofa"


def test_custom_scene_needs_a_description(wizard: WizardController):
    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()
        await wizard.add_custom_scene("   ")

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_unknown_category_filter_is_rejected(wizard: WizardController):
    async def scenario():
        await wizard.upload(PRODUCT_BYTES, "image/jpeg")
        await wizard.wait_idle()

    asyncio.run(scenario())
    wizard.set_category_filter("Cozy")
    assert wizard.board.category_filter is SceneCategory.COZY
    with pytest.raises(ValidationError):
        wizard.set_category_filter("Underwater")


def test_pad_descriptors():
    given = [SceneDescriptor("a"), SceneDescriptor("b")]
    padded = pad_descriptors(given, 4, "filler")
    assert [d.description for d in padded] == ["a", "b", "filler", "filler"]
    assert pad_descriptors(make_descriptors(12), 10, "filler") == make_descriptors(10)


def test_board_ignores_updates_from_other_batches():
    board = SceneBoard()
    board.begin(ANALYSIS, batch_id=2)
    board.populate(make_descriptors(3))

    assert board.apply(SlotUpdate(batch_id=1, index=0, error="old")) is False
    assert board.apply(SlotUpdate(batch_id=2, index=5, error="out of range")) is False
    assert board.apply(SlotUpdate(batch_id=2, index=0, error="boom")) is True
    # A settled slot is never overwritten.
    assert board.apply(SlotUpdate(batch_id=2, index=0, error="again")) is False
    assert board.batch[0].error == "boom"

    board.finish()
    assert board.error is None
    assert board.loading is False
