"""The wizard controller: sole owner and writer of a WizardSession."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Awaitable, Callable, Coroutine, Sequence

from adwizard.assembly.render import fit_to_ad_size
from adwizard.catalog import AD_TEMPLATES
from adwizard.config import Settings, settings as default_settings
from adwizard.errors import (
    ConfigurationError,
    InvalidTransitionError,
    RemoteOperationError,
    SharingUnsupportedError,
    ValidationError,
)
from adwizard.models import (
    BODY_MAX_CHARS,
    HEADLINE_MAX_CHARS,
    AdCopy,
    AdSize,
    AdTemplate,
    AdText,
    AnalysisResult,
    FontStyle,
    Scene,
    SceneCategory,
    UploadedImage,
)
from adwizard.providers.base import GeneratedImage, GenerationGateway
from adwizard.storage import default_download_name, write_download
from adwizard.wizard.final import FinalComposition, FinalPhase, FinalRequest
from adwizard.wizard.scenes import SceneBoard, SlotStatus, SlotUpdate, pad_descriptors, render_batch
from adwizard.wizard.session import Stage, WizardSession
from adwizard.wizard.views import (
    ConfirmView,
    CustomInstructionsView,
    ResultView,
    SceneSelectView,
    SizeSelectView,
    StageView,
    TextComposeView,
    UploadView,
    scene_select_slots,
    size_options,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "The generation service is not configured."


@dataclass(frozen=True)
class SharePayload:
    filename: str
    content: bytes
    title: str
    text: str


ShareTarget = Callable[[SharePayload], Awaitable[None]]


class WizardController:
    def __init__(
        self,
        gateway: GenerationGateway | None,
        *,
        configuration_error: str | None = None,
        cfg: Settings | None = None,
        templates: Sequence[AdTemplate] = AD_TEMPLATES,
        share_target: ShareTarget | None = None,
    ) -> None:
        self.gateway = gateway
        self.configuration_error = configuration_error or (None if gateway is not None else NOT_CONFIGURED)
        self.settings = cfg or default_settings
        self.templates = tuple(templates)
        self.share_target = share_target

        self.session = WizardSession()
        self.board = SceneBoard()
        self.final = FinalComposition()

        self.upload_busy = False
        self.upload_error: str | None = None
        self.text_busy = False
        self.text_error: str | None = None
        self.suggestion: AdCopy | None = None
        self.text_draft: AdText | None = None

        self._batch_counter = 0
        # Bumped per upload and per suggestion request; older completions are dropped.
        self._upload_attempt = 0
        self._text_attempt = 0
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def stage(self) -> Stage:
        return self.session.stage

    # -- plumbing ---------------------------------------------------------

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every task this controller launched has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _require_stage(self, *stages: Stage) -> None:
        if self.session.stage not in stages:
            allowed = ", ".join(s.name for s in stages)
            raise InvalidTransitionError(f"not available in stage {self.session.stage.name} (expected {allowed})")

    def _require_gateway(self) -> GenerationGateway:
        if self.gateway is None:
            raise ConfigurationError(self.configuration_error or NOT_CONFIGURED)
        return self.gateway

    def _is_current(self, epoch: int) -> bool:
        return epoch == self.session.epoch

    def _advance(self, stage: Stage) -> None:
        logger.info("wizard %s -> %s", self.session.stage.name, stage.name)
        self.session.stage = stage

    # -- stage 1: upload --------------------------------------------------

    async def upload(self, content: bytes, mime_type: str) -> bool:
        """
        Analyze the product photo. On success the wizard moves to scene selection
        and the scene batch is launched; on failure the error stays on the upload stage.
        """
        self._require_stage(Stage.UPLOAD)
        if self.upload_busy:
            raise InvalidTransitionError("the product image is still being analyzed")
        accepted = self.settings.accepted_mime_types
        if mime_type not in accepted:
            self.upload_error = "Please upload a JPG or PNG file only."
            raise ValidationError(self.upload_error)
        if not content:
            self.upload_error = "The uploaded file is empty."
            raise ValidationError(self.upload_error)
        gateway = self._require_gateway()

        epoch = self.session.epoch
        self._upload_attempt += 1
        attempt = self._upload_attempt
        image = UploadedImage.from_bytes(content, mime_type)
        self.upload_busy = True
        self.upload_error = None
        try:
            result = await gateway.analyze(image)
        except Exception as exc:
            if self._owns_upload(epoch, attempt):
                self.upload_busy = False
                self.upload_error = str(exc) or "An unexpected error occurred. Please try again."
            return False

        if not self._owns_upload(epoch, attempt):
            logger.debug("dropping stale analysis result (epoch %d, attempt %d)", epoch, attempt)
            return False
        self.upload_busy = False
        self._enter_scene_select(image, result)
        return True

    def _owns_upload(self, epoch: int, attempt: int) -> bool:
        return (
            self._is_current(epoch)
            and attempt == self._upload_attempt
            and self.session.stage is Stage.UPLOAD
        )

    def _enter_scene_select(self, image: UploadedImage, result: AnalysisResult) -> None:
        self.session.uploaded_image = image
        self.session.analysis = result
        self.board = SceneBoard()
        self._advance(Stage.SCENE_SELECT)
        self.ensure_scene_batch()

    # -- stage 2: scene selection ----------------------------------------

    def ensure_scene_batch(self) -> bool:
        """
        Launch the scene batch for the current analysis unless it was already
        started. Safe to call any number of times.
        """
        analysis = self.session.analysis
        if self.session.stage is not Stage.SCENE_SELECT or analysis is None:
            return False
        if self.board.started and self.board.source is analysis:
            return False
        self._launch_scene_batch(analysis)
        return True

    def retry_scenes(self) -> None:
        self._require_stage(Stage.SCENE_SELECT)
        self._require_gateway()
        if self.board.loading:
            raise InvalidTransitionError("scenes are still being generated")
        self._launch_scene_batch(self.session.analysis)  # type: ignore[arg-type]

    def _launch_scene_batch(self, analysis: AnalysisResult) -> None:
        self._batch_counter += 1
        batch_id = self._batch_counter
        self.board.begin(analysis, batch_id)
        self.spawn(self._run_scene_batch(self.session.epoch, batch_id, analysis))

    def _owns_batch(self, epoch: int, batch_id: int) -> bool:
        return self._is_current(epoch) and self.board.batch_id == batch_id

    async def _run_scene_batch(self, epoch: int, batch_id: int, analysis: AnalysisResult) -> None:
        gateway = self._require_gateway()
        try:
            descriptors = await gateway.describe_scenes(analysis.analysis)
        except Exception as exc:
            logger.warning("scene descriptions failed: %s", exc)
            if self._owns_batch(epoch, batch_id):
                self.board.fail(str(exc) or "Failed to generate scene descriptions.")
            return
        if not self._owns_batch(epoch, batch_id):
            return

        descriptors = pad_descriptors(
            descriptors,
            self.settings.scene_batch_size,
            self.settings.scene_placeholder_description,
        )
        self.board.populate(descriptors)
        await render_batch(gateway, batch_id, descriptors, lambda update: self._deliver(epoch, update))

        if self._owns_batch(epoch, batch_id):
            self.board.finish()
            logger.info("scene batch %d done: %d ready", batch_id, self.board.ready_count)

    def _deliver(self, epoch: int, update: SlotUpdate) -> None:
        if not self._is_current(epoch):
            logger.debug("dropping stale scene slot %d of batch %d", update.index, update.batch_id)
            return
        self.board.apply(update)

    async def add_custom_scene(self, description: str) -> bool:
        self._require_stage(Stage.SCENE_SELECT)
        text = (description or "").strip()
        if not text:
            raise ValidationError("Please describe the scene you want.")
        gateway = self._require_gateway()
        if self.board.custom_busy:
            raise InvalidTransitionError("a custom scene is already being generated")

        epoch = self.session.epoch
        board = self.board
        board.custom_busy = True
        board.custom_error = None
        try:
            generated, category = await asyncio.gather(gateway.render_scene(text), gateway.categorize(text))
            scene = Scene(description=text, image_url=generated.to_data_url(), category=category)
        except Exception as exc:
            if self._is_current(epoch):
                board.custom_busy = False
                board.custom_error = str(exc) or "Failed to generate the scene image."
            return False

        if not self._is_current(epoch):
            return False
        board.custom_busy = False
        board.prepend(scene)
        board.category_filter = category
        return True

    def set_category_filter(self, category: SceneCategory | str | None) -> None:
        self._require_stage(Stage.SCENE_SELECT)
        if category is None or category == "":
            self.board.category_filter = None
            return
        try:
            self.board.category_filter = SceneCategory(category)
        except ValueError:
            raise ValidationError(f"unknown scene category '{category}'") from None

    def select_scene(self, index: int) -> Scene:
        self._require_stage(Stage.SCENE_SELECT)
        slots = self.board.slots
        if not 0 <= index < len(slots):
            raise ValidationError(f"no scene at position {index}")
        slot = slots[index]
        if slot.status is not SlotStatus.READY or slot.scene is None:
            raise ValidationError("this scene is not ready yet")
        self._set_scene(slot.scene, template=None)
        return slot.scene

    def select_template(self, template_id: str) -> Scene:
        self._require_stage(Stage.SCENE_SELECT)
        template = next((t for t in self.templates if t.id == template_id), None)
        if template is None:
            raise ValidationError(f"unknown template '{template_id}'")
        scene = template.to_scene()
        self._set_scene(scene, template=template)
        return scene

    def _set_scene(self, scene: Scene, template: AdTemplate | None) -> None:
        if scene != self.session.scene or template != self.session.template:
            self.suggestion = None
            self.text_draft = None
            self._drop_suggestion_request()
        self.session.scene = scene
        self.session.template = template
        self._advance(Stage.SIZE_SELECT)

    # -- stage 3: size -------------------------------------------------------

    def select_size(self, size: AdSize | str) -> AdSize:
        self._require_stage(Stage.SIZE_SELECT)
        try:
            chosen = AdSize(size)
        except ValueError:
            raise ValidationError(f"unsupported ad size '{size}'") from None
        self.session.size = chosen
        self._advance(Stage.TEXT_COMPOSE)
        return chosen

    # -- stage 4: text -------------------------------------------------------

    def default_font_style(self) -> FontStyle:
        template = self.session.template
        return template.font_style if template else FontStyle.MODERN

    def _current_text(self) -> AdText | None:
        return self.text_draft or self.session.ad_text

    async def suggest_text(self) -> AdCopy | None:
        self._require_stage(Stage.TEXT_COMPOSE)
        gateway = self._require_gateway()
        if self.text_busy:
            raise InvalidTransitionError("ad text is already being generated")
        analysis, scene = self.session.analysis, self.session.scene
        assert analysis is not None and scene is not None

        epoch = self.session.epoch
        self._text_attempt += 1
        attempt = self._text_attempt
        self.text_busy = True
        self.text_error = None
        try:
            copy = await gateway.compose_text(analysis.analysis.materials, scene.description)
        except Exception as exc:
            if self._owns_suggestion(epoch, attempt):
                self.text_busy = False
                self.text_error = str(exc) or "Failed to generate the ad text."
            return None

        if not self._owns_suggestion(epoch, attempt):
            logger.debug("dropping stale ad text suggestion (attempt %d)", attempt)
            return None
        self.text_busy = False
        current = self._current_text()
        self.suggestion = copy
        self.text_draft = AdText(
            headline=copy.headline[:HEADLINE_MAX_CHARS],
            body=copy.body[:BODY_MAX_CHARS],
            font_style=current.font_style if current else self.default_font_style(),
        )
        return copy

    def _owns_suggestion(self, epoch: int, attempt: int) -> bool:
        return (
            self._is_current(epoch)
            and attempt == self._text_attempt
            and self.session.stage is Stage.TEXT_COMPOSE
        )

    def _drop_suggestion_request(self) -> None:
        self._text_attempt += 1
        self.text_busy = False

    def submit_text(self, headline: str, body: str, font_style: FontStyle | str | None = None) -> AdText:
        self._require_stage(Stage.TEXT_COMPOSE)
        headline = (headline or "").strip()
        body = (body or "").strip()
        if not headline or not body:
            raise ValidationError("Both a headline and body text are required.")
        if len(headline) > HEADLINE_MAX_CHARS:
            raise ValidationError(f"The headline can be at most {HEADLINE_MAX_CHARS} characters.")
        if len(body) > BODY_MAX_CHARS:
            raise ValidationError(f"The body text can be at most {BODY_MAX_CHARS} characters.")
        if font_style is None or font_style == "":
            style = self.default_font_style()
        else:
            try:
                style = FontStyle(font_style)
            except ValueError:
                raise ValidationError(f"unknown font style '{font_style}'") from None

        text = AdText(headline=headline, body=body, font_style=style)
        self.session.ad_text = text
        self.text_draft = None
        self._drop_suggestion_request()
        self.text_error = None
        self._advance(Stage.CUSTOM_INSTRUCTIONS)
        return text

    # -- stage 5: custom instructions ----------------------------------------

    def submit_instructions(self, instructions: str = "") -> str:
        self._require_stage(Stage.CUSTOM_INSTRUCTIONS)
        self.session.custom_instructions = (instructions or "").strip()
        self._advance(Stage.CONFIRM_AND_GENERATE)
        return self.session.custom_instructions

    # -- stages 6-7: confirm, generate, result ---------------------------------

    def _begin_generation(self) -> Coroutine[Any, Any, bool]:
        self._require_stage(Stage.CONFIRM_AND_GENERATE)
        gateway = self._require_gateway()
        request = FinalRequest.from_session(self.session)
        attempt = self.final.begin()
        self._advance(Stage.VIEW_RESULT)
        return self._render_final(gateway, self.session.epoch, attempt, request)

    async def generate(self) -> bool:
        """Run the final render to completion. Returns True when an image was produced."""
        return await self._begin_generation()

    def start_generation(self) -> asyncio.Task[bool]:
        """Like generate(), but the render runs in the background."""
        return self.spawn(self._begin_generation())

    async def _render_final(
        self,
        gateway: GenerationGateway,
        epoch: int,
        attempt: int,
        request: FinalRequest,
    ) -> bool:
        final = self.final
        try:
            generated = await gateway.render_final(
                request.product,
                request.scene.description,
                request.size,
                request.ad_text,
                request.instructions,
            )
            generated = replace(generated, image=fit_to_ad_size(generated.image, request.size))
        except Exception as exc:
            if self._is_current(epoch):
                final.fail(attempt, str(exc) or "Failed to create the final image.")
            return False

        if not self._is_current(epoch):
            logger.debug("dropping stale final render (epoch %d)", epoch)
            return False
        return final.succeed(attempt, generated)

    def _require_result(self) -> GeneratedImage:
        if self.session.stage is not Stage.VIEW_RESULT or self.final.phase is not FinalPhase.RESULT:
            raise InvalidTransitionError("no finished advertisement to export")
        assert self.final.result is not None
        return self.final.result

    def download(self, directory: Path | str | None = None, filename: str | None = None) -> Path:
        result = self._require_result()
        out_dir = directory or Path(self.settings.data_dir) / "downloads"
        return write_download(result, directory=out_dir, filename=filename)

    async def share(self, target: ShareTarget | None = None) -> None:
        result = self._require_result()
        target = target or self.share_target
        if target is None:
            raise SharingUnsupportedError("Sharing is not supported on this platform.")
        payload = SharePayload(
            filename=default_download_name(),
            content=result.to_png_bytes(),
            title="AI generated advertisement",
            text=self.session.ad_text.headline if self.session.ad_text else "",
        )
        try:
            await target(payload)
        except Exception as exc:
            logger.warning("share failed: %s", exc)
            raise RemoteOperationError("share", "Sharing failed.") from exc

    # -- navigation -----------------------------------------------------------

    def back(self) -> Stage:
        """Step back exactly one stage. Collected data is kept."""
        stage = self.session.stage
        if stage is Stage.UPLOAD:
            return stage
        if stage is Stage.VIEW_RESULT:
            self.final.reset()
        if stage is Stage.TEXT_COMPOSE:
            self._drop_suggestion_request()
        self._advance(Stage(stage - 1))
        return self.session.stage

    def restart(self) -> None:
        """
        Clear everything and return to the upload stage. Work still in flight
        finishes in the background and is ignored.
        """
        self.session.reset()
        self.board = SceneBoard()
        self.final = FinalComposition()
        self.upload_busy = False
        self.upload_error = None
        self.text_busy = False
        self.text_error = None
        self.suggestion = None
        self.text_draft = None
        logger.info("wizard restarted (epoch %d)", self.session.epoch)

    # -- rendering -------------------------------------------------------------

    def render(self) -> StageView | None:
        """
        View model of the current stage, or None if the session lacks a field the
        stage depends on.
        """
        s = self.session
        missing = s.missing_for(s.stage)
        if missing:
            logger.warning("refusing to render %s, missing: %s", s.stage.name, ", ".join(missing))
            return None

        if s.stage is Stage.UPLOAD:
            return UploadView(
                accepted_mime_types=tuple(self.settings.accepted_mime_types),
                busy=self.upload_busy,
                error=self.upload_error,
            )

        assert s.uploaded_image is not None and s.analysis is not None
        if s.stage is Stage.SCENE_SELECT:
            return SceneSelectView(
                product_image_url=s.uploaded_image.data_url,
                colors=s.analysis.colors,
                analysis=s.analysis.analysis,
                loading=self.board.loading,
                slots=scene_select_slots(self.board),
                category_filter=self.board.category_filter,
                templates=self.templates,
                error=self.board.error,
                custom_busy=self.board.custom_busy,
                custom_error=self.board.custom_error,
            )

        assert s.scene is not None
        if s.stage is Stage.SIZE_SELECT:
            return SizeSelectView(scene_description=s.scene.description, options=size_options(), selected=s.size)

        if s.stage is Stage.TEXT_COMPOSE:
            current = self._current_text()
            return TextComposeView(
                materials=s.analysis.analysis.materials,
                scene_description=s.scene.description,
                headline=current.headline if current else "",
                body=current.body if current else "",
                font_style=current.font_style if current else self.default_font_style(),
                font_styles=tuple(FontStyle),
                suggestion=self.suggestion,
                busy=self.text_busy,
                error=self.text_error,
            )

        if s.stage is Stage.CUSTOM_INSTRUCTIONS:
            if s.custom_instructions is not None:
                instructions = s.custom_instructions
            else:
                instructions = s.template.text_prompt_instruction if s.template else ""
            return CustomInstructionsView(instructions=instructions)

        assert s.size is not None and s.ad_text is not None
        if s.stage is Stage.CONFIRM_AND_GENERATE:
            return ConfirmView(
                product_image_url=s.uploaded_image.data_url,
                scene_description=s.scene.description,
                size=s.size,
                headline=s.ad_text.headline,
                body=s.ad_text.body,
                font_style=s.ad_text.font_style,
                instructions=s.custom_instructions or "",
            )

        result = self.final.result
        return ResultView(
            phase=self.final.phase,
            image_url=result.to_data_url() if result is not None else None,
            error=self.final.error,
            download_name=default_download_name() if result is not None else None,
        )
