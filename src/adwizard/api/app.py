from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from typing import Any

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from adwizard.catalog import AD_TEMPLATES
from adwizard.config import settings
from adwizard.errors import (
    ConfigurationError,
    InvalidTransitionError,
    SharingUnsupportedError,
    ValidationError,
    WizardError,
)
from adwizard.providers.base import GenerationGateway
from adwizard.providers.registry import build_gateway
from adwizard.storage import default_download_name, safe_filename
from adwizard.wizard.controller import WizardController
from adwizard.wizard.final import FinalPhase
from adwizard.wizard.views import size_options

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="adwizard")

# Every handler touching a wizard is async so controller state is only ever
# mutated on the event loop, alongside the tasks it spawned.

# Wizard sessions are memory-only; a reload loses them.
wizards: dict[str, WizardController] = {}


class GatewayState:
    def __init__(self, gateway: GenerationGateway | None, error: str | None) -> None:
        self.gateway = gateway
        self.error = error


def get_gateway_state() -> GatewayState:
    try:
        return GatewayState(build_gateway(settings), None)
    except ConfigurationError as exc:
        logger.warning("generation gateway unavailable: %s", exc)
        return GatewayState(None, str(exc))


def _get_wizard(wizard_id: str) -> WizardController:
    wizard = wizards.get(wizard_id)
    if wizard is None:
        raise HTTPException(status_code=404, detail="wizard not found")
    return wizard


_STATUS_BY_ERROR: list[tuple[type[WizardError], int]] = [
    (ValidationError, 422),
    (InvalidTransitionError, 409),
    (ConfigurationError, 503),
    (SharingUnsupportedError, 501),
]


@app.exception_handler(WizardError)
async def _wizard_error_handler(request: Request, exc: WizardError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 502)
    return JSONResponse(status_code=status, content={"detail": str(exc), "error": type(exc).__name__})


def _screen(wizard_id: str, wizard: WizardController) -> dict[str, Any]:
    view = wizard.render()
    return {
        "wizard_id": wizard_id,
        "stage": int(wizard.stage),
        "stage_name": wizard.stage.name,
        "configuration_error": wizard.configuration_error,
        "view": jsonable_encoder(asdict(view)) if view is not None else None,
    }


@app.get("/templates")
def list_templates():
    return jsonable_encoder([asdict(t) for t in AD_TEMPLATES])


@app.get("/sizes")
def list_sizes():
    return jsonable_encoder([asdict(o) for o in size_options()])


@app.post("/wizards")
async def create_wizard(state: GatewayState = Depends(get_gateway_state)):
    wizard_id = uuid.uuid4().hex[:12]
    wizards[wizard_id] = WizardController(state.gateway, configuration_error=state.error)
    return _screen(wizard_id, wizards[wizard_id])


@app.get("/wizards/{wizard_id}")
async def get_wizard(wizard_id: str):
    return _screen(wizard_id, _get_wizard(wizard_id))


@app.delete("/wizards/{wizard_id}")
async def delete_wizard(wizard_id: str):
    _get_wizard(wizard_id)
    del wizards[wizard_id]
    return {"deleted": wizard_id}


@app.post("/wizards/{wizard_id}/upload")
async def upload_product(wizard_id: str, file: UploadFile = File(...)):
    wizard = _get_wizard(wizard_id)
    content = await file.read()
    await wizard.upload(content, file.content_type or "")
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/scenes/retry")
async def retry_scenes(wizard_id: str):
    wizard = _get_wizard(wizard_id)
    wizard.retry_scenes()
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/scenes/custom")
async def add_custom_scene(wizard_id: str, description: str = Form(...)):
    wizard = _get_wizard(wizard_id)
    await wizard.add_custom_scene(description)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/scenes/filter")
async def filter_scenes(wizard_id: str, category: str = Form("")):
    wizard = _get_wizard(wizard_id)
    wizard.set_category_filter(category or None)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/scenes/{index}/select")
async def select_scene(wizard_id: str, index: int):
    wizard = _get_wizard(wizard_id)
    wizard.select_scene(index)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/templates/{template_id}/select")
async def select_template(wizard_id: str, template_id: str):
    wizard = _get_wizard(wizard_id)
    wizard.select_template(template_id)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/size")
async def select_size(wizard_id: str, size: str = Form(...)):
    wizard = _get_wizard(wizard_id)
    wizard.select_size(size)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/text/suggest")
async def suggest_text(wizard_id: str):
    wizard = _get_wizard(wizard_id)
    await wizard.suggest_text()
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/text")
async def submit_text(
    wizard_id: str,
    headline: str = Form(""),
    body: str = Form(""),
    font_style: str = Form(""),
):
    wizard = _get_wizard(wizard_id)
    wizard.submit_text(headline, body, font_style or None)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/instructions")
async def submit_instructions(wizard_id: str, instructions: str = Form("")):
    wizard = _get_wizard(wizard_id)
    wizard.submit_instructions(instructions)
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/generate")
async def generate(wizard_id: str):
    # The final render can take minutes; clients poll GET /wizards/{id}.
    wizard = _get_wizard(wizard_id)
    wizard.start_generation()
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/back")
async def go_back(wizard_id: str):
    wizard = _get_wizard(wizard_id)
    wizard.back()
    return _screen(wizard_id, wizard)


@app.post("/wizards/{wizard_id}/restart")
async def restart(wizard_id: str):
    wizard = _get_wizard(wizard_id)
    wizard.restart()
    return _screen(wizard_id, wizard)


@app.get("/wizards/{wizard_id}/result")
async def download_result(wizard_id: str, filename: str | None = None):
    wizard = _get_wizard(wizard_id)
    if wizard.final.phase is not FinalPhase.RESULT or wizard.final.result is None:
        raise HTTPException(status_code=404, detail="no finished advertisement")
    name = safe_filename(filename or "") or default_download_name()
    return Response(
        content=wizard.final.result.to_png_bytes(),
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )


@app.post("/wizards/{wizard_id}/share")
async def share_result(wizard_id: str):
    wizard = _get_wizard(wizard_id)
    await wizard.share()
    return _screen(wizard_id, wizard)
