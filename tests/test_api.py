from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from adwizard.api.app import GatewayState, app, get_gateway_state, wizards

from conftest import PRODUCT_BYTES, StubGateway


@pytest.fixture()
def client(gateway: StubGateway):
    app.dependency_overrides[get_gateway_state] = lambda: GatewayState(gateway, None)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    wizards.clear()


def poll(client: TestClient, wizard_id: str, done, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        screen = client.get(f"/wizards/{wizard_id}").json()
        if done(screen) or time.monotonic() > deadline:
            return screen
        time.sleep(0.02)


def upload(client: TestClient, wizard_id: str, mime: str = "image/jpeg"):
    return client.post(
        f"/wizards/{wizard_id}/upload",
        files={"file": ("product.jpg", PRODUCT_BYTES, mime)},
    )


def test_catalog_endpoints(client: TestClient):
    templates = client.get("/templates").json()
    assert len(templates) == 6
    assert templates[0]["id"] == "template-1"

    sizes = client.get("/sizes").json()
    assert [s["size"] for s in sizes] == ["1080x1080", "1080x1920", "1200x628", "2000x2000"]
    assert sizes[1]["platform"] == "Instagram Story"


def test_walk_through_the_wizard(client: TestClient):
    screen = client.post("/wizards").json()
    wid = screen["wizard_id"]
    assert screen["stage"] == 1
    assert screen["view"]["accepted_mime_types"] == ["image/jpeg", "image/png"]

    r = upload(client, wid)
    assert r.status_code == 200
    assert r.json()["stage_name"] == "SCENE_SELECT"

    screen = poll(client, wid, lambda s: not s["view"]["loading"])
    slots = screen["view"]["slots"]
    assert [s["status"] for s in slots] == ["ready"] * 10
    assert screen["view"]["analysis"]["materials"] == "wood"

    assert client.post(f"/wizards/{wid}/scenes/2/select").json()["stage"] == 3
    assert client.post(f"/wizards/{wid}/size", data={"size": "1080x1080"}).json()["stage"] == 4

    screen = client.post(f"/wizards/{wid}/text/suggest").json()
    assert screen["view"]["headline"] == "Crafted in Wood"

    screen = client.post(
        f"/wizards/{wid}/text",
        data={"headline": "Quality You Deserve", "body": "Handmade from solid oak.", "font_style": "Modern"},
    ).json()
    assert screen["stage"] == 5
    screen = client.post(f"/wizards/{wid}/instructions", data={"instructions": ""}).json()
    assert screen["stage"] == 6
    assert screen["view"]["headline"] == "Quality You Deserve"

    screen = client.post(f"/wizards/{wid}/generate").json()
    assert screen["stage"] == 7
    screen = poll(client, wid, lambda s: s["view"]["phase"] != "generating")
    assert screen["view"]["phase"] == "result"

    r = client.get(f"/wizards/{wid}/result", params={"filename": "../campaign.png"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/png"
    assert r.headers["content-disposition"] == 'attachment; filename="campaign.png"'

    r = client.get(f"/wizards/{wid}/result", params={"filename": 'x"; evil=1\r\nSet-Cookie: a.png'})
    assert r.headers["content-disposition"] == 'attachment; filename="x___evil_1__Set-Cookie__a.png"'
    assert "set-cookie" not in r.headers

    assert client.post(f"/wizards/{wid}/share").status_code == 501

    screen = client.post(f"/wizards/{wid}/restart").json()
    assert screen["stage"] == 1
    assert client.get(f"/wizards/{wid}/result").status_code == 404


def test_custom_scene_and_filter(client: TestClient):
    wid = client.post("/wizards").json()["wizard_id"]
    upload(client, wid)
    poll(client, wid, lambda s: not s["view"]["loading"])

    screen = client.post(f"/wizards/{wid}/scenes/custom", data={"description": "a red velvet sofa"}).json()
    view = screen["view"]
    assert view["category_filter"] == "Luxury"
    assert view["slots"][0]["description"] == "a red velvet sofa"

    screen = client.post(f"/wizards/{wid}/scenes/filter", data={"category": ""}).json()
    assert len(screen["view"]["slots"]) == 11


def test_template_and_back(client: TestClient):
    wid = client.post("/wizards").json()["wizard_id"]
    upload(client, wid)
    screen = client.post(f"/wizards/{wid}/templates/template-4/select").json()
    assert screen["stage"] == 3
    assert screen["view"]["scene_description"].startswith("A light wood backdrop")

    screen = client.post(f"/wizards/{wid}/back").json()
    assert screen["stage"] == 2


def test_error_statuses(client: TestClient):
    wid = client.post("/wizards").json()["wizard_id"]

    r = upload(client, wid, mime="image/gif")
    assert r.status_code == 422
    assert r.json()["error"] == "ValidationError"

    r = client.post(f"/wizards/{wid}/size", data={"size": "1080x1080"})
    assert r.status_code == 409

    assert client.get("/wizards/nope").status_code == 404

    assert client.delete(f"/wizards/{wid}").json() == {"deleted": wid}
    assert client.get(f"/wizards/{wid}").status_code == 404


def test_unconfigured_gateway_is_reported():
    app.dependency_overrides[get_gateway_state] = lambda: GatewayState(None, "GEMINI_API_KEY is not set")
    try:
        with TestClient(app) as c:
            screen = c.post("/wizards").json()
            assert screen["configuration_error"] == "GEMINI_API_KEY is not set"
            r = upload(c, screen["wizard_id"])
            assert r.status_code == 503
            assert r.json()["detail"] == "GEMINI_API_KEY is not set"
    finally:
        app.dependency_overrides.clear()
        wizards.clear()
