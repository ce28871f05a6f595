"""Tests for the HTTP service that starts and reports pipeline runs."""

from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

import main
from capture import BytesCapture, ScreenshotCapture
from pipeline import FormFillingOrchestrator
from fakes import ERP_ELEMENT_IDS_JSON, FakeInferenceClient, FakeUIDriver, SMITH_ORDER_JSON


@pytest.fixture
def client(pipeline_settings):
    drivers = []

    @asynccontextmanager
    async def fake_factory(run_id, image_bytes, mime_type, launch_target):
        driver = FakeUIDriver()
        drivers.append(driver)
        capture = BytesCapture(image_bytes, mime_type) if image_bytes else ScreenshotCapture(driver)
        inference = FakeInferenceClient(SMITH_ORDER_JSON, ERP_ELEMENT_IDS_JSON)
        yield FormFillingOrchestrator(pipeline_settings, inference, driver, capture, run_id=run_id)

    main.app.state.pipeline_factory = fake_factory
    main.app.state.active_run_id = None
    test_client = TestClient(main.app)
    test_client.drivers = drivers
    yield test_client
    main.app.state.pipeline_factory = main.default_pipeline_factory
    main.app.state.active_run_id = None


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["docs_url"] == "/docs"


def test_unknown_run_is_404(client):
    assert client.get("/status/does-not-exist").status_code == 404


def test_run_from_uploaded_screenshot_completes(client):
    response = client.post("/runs/", files={"file": ("order.png", b"\x89PNG-order", "image/png")})
    assert response.status_code == 202
    run_id = response.json()["run_id"]

    run_status = client.get(f"/status/{run_id}").json()
    assert run_status["status"] == "Completed"
    assert run_status["state"] == "Done"
    assert run_status["articles_filled"] == 2
    assert client.drivers[0].actions[-1] == ("invoke", "btnSave")
    assert ("capture_snapshot",) not in client.drivers[0].reads


def test_run_without_upload_uses_live_screenshot(client):
    response = client.post("/runs/")
    assert response.status_code == 202
    assert client.drivers[0].reads[0] == ("capture_snapshot",)


def test_rejects_unsupported_upload(client):
    response = client.post("/runs/", files={"file": ("order.pdf", b"%PDF", "application/pdf")})
    assert response.status_code == 400


def test_second_run_while_active_is_rejected(client):
    main.app.state.active_run_id = "busy-run"
    response = client.post("/runs/")
    assert response.status_code == 409


def test_launch_target_opens_erp_only_after_live_screenshot(client, monkeypatch, pipeline_settings):
    driver = FakeUIDriver()
    inference = FakeInferenceClient(SMITH_ORDER_JSON, ERP_ELEMENT_IDS_JSON)
    reads_at_launch = []

    async def fake_start_target(started_driver):
        reads_at_launch.append(list(started_driver.reads))
        await started_driver.open_application("erp.exe")

    monkeypatch.setattr(main, "load_settings", lambda: (None, pipeline_settings))
    monkeypatch.setattr(main, "OpenAIInferenceClient", lambda settings: inference)
    monkeypatch.setattr(main, "AutomationServerDriver", lambda *args, **kwargs: driver)
    monkeypatch.setattr(main, "start_target_application", fake_start_target)
    main.app.state.pipeline_factory = main.default_pipeline_factory

    response = client.post("/runs/", params={"launch_target": "true"})

    assert response.status_code == 202
    assert reads_at_launch == [[("capture_snapshot",)]]
    assert driver.actions[0] == ("open_application", "erp.exe")
    assert driver.actions[-1] == ("invoke", "btnSave")
    assert client.get(f"/status/{response.json()['run_id']}").json()["status"] == "Completed"
    assert driver.closed and inference.closed
