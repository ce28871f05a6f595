"""Tests for downloading and launching the target application."""

import httpx
import pytest

from errors import ActionError
from launcher import download_target_application, launch_target_application, start_target_application
from fakes import FakeUIDriver


@pytest.mark.asyncio
async def test_downloads_once_then_reuses_cache(tmp_path):
    downloads = []

    def handler(request):
        downloads.append(request.url)
        return httpx.Response(200, content=b"MZ-binary")

    transport = httpx.MockTransport(handler)
    first = await download_target_application("http://files.test/erp.exe", str(tmp_path), "erp.exe", transport)
    second = await download_target_application("http://files.test/erp.exe", str(tmp_path), "erp.exe", transport)

    assert first == second == tmp_path / "erp.exe"
    assert first.read_bytes() == b"MZ-binary"
    assert len(downloads) == 1


@pytest.mark.asyncio
async def test_failed_download_leaves_no_cached_file(tmp_path):
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    with pytest.raises(httpx.HTTPStatusError):
        await download_target_application("http://files.test/erp.exe", str(tmp_path), "erp.exe", transport)
    assert not (tmp_path / "erp.exe").exists()


@pytest.mark.asyncio
async def test_launch_opens_application_through_driver(tmp_path):
    driver = FakeUIDriver()
    await launch_target_application(driver, tmp_path / "erp.exe", startup_delay=0)
    assert driver.actions == [("open_application", str(tmp_path / "erp.exe"))]


@pytest.mark.asyncio
async def test_start_reports_download_failure_as_action_error(monkeypatch):
    async def failing_download():
        raise httpx.ConnectError("no route to host")

    monkeypatch.setattr("launcher.download_target_application", failing_download)
    driver = FakeUIDriver()
    with pytest.raises(ActionError, match="no route to host"):
        await start_target_application(driver, startup_delay=0)
    assert driver.actions == []


@pytest.mark.asyncio
async def test_start_downloads_then_opens(monkeypatch, tmp_path):
    async def cached_download():
        return tmp_path / "erp.exe"

    monkeypatch.setattr("launcher.download_target_application", cached_download)
    driver = FakeUIDriver()
    await start_target_application(driver, startup_delay=0)
    assert driver.actions == [("open_application", str(tmp_path / "erp.exe"))]
