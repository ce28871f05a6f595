# launcher.py

import asyncio
import os
from pathlib import Path
from typing import Optional

import httpx

from config import TARGET_APP_DOWNLOAD_URL, TARGET_APP_FILENAME, TARGET_APP_STARTUP_DELAY, TEMP_DIR
from errors import ActionError
from ui_driver import UIDriver
from utils import log


async def download_target_application(
    url: str = TARGET_APP_DOWNLOAD_URL,
    destination_dir: str = TEMP_DIR,
    filename: str = TARGET_APP_FILENAME,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Path:
    """Downloads the target application once; later calls reuse the cached file."""
    destination = Path(destination_dir) / filename
    if destination.exists():
        log.info(f"Target application already exists at {destination}, skipping download.")
        return destination

    log.info(f"Downloading target application to {destination}...")
    partial = destination.with_name(destination.name + ".part")
    async with httpx.AsyncClient(follow_redirects=True, timeout=300, transport=transport) as client:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with open(partial, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)
    os.replace(partial, destination)
    log.info(f"Target application downloaded to: {destination}")
    return destination


async def launch_target_application(driver: UIDriver, path, startup_delay: float = TARGET_APP_STARTUP_DELAY):
    """Opens the target application and gives it time to show its window."""
    log.info(f"Launching target application {path}...")
    await driver.open_application(str(path))
    if startup_delay > 0:
        await asyncio.sleep(startup_delay)
    log.info("Target application launched.")


async def start_target_application(driver: UIDriver, startup_delay: float = TARGET_APP_STARTUP_DELAY):
    """Downloads the target application if needed and opens it. Any failure is an ActionError."""
    try:
        app_path = await download_target_application()
    except (httpx.HTTPError, OSError) as e:
        raise ActionError("download_target_application", f"Could not fetch {TARGET_APP_DOWNLOAD_URL}: {e}") from e
    await launch_target_application(driver, app_path, startup_delay)
