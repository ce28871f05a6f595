# capture.py

from typing import Protocol

from schemas import DocumentSnapshot
from ui_driver import UIDriver
from utils import log


class DocumentCapture(Protocol):
    async def capture(self) -> DocumentSnapshot: ...


class ScreenshotCapture:
    """Captures whatever the screen currently shows, e.g. an order email already opened in a mail client."""
    def __init__(self, driver: UIDriver):
        self._driver = driver

    async def capture(self) -> DocumentSnapshot:
        log.info("Taking screenshot of the order document...")
        return await self._driver.capture_snapshot()


class BytesCapture:
    """Wraps an image that was uploaded or captured elsewhere."""
    def __init__(self, image_bytes: bytes, mime_type: str = "image/jpeg"):
        self._image_bytes = image_bytes
        self._mime_type = mime_type

    async def capture(self) -> DocumentSnapshot:
        if not self._image_bytes:
            return DocumentSnapshot(success=False, message="Empty image payload.")
        return DocumentSnapshot(image_bytes=self._image_bytes, success=True, mime_type=self._mime_type)
