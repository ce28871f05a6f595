# ui_driver.py

import asyncio
import base64
import json
from typing import Any, Dict, Optional, Protocol

import httpx

from errors import ActionError
from schemas import AutomationTreeSnapshot, DocumentSnapshot, SystemOverview, WindowInfo
from utils import log

SET_VALUE_PATH = "/tools-api/automation/set-value"
INVOKE_PATH = "/tools-api/automation/invoke"
SCREENSHOT_PATH = "/tools-api/screenshot"
OVERVIEW_PATH = "/tools-api/system/overview"
WINDOW_DETAILS_PATH = "/tools-api/system/get-window-details"
OPEN_APPLICATION_PATH = "/tools-api/system/open-application"


class UIDriver(Protocol):
    """Capability: the UI primitives the pipeline needs. Every call may raise ActionError."""

    async def set_value(self, element_id: str, text: str) -> None: ...

    async def invoke(self, element_id: str) -> None: ...

    async def capture_snapshot(self) -> DocumentSnapshot: ...

    async def get_overview(self) -> SystemOverview: ...

    async def get_window_details(self, window_id: str) -> AutomationTreeSnapshot: ...

    async def open_application(self, app_name_or_path: str) -> None: ...


class AutomationServerDriver:
    """
    JSON-over-HTTP client of the local UI automation server.

    Read-only calls and set_value are idempotent and retried with backoff. invoke and
    open_application are never retried: repeating a button press could duplicate a line
    item or a saved order.
    """
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_factor: float = 1.5,
        retry_base_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._retry_base_delay = retry_base_delay

    async def _post(self, operation: str, path: str, payload: Dict[str, Any], element_id: Optional[str] = None) -> Dict:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
            body = response.json() if response.content else {}
        except httpx.HTTPError as e:
            raise ActionError(operation, f"{e.__class__.__name__}: {e}", element_id) from e
        except json.JSONDecodeError as e:
            raise ActionError(operation, f"Invalid JSON from automation server: {e}", element_id) from e
        if isinstance(body, dict) and body.get("success") is False:
            raise ActionError(operation, body.get("message") or "Automation server reported failure.", element_id)
        return body if isinstance(body, dict) else {}

    async def _post_idempotent(self, operation: str, path: str, payload: Dict[str, Any], element_id: Optional[str] = None) -> Dict:
        for attempt in range(self._max_retries):
            try:
                return await self._post(operation, path, payload, element_id)
            except ActionError as e:
                if attempt == self._max_retries - 1:
                    raise
                log.warning(f"{e}. Retrying ({attempt + 1}/{self._max_retries - 1})...")
                await asyncio.sleep(self._retry_base_delay * self._backoff_factor ** attempt)

    async def set_value(self, element_id: str, text: str) -> None:
        await self._post_idempotent("set_value", SET_VALUE_PATH, {"elementId": element_id, "value": text}, element_id)

    async def invoke(self, element_id: str) -> None:
        await self._post("invoke", INVOKE_PATH, {"elementId": element_id}, element_id)

    async def capture_snapshot(self) -> DocumentSnapshot:
        body = await self._post_idempotent("capture_snapshot", SCREENSHOT_PATH, {})
        image_base64 = body.get("imageBase64") or ""
        try:
            image_bytes = base64.b64decode(image_base64)
        except ValueError as e:
            raise ActionError("capture_snapshot", f"Screenshot payload is not valid base64: {e}") from e
        return DocumentSnapshot(
            image_bytes=image_bytes,
            success=bool(body.get("success", True)) and bool(image_bytes),
            mime_type=body.get("imageMimeType") or "image/jpeg",
            message=body.get("message"),
        )

    async def get_overview(self) -> SystemOverview:
        body = await self._post_idempotent("get_overview", OVERVIEW_PATH, {})
        focused = (body.get("focusInfo") or {}).get("focusedElementParentWindow")
        return SystemOverview(
            focused_window=WindowInfo.model_validate(focused) if focused else None,
            windows=[WindowInfo.model_validate(w) for w in body.get("windows") or []],
        )

    async def get_window_details(self, window_id: str) -> AutomationTreeSnapshot:
        body = await self._post_idempotent("get_window_details", WINDOW_DETAILS_PATH, {"windowId": window_id})
        window = body.get("window") or body
        return AutomationTreeSnapshot(
            window_id=window_id,
            title=window.get("title"),
            tree_json=json.dumps(body, ensure_ascii=False),
            has_elements=bool(body.get("userInterfaceElements")),
        )

    async def open_application(self, app_name_or_path: str) -> None:
        await self._post("open_application", OPEN_APPLICATION_PATH, {"appNameOrPath": app_name_or_path})

    async def close(self):
        await self._client.aclose()
