# locator.py

from typing import Optional

from errors import ActionError, LocateError, PipelineError, Reason, Result, Stage
from schemas import AutomationTreeSnapshot, SystemOverview, WindowInfo
from ui_driver import UIDriver
from utils import log


def select_target_window(overview: SystemOverview, expected_title: str) -> Optional[WindowInfo]:
    """
    Picks the window to fill: the focused window when its title is the expected one,
    otherwise the first listed window whose title contains it (both case-insensitive).
    """
    expected = expected_title.casefold()
    focused = overview.focused_window
    if focused is not None and (focused.title or "").casefold() == expected:
        return focused
    for window in overview.windows:
        if window.title and expected in window.title.casefold():
            return window
    return None


class TargetWindowLocator:
    def __init__(self, driver: UIDriver, expected_title: str):
        self._driver = driver
        self._expected_title = expected_title

    async def locate(self, context: str = "") -> Result[AutomationTreeSnapshot]:
        """Finds the target window and returns its automation tree."""
        try:
            overview = await self._driver.get_overview()
        except ActionError as e:
            return Result.failure(_driver_failure(f"Could not get system overview: {e}"))

        window = select_target_window(overview, self._expected_title)
        if window is None:
            titles = [w.title for w in overview.windows if w.title]
            log.error(f"[{context}] No window titled like '{self._expected_title}'. Open windows: {titles}")
            return Result.failure(LocateError(f"No window matching '{self._expected_title}'."))

        if window is overview.focused_window:
            log.info(f"[{context}] Using focused window {window.id} - {window.title}")
            tree = AutomationTreeSnapshot(
                window_id=window.id,
                title=window.title,
                tree_json=window.model_dump_json(),
                has_elements=bool((window.model_extra or {}).get("userInterfaceElements", True)),
            )
        else:
            log.info(f"[{context}] Found window {window.id} - {window.title}. Getting window details...")
            try:
                tree = await self._driver.get_window_details(window.id)
            except ActionError as e:
                return Result.failure(_driver_failure(f"Could not get details of window {window.id}: {e}"))

        if not tree.has_elements:
            return Result.failure(LocateError(f"Window {window.id} exposes no UI elements."))
        return Result.success(tree)


def _driver_failure(detail: str) -> PipelineError:
    # The automation server itself failed; the window may well exist.
    return PipelineError(Reason.ACTION_FAILED, detail, stage=Stage.LOCATE)
