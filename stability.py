# stability.py

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Protocol

from config import PipelineSettings
from errors import StabilityTimeoutError
from ui_driver import UIDriver
from utils import log

StabilityPredicate = Callable[[UIDriver], Awaitable[bool]]

HEADER = "header"
FIELD = "field"
ITEM = "item"
SAVE = "save"


async def wait_until_stable(
    driver: UIDriver,
    predicate: StabilityPredicate,
    timeout: float,
    poll_interval: float = 0.25,
    description: str = "the UI to settle",
) -> int:
    """
    Polls `predicate` until it holds and returns the number of polls it took.
    Raises StabilityTimeoutError once `timeout` seconds are spent.
    """
    deadline = time.perf_counter() + timeout
    polls = 0
    while True:
        polls += 1
        if await predicate(driver):
            return polls
        remaining = deadline - time.perf_counter()
        if remaining <= 0:
            raise StabilityTimeoutError(f"Timed out after {timeout:.2f}s waiting for {description} ({polls} polls).")
        await asyncio.sleep(min(poll_interval, remaining))


def tree_unchanged(window_id: str) -> StabilityPredicate:
    """Holds once two consecutive automation tree snapshots of the window are identical."""
    last_tree: Dict[str, Optional[str]] = {"json": None}

    async def predicate(driver: UIDriver) -> bool:
        tree = await driver.get_window_details(window_id)
        previous, last_tree["json"] = last_tree["json"], tree.tree_json
        return previous is not None and previous == tree.tree_json

    return predicate


class Settler(Protocol):
    async def settle(self, moment: str) -> None: ...


class FixedDelaySettler:
    """Waits a fixed time after each kind of action."""
    def __init__(self, delays: Dict[str, float]):
        self._delays = delays

    async def settle(self, moment: str) -> None:
        delay = self._delays.get(moment, 0.0)
        if delay > 0:
            await asyncio.sleep(delay)


class PollingSettler:
    """Waits until the target window's automation tree stops changing."""
    def __init__(self, driver: UIDriver, window_id: str, timeout: float, poll_interval: float):
        self._driver = driver
        self._window_id = window_id
        self._timeout = timeout
        self._poll_interval = poll_interval

    async def settle(self, moment: str) -> None:
        polls = await wait_until_stable(
            self._driver,
            tree_unchanged(self._window_id),
            self._timeout,
            self._poll_interval,
            description=f"window {self._window_id} to settle after {moment}",
        )
        log.debug(f"Window {self._window_id} settled after {moment} in {polls} poll(s).")


def build_settler(settings: PipelineSettings, driver: UIDriver, window_id: str) -> Settler:
    if settings.settle_mode == "poll":
        return PollingSettler(driver, window_id, settings.stability_timeout, settings.stability_poll_interval)
    return FixedDelaySettler({
        HEADER: settings.header_settle_delay,
        FIELD: settings.field_settle_delay,
        ITEM: settings.item_settle_delay,
        SAVE: settings.save_settle_delay,
    })
