# pipeline.py

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from api_client import InferenceClient
from capture import DocumentCapture
from config import PipelineSettings
from errors import (
    ActionError, CaptureError, PipelineError, Reason, Result, Stage, StabilityTimeoutError,
)
from extraction import StructuredExtractor
from locator import TargetWindowLocator
from resolution import UIElementResolver
from schemas import DocumentSnapshot, ElementRoleMap, Order, OrderedArticle, RunStatus
from stability import FIELD, HEADER, ITEM, SAVE, Settler, build_settler
from ui_driver import UIDriver
from utils import log


class PipelineState(str, Enum):
    IDLE = "Idle"
    CAPTURED = "Captured"
    EXTRACTED = "Extracted"
    WINDOW_LOCATED = "WindowLocated"
    RESOLVED = "Resolved"
    HEADER_FILLED = "HeaderFilled"
    LINE_ITEM_FILLED = "LineItemFilled"
    SAVED = "Saved"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class RunReport:
    """What one pipeline run did: final state, every transition taken and the failure, if any."""
    run_id: str
    state: PipelineState = PipelineState.IDLE
    transitions: List[str] = field(default_factory=list)
    order: Optional[Order] = None
    element_map: Optional[ElementRoleMap] = None
    articles_filled: int = 0
    error: Optional[PipelineError] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE

    def raise_for_failure(self) -> None:
        if self.error is not None:
            raise self.error


class FormFillingOrchestrator:
    """
    Runs capture -> extract -> locate -> resolve -> fill -> save once, strictly in that order.

    Every stage yields a Result; the first failure moves the run to Failed and no further UI
    action is attempted. Values already entered into the target application are left as they are.
    """
    def __init__(
        self,
        settings: PipelineSettings,
        inference: InferenceClient,
        driver: UIDriver,
        capture: DocumentCapture,
        run_id: Optional[str] = None,
        prepare_target: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._settings = settings
        self._driver = driver
        self._capture_source = capture
        self._prepare_target = prepare_target
        self._extractor = StructuredExtractor(inference)
        self._resolver = UIElementResolver(inference)
        self._locator = TargetWindowLocator(driver, settings.target_window_title)
        self.run_id = run_id or str(uuid.uuid4())

    def _context(self, stage: Union[Stage, str]) -> str:
        stage_name = stage.value if isinstance(stage, Stage) else stage
        return f"Run:{self.run_id}|Stage:{stage_name}"

    async def run(self, status: Optional[RunStatus] = None) -> RunReport:
        report = RunReport(run_id=self.run_id)
        if status is not None:
            status.status = "Running"
        log.info(f"[{self._context('Start')}] Starting order entry pipeline for window '{self._settings.target_window_title}'.")

        snapshot = await self._capture()
        if not snapshot.ok:
            return self._fail(report, snapshot.error, status)
        self._advance(report, PipelineState.CAPTURED, status, "Captured order document.")

        # Started after capture so a live screenshot still shows the order document.
        prepared = await self._start_target()
        if not prepared.ok:
            return self._fail(report, prepared.error, status)

        extracted = await self._extractor.extract(snapshot.value, context=self._context(Stage.EXTRACT))
        if not extracted.ok:
            return self._fail(report, extracted.error, status)
        order = report.order = extracted.value
        self._advance(report, PipelineState.EXTRACTED, status,
                      f"Extracted order for '{order.customer_name}' with {len(order.ordered_articles)} article(s).")

        located = await self._locator.locate(context=self._context(Stage.LOCATE))
        if not located.ok:
            return self._fail(report, located.error, status)
        tree = located.value
        self._advance(report, PipelineState.WINDOW_LOCATED, status, f"Located window {tree.window_id}.")

        resolved = await self._resolver.resolve(tree, context=self._context(Stage.RESOLVE))
        if not resolved.ok:
            return self._fail(report, resolved.error, status)
        role_map = report.element_map = resolved.value
        self._advance(report, PipelineState.RESOLVED, status, "Resolved element ids for all roles.")

        settler = build_settler(self._settings, self._driver, tree.window_id)

        header = await self._fill_header(order, role_map, settler)
        if not header.ok:
            return self._fail(report, header.error, status)
        self._advance(report, PipelineState.HEADER_FILLED, status, "Entered customer name.")

        for k, article in enumerate(order.ordered_articles, start=1):
            item = await self._fill_line_item(k, article, role_map, settler)
            if not item.ok:
                return self._fail(report, item.error, status)
            report.articles_filled = k
            self._advance(report, PipelineState.LINE_ITEM_FILLED, status,
                          f"Added article {k}/{len(order.ordered_articles)}: {article.article_name}",
                          label=f"{PipelineState.LINE_ITEM_FILLED.value}({k})")

        saved = await self._save(role_map, settler)
        if not saved.ok:
            return self._fail(report, saved.error, status)
        self._advance(report, PipelineState.SAVED, status, "Saved order.")

        self._advance(report, PipelineState.DONE, status, "Data entry automation complete.")
        if status is not None:
            status.status = "Completed"
        return report

    async def _capture(self) -> Result[DocumentSnapshot]:
        try:
            snapshot = await self._capture_source.capture()
        except ActionError as e:
            return Result.failure(CaptureError(str(e)))
        if snapshot is None or not snapshot.success:
            message = snapshot.message if snapshot is not None else None
            return Result.failure(CaptureError(message or "Could not get document screenshot."))
        log.info(f"[{self._context(Stage.CAPTURE)}] Successfully captured document ({len(snapshot.image_bytes)} bytes).")
        return Result.success(snapshot)

    async def _start_target(self) -> Result[None]:
        if self._prepare_target is None:
            return Result.success(None)
        log.info(f"[{self._context(Stage.LOCATE)}] Starting target application...")
        try:
            await self._prepare_target()
        except ActionError as e:
            return Result.failure(_action_failure(Stage.LOCATE, e, "starting target application"))
        return Result.success(None)

    async def _fill_header(self, order: Order, role_map: ElementRoleMap, settler: Settler) -> Result[None]:
        log.info(f"[{self._context(Stage.FILL_HEADER)}] Entering customer name: {order.customer_name} "
                 f"into element {role_map.customer_name}")
        try:
            await self._driver.set_value(role_map.customer_name, order.customer_name)
            await settler.settle(HEADER)
        except (ActionError, StabilityTimeoutError) as e:
            return Result.failure(_action_failure(Stage.FILL_HEADER, e))
        return Result.success(None)

    async def _fill_line_item(self, k: int, article: OrderedArticle, role_map: ElementRoleMap, settler: Settler) -> Result[None]:
        log.info(f"[{self._context(Stage.FILL_LINE_ITEM)}] Entering article {k}: {article.article_name} "
                 f"x {article.quantity_text} @ {article.price_text}")
        try:
            await self._driver.set_value(role_map.article_name, article.article_name)
            await settler.settle(FIELD)
            await self._driver.set_value(role_map.quantity, article.quantity_text)
            await settler.settle(FIELD)
            await self._driver.set_value(role_map.price_per_unit, article.price_text)
            await settler.settle(FIELD)
            log.info(f"[{self._context(Stage.FILL_LINE_ITEM)}] Clicking 'Add Item' button...")
            await self._driver.invoke(role_map.add_item_button)
            await settler.settle(ITEM)
        except (ActionError, StabilityTimeoutError) as e:
            return Result.failure(_action_failure(Stage.FILL_LINE_ITEM, e, f"article {k}"))
        return Result.success(None)

    async def _save(self, role_map: ElementRoleMap, settler: Settler) -> Result[None]:
        log.info(f"[{self._context(Stage.SAVE)}] Clicking 'Save Order' button...")
        try:
            await self._driver.invoke(role_map.save_order_button)
            await settler.settle(SAVE)
        except (ActionError, StabilityTimeoutError) as e:
            return Result.failure(_action_failure(Stage.SAVE, e))
        return Result.success(None)

    def _advance(self, report: RunReport, state: PipelineState, status: Optional[RunStatus], details: str, label: Optional[str] = None):
        report.state = state
        report.transitions.append(label or state.value)
        log.info(f"[{self._context(label or state.value)}] {details}")
        if status is None:
            return
        total_articles = len(report.order.ordered_articles) if report.order else 0
        # Captured .. Done is seven transitions plus one per article.
        expected_transitions = 7 + max(total_articles, 1)
        status.state = label or state.value
        status.details = details
        status.customer_name = report.order.customer_name if report.order else None
        status.total_articles = total_articles
        status.articles_filled = report.articles_filled
        status.progress_percent = min(100.0, len(report.transitions) / expected_transitions * 100)

    def _fail(self, report: RunReport, error: PipelineError, status: Optional[RunStatus]) -> RunReport:
        report.state = PipelineState.FAILED
        report.error = error
        report.transitions.append(PipelineState.FAILED.value)
        stage = error.stage.value if error.stage else "Unknown"
        log.error(f"[{self._context(stage)}] Pipeline aborted: {error}. "
                  f"{report.articles_filled} article(s) were entered before the failure and are left as-is.")
        if status is not None:
            status.status = "Failed"
            status.state = PipelineState.FAILED.value
            status.failed_stage = stage
            status.failure_reason = error.reason.value
            status.details = str(error)
            status.articles_filled = report.articles_filled
        return report


def _action_failure(stage: Stage, error: Exception, where: str = "") -> PipelineError:
    reason = Reason.TIMEOUT if isinstance(error, StabilityTimeoutError) else Reason.ACTION_FAILED
    detail = f"{where}: {error}" if where else str(error)
    return PipelineError(reason, detail, stage=stage)
