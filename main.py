# main.py

import uuid
import asyncio
import logging
from queue import Queue
from functools import partial
from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, File, UploadFile, HTTPException, BackgroundTasks, status, Request
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware


from api_client import OpenAIInferenceClient
from capture import BytesCapture, ScreenshotCapture
from config import (
    ACTION_MAX_RETRIES, AUTOMATION_API_KEY, AUTOMATION_BASE_URL, AUTOMATION_TIMEOUT,
    SUPPORTED_MIME_TYPES, load_settings,
)
from launcher import start_target_application
from pipeline import FormFillingOrchestrator
from schemas import RunStatus
from ui_driver import AutomationServerDriver
from utils import log, setup_logger

# --- Real-time Logging Setup ---
# A thread-safe queue to hold log records
log_queue = Queue()

run_statuses: dict[str, RunStatus] = {}

class EndpointFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Exclude logs from uvicorn.access for paths that start with /status
        return record.getMessage().find("/status/") == -1

logging.getLogger("uvicorn.access").addFilter(EndpointFilter())


@asynccontextmanager
async def default_pipeline_factory(run_id: str, image_bytes: Optional[bytes], mime_type: str, launch_target: bool):
    """Wires the real inference client and automation server driver into one orchestrator."""
    inference_settings, pipeline_settings = load_settings()
    inference = OpenAIInferenceClient(inference_settings)
    driver = AutomationServerDriver(
        AUTOMATION_BASE_URL, AUTOMATION_API_KEY, timeout=AUTOMATION_TIMEOUT, max_retries=ACTION_MAX_RETRIES
    )
    try:
        capture = BytesCapture(image_bytes, mime_type) if image_bytes else ScreenshotCapture(driver)
        prepare_target = partial(start_target_application, driver) if launch_target else None
        yield FormFillingOrchestrator(
            pipeline_settings, inference, driver, capture, run_id=run_id, prepare_target=prepare_target
        )
    finally:
        await driver.close()
        await inference.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown events."""
    setup_logger(log_queue)
    log.info("Application starting up...")
    yield
    log.info("Application shutting down.")

app = FastAPI(
    title="Order Entry Automation Service",
    version="1.0.0",
    lifespan=lifespan
)
app.state.pipeline_factory = default_pipeline_factory
app.state.active_run_id = None

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


async def log_streamer():
    """Yields log records from the queue as they become available."""
    while True:
        try:
            record = await asyncio.to_thread(log_queue.get)
            yield f"data: {record}\n\n"
        except Exception:
            break

@app.get("/stream-logs")
async def stream_logs(request: Request):
    """Streams log data using Server-Sent Events (SSE)."""
    return StreamingResponse(log_streamer(), media_type="text/event-stream")


async def run_pipeline_job(run_id: str, image_bytes: Optional[bytes], mime_type: str, launch_target: bool):
    """A wrapper to run the pipeline and keep the run status current."""
    run_status = run_statuses[run_id]
    try:
        async with app.state.pipeline_factory(run_id, image_bytes, mime_type, launch_target) as orchestrator:
            report = await orchestrator.run(run_status)
        if report.succeeded:
            run_status.progress_percent = 100.0
            log.info(f"Run {run_id} completed: {report.articles_filled} article(s) entered for '{report.order.customer_name}'.")
        else:
            log.warning(f"Run {run_id} failed at stage {run_status.failed_stage}: {run_status.failure_reason}.")
    except Exception as e:
        log.exception(f"Run {run_id} failed with a critical error.")
        run_status.status = "Failed"
        run_status.details = f"A critical error occurred: {str(e)}"
    finally:
        app.state.active_run_id = None

@app.post("/runs/", status_code=status.HTTP_202_ACCEPTED)
async def start_run(
    background_tasks: BackgroundTasks, file: Optional[UploadFile] = File(None), launch_target: bool = False
):
    """Starts one order entry run, from an uploaded order screenshot or from the live screen."""
    if app.state.active_run_id is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Run {app.state.active_run_id} is still in progress against the target application.",
        )

    image_bytes, mime_type = None, "image/jpeg"
    if file is not None:
        if file.content_type not in SUPPORTED_MIME_TYPES:
            raise HTTPException(status_code=400, detail="Invalid file type. Please upload a PNG or JPEG screenshot.")
        try:
            image_bytes, mime_type = await file.read(), file.content_type
        finally:
            await file.close()

    run_id = str(uuid.uuid4())
    run_statuses[run_id] = RunStatus(run_id=run_id, status="Queued", details="Run has been queued.")
    app.state.active_run_id = run_id

    background_tasks.add_task(run_pipeline_job, run_id, image_bytes, mime_type, launch_target)

    source = file.filename if file is not None else "live screenshot"
    log.info(f"Run {run_id} started from {source}.")
    return {"message": "Run started successfully.", "run_id": run_id}

@app.get("/status/{run_id}", response_model=RunStatus)
async def get_run_status(run_id: str):
    """Retrieves the status of a pipeline run by its ID."""
    run_status = run_statuses.get(run_id)
    if not run_status:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run ID not found.")
    return run_status

@app.get("/")
async def root():
    return {
        "message": "Welcome to the Order Entry Automation API",
        "version": app.version,
        "docs_url": "/docs"
    }
