# config.py

import os
import tempfile
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# --- Inference API Configuration ---
API_BASE_URL = os.getenv("API_BASE_URL") or None  # None -> provider default
API_KEY = os.getenv("API_KEY", os.getenv("OPENAI_API_KEY", ""))
API_MODEL = os.getenv("API_MODEL", "gpt-4o")
API_TIMEOUT = int(os.getenv("API_TIMEOUT", 120))
API_MAX_RETRIES = int(os.getenv("API_MAX_RETRIES", 3))
API_RETRY_BASE_DELAY = float(os.getenv("API_RETRY_BASE_DELAY", 1.0))
API_VERIFY_SSL = os.getenv("API_VERIFY_SSL", "true").lower() == "true"
EXPONENTIAL_BACKOFF_FACTOR = float(os.getenv("EXPONENTIAL_BACKOFF_FACTOR", 1.5))

# --- Automation Server Configuration ---
AUTOMATION_BASE_URL = os.getenv("AUTOMATION_BASE_URL", "http://localhost:54321")
AUTOMATION_API_KEY = os.getenv("AUTOMATION_API_KEY", os.getenv("SCREENGRASP_API_KEY", ""))
AUTOMATION_TIMEOUT = int(os.getenv("AUTOMATION_TIMEOUT", 60))
ACTION_MAX_RETRIES = int(os.getenv("ACTION_MAX_RETRIES", 3))

# --- Target Application ---
TARGET_WINDOW_TITLE = os.getenv("TARGET_WINDOW_TITLE", "ERP system")
TARGET_APP_DOWNLOAD_URL = os.getenv(
    "TARGET_APP_DOWNLOAD_URL",
    "https://www.dropbox.com/scl/fi/4qc9w57zrmmisyqu3ojnp/mini-erp-mock.exe?rlkey=x5m3ob810zt1scf0mpfn15l4v&dl=1",
)
TARGET_APP_FILENAME = os.getenv("TARGET_APP_FILENAME", "mini-erp-mock.exe")
TARGET_APP_STARTUP_DELAY = float(os.getenv("TARGET_APP_STARTUP_DELAY", 5.0))

# --- Settling between UI actions (seconds) ---
SETTLE_MODE = os.getenv("SETTLE_MODE", "fixed")  # "fixed" or "poll"
HEADER_SETTLE_DELAY = float(os.getenv("HEADER_SETTLE_DELAY", 0.5))
FIELD_SETTLE_DELAY = float(os.getenv("FIELD_SETTLE_DELAY", 0.2))
ITEM_SETTLE_DELAY = float(os.getenv("ITEM_SETTLE_DELAY", 1.0))
SAVE_SETTLE_DELAY = float(os.getenv("SAVE_SETTLE_DELAY", 0.5))
STABILITY_TIMEOUT = float(os.getenv("STABILITY_TIMEOUT", 10.0))
STABILITY_POLL_INTERVAL = float(os.getenv("STABILITY_POLL_INTERVAL", 0.25))

SUPPORTED_MIME_TYPES = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
}

TEMP_DIR = os.getenv("TEMP_DIR", tempfile.gettempdir())

LOG_FILE = os.getenv("LOG_FILE", "app_log.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class InferenceSettings(BaseModel):
    """Connection settings for the AI inference service."""
    api_key: str = ""
    base_url: Optional[str] = None
    model: str = "gpt-4o"
    timeout: float = 120.0
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0.0)
    backoff_factor: float = Field(default=1.5, ge=1.0)
    verify_ssl: bool = True


class PipelineSettings(BaseModel):
    """Everything one pipeline run needs to know, passed in explicitly."""
    target_window_title: str = Field(default="ERP system", min_length=1)
    settle_mode: str = Field(default="fixed", pattern="^(fixed|poll)$")
    header_settle_delay: float = Field(default=0.5, ge=0.0)
    field_settle_delay: float = Field(default=0.2, ge=0.0)
    item_settle_delay: float = Field(default=1.0, ge=0.0)
    save_settle_delay: float = Field(default=0.5, ge=0.0)
    stability_timeout: float = Field(default=10.0, gt=0.0)
    stability_poll_interval: float = Field(default=0.25, gt=0.0)


def load_settings() -> tuple[InferenceSettings, PipelineSettings]:
    """Builds the explicit settings values from the environment-derived defaults above."""
    inference = InferenceSettings(
        api_key=API_KEY,
        base_url=API_BASE_URL,
        model=API_MODEL,
        timeout=API_TIMEOUT,
        max_retries=API_MAX_RETRIES,
        retry_base_delay=API_RETRY_BASE_DELAY,
        backoff_factor=EXPONENTIAL_BACKOFF_FACTOR,
        verify_ssl=API_VERIFY_SSL,
    )
    pipeline = PipelineSettings(
        target_window_title=TARGET_WINDOW_TITLE,
        settle_mode=SETTLE_MODE,
        header_settle_delay=HEADER_SETTLE_DELAY,
        field_settle_delay=FIELD_SETTLE_DELAY,
        item_settle_delay=ITEM_SETTLE_DELAY,
        save_settle_delay=SAVE_SETTLE_DELAY,
        stability_timeout=STABILITY_TIMEOUT,
        stability_poll_interval=STABILITY_POLL_INTERVAL,
    )
    return inference, pipeline
