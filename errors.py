# errors.py

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Stage(str, Enum):
    CAPTURE = "Capture"
    EXTRACT = "Extract"
    LOCATE = "Locate"
    RESOLVE = "Resolve"
    FILL_HEADER = "FillHeader"
    FILL_LINE_ITEM = "FillLineItem"
    SAVE = "Save"


class Reason(str, Enum):
    CAPTURE_FAILED = "CaptureFailed"
    MALFORMED_RESPONSE = "MalformedResponse"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INFERENCE_FAILED = "InferenceFailed"
    WINDOW_NOT_FOUND = "WindowNotFound"
    INCOMPLETE_MAPPING = "IncompleteMapping"
    ACTION_FAILED = "ActionFailed"
    TIMEOUT = "Timeout"


class PipelineError(Exception):
    """A stage-local failure that aborts the run. Carries the failing stage and reason."""

    default_stage: Optional[Stage] = None

    def __init__(self, reason: Reason, detail: str = "", stage: Optional[Stage] = None):
        self.stage = stage or self.default_stage
        self.reason = reason
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        stage = self.stage.value if self.stage else "Unknown"
        message = f"{stage} failed: {self.reason.value}"
        return f"{message} - {self.detail}" if self.detail else message


class CaptureError(PipelineError):
    default_stage = Stage.CAPTURE

    def __init__(self, detail: str = ""):
        super().__init__(Reason.CAPTURE_FAILED, detail)


class ExtractionError(PipelineError):
    default_stage = Stage.EXTRACT


class LocateError(PipelineError):
    default_stage = Stage.LOCATE

    def __init__(self, detail: str = ""):
        super().__init__(Reason.WINDOW_NOT_FOUND, detail)


class ResolutionError(PipelineError):
    default_stage = Stage.RESOLVE


class ActionError(Exception):
    """Raised by any UI driver call. The orchestrator attributes it to the issuing stage."""

    def __init__(self, operation: str, detail: str, element_id: Optional[str] = None):
        self.operation = operation
        self.detail = detail
        self.element_id = element_id
        target = f" on '{element_id}'" if element_id else ""
        super().__init__(f"{operation}{target} failed: {detail}")


class InferenceError(Exception):
    """The inference service could not produce a response (transport or API failure)."""


class StabilityTimeoutError(TimeoutError):
    """The UI did not reach the expected state within the wait budget."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one pipeline stage: either a value or the error that stopped it."""
    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PipelineError) -> "Result[T]":
        return cls(error=error)
