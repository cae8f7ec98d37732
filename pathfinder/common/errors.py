"""
Pipeline Errors

Error taxonomy shared by every pipeline stage, plus the StageResult value
the Orchestrator threads between stages.

Parsing, retrieval and generation errors abort a run and route through the
fallback response. Delivery and logging errors are recorded and never change
the outcome of the primary response.
"""

from dataclasses import dataclass
from typing import Any, Optional


class PipelineError(Exception):
    """Base class for every error raised inside the request pipeline."""

    category = "PipelineError"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def describe(self) -> str:
        """Category and message, as shown in technical error mode."""
        return f"{self.category}: {self.message}"


class InputValidationError(PipelineError):
    """Empty input or a missing collaborator. Never retried."""

    category = "InputValidationError"


class InputTooLongError(InputValidationError):
    """Input exceeds the configured character ceiling."""

    category = "InputTooLongError"


class ClassificationOutputError(PipelineError):
    """Classifier reply could not be parsed into an intent."""

    category = "ClassificationOutputError"


class ClassificationBackendError(ClassificationOutputError):
    """Classifier backend was unavailable or the call failed."""

    category = "ClassificationBackendError"


class IntentValidationError(PipelineError):
    """Classifier returned an intent outside the catalog or a bad confidence."""

    category = "IntentValidationError"


class DataLoadError(PipelineError):
    """Data provider failed to load content."""

    category = "DataLoadError"


class ResponseRenderError(PipelineError):
    """No response could be rendered, even after template fallback."""

    category = "ResponseRenderError"


class DeliveryError(PipelineError):
    """Message posting or webhook fan-out failed."""

    category = "DeliveryError"


class LoggingError(PipelineError):
    """Session record could not be written."""

    category = "LoggingError"


@dataclass
class StageResult:
    """Outcome of one pipeline stage."""
    ok: bool
    value: Any = None
    error: Optional[PipelineError] = None
    elapsed_ms: float = 0.0

    @classmethod
    def success(cls, value: Any, elapsed_ms: float = 0.0) -> "StageResult":
        return cls(ok=True, value=value, elapsed_ms=elapsed_ms)

    @classmethod
    def failure(cls, error: PipelineError, elapsed_ms: float = 0.0) -> "StageResult":
        return cls(ok=False, error=error, elapsed_ms=elapsed_ms)
