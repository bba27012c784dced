"""Pydantic models for render outcomes, readiness reports and job events."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .job import JobKind


class ErrorKind(str, Enum):
    """Caller-facing failure taxonomy."""
    VALIDATION_ERROR = "ValidationError"
    NAVIGATION_TIMEOUT = "NavigationTimeout"
    NETWORK_UNREACHABLE = "NetworkUnreachable"
    NAVIGATION_FAILED = "NavigationFailed"
    CAPTURE_FAILURE = "CaptureFailure"
    JOB_TIMEOUT = "JobTimeout"
    INTERNAL_ERROR = "InternalError"


class JobState(str, Enum):
    """Lifecycle states of a render job."""
    CREATED = "created"
    CONTEXT_ACQUIRED = "context_acquired"
    CONTENT_LOADED = "content_loaded"
    NAVIGATED = "navigated"
    READINESS_EVALUATED = "readiness_evaluated"
    CAPTURED = "captured"
    CONTEXT_RELEASED = "context_released"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


class SignalOutcome(str, Enum):
    """Outcome of a single readiness signal."""
    READY = "ready"
    DEGRADED = "degraded"
    NOT_APPLICABLE = "not_applicable"


class SignalResult(BaseModel):
    """Result of one named readiness check."""

    name: str = Field(description="Signal name")
    outcome: SignalOutcome = Field(description="Signal outcome")
    duration_ms: float = Field(default=0.0, description="Time spent on the check")
    detail: Optional[str] = Field(default=None, description="Extra information")


class ReadinessReport(BaseModel):
    """Ordered results of the readiness checks run before capture."""

    signals: List[SignalResult] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """True if any signal timed out without failing the job."""
        return any(s.outcome == SignalOutcome.DEGRADED for s in self.signals)

    def get(self, name: str) -> Optional[SignalResult]:
        for signal in self.signals:
            if signal.name == name:
                return signal
        return None

    def summary(self) -> Dict[str, str]:
        return {s.name: s.outcome.value for s in self.signals}


class CaptureResult(BaseModel):
    """Raw artifact produced by a successful job."""

    data: bytes = Field(description="Artifact bytes", repr=False)
    size_bytes: int = Field(ge=0, description="Artifact length in bytes")
    content_type: str = Field(description="MIME type of the artifact")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Job metadata (format, viewport, readiness, timings)"
    )

    @property
    def success(self) -> bool:
        return True

    @property
    def readiness_degraded(self) -> bool:
        return bool(self.metadata.get('readiness_degraded', False))


class ClassifiedError(BaseModel):
    """Failure normalized into the caller-facing taxonomy."""

    kind: ErrorKind = Field(description="Failure kind")
    message: str = Field(description="User-facing message")
    job_id: Optional[str] = Field(default=None, description="Correlation identifier")
    detail: Optional[str] = Field(
        default=None,
        description="Original low-level error text"
    )

    @property
    def success(self) -> bool:
        return False


class JobEvent(BaseModel):
    """Lifecycle notification delivered to coordinator callbacks."""

    job_id: str
    kind: JobKind
    state: JobState
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    detail: Dict[str, Any] = Field(default_factory=dict)
