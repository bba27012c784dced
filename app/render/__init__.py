"""Render engine: isolated, readiness-aware PDF and screenshot production.

Every job runs in its own browser context, which is torn down on every exit
path. Failures are returned as classified errors rather than raised.
"""

__version__ = "1.0.0"

from .models import (
    RenderJob,
    JobKind,
    DocumentOptions,
    CaptureOptions,
    CaptureResult,
    ClassifiedError,
    ErrorKind,
    JobEvent,
    JobState,
)
from .errors import ErrorClassifier, RenderError
from .presets import PresetRegistry, RenderPreset
from .capture import RequestCoordinator, RequestCoordinatorConfig, create_request_coordinator

__all__ = [
    "RenderJob",
    "JobKind",
    "DocumentOptions",
    "CaptureOptions",
    "CaptureResult",
    "ClassifiedError",
    "ErrorKind",
    "JobEvent",
    "JobState",
    "ErrorClassifier",
    "RenderError",
    "PresetRegistry",
    "RenderPreset",
    "RequestCoordinator",
    "RequestCoordinatorConfig",
    "create_request_coordinator",
]
