"""API schemas for the render service."""

# Request schemas
from .requests import (
    MarginPayload,
    DocumentOptionsPayload,
    GeneratePdfRequest,
    CaptureOptionsPayload,
    CaptureScreenshotRequest,
)

# Response schemas
from .responses import (
    ErrorDetail,
    ViewportInfo,
    DocumentRenderResponse,
    CaptureRenderResponse,
    FailureResponse,
    HealthResponse,
)

__all__ = [
    # Request schemas
    "MarginPayload",
    "DocumentOptionsPayload",
    "GeneratePdfRequest",
    "CaptureOptionsPayload",
    "CaptureScreenshotRequest",

    # Response schemas
    "ErrorDetail",
    "ViewportInfo",
    "DocumentRenderResponse",
    "CaptureRenderResponse",
    "FailureResponse",
    "HealthResponse",
]
