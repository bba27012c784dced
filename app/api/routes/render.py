"""Render API routes for the render service.

This module implements the PDF and screenshot endpoints. Each request
becomes exactly one render job whose identifier is the request id, so log
lines from the HTTP layer and the engine correlate.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from app.api.schemas import (
    CaptureRenderResponse,
    CaptureScreenshotRequest,
    DocumentRenderResponse,
    FailureResponse,
    GeneratePdfRequest,
)
from app.render import ClassifiedError, ErrorKind, RequestCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Render"],
    responses={
        400: {"model": FailureResponse, "description": "Invalid Input"},
        422: {"model": FailureResponse, "description": "Malformed Request"},
        500: {"model": FailureResponse, "description": "Render Failure"},
        503: {"model": FailureResponse, "description": "Render Engine Unavailable"},
    }
)


def get_coordinator(request: Request) -> RequestCoordinator:
    """Dependency returning the coordinator started by the app lifespan.

    Raises:
        HTTPException: 503 if the render engine is not running
    """
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None or not coordinator.is_running:
        raise HTTPException(status_code=503, detail="Render engine not available")
    return coordinator


def failure_response(error: ClassifiedError, request_id: Optional[str]) -> JSONResponse:
    """Map a classified error to its HTTP status and error envelope."""
    status_code = 400 if error.kind == ErrorKind.VALIDATION_ERROR else 500
    return JSONResponse(
        status_code=status_code,
        content=FailureResponse.from_error(error, request_id=request_id).to_json(),
    )


@router.post(
    "/generate-pdf",
    response_model=DocumentRenderResponse,
    summary="Render HTML to PDF",
    description="""
    Render inline HTML markup to a paged PDF document.

    Options default to A4 with 20px margins and background graphics printed.
    The PDF is returned base64-encoded in the `bytes` field.
    """
)
async def generate_pdf(
    payload: GeneratePdfRequest,
    request: Request,
    coordinator: RequestCoordinator = Depends(get_coordinator)
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    job = payload.to_job(job_id=request_id)

    outcome = await coordinator.execute(job)
    if isinstance(outcome, ClassifiedError):
        logger.warning(f"[{job.id}] PDF generation failed: {outcome.kind.value}: {outcome.message}")
        return failure_response(outcome, request_id)

    return JSONResponse(content=DocumentRenderResponse.from_result(outcome).to_json())


@router.post(
    "/capture-screenshot",
    response_model=CaptureRenderResponse,
    summary="Capture a web page as an image",
    description="""
    Navigate to an absolute http(s) address and capture it as JPEG or PNG.

    ## Readiness

    Between navigation and capture the service waits for blocking loaders
    to disappear, for images to finish and for a settle delay. These
    signals are best effort: when one times out the capture still happens
    and `readinessDegraded` is set.

    ## Resource blocking

    `blockedResourceTypes` aborts sub-resources of the listed types during
    load, for example `["media", "font"]`.
    """
)
async def capture_screenshot(
    payload: CaptureScreenshotRequest,
    request: Request,
    coordinator: RequestCoordinator = Depends(get_coordinator)
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    job = payload.to_job(job_id=request_id)

    outcome = await coordinator.execute(job)
    if isinstance(outcome, ClassifiedError):
        logger.warning(f"[{job.id}] Screenshot capture failed: {outcome.kind.value}: {outcome.message}")
        return failure_response(outcome, request_id)

    return JSONResponse(content=CaptureRenderResponse.from_result(outcome).to_json())
