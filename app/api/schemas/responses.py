"""API response schemas for the render service.

Binary artifacts are base64-encoded here, at the transport boundary.
"""

import base64
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.render.models import CaptureResult, ClassifiedError, ErrorKind


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)


class ErrorDetail(CamelModel):
    """Classified failure reported to callers."""

    kind: ErrorKind = Field(..., description="Failure kind")
    message: str = Field(..., description="Human-readable error message")


class ViewportInfo(CamelModel):
    width: int
    height: int


class DocumentRenderResponse(CamelModel):
    """Successful PDF render."""

    success: Literal[True] = True
    data: str = Field(..., alias="bytes", description="Base64-encoded PDF")
    size_bytes: int = Field(..., ge=0)
    content_type: str = Field(default="application/pdf")
    job_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: CaptureResult) -> 'DocumentRenderResponse':
        return cls(
            data=base64.b64encode(result.data).decode('ascii'),
            size_bytes=result.size_bytes,
            content_type=result.content_type,
            job_id=result.metadata.get('job_id'),
        )


class CaptureRenderResponse(CamelModel):
    """Successful screenshot capture."""

    success: Literal[True] = True
    data: str = Field(..., alias="bytes", description="Base64-encoded image")
    size_bytes: int = Field(..., ge=0)
    format: str = Field(..., description="Image encoding used")
    content_type: str
    viewport: ViewportInfo
    readiness: Dict[str, str] = Field(default_factory=dict, description="Readiness signal outcomes")
    readiness_degraded: bool = False
    job_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: CaptureResult) -> 'CaptureRenderResponse':
        metadata = result.metadata
        return cls(
            data=base64.b64encode(result.data).decode('ascii'),
            size_bytes=result.size_bytes,
            format=metadata.get('format', 'jpeg'),
            content_type=result.content_type,
            viewport=ViewportInfo(**metadata.get('viewport', {'width': 1920, 'height': 1080})),
            readiness=metadata.get('readiness', {}),
            readiness_degraded=metadata.get('readiness_degraded', False),
            job_id=metadata.get('job_id'),
        )


class FailureResponse(CamelModel):
    """Failed render or rejected request."""

    success: Literal[False] = False
    error: ErrorDetail
    details: Optional[Dict[str, Any]] = Field(default=None, description="Additional error details")
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_error(cls, error: ClassifiedError, request_id: Optional[str] = None) -> 'FailureResponse':
        return cls(
            error=ErrorDetail(kind=error.kind, message=error.message),
            request_id=request_id,
        )


class HealthResponse(CamelModel):
    """Liveness probe response."""

    status: str = Field(default="ok", description="Liveness status")
    service_name: str = Field(..., description="Service name")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
