"""Pydantic models describing render jobs and their per-kind options.

A RenderJob is immutable once constructed. Options are carried on the job
itself so that concurrent jobs never read shared configuration.
"""

import uuid
from enum import Enum
from typing import FrozenSet, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobKind(str, Enum):
    """Kinds of render jobs."""
    DOCUMENT = "document"
    CAPTURE = "capture"


class ResourceType(str, Enum):
    """Sub-resource types reported by the rendering engine."""
    DOCUMENT = "document"
    STYLESHEET = "stylesheet"
    IMAGE = "image"
    MEDIA = "media"
    FONT = "font"
    SCRIPT = "script"
    TEXTTRACK = "texttrack"
    XHR = "xhr"
    FETCH = "fetch"
    EVENTSOURCE = "eventsource"
    WEBSOCKET = "websocket"
    MANIFEST = "manifest"
    OTHER = "other"


class ImageFormat(str, Enum):
    """Raster encodings supported by the capture engine."""
    JPEG = "jpeg"
    PNG = "png"

    @property
    def is_lossless(self) -> bool:
        return self is ImageFormat.PNG

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"


def new_job_id() -> str:
    """Generate a short correlation identifier for a job."""
    return uuid.uuid4().hex[:8]


class Margin(BaseModel):
    """Page margins for document output, as CSS length strings."""

    model_config = ConfigDict(frozen=True)

    top: str = Field(default="20px", description="Top margin")
    right: str = Field(default="20px", description="Right margin")
    bottom: str = Field(default="20px", description="Bottom margin")
    left: str = Field(default="20px", description="Left margin")

    def to_playwright(self) -> dict:
        return {
            'top': self.top,
            'right': self.right,
            'bottom': self.bottom,
            'left': self.left,
        }


class DocumentOptions(BaseModel):
    """Options for paged document output."""

    model_config = ConfigDict(frozen=True)

    page_format: str = Field(
        default="A4",
        description="Paper format keyword (A4, Letter, Legal, ...)"
    )
    margin: Margin = Field(
        default_factory=Margin,
        description="Page margins"
    )
    print_background: bool = Field(
        default=True,
        description="Include background graphics"
    )
    landscape: bool = Field(default=False, description="Landscape orientation")
    preset: Optional[str] = Field(
        default=None,
        description="Name of the pipeline preset supplying wait policies; configured default when unset"
    )


class CaptureOptions(BaseModel):
    """Options for raster image capture."""

    model_config = ConfigDict(frozen=True)

    viewport_width: int = Field(default=1920, ge=1, le=16384)
    viewport_height: int = Field(default=1080, ge=1, le=16384)
    device_pixel_ratio: float = Field(default=1, gt=0, le=8)
    output_format: ImageFormat = Field(default=ImageFormat.JPEG)
    quality: int = Field(
        default=80,
        ge=0,
        le=100,
        description="Lossy encoding quality (ignored for lossless formats)"
    )
    full_page: bool = Field(
        default=True,
        description="Capture the full scrollable page instead of the viewport"
    )
    wait_time_ms: Optional[int] = Field(
        default=None,
        ge=0,
        description="Settle delay before capture; preset value when unset"
    )
    blocked_resource_types: Optional[FrozenSet[ResourceType]] = Field(
        default=None,
        description="Sub-resource types to abort; preset block-set when unset"
    )
    preset: Optional[str] = Field(
        default=None,
        description="Name of the pipeline preset supplying wait policies; configured default when unset"
    )

    @property
    def viewport(self) -> dict:
        return {'width': self.viewport_width, 'height': self.viewport_height}


JobOptions = Union[DocumentOptions, CaptureOptions]


class RenderJob(BaseModel):
    """One request to produce a paged document or a raster capture.

    Document jobs carry inline markup in ``content``; capture jobs carry an
    absolute address in ``target``. Presence of the required input is not
    enforced here: the coordinator rejects incomplete jobs with a
    classified validation error before allocating any resources.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_job_id, description="Correlation identifier")
    kind: JobKind = Field(description="Kind of artifact to produce")
    content: Optional[str] = Field(default=None, description="Inline markup")
    target: Optional[str] = Field(default=None, description="Address to navigate to")
    options: Optional[JobOptions] = Field(default=None, description="Per-kind options")

    @model_validator(mode='before')
    @classmethod
    def resolve_options(cls, data):
        """Fill in and coerce options according to the job kind."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        kind = JobKind(data.get('kind', JobKind.DOCUMENT))
        options_cls = CaptureOptions if kind == JobKind.CAPTURE else DocumentOptions
        options = data.get('options')
        if options is None:
            data['options'] = options_cls()
        elif isinstance(options, dict):
            data['options'] = options_cls(**options)
        elif not isinstance(options, options_cls):
            raise ValueError(f"{kind.value} jobs require {options_cls.__name__}")
        return data

    @classmethod
    def document(
        cls,
        content: Optional[str],
        options: Optional[DocumentOptions] = None,
        job_id: Optional[str] = None,
    ) -> 'RenderJob':
        """Build a document job."""
        params = {'kind': JobKind.DOCUMENT, 'content': content, 'options': options}
        if job_id:
            params['id'] = job_id
        return cls(**params)

    @classmethod
    def capture(
        cls,
        target: Optional[str],
        options: Optional[CaptureOptions] = None,
        job_id: Optional[str] = None,
    ) -> 'RenderJob':
        """Build a capture job."""
        params = {'kind': JobKind.CAPTURE, 'target': target, 'options': options}
        if job_id:
            params['id'] = job_id
        return cls(**params)

    @property
    def input_summary(self) -> str:
        if self.kind == JobKind.CAPTURE:
            return f"target={self.target}"
        return f"content_length={len(self.content or '')}"
