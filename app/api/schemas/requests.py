"""API request schemas for the render service.

Option names follow the camelCase JSON convention of the service's callers;
the spellings used by earlier clients (``html``, ``url``, ``format``,
``deviceScaleFactor``, ``waitTime``) are accepted as aliases.
"""

from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.render.models import CaptureOptions, DocumentOptions, Margin, RenderJob
from app.render.models.job import ResourceType


class MarginPayload(BaseModel):
    """Page margins; unspecified sides default to 20px."""

    model_config = ConfigDict(extra='ignore')

    top: str = Field(default="20px", examples=["20px", "1cm"])
    right: str = Field(default="20px")
    bottom: str = Field(default="20px")
    left: str = Field(default="20px")


class DocumentOptionsPayload(BaseModel):
    """Options accepted by the PDF endpoint."""

    model_config = ConfigDict(extra='ignore')

    page_format: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('pageFormat', 'format', 'page_format'),
        description="Paper format keyword",
        examples=["A4", "Letter"]
    )
    margin: Optional[MarginPayload] = Field(default=None, description="Page margins")
    print_background: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices('printBackground', 'print_background'),
        description="Include background graphics"
    )
    landscape: Optional[bool] = Field(default=None)
    preset: Optional[str] = Field(default=None, description="Pipeline preset name")

    def to_options(self) -> DocumentOptions:
        values = self.model_dump(exclude_none=True, exclude={'margin'})
        if self.margin is not None:
            values['margin'] = Margin(**self.margin.model_dump())
        return DocumentOptions(**values)


class GeneratePdfRequest(BaseModel):
    """Request schema for rendering inline markup to a PDF."""

    content: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('content', 'html'),
        description="HTML markup to render (up to 10MB)",
        examples=["<html><body>Hi</body></html>"]
    )
    options: DocumentOptionsPayload = Field(default_factory=DocumentOptionsPayload)

    def to_job(self, job_id: Optional[str] = None) -> RenderJob:
        return RenderJob.document(self.content, self.options.to_options(), job_id=job_id)


class CaptureOptionsPayload(BaseModel):
    """Options accepted by the screenshot endpoint."""

    model_config = ConfigDict(extra='ignore')

    viewport_width: Optional[int] = Field(
        default=None,
        ge=1,
        le=16384,
        validation_alias=AliasChoices('viewportWidth', 'viewport_width'),
    )
    viewport_height: Optional[int] = Field(
        default=None,
        ge=1,
        le=16384,
        validation_alias=AliasChoices('viewportHeight', 'viewport_height'),
    )
    device_pixel_ratio: Optional[float] = Field(
        default=None,
        gt=0,
        le=8,
        validation_alias=AliasChoices('devicePixelRatio', 'deviceScaleFactor', 'device_pixel_ratio'),
    )
    output_format: Optional[Literal['jpeg', 'png']] = Field(
        default=None,
        validation_alias=AliasChoices('outputFormat', 'format', 'output_format'),
    )
    quality: Optional[int] = Field(default=None, ge=0, le=100)
    full_page: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices('fullPage', 'full_page'),
    )
    wait_time_ms: Optional[int] = Field(
        default=None,
        ge=0,
        le=60000,
        validation_alias=AliasChoices('waitTimeMs', 'waitTime', 'wait_time_ms'),
        description="Settle delay before capture in milliseconds"
    )
    blocked_resource_types: Optional[List[ResourceType]] = Field(
        default=None,
        validation_alias=AliasChoices('blockedResourceTypes', 'blocked_resource_types'),
        description="Sub-resource types to abort during load",
        examples=[["media", "font"]]
    )
    preset: Optional[str] = Field(default=None, description="Pipeline preset name")

    def to_options(self) -> CaptureOptions:
        values = self.model_dump(exclude_none=True)
        if 'blocked_resource_types' in values:
            values['blocked_resource_types'] = frozenset(values['blocked_resource_types'])
        return CaptureOptions(**values)


class CaptureScreenshotRequest(BaseModel):
    """Request schema for capturing a remote page as an image."""

    target: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices('target', 'url'),
        description="Absolute address of the page to capture",
        examples=["https://example.com"]
    )
    options: CaptureOptionsPayload = Field(default_factory=CaptureOptionsPayload)

    def to_job(self, job_id: Optional[str] = None) -> RenderJob:
        return RenderJob.capture(self.target, self.options.to_options(), job_id=job_id)
