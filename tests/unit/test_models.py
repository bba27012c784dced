"""Unit tests for render job and result models."""

import pytest
from pydantic import ValidationError

from app.render.models import (
    CaptureOptions,
    CaptureResult,
    ClassifiedError,
    DocumentOptions,
    ErrorKind,
    ImageFormat,
    JobKind,
    JobState,
    Margin,
    ReadinessReport,
    RenderJob,
    ResourceType,
    SignalOutcome,
    SignalResult,
)


class TestDocumentOptions:
    """Tests for DocumentOptions defaults."""

    def test_defaults(self):
        options = DocumentOptions()

        assert options.page_format == "A4"
        assert options.print_background is True
        assert options.landscape is False
        assert options.preset is None
        assert options.margin.to_playwright() == {
            'top': '20px', 'right': '20px', 'bottom': '20px', 'left': '20px'
        }

    def test_frozen(self):
        options = DocumentOptions()
        with pytest.raises(ValidationError):
            options.page_format = "Letter"


class TestCaptureOptions:
    """Tests for CaptureOptions defaults and bounds."""

    def test_defaults(self):
        options = CaptureOptions()

        assert options.viewport == {'width': 1920, 'height': 1080}
        assert options.device_pixel_ratio == 1
        assert options.output_format == ImageFormat.JPEG
        assert options.quality == 80
        assert options.full_page is True
        assert options.wait_time_ms is None
        assert options.blocked_resource_types is None
        assert options.preset is None

    @pytest.mark.parametrize("quality", [-1, 101])
    def test_quality_out_of_range(self, quality):
        with pytest.raises(ValidationError):
            CaptureOptions(quality=quality)

    def test_blocked_types_coerced(self):
        options = CaptureOptions(blocked_resource_types=["font", "media"])
        assert options.blocked_resource_types == frozenset({ResourceType.FONT, ResourceType.MEDIA})

    def test_unknown_resource_type_rejected(self):
        with pytest.raises(ValidationError):
            CaptureOptions(blocked_resource_types=["banner"])

    def test_image_format_properties(self):
        assert ImageFormat.PNG.is_lossless is True
        assert ImageFormat.JPEG.is_lossless is False
        assert ImageFormat.JPEG.content_type == "image/jpeg"


class TestRenderJob:
    """Tests for RenderJob construction."""

    def test_document_job_gets_default_options(self):
        job = RenderJob.document("<p>hi</p>")

        assert job.kind == JobKind.DOCUMENT
        assert isinstance(job.options, DocumentOptions)
        assert len(job.id) == 8

    def test_capture_job_gets_default_options(self):
        job = RenderJob.capture("https://example.com")

        assert job.kind == JobKind.CAPTURE
        assert isinstance(job.options, CaptureOptions)

    def test_explicit_job_id(self):
        job = RenderJob.capture("https://example.com", job_id="req-123")
        assert job.id == "req-123"

    def test_options_dict_coerced_by_kind(self):
        job = RenderJob(kind=JobKind.CAPTURE, target="https://example.com", options={'quality': 50})
        assert isinstance(job.options, CaptureOptions)
        assert job.options.quality == 50

    def test_mismatched_options_rejected(self):
        with pytest.raises(ValidationError):
            RenderJob(kind=JobKind.CAPTURE, target="https://example.com", options=DocumentOptions())

    def test_missing_input_allowed_until_validation(self):
        job = RenderJob.document(None)
        assert job.content is None
        assert job.input_summary == "content_length=0"

    def test_job_is_immutable(self):
        job = RenderJob.document("<p>hi</p>")
        with pytest.raises(ValidationError):
            job.content = "other"


class TestResults:
    """Tests for result and readiness models."""

    def test_readiness_report(self):
        report = ReadinessReport(signals=[
            SignalResult(name="loader_absence", outcome=SignalOutcome.DEGRADED),
            SignalResult(name="image_completion", outcome=SignalOutcome.READY),
        ])

        assert report.degraded is True
        assert report.get("image_completion").outcome == SignalOutcome.READY
        assert report.get("settle_delay") is None
        assert report.summary() == {'loader_absence': 'degraded', 'image_completion': 'ready'}

    def test_empty_report_not_degraded(self):
        assert ReadinessReport().degraded is False

    def test_capture_result(self):
        result = CaptureResult(
            data=b"abc", size_bytes=3, content_type="image/png",
            metadata={'readiness_degraded': True}
        )
        assert result.success is True
        assert result.readiness_degraded is True

    def test_classified_error(self):
        error = ClassifiedError(kind=ErrorKind.CAPTURE_FAILURE, message="boom")
        assert error.success is False
        assert error.kind.value == "CaptureFailure"

    def test_terminal_states(self):
        assert JobState.SUCCEEDED.is_terminal
        assert JobState.FAILED.is_terminal
        assert not JobState.CONTEXT_RELEASED.is_terminal

    def test_margin_partial(self):
        margin = Margin(top="1cm")
        assert margin.to_playwright()['left'] == "20px"
