"""Artifact production from a ready page.

The capture engine turns the current page into either a paged PDF document
or a raster screenshot. It returns raw bytes; any text-safe re-encoding for
transport happens at the HTTP boundary.
"""

import logging
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError, Page

from ..errors import CaptureFailureError
from ..models.job import CaptureOptions, DocumentOptions, ImageFormat
from ..models.result import CaptureResult

logger = logging.getLogger(__name__)


PDF_CONTENT_TYPE = "application/pdf"


class CaptureEngine:
    """Produces document or image artifacts from a loaded page."""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id

    @staticmethod
    def pdf_options(options: DocumentOptions) -> Dict[str, Any]:
        """Convert document options to Playwright ``page.pdf`` arguments."""
        return {
            'format': options.page_format,
            'print_background': options.print_background,
            'landscape': options.landscape,
            'margin': options.margin.to_playwright(),
        }

    @staticmethod
    def screenshot_options(options: CaptureOptions) -> Dict[str, Any]:
        """Convert capture options to Playwright ``page.screenshot`` arguments."""
        screenshot_options: Dict[str, Any] = {
            'type': options.output_format.value,
            'full_page': options.full_page,
        }

        # Quality only applies to lossy encodings
        if not options.output_format.is_lossless:
            screenshot_options['quality'] = options.quality

        return screenshot_options

    async def render_document(self, page: Page, options: DocumentOptions) -> CaptureResult:
        """Render the page to a paged PDF.

        Raises:
            CaptureFailureError: If the engine fails to produce the document
        """
        pdf_options = self.pdf_options(options)
        logger.info(f"[{self.job_id}] Generating PDF (format={options.page_format})")

        try:
            data = await page.pdf(**pdf_options)
        except PlaywrightError as e:
            raise CaptureFailureError(f"PDF generation failed: {e}", detail=str(e)) from e

        if not data:
            raise CaptureFailureError("PDF generation failed: engine returned no data")

        logger.info(f"[{self.job_id}] PDF generated successfully! Size: {len(data)} bytes")

        return CaptureResult(
            data=data,
            size_bytes=len(data),
            content_type=PDF_CONTENT_TYPE,
            metadata={
                'page_format': options.page_format,
                'margin': options.margin.to_playwright(),
                'print_background': options.print_background,
            },
        )

    async def render_image(self, page: Page, options: CaptureOptions) -> CaptureResult:
        """Render the page to a raster image.

        Raises:
            CaptureFailureError: If the engine fails to produce the image
        """
        screenshot_options = self.screenshot_options(options)
        logger.info(
            f"[{self.job_id}] Capturing screenshot "
            f"(type={options.output_format.value}, full_page={options.full_page})"
        )

        try:
            data = await page.screenshot(**screenshot_options)
        except PlaywrightError as e:
            raise CaptureFailureError(f"Screenshot capture failed: {e}", detail=str(e)) from e

        if not data:
            raise CaptureFailureError("Screenshot capture failed: engine returned no data")

        logger.info(f"[{self.job_id}] Screenshot captured! Size: {len(data)} bytes")

        metadata: Dict[str, Any] = {
            'format': options.output_format.value,
            'viewport': options.viewport,
            'device_pixel_ratio': options.device_pixel_ratio,
            'full_page': options.full_page,
        }
        if options.output_format is not ImageFormat.PNG:
            metadata['quality'] = options.quality

        return CaptureResult(
            data=data,
            size_bytes=len(data),
            content_type=options.output_format.content_type,
            metadata=metadata,
        )
