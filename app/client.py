"""HTTP client for the render service.

Used by backends that delegate PDF generation and page capture to a running
render service. Artifacts come back decoded to raw bytes.
"""

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from app.render.models import CaptureResult, ErrorKind

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "http://localhost:3001"
DEFAULT_TIMEOUT_SECONDS = 30.0


class RenderServiceError(Exception):
    """Raised when the render service rejects or fails a request."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.INTERNAL_ERROR,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.request_id = request_id

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class RenderServiceClient:
    """Async client for the render service HTTP API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize client.

        Args:
            base_url: Root address of the render service
            timeout_seconds: Total request timeout
            transport: Custom transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout=timeout_seconds, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> 'RenderServiceClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def generate_pdf(self, html: str, options: Optional[Dict[str, Any]] = None) -> CaptureResult:
        """Render HTML to a PDF.

        Args:
            html: Markup to render
            options: camelCase document options (pageFormat, margin, printBackground)

        Raises:
            RenderServiceError: On transport failure or an unsuccessful response
        """
        payload = await self._post('/generate-pdf', {'content': html, 'options': options or {}})
        return self._to_result(payload)

    async def capture_screenshot(self, url: str, options: Optional[Dict[str, Any]] = None) -> CaptureResult:
        """Capture a web page as an image.

        Args:
            url: Absolute http(s) address
            options: camelCase capture options (viewportWidth, outputFormat, ...)

        Raises:
            RenderServiceError: On transport failure or an unsuccessful response
        """
        payload = await self._post('/capture-screenshot', {'target': url, 'options': options or {}})
        return self._to_result(payload)

    async def health(self) -> Dict[str, Any]:
        try:
            response = await self.client.get('/health')
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RenderServiceError(f"Health check failed: {e}") from e
        return response.json()

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self.client.post(path, json=body)
        except httpx.TimeoutException as e:
            raise RenderServiceError(
                f"Render service timed out: {e}", kind=ErrorKind.JOB_TIMEOUT
            ) from e
        except httpx.RequestError as e:
            raise RenderServiceError(
                f"Render service unreachable: {e}", kind=ErrorKind.NETWORK_UNREACHABLE
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise RenderServiceError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            ) from e

        if response.status_code >= 400 or not payload.get('success'):
            error = payload.get('error') or {}
            kind = _parse_kind(error.get('kind'))
            message = error.get('message') or f"HTTP {response.status_code}"
            logger.warning(f"[{payload.get('requestId')}] Render service error: {kind.value}: {message}")
            raise RenderServiceError(
                message,
                kind=kind,
                status_code=response.status_code,
                request_id=payload.get('requestId'),
            )

        return payload

    @staticmethod
    def _to_result(payload: Dict[str, Any]) -> CaptureResult:
        data = base64.b64decode(payload['bytes'])
        metadata = {k: v for k, v in payload.items() if k not in ('bytes', 'success', 'sizeBytes', 'contentType')}
        return CaptureResult(
            data=data,
            size_bytes=payload.get('sizeBytes', len(data)),
            content_type=payload.get('contentType', 'application/octet-stream'),
            metadata=metadata,
        )


def _parse_kind(value: Optional[str]) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.INTERNAL_ERROR
