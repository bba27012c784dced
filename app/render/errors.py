"""Render failure hierarchy and classification.

Stages raise typed ``RenderError`` subclasses where they know what went
wrong. Anything else that escapes a job (Playwright errors, unexpected
exceptions) is normalized by ``ErrorClassifier`` using the exception type
and well-known markers in its message. Classification only shapes the
caller-facing kind and message; the job is failed either way.
"""

import asyncio
import logging
from typing import Optional, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .models.result import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)


class RenderError(Exception):
    """Base class for classified render failures."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class RenderValidationError(RenderError):
    """Required job input missing or malformed. Raised before any allocation."""
    kind = ErrorKind.VALIDATION_ERROR


class NavigationTimeoutError(RenderError):
    """A wait condition was not met within its budget."""
    kind = ErrorKind.NAVIGATION_TIMEOUT


class ImageWaitTimeoutError(NavigationTimeoutError):
    """Images did not finish loading while strict image waiting was on."""


class NetworkUnreachableError(RenderError):
    """Connection, DNS or routing failure reaching the target."""
    kind = ErrorKind.NETWORK_UNREACHABLE


class NavigationFailedError(RenderError):
    """The engine reported an explicit load failure."""
    kind = ErrorKind.NAVIGATION_FAILED


class CaptureFailureError(RenderError):
    """Producing the artifact failed."""
    kind = ErrorKind.CAPTURE_FAILURE


class JobDeadlineExceeded(RenderError):
    """The overall job deadline elapsed; in-flight stages were cancelled."""
    kind = ErrorKind.JOB_TIMEOUT


# Markers for connection/DNS/unreachable-class failures across engines
NETWORK_UNREACHABLE_MARKERS: Tuple[str, ...] = (
    "net::err_name_not_resolved",
    "net::err_name_resolution_failed",
    "net::err_connection_refused",
    "net::err_connection_reset",
    "net::err_connection_closed",
    "net::err_connection_failed",
    "net::err_connection_timed_out",
    "net::err_timed_out",
    "net::err_address_unreachable",
    "net::err_address_invalid",
    "net::err_internet_disconnected",
    "net::err_network_changed",
    "net::err_proxy_connection_failed",
    "net::err_tunnel_connection_failed",
    "ns_error_unknown_host",
    "ns_error_connection_refused",
    "ns_error_net_timeout",
    "ns_error_offline",
    "could not resolve host",
    "couldn't resolve host",
    "could not connect to server",
    "could not connect",
)

TIMEOUT_MARKERS: Tuple[str, ...] = (
    "timeout",
    "timed out",
)

NAVIGATION_FAILED_MARKERS: Tuple[str, ...] = (
    "navigation failed",
    "net::err_",
    "ns_error_",
    "frame was detached",
    "page crashed",
)


class ErrorClassifier:
    """Maps raised failures into the ``ErrorKind`` taxonomy."""

    def __init__(self, navigation_timeout_ms: Optional[int] = None):
        """Initialize classifier.

        Args:
            navigation_timeout_ms: Budget quoted in timeout messages
        """
        self.navigation_timeout_ms = navigation_timeout_ms

    def kind_for_message(self, message: str) -> ErrorKind:
        """Classify a raw failure message.

        Timeout markers are checked first, so a message naming a timeout is
        a NavigationTimeout even when it also carries a network error code.
        """
        text = (message or "").lower()

        if any(marker in text for marker in TIMEOUT_MARKERS):
            return ErrorKind.NAVIGATION_TIMEOUT

        if any(marker in text for marker in NETWORK_UNREACHABLE_MARKERS):
            return ErrorKind.NETWORK_UNREACHABLE

        if any(marker in text for marker in NAVIGATION_FAILED_MARKERS):
            return ErrorKind.NAVIGATION_FAILED

        return ErrorKind.INTERNAL_ERROR

    def kind_for_exception(self, exc: BaseException) -> ErrorKind:
        if isinstance(exc, RenderError):
            return exc.kind
        if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
            return ErrorKind.NAVIGATION_TIMEOUT
        return self.kind_for_message(str(exc))

    def classify(self, exc: BaseException, job_id: Optional[str] = None) -> ClassifiedError:
        """Normalize an exception into a ``ClassifiedError``.

        Args:
            exc: Failure raised while executing a job
            job_id: Correlation identifier of the failed job

        Returns:
            ClassifiedError with kind and user-facing message
        """
        kind = self.kind_for_exception(exc)
        raw = str(exc) or exc.__class__.__name__

        if isinstance(exc, RenderError):
            message = exc.message
            detail = exc.detail
        else:
            message = self.describe(kind, raw)
            detail = raw

        return ClassifiedError(kind=kind, message=message, job_id=job_id, detail=detail)

    def describe(self, kind: ErrorKind, raw: str) -> str:
        """Build the user-facing message for a classified raw failure."""
        if kind == ErrorKind.NAVIGATION_TIMEOUT:
            if self.navigation_timeout_ms:
                budget = f"{self.navigation_timeout_ms / 1000:g}s"
                return f"Page load timeout: The page took too long to load (>{budget})"
            return "Page load timeout: The page took too long to load"
        if kind == ErrorKind.NETWORK_UNREACHABLE:
            return f"Network error: Unable to reach the URL - {raw}"
        if kind == ErrorKind.NAVIGATION_FAILED:
            return f"Navigation failed: The page could not be loaded - {raw}"
        return raw

    def to_exception(self, exc: BaseException, context: str = "") -> RenderError:
        """Translate a low-level navigation failure into a typed ``RenderError``.

        Args:
            exc: Raw exception from the rendering engine
            context: Short description of the operation for the message

        Returns:
            RenderError subclass matching the classified kind
        """
        if isinstance(exc, RenderError):
            return exc

        kind = self.kind_for_exception(exc)
        raw = str(exc) or exc.__class__.__name__
        message = self.describe(kind, raw)
        if context:
            message = f"{message} ({context})"

        error_cls = {
            ErrorKind.NAVIGATION_TIMEOUT: NavigationTimeoutError,
            ErrorKind.NETWORK_UNREACHABLE: NetworkUnreachableError,
            ErrorKind.NAVIGATION_FAILED: NavigationFailedError,
        }.get(kind, NavigationFailedError)

        return error_cls(message, detail=raw)
