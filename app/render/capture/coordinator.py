"""Per-job orchestration of the render pipeline.

The RequestCoordinator validates a job, acquires a fresh execution context,
drives navigation, readiness and capture, and releases the context on every
exit path before reporting the outcome. Results are returned as values:
``CaptureResult`` on success, ``ClassifiedError`` on failure. Lifecycle
notifications go to explicitly registered callbacks.

The coordinator does not bound concurrency. Callers running many jobs at
once must limit the number of in-flight ``execute`` calls upstream.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

from .browser_factory import BrowserConfig, BrowserFactory
from .engine import CaptureEngine
from .navigation import NavigationController
from .readiness import ContentReadinessProbe, ReadinessDetector
from .resource_filter import ResourceFilterPolicy
from ..errors import ErrorClassifier, JobDeadlineExceeded, RenderValidationError
from ..models.job import CaptureOptions, DocumentOptions, JobKind, RenderJob
from ..models.result import (
    CaptureResult,
    ClassifiedError,
    JobEvent,
    JobState,
    ReadinessReport,
)
from ..presets import DEFAULT_PRESET, PresetRegistry, RenderPreset

logger = logging.getLogger(__name__)


MAX_CONTENT_BYTES = 10 * 1024 * 1024
ALLOWED_TARGET_SCHEMES = ('http', 'https')

JobOutcome = Union[CaptureResult, ClassifiedError]


class RequestCoordinatorConfig:
    """Configuration for the request coordinator."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        job_timeout_ms: Optional[int] = 120000,
        presets: Optional[PresetRegistry] = None,
        default_preset: str = DEFAULT_PRESET,
        max_content_bytes: int = MAX_CONTENT_BYTES,
        readiness_probe: Optional[ContentReadinessProbe] = None,
    ):
        """Initialize coordinator configuration.

        Args:
            browser_config: Browser configuration for an owned BrowserFactory
            job_timeout_ms: Overall deadline per job; None disables it
            presets: Registry of named pipeline presets
            default_preset: Preset used when a job names none
            max_content_bytes: Upper bound on inline document content
            readiness_probe: Content-readiness probe for the loader poll
        """
        self.browser_config = browser_config or BrowserConfig()
        self.job_timeout_ms = job_timeout_ms
        self.presets = presets or PresetRegistry()
        self.default_preset = default_preset
        self.max_content_bytes = max_content_bytes
        self.readiness_probe = readiness_probe


class RequestCoordinator:
    """Runs render jobs end to end with guaranteed context teardown."""

    def __init__(
        self,
        context_provider: Optional[Any] = None,
        config: Optional[RequestCoordinatorConfig] = None,
        callbacks: Optional[List[Callable[[JobEvent], None]]] = None,
    ):
        """Initialize request coordinator.

        Args:
            context_provider: Object exposing ``page(**overrides)`` as an async
                context manager that yields a page in a fresh context and tears
                it down on exit. A BrowserFactory is created on ``start()`` when
                omitted.
            config: Coordinator configuration (uses defaults if None)
            callbacks: Functions called with every JobEvent
        """
        self.config = config or RequestCoordinatorConfig()
        self.context_provider = context_provider
        self._owns_provider = context_provider is None
        self._callbacks: List[Callable[[JobEvent], None]] = list(callbacks or [])
        self.classifier = ErrorClassifier()

        self.stats: Dict[str, Any] = {
            'jobs_attempted': 0,
            'jobs_succeeded': 0,
            'jobs_failed': 0,
            'jobs_cancelled': 0,
            'failures_by_kind': {},
            'readiness_degraded': 0,
            'contexts_acquired': 0,
            'contexts_released': 0,
            'total_duration_ms': 0.0,
            'start_time': datetime.utcnow(),
            'errors': [],
        }

    async def start(self) -> None:
        """Launch an owned BrowserFactory. No-op with an injected provider."""
        if not self._owns_provider or self.context_provider is not None:
            return

        logger.info("Starting request coordinator")
        factory = BrowserFactory(self.config.browser_config)
        await factory.start()
        self.context_provider = factory
        logger.info("Request coordinator started successfully")

    async def stop(self) -> None:
        """Stop an owned BrowserFactory."""
        if not self._owns_provider or self.context_provider is None:
            return

        logger.info("Stopping request coordinator")
        await self.context_provider.stop()
        self.context_provider = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator['RequestCoordinator', None]:
        """Context manager for coordinator lifecycle."""
        try:
            await self.start()
            yield self
        finally:
            await self.stop()

    def add_callback(self, callback: Callable[[JobEvent], None]) -> None:
        """Add callback to be called for every job lifecycle event.

        Args:
            callback: Function to call with JobEvent
        """
        self._callbacks.append(callback)

    async def execute(self, job: RenderJob) -> JobOutcome:
        """Run one job through validation, navigation, readiness and capture.

        Args:
            job: Render job to execute

        Returns:
            CaptureResult on success, ClassifiedError on any failure

        Raises:
            RuntimeError: If no context provider is available
            asyncio.CancelledError: If the caller cancels; the context is
                released before the cancellation propagates
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.stats['jobs_attempted'] += 1
        self._emit(job, JobState.CREATED, input=job.input_summary)

        try:
            preset = self._validate(job)
        except RenderValidationError as e:
            error = self.classifier.classify(e, job_id=job.id)
            logger.warning(f"[{job.id}] Rejected {job.kind.value} job: {error.message}")
            return self._record_failure(job, error, started)

        if self.context_provider is None:
            raise RuntimeError("Request coordinator not started. Call start() first.")

        logger.info(f"[{job.id}] {job.kind.value} job received ({job.input_summary}, preset={preset.name})")

        deadline_ms = self.config.job_timeout_ms
        try:
            if deadline_ms:
                result = await asyncio.wait_for(self._run(job, preset), deadline_ms / 1000)
            else:
                result = await self._run(job, preset)
        except asyncio.CancelledError:
            self.stats['jobs_cancelled'] += 1
            self._emit(job, JobState.FAILED, cancelled=True)
            logger.warning(f"[{job.id}] Job cancelled by caller")
            raise
        except asyncio.TimeoutError:
            exc = JobDeadlineExceeded(f"Render job exceeded its deadline of {deadline_ms}ms")
            return self._record_failure(job, self.classifier.classify(exc, job_id=job.id), started)
        except Exception as e:
            logger.error(f"[{job.id}] {job.kind.value} job error: {e}", exc_info=True)
            return self._record_failure(job, self.classifier.classify(e, job_id=job.id), started)

        duration_ms = (loop.time() - started) * 1000
        result.metadata['duration_ms'] = round(duration_ms, 1)
        self.stats['jobs_succeeded'] += 1
        self.stats['total_duration_ms'] += duration_ms
        if result.readiness_degraded:
            self.stats['readiness_degraded'] += 1
        self._emit(job, JobState.SUCCEEDED, size_bytes=result.size_bytes)
        return result

    def _validate(self, job: RenderJob) -> RenderPreset:
        """Check required input before anything is allocated.

        Returns:
            Preset selected by the job options

        Raises:
            RenderValidationError: If input is missing or malformed
        """
        if job.kind == JobKind.DOCUMENT:
            if not isinstance(job.content, str) or not job.content:
                raise RenderValidationError("HTML content is required")
            size = len(job.content.encode('utf-8'))
            if size > self.config.max_content_bytes:
                raise RenderValidationError(
                    f"HTML content too large: {size} bytes (limit {self.config.max_content_bytes})"
                )
        else:
            if not isinstance(job.target, str) or not job.target.strip():
                raise RenderValidationError("URL is required")
            parsed = urlparse(job.target.strip())
            if parsed.scheme not in ALLOWED_TARGET_SCHEMES or not parsed.netloc:
                raise RenderValidationError(f"URL must be an absolute http(s) address: {job.target}")

        preset_name = job.options.preset or self.config.default_preset
        preset = self.config.presets.get(preset_name)
        if preset is None:
            raise RenderValidationError(
                f"Unknown preset '{preset_name}' (available: {', '.join(self.config.presets.names)})"
            )
        return preset

    @staticmethod
    def context_overrides(job: RenderJob) -> Dict[str, Any]:
        """Context options derived from the job; shared defaults stay untouched."""
        if isinstance(job.options, CaptureOptions):
            return {
                'viewport': job.options.viewport,
                'device_scale_factor': job.options.device_pixel_ratio,
            }
        return {}

    async def _run(self, job: RenderJob, preset: RenderPreset) -> CaptureResult:
        acquired = False
        try:
            async with self.context_provider.page(**self.context_overrides(job)) as page:
                acquired = True
                self.stats['contexts_acquired'] += 1
                self._emit(job, JobState.CONTEXT_ACQUIRED)
                return await self._run_stages(job, preset, page)
        finally:
            if acquired:
                self.stats['contexts_released'] += 1
                self._emit(job, JobState.CONTEXT_RELEASED)
                logger.info(f"[{job.id}] Browser context closed")

    async def _run_stages(self, job: RenderJob, preset: RenderPreset, page) -> CaptureResult:
        options = job.options
        engine = CaptureEngine(job_id=job.id)

        if isinstance(options, DocumentOptions):
            navigator = NavigationController(
                page, preset.navigation, classifier=self.classifier, job_id=job.id
            )
            await navigator.load_content(job.content)
            self._emit(job, JobState.CONTENT_LOADED, **navigator.get_stats())

            report = await self._evaluate_readiness(
                job, page, ReadinessDetector(
                    preset.document_readiness,
                    probe=self.config.readiness_probe,
                    job_id=job.id,
                )
            )

            result = await engine.render_document(page, options)
        else:
            blocked = options.blocked_resource_types
            if blocked is None:
                blocked = preset.blocked_resource_types
            navigator = NavigationController(
                page,
                preset.navigation,
                resource_filter=ResourceFilterPolicy(blocked, job_id=job.id),
                classifier=self.classifier,
                job_id=job.id,
            )
            await navigator.navigate(job.target.strip())
            self._emit(job, JobState.NAVIGATED, **navigator.get_stats())

            report = await self._evaluate_readiness(
                job, page, ReadinessDetector(
                    preset.readiness,
                    probe=self.config.readiness_probe,
                    settle_delay_ms=options.wait_time_ms,
                    job_id=job.id,
                )
            )

            result = await engine.render_image(page, options)

        self._emit(job, JobState.CAPTURED, size_bytes=result.size_bytes)

        metadata = dict(result.metadata)
        metadata.update({
            'job_id': job.id,
            'kind': job.kind.value,
            'preset': preset.name,
            'navigation': navigator.get_stats(),
            'readiness': report.summary(),
            'readiness_degraded': report.degraded,
        })
        return result.model_copy(update={'metadata': metadata})

    async def _evaluate_readiness(
        self,
        job: RenderJob,
        page,
        detector: ReadinessDetector,
    ) -> ReadinessReport:
        report = await detector.evaluate(page)
        self._emit(
            job,
            JobState.READINESS_EVALUATED,
            degraded=report.degraded,
            signals=report.summary(),
        )
        return report

    def _record_failure(self, job: RenderJob, error: ClassifiedError, started: float) -> ClassifiedError:
        duration_ms = (asyncio.get_running_loop().time() - started) * 1000
        self.stats['jobs_failed'] += 1
        self.stats['total_duration_ms'] += duration_ms
        by_kind = self.stats['failures_by_kind']
        by_kind[error.kind.value] = by_kind.get(error.kind.value, 0) + 1

        self.stats['errors'].append({
            'job_id': job.id,
            'kind': error.kind.value,
            'error': error.message,
            'timestamp': datetime.utcnow().isoformat(),
        })
        if len(self.stats['errors']) > 100:
            self.stats['errors'] = self.stats['errors'][-100:]

        logger.error(f"[{job.id}] {job.kind.value} job failed ({error.kind.value}): {error.message}")
        self._emit(job, JobState.FAILED, error_kind=error.kind.value, message=error.message)
        return error

    def _emit(self, job: RenderJob, state: JobState, **detail) -> None:
        event = JobEvent(job_id=job.id, kind=job.kind, state=state, detail=detail)
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in request coordinator callback: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics.

        Returns:
            Dictionary with job, failure and context counters
        """
        stats = dict(self.stats)
        stats['failures_by_kind'] = dict(self.stats['failures_by_kind'])
        stats['errors'] = [dict(entry) for entry in self.stats['errors']]
        finished = stats['jobs_succeeded'] + stats['jobs_failed']

        if finished > 0:
            stats['success_rate'] = (stats['jobs_succeeded'] / finished) * 100
            stats['average_duration_ms'] = stats['total_duration_ms'] / finished
        else:
            stats['success_rate'] = 0
            stats['average_duration_ms'] = 0

        stats['active_contexts'] = stats['contexts_acquired'] - stats['contexts_released']
        stats['runtime_seconds'] = (datetime.utcnow() - stats['start_time']).total_seconds()
        return stats

    @property
    def is_running(self) -> bool:
        return self.context_provider is not None

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"RequestCoordinator(running={self.is_running}, "
            f"jobs={stats['jobs_attempted']}, "
            f"success_rate={stats['success_rate']:.1f}%)"
        )


def create_request_coordinator(
    headless: bool = True,
    job_timeout_ms: Optional[int] = 120000,
    presets: Optional[PresetRegistry] = None,
    **browser_kwargs
) -> RequestCoordinator:
    """Create a coordinator owning its own browser.

    Args:
        headless: Run browser in headless mode
        job_timeout_ms: Overall deadline per job
        presets: Registry of named presets
        **browser_kwargs: Additional BrowserConfig options

    Returns:
        Configured RequestCoordinator (call ``start()`` or use ``session()``)
    """
    config = RequestCoordinatorConfig(
        browser_config=BrowserConfig(headless=headless, **browser_kwargs),
        job_timeout_ms=job_timeout_ms,
        presets=presets,
    )
    return RequestCoordinator(config=config)
