"""Best-effort readiness checks run between navigation and capture.

The detector runs three signals in order:

1. Loader absence: polls a content-readiness probe inside the page until no
   blocking loading indicator is visible.
2. Image completion: waits for every image concurrently, each with its own
   cap, and joins on all of them.
3. Settle delay: a fixed pause for late layout and animations.

Timeouts degrade the signal instead of failing the job, except for the
image wait when ``strict_image_wait`` is set.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from ..errors import ImageWaitTimeoutError
from ..models.result import ReadinessReport, SignalOutcome, SignalResult
from ..presets import ReadinessPolicy

logger = logging.getLogger(__name__)


LOADER_SIGNAL = "loader_absence"
IMAGE_SIGNAL = "image_completion"
SETTLE_SIGNAL = "settle_delay"


class ContentReadinessProbe(ABC):
    """Predicate evaluated inside the page to decide content readiness."""

    name: str = "content_readiness"

    @abstractmethod
    async def wait(self, page: Page, timeout_ms: int, polling_ms: int) -> None:
        """Return once the page is ready.

        Raises:
            playwright.async_api.TimeoutError: If not ready within ``timeout_ms``
        """


# Spinners are usually small; they only block when inside a full-viewport shell
DEFAULT_SPINNER_SELECTORS = (
    '.animate-spin',
    '[class*="animate-spin"]',
)

DEFAULT_LOADER_SELECTORS = (
    '.loader', '.loading', '.spinner', '.skeleton',
    '[class*="page-loader"]', '[class*="PageLoader"]',
    '[data-loading="true"]', '[aria-busy="true"]',
    '[role="progressbar"]', 'progress',
    '.pace', '.pace-running', '.nprogress-busy',
)

DEFAULT_FULL_VIEWPORT_SELECTORS = (
    '.min-h-screen', '.h-screen', '[class*="h-screen"]',
)

DEFAULT_CONTENT_SELECTORS = (
    'main', '#root > div > div', '.container', '[class*="content"]',
)


LOADER_ABSENCE_SCRIPT = """
(cfg) => {
    const viewportHeight = window.innerHeight || document.documentElement.clientHeight;
    const query = (selector) => {
        try {
            return Array.from(document.querySelectorAll(selector));
        } catch (e) {
            return [];
        }
    };
    const isVisible = (el) => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') {
            return false;
        }
        const rect = el.getBoundingClientRect();
        return rect.width > 0 || rect.height > 0;
    };
    const inFullViewport = (el) => {
        for (const selector of cfg.fullViewportSelectors) {
            try {
                if (el.closest(selector)) return true;
            } catch (e) {}
        }
        return false;
    };
    const coversViewport = (el) => {
        return el.getBoundingClientRect().height > viewportHeight * cfg.coverageRatio;
    };

    for (const selector of cfg.spinnerSelectors) {
        for (const el of query(selector)) {
            if (isVisible(el) && (inFullViewport(el) || coversViewport(el))) return false;
        }
    }
    for (const selector of cfg.loaderSelectors) {
        for (const el of query(selector)) {
            if (isVisible(el) && (coversViewport(el) || inFullViewport(el))) return false;
        }
    }
    if (cfg.minContentNodes > 0) {
        for (const selector of cfg.contentSelectors) {
            const main = query(selector)[0];
            if (main) {
                return main.querySelectorAll('*').length >= cfg.minContentNodes;
            }
        }
    }
    return true;
}
"""

IMAGE_COUNT_SCRIPT = "() => document.images.length"

IMAGE_WAIT_SCRIPT = """
(index) => new Promise((resolve) => {
    const img = document.images[index];
    if (!img) {
        resolve('missing');
        return;
    }
    if (img.complete) {
        resolve(img.naturalWidth > 0 ? 'loaded' : 'error');
        return;
    }
    img.addEventListener('load', () => resolve('loaded'), { once: true });
    img.addEventListener('error', () => resolve('error'), { once: true });
})
"""


class LoaderAbsenceProbe(ContentReadinessProbe):
    """Heuristic probe looking for visible, blocking loading indicators.

    An indicator blocks when it is visible and either taller than
    ``coverage_ratio`` of the viewport or nested inside a full-viewport
    container. A main-content region with fewer than ``min_content_nodes``
    descendants also counts as still loading.
    """

    name = LOADER_SIGNAL

    def __init__(
        self,
        spinner_selectors: Sequence[str] = DEFAULT_SPINNER_SELECTORS,
        loader_selectors: Sequence[str] = DEFAULT_LOADER_SELECTORS,
        full_viewport_selectors: Sequence[str] = DEFAULT_FULL_VIEWPORT_SELECTORS,
        content_selectors: Sequence[str] = DEFAULT_CONTENT_SELECTORS,
        coverage_ratio: float = 0.5,
        min_content_nodes: int = 10,
    ):
        self.spinner_selectors = list(spinner_selectors)
        self.loader_selectors = list(loader_selectors)
        self.full_viewport_selectors = list(full_viewport_selectors)
        self.content_selectors = list(content_selectors)
        self.coverage_ratio = coverage_ratio
        self.min_content_nodes = min_content_nodes

    def script_arg(self) -> Dict[str, Any]:
        return {
            'spinnerSelectors': self.spinner_selectors,
            'loaderSelectors': self.loader_selectors,
            'fullViewportSelectors': self.full_viewport_selectors,
            'contentSelectors': self.content_selectors,
            'coverageRatio': self.coverage_ratio,
            'minContentNodes': self.min_content_nodes,
        }

    async def wait(self, page: Page, timeout_ms: int, polling_ms: int) -> None:
        await page.wait_for_function(
            LOADER_ABSENCE_SCRIPT,
            arg=self.script_arg(),
            timeout=timeout_ms,
            polling=polling_ms,
        )


class ReadinessDetector:
    """Runs the ordered readiness signals for one job."""

    def __init__(
        self,
        policy: ReadinessPolicy,
        probe: Optional[ContentReadinessProbe] = None,
        settle_delay_ms: Optional[int] = None,
        job_id: Optional[str] = None,
    ):
        """Initialize readiness detector.

        Args:
            policy: Which signals run and their budgets
            probe: Content-readiness probe (defaults to LoaderAbsenceProbe)
            settle_delay_ms: Per-job override of the policy's settle delay
            job_id: Correlation identifier used in log lines
        """
        self.policy = policy
        self.probe = probe or LoaderAbsenceProbe()
        self.settle_delay_ms = policy.settle_delay_ms if settle_delay_ms is None else settle_delay_ms
        self.job_id = job_id

    async def evaluate(self, page: Page) -> ReadinessReport:
        """Run all signals in order and return their outcomes.

        Raises:
            ImageWaitTimeoutError: If strict image waiting is on and an image missed its cap
        """
        report = ReadinessReport()
        report.signals.append(await self._poll_loaders(page))
        report.signals.append(await self._wait_for_images(page))
        report.signals.append(await self._settle())

        if report.degraded:
            logger.warning(f"[{self.job_id}] Readiness degraded: {report.summary()}")
        else:
            logger.debug(f"[{self.job_id}] Readiness: {report.summary()}")
        return report

    async def _poll_loaders(self, page: Page) -> SignalResult:
        if not self.policy.loader_poll_enabled:
            return SignalResult(name=LOADER_SIGNAL, outcome=SignalOutcome.NOT_APPLICABLE)

        loop = asyncio.get_running_loop()
        started = loop.time()
        timeout_ms = self.policy.loader_timeout_ms

        logger.info(f"[{self.job_id}] Waiting for loaders to disappear ({self.probe.name})")

        try:
            await self.probe.wait(page, timeout_ms, self.policy.loader_polling_ms)
        except PlaywrightTimeoutError:
            logger.info(f"[{self.job_id}] Loader wait timed out after {timeout_ms}ms, continuing anyway")
            return SignalResult(
                name=LOADER_SIGNAL,
                outcome=SignalOutcome.DEGRADED,
                duration_ms=_elapsed_ms(loop, started),
                detail=f"timed out after {timeout_ms}ms",
            )
        except PlaywrightError as e:
            logger.info(f"[{self.job_id}] Loader probe failed, continuing anyway: {e}")
            return SignalResult(
                name=LOADER_SIGNAL,
                outcome=SignalOutcome.DEGRADED,
                duration_ms=_elapsed_ms(loop, started),
                detail=f"probe error: {e}",
            )

        logger.info(f"[{self.job_id}] Loaders disappeared")
        return SignalResult(
            name=LOADER_SIGNAL,
            outcome=SignalOutcome.READY,
            duration_ms=_elapsed_ms(loop, started),
        )

    async def _wait_for_images(self, page: Page) -> SignalResult:
        if not self.policy.image_wait_enabled:
            return SignalResult(name=IMAGE_SIGNAL, outcome=SignalOutcome.NOT_APPLICABLE)

        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            count = int(await page.evaluate(IMAGE_COUNT_SCRIPT) or 0)
        except PlaywrightError as e:
            logger.info(f"[{self.job_id}] Could not enumerate images: {e}")
            return SignalResult(
                name=IMAGE_SIGNAL,
                outcome=SignalOutcome.DEGRADED,
                duration_ms=_elapsed_ms(loop, started),
                detail=f"enumeration error: {e}",
            )

        if count == 0:
            return SignalResult(
                name=IMAGE_SIGNAL,
                outcome=SignalOutcome.READY,
                duration_ms=_elapsed_ms(loop, started),
                detail="no images",
            )

        logger.info(f"[{self.job_id}] Ensuring {count} images are ready")

        cap = self.policy.image_timeout_ms / 1000
        statuses: List[str] = await asyncio.gather(
            *(self._wait_for_image(page, index, cap) for index in range(count))
        )

        counts: Dict[str, int] = {}
        for status in statuses:
            counts[status] = counts.get(status, 0) + 1
        detail = ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
        timed_out = counts.get('timeout', 0) + counts.get('unknown', 0)

        if timed_out:
            if self.policy.strict_image_wait:
                raise ImageWaitTimeoutError(
                    f"Page load timeout: {timed_out} of {count} images did not finish "
                    f"within {self.policy.image_timeout_ms}ms",
                    detail=detail,
                )
            logger.info(f"[{self.job_id}] {timed_out} of {count} images not ready, continuing anyway")
            outcome = SignalOutcome.DEGRADED
        else:
            outcome = SignalOutcome.READY

        return SignalResult(
            name=IMAGE_SIGNAL,
            outcome=outcome,
            duration_ms=_elapsed_ms(loop, started),
            detail=detail,
        )

    async def _wait_for_image(self, page: Page, index: int, cap_seconds: float) -> str:
        try:
            return await asyncio.wait_for(page.evaluate(IMAGE_WAIT_SCRIPT, index), cap_seconds)
        except asyncio.TimeoutError:
            logger.debug(f"[{self.job_id}] Image #{index} not ready after {cap_seconds:g}s")
            return 'timeout'
        except PlaywrightError as e:
            logger.debug(f"[{self.job_id}] Image #{index} wait failed: {e}")
            return 'unknown'

    async def _settle(self) -> SignalResult:
        if self.settle_delay_ms <= 0:
            return SignalResult(name=SETTLE_SIGNAL, outcome=SignalOutcome.NOT_APPLICABLE)

        await asyncio.sleep(self.settle_delay_ms / 1000)
        logger.info(f"[{self.job_id}] Waited {self.settle_delay_ms}ms, page ready for capture")
        return SignalResult(
            name=SETTLE_SIGNAL,
            outcome=SignalOutcome.READY,
            duration_ms=float(self.settle_delay_ms),
        )


def _elapsed_ms(loop: asyncio.AbstractEventLoop, started: float) -> float:
    return round((loop.time() - started) * 1000, 1)
