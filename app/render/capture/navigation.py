"""Loading job input into a page with a bounded wait condition.

Content mode injects inline markup and waits for network quiescence.
Address mode navigates to a URL, waits for the load event and then, when
the policy asks for it, for a near-idle network. Client-rendered pages fire
their load event before their content is drawn, so load alone is often not
enough for a faithful capture; the idle threshold trades latency for
completeness and is set per preset.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError, Page

from ..errors import ErrorClassifier, NavigationTimeoutError
from ..presets import NavigationPolicy
from .network_idle import NetworkIdleTracker
from .resource_filter import ResourceFilterPolicy

logger = logging.getLogger(__name__)


class NavigationController:
    """Loads inline content or navigates to an address, bounded by a timeout."""

    def __init__(
        self,
        page: Page,
        policy: NavigationPolicy,
        resource_filter: Optional[ResourceFilterPolicy] = None,
        classifier: Optional[ErrorClassifier] = None,
        job_id: Optional[str] = None,
    ):
        """Initialize navigation controller.

        Args:
            page: Page owned by the job
            policy: Wait conditions and budgets
            resource_filter: Sub-resource filter installed before address navigation
            classifier: Classifier used to type engine failures
            job_id: Correlation identifier used in log lines
        """
        self.page = page
        self.policy = policy
        self.resource_filter = resource_filter
        self.classifier = classifier or ErrorClassifier()
        self.job_id = job_id
        self.navigation_start_time: Optional[datetime] = None
        self.load_complete_time: Optional[datetime] = None
        self.response_status: Optional[int] = None
        self.final_url: Optional[str] = None
        self.idle_reached: Optional[bool] = None

    async def load_content(self, content: str) -> None:
        """Inject markup into the page and wait for the content wait condition.

        Raises:
            NavigationTimeoutError: If the condition is not met in time
            NavigationFailedError: If the engine rejects the content
        """
        timeout_ms = self.policy.content_timeout_ms
        wait_until = self.policy.content_wait_until
        self.navigation_start_time = datetime.utcnow()

        logger.info(f"[{self.job_id}] Setting content ({len(content)} chars, wait_until={wait_until})")

        try:
            await self.page.set_content(content, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightError as e:
            raise self.classifier.to_exception(e, context=f"set_content, {timeout_ms}ms budget") from e

        self.load_complete_time = datetime.utcnow()
        logger.debug(f"[{self.job_id}] Content loaded in {self.load_time_ms:.0f}ms")

    async def navigate(self, url: str) -> None:
        """Navigate to an address and wait for the composite load condition.

        The load event and the near-idle condition share one budget.

        Raises:
            NavigationTimeoutError: If the condition is not met in time
            NetworkUnreachableError: If the target cannot be reached
            NavigationFailedError: If the engine reports a load failure
        """
        timeout_ms = self.policy.address_timeout_ms
        max_inflight = self.policy.max_inflight_requests
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.navigation_start_time = datetime.utcnow()

        tracker: Optional[NetworkIdleTracker] = None
        if max_inflight is not None:
            tracker = NetworkIdleTracker(self.page)
            tracker.attach()

        if self.resource_filter is not None:
            await self.resource_filter.install(self.page)

        logger.info(
            f"[{self.job_id}] Navigating to {url} "
            f"(wait_until={self.policy.address_wait_until}, max_inflight={max_inflight}, "
            f"timeout={timeout_ms}ms)"
        )

        try:
            try:
                response = await self.page.goto(
                    url,
                    wait_until=self.policy.address_wait_until,
                    timeout=timeout_ms,
                )
            except PlaywrightError as e:
                raise self.classifier.to_exception(e, context=f"goto {url}") from e

            if response is not None:
                self.response_status = response.status
                self.final_url = response.url

            if tracker is not None:
                remaining_ms = None
                if timeout_ms:
                    remaining_ms = max(0.0, timeout_ms - (loop.time() - started) * 1000)
                self.idle_reached = await tracker.wait_for_idle(
                    max_inflight,
                    self.policy.idle_window_ms,
                    remaining_ms,
                )
                if not self.idle_reached:
                    raise NavigationTimeoutError(
                        f"Page load timeout: network did not settle to {max_inflight} "
                        f"in-flight requests within {timeout_ms}ms",
                        detail=f"{tracker.inflight} requests still in flight",
                    )
        finally:
            if tracker is not None:
                tracker.detach()

        self.load_complete_time = datetime.utcnow()
        logger.info(
            f"[{self.job_id}] Navigation complete (status={self.response_status}, "
            f"{self.load_time_ms:.0f}ms)"
        )

    @property
    def load_time_ms(self) -> float:
        if self.navigation_start_time and self.load_complete_time:
            return (self.load_complete_time - self.navigation_start_time).total_seconds() * 1000
        return 0.0

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            'load_time_ms': round(self.load_time_ms, 1),
            'response_status': self.response_status,
            'final_url': self.final_url,
        }
        if self.idle_reached is not None:
            stats['network_idle_reached'] = self.idle_reached
        if self.resource_filter is not None and self.resource_filter.enabled:
            stats['resource_filter'] = self.resource_filter.get_stats()
        return stats
