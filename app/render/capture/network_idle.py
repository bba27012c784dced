"""In-flight request tracking for near-idle network detection.

Playwright's built-in ``networkidle`` state only covers the strict case of
zero requests. This tracker hooks the page's request lifecycle events so the
navigation controller can wait until at most N requests stay in flight for
an idle window, the same condition Chrome tooling calls ``networkidle2``.
"""

import asyncio
import logging
from typing import Optional, Set

from playwright.async_api import Page, Request

logger = logging.getLogger(__name__)


class NetworkIdleTracker:
    """Counts requests that have started but not finished or failed."""

    def __init__(self, page: Page, poll_interval_ms: int = 50):
        """Initialize tracker for a page.

        Args:
            page: Playwright page to observe
            poll_interval_ms: How often the idle condition is re-checked
        """
        self.page = page
        self.poll_interval_ms = poll_interval_ms
        self._active_requests: Set[str] = set()
        self._total_requests = 0
        self._attached = False

    def attach(self) -> None:
        """Setup Playwright event listeners for network events."""
        if self._attached:
            return
        self.page.on("request", self._on_request)
        self.page.on("requestfinished", self._on_request_done)
        self.page.on("requestfailed", self._on_request_done)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event, handler in (
            ("request", self._on_request),
            ("requestfinished", self._on_request_done),
            ("requestfailed", self._on_request_done),
        ):
            try:
                self.page.remove_listener(event, handler)
            except Exception as e:
                logger.debug(f"Failed to remove {event} listener: {e}")
        self._attached = False

    def _on_request(self, request: Request) -> None:
        self._active_requests.add(str(id(request)))
        self._total_requests += 1

    def _on_request_done(self, request: Request) -> None:
        self._active_requests.discard(str(id(request)))

    @property
    def inflight(self) -> int:
        return len(self._active_requests)

    @property
    def total_requests(self) -> int:
        return self._total_requests

    async def wait_for_idle(
        self,
        max_inflight: int,
        idle_window_ms: int,
        timeout_ms: Optional[float],
    ) -> bool:
        """Wait until in-flight requests stay at or below ``max_inflight``.

        Args:
            max_inflight: Largest number of requests still considered idle
            idle_window_ms: How long the condition must hold continuously
            timeout_ms: Overall budget; None waits without a bound

        Returns:
            True once idle, False if the budget ran out first
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout_ms is None else loop.time() + timeout_ms / 1000
        idle_since: Optional[float] = None
        interval = self.poll_interval_ms / 1000

        while True:
            now = loop.time()
            if self.inflight <= max_inflight:
                if idle_since is None:
                    idle_since = now
                if (now - idle_since) * 1000 >= idle_window_ms:
                    return True
            else:
                idle_since = None

            if deadline is not None and now >= deadline:
                logger.debug(f"Network idle wait gave up with {self.inflight} requests in flight")
                return False

            await asyncio.sleep(interval)
