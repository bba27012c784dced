"""Sub-resource request filtering during page load.

The policy intercepts every request the page makes and aborts those whose
resource type is in the job's block-set. The block-set is always supplied
explicitly by the caller (per job or through the selected preset); it is
never inferred from page content.
"""

import logging
from typing import Iterable, Optional

from playwright.async_api import Page, Route

from ..models.job import ResourceType

logger = logging.getLogger(__name__)


class ResourceFilterPolicy:
    """Aborts sub-resource requests whose type is in the block-set."""

    ROUTE_PATTERN = "**/*"

    def __init__(self, blocked_types: Iterable[ResourceType], job_id: Optional[str] = None):
        """Initialize resource filter.

        Args:
            blocked_types: Resource types to abort
            job_id: Correlation identifier used in log lines
        """
        self.blocked_types = frozenset(ResourceType(t) for t in blocked_types)
        self.job_id = job_id
        self.blocked_count = 0
        self.allowed_count = 0

    @property
    def enabled(self) -> bool:
        return bool(self.blocked_types)

    def should_block(self, resource_type: str) -> bool:
        """Check whether a request of the given engine resource type is blocked."""
        try:
            return ResourceType(resource_type) in self.blocked_types
        except ValueError:
            return ResourceType.OTHER in self.blocked_types

    async def handle_route(self, route: Route) -> None:
        """Abort or continue an intercepted request."""
        request = route.request
        if self.should_block(request.resource_type):
            self.blocked_count += 1
            logger.debug(f"[{self.job_id}] Blocked {request.resource_type}: {request.url[:120]}")
            await route.abort()
        else:
            self.allowed_count += 1
            await route.continue_()

    async def install(self, page: Page) -> None:
        """Start intercepting requests on the page. No-op with an empty block-set.

        Routes stay installed until the page's context is closed.
        """
        if not self.enabled:
            return
        await page.route(self.ROUTE_PATTERN, self.handle_route)
        logger.debug(
            f"[{self.job_id}] Resource filter installed, blocking: "
            f"{sorted(t.value for t in self.blocked_types)}"
        )

    def get_stats(self) -> dict:
        return {
            'blocked_types': sorted(t.value for t in self.blocked_types),
            'blocked_requests': self.blocked_count,
            'allowed_requests': self.allowed_count,
        }
