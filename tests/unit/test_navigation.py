"""Unit tests for the navigation controller."""

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from app.render.capture.navigation import NavigationController
from app.render.capture.resource_filter import ResourceFilterPolicy
from app.render.errors import NavigationFailedError, NavigationTimeoutError, NetworkUnreachableError
from app.render.models import ResourceType
from app.render.presets import NavigationPolicy

from conftest import FakePage


@pytest.fixture
def policy():
    return NavigationPolicy(address_timeout_ms=500, max_inflight_requests=2, idle_window_ms=0)


class TestLoadContent:
    """Tests for inline content loading."""

    @pytest.mark.asyncio
    async def test_sets_content_with_networkidle(self, policy):
        page = FakePage()
        controller = NavigationController(page, policy, job_id="job1")

        await controller.load_content("<html><body>Hi</body></html>")

        assert page.content == "<html><body>Hi</body></html>"
        assert page.last_call('set_content') == {'wait_until': 'networkidle', 'timeout': 30000}
        assert controller.load_complete_time is not None

    @pytest.mark.asyncio
    async def test_timeout_is_typed(self, policy):
        page = FakePage()
        page.set_content_error = PlaywrightTimeoutError("Timeout 30000ms exceeded.")
        controller = NavigationController(page, policy)

        with pytest.raises(NavigationTimeoutError):
            await controller.load_content("<p>slow</p>")


class TestNavigate:
    """Tests for address navigation."""

    @pytest.mark.asyncio
    async def test_waits_for_load_event(self, policy):
        page = FakePage()
        controller = NavigationController(page, policy)

        await controller.navigate("https://example.com")

        call = page.last_call('goto')
        assert call['wait_until'] == 'load'
        assert call['timeout'] == 500
        assert controller.response_status == 200
        assert controller.idle_reached is True
        # Listeners are removed once navigation finishes
        assert all(not handlers for handlers in page.listeners.values())

    @pytest.mark.asyncio
    async def test_near_idle_tolerates_long_polls(self, policy):
        page = FakePage()
        page.pending_requests = 2
        controller = NavigationController(page, policy)

        await controller.navigate("https://example.com")

        assert controller.idle_reached is True

    @pytest.mark.asyncio
    async def test_busy_network_times_out(self, policy):
        page = FakePage()
        page.pending_requests = 3
        controller = NavigationController(page, policy)

        with pytest.raises(NavigationTimeoutError) as exc_info:
            await controller.navigate("https://example.com")

        assert "did not settle" in exc_info.value.message
        assert all(not handlers for handlers in page.listeners.values())

    @pytest.mark.asyncio
    async def test_idle_wait_disabled(self):
        page = FakePage()
        page.pending_requests = 10
        controller = NavigationController(
            page, NavigationPolicy(address_timeout_ms=500, max_inflight_requests=None)
        )

        await controller.navigate("https://example.com")

        assert controller.idle_reached is None
        assert page.listeners == {}

    @pytest.mark.asyncio
    async def test_unreachable_host(self, policy):
        page = FakePage()
        page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://nope.invalid/")
        controller = NavigationController(page, policy)

        with pytest.raises(NetworkUnreachableError):
            await controller.navigate("https://nope.invalid/")

    @pytest.mark.asyncio
    async def test_goto_timeout(self, policy):
        page = FakePage()
        page.goto_error = PlaywrightTimeoutError("Timeout 500ms exceeded.")
        controller = NavigationController(page, policy)

        with pytest.raises(NavigationTimeoutError):
            await controller.navigate("https://example.com")

    @pytest.mark.asyncio
    async def test_engine_failure(self, policy):
        page = FakePage()
        page.goto_error = PlaywrightError("Navigation failed because page crashed!")
        controller = NavigationController(page, policy)

        with pytest.raises(NavigationFailedError):
            await controller.navigate("https://example.com")

    @pytest.mark.asyncio
    async def test_installs_resource_filter(self, policy):
        page = FakePage()
        page.subresources = [
            ("https://example.com/font.woff2", "font"),
            ("https://example.com/clip.webm", "media"),
            ("https://example.com/logo.png", "image"),
        ]
        resource_filter = ResourceFilterPolicy({ResourceType.FONT, ResourceType.MEDIA})
        controller = NavigationController(page, policy, resource_filter=resource_filter)

        await controller.navigate("https://example.com")

        aborted = [route.request.resource_type for route in page.handled_routes if route.aborted]
        assert aborted == ["font", "media"]
        assert controller.get_stats()['resource_filter']['blocked_requests'] == 2
