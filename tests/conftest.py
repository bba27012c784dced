"""Shared test fixtures and fakes for render service tests."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from app.render.capture.readiness import IMAGE_COUNT_SCRIPT, IMAGE_WAIT_SCRIPT
from app.render.presets import FAST, STANDARD, THOROUGH, PresetRegistry


FAKE_PDF = b"%PDF-1.4 fake document"
FAKE_JPEG = b"\xff\xd8\xff\xe0 fake jpeg"
FAKE_PNG = b"\x89PNG\r\n\x1a\n fake png"


class FakeRequest:
    """Stand-in for a Playwright request."""

    def __init__(self, url: str, resource_type: str = "document"):
        self.url = url
        self.resource_type = resource_type


class FakeRoute:
    """Stand-in for a Playwright route recording the decision taken."""

    def __init__(self, request: FakeRequest):
        self.request = request
        self.aborted = False
        self.continued = False

    async def abort(self, error_code: Optional[str] = None) -> None:
        self.aborted = True

    async def continue_(self, **kwargs) -> None:
        self.continued = True


class FakeResponse:
    def __init__(self, url: str, status: int = 200):
        self.url = url
        self.status = status


async def _forever() -> None:
    await asyncio.Event().wait()


class FakePage:
    """Scriptable page implementing the Playwright calls the pipeline makes.

    Attributes control behavior:
        subresources: (url, resource_type) pairs requested during ``goto``
        pending_requests: requests started by ``goto`` that never finish
        goto_error / set_content_error: exception raised by those calls
        goto_delay: seconds ``goto`` sleeps before returning
        loader: 'ready', 'timeout', 'error' or 'hang' for the loader probe
        images: per-image outcome, 'loaded', 'error' or 'hang'
        pdf_error / screenshot_error: exception raised by capture calls
    """

    def __init__(self):
        self.subresources: List[Tuple[str, str]] = []
        self.pending_requests = 0
        self.goto_error: Optional[BaseException] = None
        self.set_content_error: Optional[BaseException] = None
        self.goto_delay = 0.0
        self.loader = 'ready'
        self.images: List[str] = []
        self.pdf_error: Optional[BaseException] = None
        self.screenshot_error: Optional[BaseException] = None
        self.pdf_data = FAKE_PDF

        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.routes: List[Tuple[str, Callable]] = []
        self.listeners: Dict[str, List[Callable]] = {}
        self.handled_routes: List[FakeRoute] = []
        self.content: Optional[str] = None

    # Event listeners

    def on(self, event: str, handler: Callable) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self.listeners.get(event, []).remove(handler)

    def _fire(self, event: str, payload: Any) -> None:
        for handler in list(self.listeners.get(event, [])):
            handler(payload)

    # Routing

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes.append((pattern, handler))

    async def unroute(self, pattern: str, handler: Optional[Callable] = None) -> None:
        self.routes = [(p, h) for p, h in self.routes if not (p == pattern and (handler is None or h == handler))]

    # Loading

    async def set_content(self, html: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        self.calls.append(('set_content', {'wait_until': wait_until, 'timeout': timeout}))
        if self.set_content_error is not None:
            raise self.set_content_error
        self.content = html

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self.calls.append(('goto', {'url': url, 'wait_until': wait_until, 'timeout': timeout}))
        if self.goto_delay:
            await asyncio.sleep(self.goto_delay)
        if self.goto_error is not None:
            raise self.goto_error

        for sub_url, resource_type in self.subresources:
            request = FakeRequest(sub_url, resource_type)
            self._fire("request", request)
            for _, handler in self.routes:
                route = FakeRoute(request)
                await handler(route)
                self.handled_routes.append(route)
            self._fire("requestfinished", request)

        for index in range(self.pending_requests):
            self._fire("request", FakeRequest(f"{url}/pending/{index}", "xhr"))

        return FakeResponse(url)

    # Scripts

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: Optional[float] = None,
                                polling: Any = None) -> None:
        self.calls.append(('wait_for_function', {'arg': arg, 'timeout': timeout, 'polling': polling}))
        if self.loader == 'timeout':
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        if self.loader == 'error':
            raise PlaywrightError("Execution context was destroyed")
        if self.loader == 'hang':
            await _forever()

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == IMAGE_COUNT_SCRIPT:
            return len(self.images)
        if expression == IMAGE_WAIT_SCRIPT:
            outcome = self.images[arg]
            if outcome == 'hang':
                await _forever()
            return outcome
        raise AssertionError(f"Unexpected script: {expression[:60]}")

    # Capture

    async def pdf(self, **options) -> bytes:
        self.calls.append(('pdf', options))
        if self.pdf_error is not None:
            raise self.pdf_error
        return self.pdf_data

    async def screenshot(self, **options) -> bytes:
        self.calls.append(('screenshot', options))
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return FAKE_PNG if options.get('type') == 'png' else FAKE_JPEG

    def last_call(self, name: str) -> Dict[str, Any]:
        for call_name, options in reversed(self.calls):
            if call_name == name:
                return options
        raise AssertionError(f"{name} was not called")


class CountingContextProvider:
    """Context provider handing out FakePages and counting acquire/release."""

    def __init__(self, configure: Optional[Callable[[FakePage], None]] = None):
        self.configure = configure
        self.acquired = 0
        self.released = 0
        self.pages: List[FakePage] = []
        self.overrides: List[Dict[str, Any]] = []
        self.stopped = False

    @asynccontextmanager
    async def page(self, **overrides):
        page = FakePage()
        if self.configure is not None:
            self.configure(page)
        self.acquired += 1
        self.pages.append(page)
        self.overrides.append(overrides)
        try:
            yield page
        finally:
            self.released += 1

    async def stop(self) -> None:
        self.stopped = True

    @property
    def active(self) -> int:
        return self.acquired - self.released


def quick_presets() -> PresetRegistry:
    """Built-in presets with the waits shortened for unit tests."""
    shortened = {
        'navigation': {'idle_window_ms': 0},
        'readiness': {'settle_delay_ms': 0, 'loader_timeout_ms': 200, 'image_timeout_ms': 100},
    }
    return PresetRegistry([preset.merged(shortened) for preset in (FAST, STANDARD, THOROUGH)])


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def provider():
    return CountingContextProvider()


@pytest.fixture
def presets():
    return quick_presets()
