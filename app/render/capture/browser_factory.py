"""Browser factory providing isolated execution contexts for render jobs.

The factory owns one Playwright browser process and hands out a fresh
browser context (with a single page) to every job. Contexts are never pooled
or reused, so no job can observe cookies, storage or cache left by another.
Per-job isolation costs context startup latency on every job.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

logger = logging.getLogger(__name__)


EXECUTABLE_PATH_ENV = "PLAYWRIGHT_CHROMIUM_EXECUTABLE_PATH"

# Hardened flag set for running Chromium inside containers
DEFAULT_CHROMIUM_ARGS: List[str] = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--disable-software-rasterizer',
    '--disable-extensions',
    '--disable-background-networking',
    '--disable-default-apps',
    '--disable-sync',
    '--disable-translate',
    '--metrics-recording-only',
    '--mute-audio',
    '--no-first-run',
    '--safebrowsing-disable-auto-update',
    '--disable-features=TranslateUI',
    '--disable-renderer-backgrounding',
    '--force-color-profile=srgb',
]


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and context setup."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        executable_path: Optional[str] = None,
        args: Optional[List[str]] = None,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        ignore_https_errors: bool = True,
        java_script_enabled: bool = True,
        locale: Optional[str] = None,
        timezone: Optional[str] = None,
        color_scheme: Optional[str] = None,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            executable_path: Browser binary; falls back to PLAYWRIGHT_CHROMIUM_EXECUTABLE_PATH
            args: Launch arguments (defaults to the hardened Chromium set)
            viewport: Default viewport size dict with 'width' and 'height'
            user_agent: Custom User-Agent string
            extra_headers: Additional HTTP headers for all requests
            ignore_https_errors: Ignore SSL/TLS certificate errors
            java_script_enabled: Enable JavaScript execution
            locale: Locale for browser contexts
            timezone: Timezone ID (e.g., 'Europe/Amsterdam')
            color_scheme: Color scheme preference ('dark' or 'light')
        """
        self.engine = engine
        self.headless = headless
        self.executable_path = executable_path or os.environ.get(EXECUTABLE_PATH_ENV)
        if args is None:
            args = list(DEFAULT_CHROMIUM_ARGS) if engine == BrowserEngineType.CHROMIUM else []
        self.args = args
        self.viewport = viewport or {'width': 1920, 'height': 1080}
        self.user_agent = user_agent
        self.extra_headers = extra_headers or {}
        self.ignore_https_errors = ignore_https_errors
        self.java_script_enabled = java_script_enabled
        self.locale = locale
        self.timezone = timezone
        self.color_scheme = color_scheme
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options: Dict[str, Any] = {'headless': self.headless}

        if self.args:
            options['args'] = list(self.args)

        if self.executable_path:
            options['executable_path'] = self.executable_path

        options.update(self.extra_options)

        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options: Dict[str, Any] = {}

        if self.viewport:
            options['viewport'] = dict(self.viewport)

        if self.user_agent:
            options['user_agent'] = self.user_agent

        if self.extra_headers:
            options['extra_http_headers'] = dict(self.extra_headers)

        if self.ignore_https_errors:
            options['ignore_https_errors'] = True

        if not self.java_script_enabled:
            options['java_script_enabled'] = False

        if self.locale:
            options['locale'] = self.locale

        if self.timezone:
            options['timezone_id'] = self.timezone

        if self.color_scheme:
            options['color_scheme'] = self.color_scheme

        return options


class BrowserFactory:
    """Launches the browser and provides one fresh context per job."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._contexts_created = 0
        self._contexts_closed = 0

    async def start(self) -> None:
        """Start Playwright and launch browser."""
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        logger.info(f"Starting browser factory with engine: {self.config.engine}")

        try:
            self.playwright = await async_playwright().start()

            if self.config.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.config.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            browser_options = self.config.to_browser_options()
            self.browser = await browser_type.launch(**browser_options)

            logger.info(f"Browser launched successfully (headless={self.config.headless})")

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop browser and cleanup resources."""
        logger.info("Stopping browser factory")

        try:
            if self.browser:
                await self.browser.close()
                self.browser = None

            if self.playwright:
                await self.playwright.stop()
                self.playwright = None

            logger.info("Browser factory stopped successfully")

        except Exception as e:
            logger.error(f"Error stopping browser factory: {e}")

    async def create_context(self, **context_overrides) -> BrowserContext:
        """Create a new browser context.

        Args:
            **context_overrides: Override default context options

        Returns:
            New browser context

        Raises:
            RuntimeError: If browser factory not started
        """
        if not self.browser:
            raise RuntimeError("Browser factory not started. Call start() first.")

        context_options = self.config.to_context_options()
        context_options.update(context_overrides)

        context = await self.browser.new_context(**context_options)
        self._contexts_created += 1

        logger.debug(f"Created browser context #{self._contexts_created}")
        return context

    async def close_context(self, context: BrowserContext) -> None:
        """Close a context. Errors are logged; the context counts as released."""
        try:
            await context.close()
        except Exception as e:
            logger.warning(f"Error closing browser context: {e}")
        finally:
            self._contexts_closed += 1
            logger.debug(f"Closed browser context ({self.active_contexts} still open)")

    @asynccontextmanager
    async def context(self, **context_overrides) -> AsyncGenerator[BrowserContext, None]:
        """Context manager for browser context lifecycle.

        Args:
            **context_overrides: Override default context options

        Yields:
            Browser context that is closed on every exit path
        """
        context = await self.create_context(**context_overrides)
        try:
            yield context
        finally:
            await self.close_context(context)

    @asynccontextmanager
    async def page(self, **context_overrides) -> AsyncGenerator[Page, None]:
        """Context manager for a single page in its own context.

        Args:
            **context_overrides: Override default context options

        Yields:
            Page whose owning context is closed on exit
        """
        async with self.context(**context_overrides) as context:
            page = await context.new_page()
            yield page

    @property
    def is_running(self) -> bool:
        """Check if browser factory is running."""
        if self.browser is None:
            return False
        return self.browser.is_connected()

    @property
    def contexts_created(self) -> int:
        return self._contexts_created

    @property
    def contexts_closed(self) -> int:
        return self._contexts_closed

    @property
    def active_contexts(self) -> int:
        """Number of contexts currently owned by running jobs."""
        return self._contexts_created - self._contexts_closed

    def __repr__(self) -> str:
        """String representation of browser factory."""
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running}, "
            f"contexts={self.active_contexts})"
        )


def create_browser_factory(
    engine: str = BrowserEngineType.CHROMIUM,
    headless: bool = True,
    **kwargs
) -> BrowserFactory:
    """Create a browser factory with simple configuration.

    Args:
        engine: Browser engine to use
        headless: Run in headless mode
        **kwargs: Additional configuration options

    Returns:
        Configured BrowserFactory instance
    """
    config = BrowserConfig(engine=engine, headless=headless, **kwargs)
    return BrowserFactory(config)
