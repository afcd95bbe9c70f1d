"""Browser management with Playwright and stealth measures."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol

from playwright.async_api import async_playwright, Browser, BrowserContext
from playwright_stealth import Stealth

from ..config import HarvestConfig
from ..models import Proxy

# Initialize stealth configuration
stealth = Stealth(
    navigator_platform_override="Win32",
    navigator_languages_override=("en-US", "en"),
)

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class BrowserPage(Protocol):
    """
    The slice of Playwright's async ``Page`` the harvester uses.

    Playwright pages satisfy it as-is; ``serpharvest.testing.FakePage``
    implements it in memory.
    """

    @property
    def url(self) -> str: ...

    @property
    def mouse(self) -> Any: ...

    @property
    def keyboard(self) -> Any: ...

    async def goto(self, url: str, **kwargs) -> Any: ...

    async def query_selector(self, selector: str) -> Any: ...

    async def query_selector_all(self, selector: str) -> list: ...

    async def wait_for_selector(self, selector: str, **kwargs) -> Any: ...

    async def click(self, selector: str, **kwargs) -> None: ...

    async def fill(self, selector: str, value: str, **kwargs) -> None: ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any: ...

    def expect_navigation(self, **kwargs) -> Any: ...


class BrowserManager:
    """Manages browser instances with stealth configuration."""

    def __init__(self, config: Optional[HarvestConfig] = None):
        self.config = config or HarvestConfig()
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Start the browser."""
        if self._browser:
            return

        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-infobars",
                "--mute-audio",
                "--no-first-run",
                "--no-default-browser-check",
                "--ignore-certificate-errors",
                "--lang=en-US,en;q=0.9",
                "--window-size=1920,1080",
            ],
        )
        logger.debug("Browser started (headless=%s)", self.config.headless)

    async def close(self) -> None:
        """Close the browser."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.debug("Browser closed")

    @asynccontextmanager
    async def new_context(self, proxy: Optional[Proxy] = None):
        """Create a new browser context, routed through ``proxy`` when given."""
        if not self._browser:
            await self.start()

        options = {
            "viewport": {"width": 1920, "height": 1080},
            "user_agent": USER_AGENT,
            "locale": "en-US",
            "ignore_https_errors": True,
        }
        if proxy:
            logger.debug("Using proxy %s (auth=%s)", proxy.server_url, proxy.has_credentials)
            options["proxy"] = proxy.to_playwright()

        context = await self._browser.new_context(**options)

        try:
            yield context
        finally:
            await context.close()

    @asynccontextmanager
    async def new_page(self, context: BrowserContext):
        """Create a new page with stealth measures applied."""
        page = await context.new_page()

        await stealth.apply_stealth_async(page)
        page.set_default_timeout(self.config.browser_timeout)

        try:
            yield page
        finally:
            await page.close()

    @asynccontextmanager
    async def task_page(self, task):
        """A stealth page in its own context, using the task's proxy."""
        async with self.new_context(task.proxy) as context:
            async with self.new_page(context) as page:
                yield page

    async def test_connection(self, url: str) -> bool:
        """Test that the browser can reach ``url``."""
        try:
            async with self.new_context() as context:
                async with self.new_page(context) as page:
                    await page.goto(url, wait_until="domcontentloaded")
                    return bool(await page.title())
        except Exception as e:
            logger.error("Browser connection test failed: %s", e)
            return False
