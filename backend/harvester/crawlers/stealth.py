"""
Stealth browser launcher.

Starts Chromium through Playwright with a realistic fingerprint (viewport,
user agent, request headers) and hands out a PlaywrightSession for one
scrape request. The browser is closed when the request finishes.
"""

import asyncio
import os
from typing import Optional, Dict
from playwright.async_api import async_playwright, Browser, BrowserContext
import logging

from .session import PlaywrightSession

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36'
)

DEFAULT_HEADERS = {
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
}

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-blink-features=AutomationControlled',
]

HIDE_AUTOMATION_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
"""


class StealthBrowser:
    """
    Launches a headless Chromium session with anti-bot friendly defaults.

    Usage:
        async with StealthBrowser() as session:
            await session.navigate(url)
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Optional[Dict[str, str]] = None,
        viewport: Optional[Dict[str, int]] = None,
        cleanup_timeout: float = 2.0,
    ):
        """
        Initialize the launcher.

        Args:
            headless: Run browser in headless mode
            user_agent: Initial user agent for the context
            headers: Extra HTTP headers sent with every request
            viewport: Browser viewport size
            cleanup_timeout: Seconds allowed for each shutdown step
        """
        self.headless = headless
        self.user_agent = user_agent
        self.headers = headers if headers is not None else dict(DEFAULT_HEADERS)
        self.viewport = viewport or {'width': 1280, 'height': 800}
        self.cleanup_timeout = cleanup_timeout
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._session: Optional[PlaywrightSession] = None

    async def start(self) -> PlaywrightSession:
        """Launch the browser and open the page the session drives."""
        try:
            self._playwright = await async_playwright().start()

            executable = self._playwright.chromium.executable_path
            if not executable or not os.path.exists(executable):
                raise RuntimeError(
                    f"Chromium not found at {executable!r}. Run: playwright install chromium"
                )

            logger.debug(f"Launching Chromium (headless={self.headless})")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )

            self._context = await self._browser.new_context(
                viewport=self.viewport,
                user_agent=self.user_agent,
                locale='en-US',
                ignore_https_errors=True,
                extra_http_headers=self.headers,
            )
            await self._context.add_init_script(HIDE_AUTOMATION_SCRIPT)

            self._session = PlaywrightSession(await self._context.new_page())
            logger.debug("Browser session ready")
            return self._session

        except Exception as e:
            logger.error(f"Browser startup failed: {e}")
            await self.close()
            raise

    async def _shutdown(self, label: str, closer):
        try:
            await asyncio.wait_for(closer(), timeout=self.cleanup_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{label} shutdown exceeded {self.cleanup_timeout}s, abandoning it")
        except Exception as e:
            logger.warning(f"{label} shutdown failed: {e}")

    async def close(self):
        """Release context, browser and driver, each bounded by cleanup_timeout."""
        if self._context:
            await self._shutdown('Context', self._context.close)
        if self._browser:
            await self._shutdown('Browser', self._browser.close)
        if self._playwright:
            await self._shutdown('Playwright', self._playwright.stop)

        self._context = None
        self._browser = None
        self._playwright = None
        self._session = None

    async def __aenter__(self) -> PlaywrightSession:
        return await self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
