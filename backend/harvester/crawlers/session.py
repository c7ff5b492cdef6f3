"""
Browser session contract and its Playwright implementation.

Every scrape flow talks to the browser through a BrowserSession. All
operations are asynchronous, may time out, and must be called one at a time
against the same session: the rendered document is mutated in place and
interleaved access would corrupt extraction.

Timeouts are given in seconds; an expired wait raises SessionTimeoutError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from ..base import ClickError, SessionTimeoutError

logger = logging.getLogger(__name__)


class BrowserSession(ABC):
    """Controllable handle on one rendered page."""

    @property
    @abstractmethod
    def current_url(self) -> str:
        pass

    @abstractmethod
    async def navigate(self, url: str, wait_until: str = 'networkidle', timeout: float = 90.0):
        pass

    @abstractmethod
    async def reload(self, wait_until: str = 'networkidle', timeout: float = 90.0):
        pass

    @abstractmethod
    async def content(self) -> str:
        """Serialized markup of the current document."""
        pass

    @abstractmethod
    async def title(self) -> str:
        pass

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a script inside the page's script context."""
        pass

    @abstractmethod
    async def click(self, selector: str, timeout: float = 10.0):
        pass

    @abstractmethod
    async def click_and_wait_for_navigation(self, selector: str, wait_until: str = 'networkidle', timeout: float = 10.0):
        """
        Click and wait for the navigation the click triggers.

        The click has already happened when a SessionTimeoutError is raised.
        """
        pass

    @abstractmethod
    async def wait_for_selector(self, selector: str, state: str = 'visible', timeout: float = 30.0):
        pass

    @abstractmethod
    async def wait_for_function(self, script: str, arg: Any = None, timeout: float = 10.0):
        pass

    @abstractmethod
    async def wait_for_load_state(self, state: str = 'networkidle', timeout: float = 10.0):
        pass

    @abstractmethod
    async def select_option(self, selector: str, value: Optional[str] = None, label: Optional[str] = None):
        pass

    @abstractmethod
    async def press(self, key: str):
        pass

    @abstractmethod
    async def set_user_agent(self, user_agent: str):
        pass

    @abstractmethod
    async def set_headers(self, headers: Dict[str, str]):
        pass

    @abstractmethod
    async def screenshot(self, path: str):
        pass


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightSession(BrowserSession):
    """
    BrowserSession backed by a Playwright Page.

    Playwright timeouts are re-raised as SessionTimeoutError so callers never
    depend on the driver's exception types.
    """

    def __init__(self, page: Page):
        self.page = page
        self._extra_headers: Dict[str, str] = {}

    @property
    def current_url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, wait_until: str = 'networkidle', timeout: float = 90.0):
        try:
            return await self.page.goto(url, wait_until=wait_until, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise SessionTimeoutError(f"Navigation to {url} timed out after {timeout}s") from e

    async def reload(self, wait_until: str = 'networkidle', timeout: float = 90.0):
        try:
            return await self.page.reload(wait_until=wait_until, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise SessionTimeoutError(f"Reload timed out after {timeout}s") from e

    async def content(self) -> str:
        return await self.page.content()

    async def title(self) -> str:
        return await self.page.title()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def click(self, selector: str, timeout: float = 10.0):
        try:
            await self.page.click(selector, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise ClickError(f"Could not click {selector} within {timeout}s") from e

    async def click_and_wait_for_navigation(self, selector: str, wait_until: str = 'networkidle', timeout: float = 10.0):
        clicked = False
        try:
            async with self.page.expect_navigation(wait_until=wait_until, timeout=_ms(timeout)):
                await self.page.click(selector, timeout=_ms(timeout))
                clicked = True
        except PlaywrightTimeoutError as e:
            if not clicked:
                raise ClickError(f"Could not click {selector} within {timeout}s") from e
            raise SessionTimeoutError(f"Navigation after clicking {selector} not finished within {timeout}s") from e

    async def wait_for_selector(self, selector: str, state: str = 'visible', timeout: float = 30.0):
        try:
            return await self.page.wait_for_selector(selector, state=state, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise SessionTimeoutError(f"Waiting for {selector} ({state}) timed out after {timeout}s") from e

    async def wait_for_function(self, script: str, arg: Any = None, timeout: float = 10.0):
        try:
            return await self.page.wait_for_function(script, arg=arg, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise SessionTimeoutError(f"Condition not met within {timeout}s") from e

    async def wait_for_load_state(self, state: str = 'networkidle', timeout: float = 10.0):
        try:
            await self.page.wait_for_load_state(state, timeout=_ms(timeout))
        except PlaywrightTimeoutError as e:
            raise SessionTimeoutError(f"Load state '{state}' not reached within {timeout}s") from e

    async def select_option(self, selector: str, value: Optional[str] = None, label: Optional[str] = None):
        if label is not None:
            return await self.page.select_option(selector, label=label)
        return await self.page.select_option(selector, value=value)

    async def press(self, key: str):
        await self.page.keyboard.press(key)

    async def set_user_agent(self, user_agent: str):
        # Playwright fixes the UA per context; overriding the header applies it to later requests
        self._extra_headers['User-Agent'] = user_agent
        await self.page.set_extra_http_headers(self._extra_headers)

    async def set_headers(self, headers: Dict[str, str]):
        self._extra_headers.update(headers)
        await self.page.set_extra_http_headers(self._extra_headers)

    async def screenshot(self, path: str):
        await self.page.screenshot(path=path)
