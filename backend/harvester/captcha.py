"""
Anti-bot challenge detection and bounded recovery.

CAPTCHAs are detected, never solved: recovery swaps to an alternate desktop
user agent, reloads the document and waits. It runs at most once per scrape
call and a persisting signal is logged, not raised.
"""

import asyncio
from typing import Iterable, Optional
import logging

from .base import SessionTimeoutError

logger = logging.getLogger(__name__)


CAPTCHA_SIGNALS = ('captcha', 'robot', 'human verification', 'security check', 'verification')

ALTERNATE_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36'
)

PAGE_TEXT_SCRIPT = """
() => {
    const body = document.body;
    if (!body) return ['', ''];
    return [body.innerText || '', body.innerHTML || ''];
}
"""


def contains_captcha_signal(*texts: str, signals: Iterable[str] = CAPTCHA_SIGNALS) -> bool:
    """
    Check whether any text contains an anti-bot signal.

    Args:
        texts: Page text and/or markup
        signals: Lowercase substrings to look for

    Returns:
        True if any signal occurs in any text (case-insensitive)
    """
    lowered = [(text or '').lower() for text in texts]
    return any(signal in text for signal in signals for text in lowered)


class CaptchaGuard:
    """
    Inspects the rendered page for anti-bot signals and performs one recovery.

    Args:
        session: BrowserSession to inspect
        recovery_delay: Seconds to wait after the reload
        navigation_timeout: Reload timeout in seconds
        user_agent: Alternate user agent used for recovery
        signals: Substrings treated as anti-bot signals
    """

    def __init__(
        self,
        session,
        recovery_delay: float = 12.0,
        navigation_timeout: float = 90.0,
        user_agent: str = ALTERNATE_USER_AGENT,
        signals: Iterable[str] = CAPTCHA_SIGNALS,
    ):
        self.session = session
        self.recovery_delay = recovery_delay
        self.navigation_timeout = navigation_timeout
        self.user_agent = user_agent
        self.signals = tuple(signals)
        self._recovered = False

    async def detect(self) -> bool:
        """Return True when the page text or markup carries an anti-bot signal."""
        try:
            text, html = await self.session.evaluate(PAGE_TEXT_SCRIPT)
        except Exception as e:
            logger.debug(f"Captcha detection skipped, page not readable: {e}")
            return False
        return contains_captcha_signal(text, html, signals=self.signals)

    async def recover(self) -> bool:
        """
        Rotate the user agent, reload and wait.

        Returns:
            False if recovery was already spent for this guard, True otherwise
        """
        if self._recovered:
            logger.debug("Captcha recovery already attempted, skipping")
            return False
        self._recovered = True

        try:
            await self.session.set_user_agent(self.user_agent)
        except Exception as e:
            logger.warning(f"Could not rotate user agent: {e}")
        try:
            await self.session.reload(wait_until='networkidle', timeout=self.navigation_timeout)
        except SessionTimeoutError as e:
            logger.warning(f"Reload after captcha timed out, continuing anyway: {e}")
        except Exception as e:
            logger.warning(f"Reload after captcha failed, continuing anyway: {e}")
        if self.recovery_delay > 0:
            await asyncio.sleep(self.recovery_delay)
        return True

    async def check_and_recover(self) -> Optional[bool]:
        """
        Run detection and, if needed, the single recovery attempt.

        Returns:
            None when no captcha was seen, otherwise whether the page still
            shows a signal after recovery
        """
        if not await self.detect():
            return None

        logger.info("Possible CAPTCHA detected, attempting workaround...")
        await self.recover()

        still_blocked = await self.detect()
        if still_blocked:
            logger.warning("CAPTCHA signal persists after recovery, proceeding anyway")
        return still_blocked
