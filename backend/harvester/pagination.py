"""
Pagination detection, traversal and page-count estimation.

Detection and estimation are pure functions over the parsed document so
they can be reused on any markup. PaginationHandler applies them to a live
BrowserSession and performs the clicks needed to advance.
"""

import math
import re
from typing import Optional, Tuple
import logging

from bs4 import BeautifulSoup

from .base import ClickError, SessionTimeoutError
from .utils.normalizers import control_text, parse_entry_count, parse_page_number

logger = logging.getLogger(__name__)


PAGINATION_SELECTORS = [
    '.pagination',
    '.pager',
    '.paginate',
    '.dataTables_paginate',
    'nav[aria-label*="pagination"]',
    'ul.page-numbers',
    '.wp-pagenavi',
    '[data-testid="pagination"]',
]

PAGE_HREF_PATTERNS = [
    re.compile(r'[?&]page=\d+'),
    re.compile(r'/page/\d+'),
]

PAGE_NUMBER_LINKS = '.pagination a, .pager a, nav a'

NEXT_CONTROL_SELECTORS = [
    'a:not([disabled])',
    'button:not([disabled])',
    '[role="button"]:not([disabled])',
    '[aria-label*="next"]:not([disabled])',
]

NEXT_CONTROL_TEXTS = {'next', '>', 'next page', '»'}

DATATABLES_PAGINATE = '.dataTables_paginate'
DATATABLES_NEXT = '.paginate_button.next:not(.disabled)'

DATATABLES_IDLE_SCRIPT = """
() => {
    const processing = document.querySelector('.dataTables_processing');
    return !processing || window.getComputedStyle(processing).display === 'none';
}
"""


def detect_pagination(soup: BeautifulSoup) -> bool:
    """
    Check a document for pagination controls.

    True if a known pagination widget exists, or any anchor links to a
    numbered page, or an anchor reads like a pager control.
    """
    if any(soup.select_one(selector) is not None for selector in PAGINATION_SELECTORS):
        return True

    for link in soup.find_all('a'):
        href = link.get('href') or ''
        if any(pattern.search(href) for pattern in PAGE_HREF_PATTERNS):
            return True
        text = control_text(link)
        if text in ('next', 'previous') or 'page' in text:
            return True
    return False


def estimate_total_pages(soup: BeautifulSoup, page_size: int = 10) -> int:
    """
    Best-effort estimate of the number of result pages.

    Prefers a DataTables "Showing X to Y of Z entries" caption (Z divided by
    page_size, rounded up), then the largest numeric pager link. Defaults to 1.
    """
    info = soup.select_one('.dataTables_info')
    if info is not None:
        total_entries = parse_entry_count(info.get_text())
        if total_entries is not None:
            return max(1, math.ceil(total_entries / page_size))

    max_page = 1
    for link in soup.select(PAGE_NUMBER_LINKS):
        number = parse_page_number(link.get_text())
        if number is not None and number > max_page:
            max_page = number
    return max_page


def _is_disabled(element) -> bool:
    classes = element.get('class') or []
    return 'disabled' in classes or (element.get('aria-disabled') or '').lower() == 'true'


def _reads_as_next(text: str) -> bool:
    return text in NEXT_CONTROL_TEXTS or 'next' in text


def find_next_control(soup: BeautifulSoup) -> Optional[Tuple[str, int]]:
    """
    Find the first generic "next" control.

    Candidate selectors are searched in order; within a selector elements are
    visited in document order.

    Returns:
        (selector, zero-based index among the selector's matches), or None
    """
    for selector in NEXT_CONTROL_SELECTORS:
        for index, element in enumerate(soup.select(selector)):
            if _is_disabled(element):
                continue
            if _reads_as_next(control_text(element)):
                return selector, index
    return None


def nth_match(selector: str, index: int) -> str:
    """Selector addressing the index-th (zero-based) match of selector."""
    return f':nth-match({selector}, {index + 1})'


class PaginationHandler:
    """
    Detects, estimates and advances pagination on a live page.

    Stateless between calls.
    """

    def __init__(self, page_size: int = 10, wait_timeout: float = 10.0):
        """
        Initialize the handler.

        Args:
            page_size: Entries per page assumed by the caption estimate
            wait_timeout: Seconds to wait for a page change after clicking
        """
        self.page_size = page_size
        self.wait_timeout = wait_timeout

    async def _soup(self, session) -> BeautifulSoup:
        return BeautifulSoup(await session.content(), 'html.parser')

    async def detect(self, session) -> bool:
        """Return True if the current page shows pagination controls."""
        try:
            return detect_pagination(await self._soup(session))
        except Exception as e:
            logger.warning(f"Pagination detection failed: {e}")
            return False

    async def estimate_total_pages(self, session) -> int:
        """Estimate the total number of pages (1 when unknown)."""
        try:
            return estimate_total_pages(await self._soup(session), self.page_size)
        except Exception as e:
            logger.warning(f"Page count estimation failed: {e}")
            return 1

    async def advance(self, session) -> bool:
        """
        Move to the next page.

        Returns:
            True if a next control was clicked, False when there is none
        """
        try:
            soup = await self._soup(session)
        except Exception as e:
            logger.warning(f"Could not read page to paginate: {e}")
            return False

        if soup.select_one(DATATABLES_PAGINATE) is not None:
            return await self._advance_datatables(session, soup)
        return await self._advance_generic(session, soup)

    async def _advance_datatables(self, session, soup: BeautifulSoup) -> bool:
        logger.info("Navigating DataTables pagination")
        if soup.select_one(DATATABLES_NEXT) is None:
            logger.info("DataTables next button missing or disabled")
            return False

        try:
            await session.click(DATATABLES_NEXT)
        except ClickError as e:
            logger.warning(f"DataTables next button not clickable: {e}")
            return False
        except Exception as e:
            logger.warning(f"DataTables next click failed: {e}")
            return False

        try:
            await session.wait_for_function(DATATABLES_IDLE_SCRIPT, timeout=self.wait_timeout)
        except SessionTimeoutError:
            logger.info("Processing wait timeout, continuing")
        except Exception as e:
            logger.warning(f"DataTables processing wait failed: {e}")
            return False
        return True

    async def _advance_generic(self, session, soup: BeautifulSoup) -> bool:
        logger.info("Navigating general pagination")
        control = find_next_control(soup)
        if control is None:
            logger.info("No next control found")
            return False

        selector, index = control
        try:
            await session.click_and_wait_for_navigation(nth_match(selector, index), timeout=self.wait_timeout)
        except SessionTimeoutError:
            logger.info("Navigation timeout, continuing anyway")
        except ClickError as e:
            logger.warning(f"Next control not clickable: {e}")
            return False
        except Exception as e:
            logger.warning(f"Next page navigation failed: {e}")
            return False
        return True
