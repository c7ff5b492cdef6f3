"""
Page content extraction.

Captures the rendered markup, strips non-content elements from a parsed
copy, renders it as Markdown and flattens the most relevant table. The live
page is left untouched so pager controls inside <nav> stay clickable.
"""

import asyncio
from typing import Optional
import logging

from bs4 import BeautifulSoup
from markdownify import ATX, markdownify

from .base import PageSnapshot
from .utils.extractors import TableExtractor

logger = logging.getLogger(__name__)


NON_CONTENT_SELECTOR = 'script, style, header, footer, nav, aside'


def html_to_markdown(html: str) -> str:
    """
    Convert markup to readable Markdown.

    Headings use ATX style, bullets use '-', code blocks are fenced and
    tables are kept as Markdown tables.
    """
    if not html:
        return ''
    return markdownify(
        html,
        heading_style=ATX,
        bullets='-',
        code_language='',
        strip=['script', 'style'],
    ).strip()


class ContentExtractor:
    """
    Extracts one PageSnapshot from the current page.

    Extraction is never fatal and degrades to an empty snapshot.
    """

    def __init__(
        self,
        settle_delay: float = 3.0,
        table_extractor: Optional[TableExtractor] = None,
        remove_selector: str = NON_CONTENT_SELECTOR,
    ):
        """
        Initialize the extractor.

        Args:
            settle_delay: Seconds to wait for asynchronous rendering
            table_extractor: Table extractor (default strategies when omitted)
            remove_selector: Elements stripped from the captured markup
        """
        self.settle_delay = settle_delay
        self.table_extractor = table_extractor or TableExtractor()
        self.remove_selector = remove_selector

    async def extract(self, session) -> PageSnapshot:
        """
        Extract markup, Markdown and table rows from the current page.

        Args:
            session: BrowserSession positioned on the page

        Returns:
            PageSnapshot (empty on failure)
        """
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)

        try:
            raw_html = await session.content()
        except Exception as e:
            logger.error(f"Could not read page content: {e}")
            return PageSnapshot()

        html = self.strip(raw_html)

        try:
            markdown = html_to_markdown(html)
        except Exception as e:
            logger.warning(f"Markdown conversion failed: {e}")
            markdown = ''

        table_data = self.table_extractor.extract_table(html)
        logger.info(f"Content extracted: html={len(html)} chars, rows={len(table_data)}")
        return PageSnapshot(html=html, markdown=markdown, table_data=table_data)

    def strip(self, html: str) -> str:
        """Return html without the elements matching remove_selector."""
        if not html:
            return ''
        try:
            soup = BeautifulSoup(html, 'html.parser')
            removed = soup.select(self.remove_selector)
            for element in removed:
                element.decompose()
        except Exception as e:
            logger.warning(f"Could not strip non-content elements: {e}")
            return html
        logger.debug(f"Removed {len(removed)} non-content elements")
        return str(soup)
