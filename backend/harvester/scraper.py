"""
Generic page traversal.

Opens a page, clears a possible anti-bot interstitial, then walks the result
pages while extracting content from each. Site flows reuse the traversal loop
and plug their own per-page work into it.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .base import (
    BaseScraper,
    NavigationError,
    PaginationInfo,
    PaginationOptions,
    RowRecord,
    ScrapeResult,
    ScrapeTimings,
    SessionTimeoutError,
    SiteConfig,
    Colors,
)
from .captcha import CaptchaGuard
from .content import ContentExtractor
from .pagination import PaginationHandler

PageHook = Callable[[int], Awaitable[None]]


@dataclass
class Traversal:
    """Aggregates collected while walking result pages."""
    html: str = ''
    markdown: str = ''
    table_data: List[RowRecord] = field(default_factory=list)
    pages_scraped: int = 0


class Scraper(BaseScraper):
    """
    Generic orchestrator for arbitrary pages.

    Flow: navigate -> captcha check -> pagination probe -> extract/advance
    loop -> metadata.
    """

    def __init__(
        self,
        session,
        config: SiteConfig,
        timings: Optional[ScrapeTimings] = None,
        content: Optional[ContentExtractor] = None,
        pagination: Optional[PaginationHandler] = None,
    ):
        super().__init__(session, config, timings)
        self.content = content or ContentExtractor(settle_delay=self.timings.content_settle)
        self.pagination = pagination or PaginationHandler(
            page_size=config.options.get('page_size', 10),
            wait_timeout=self.timings.pagination_wait_timeout,
        )

    async def open(self, url: str):
        """Navigate to url; failure to reach it is fatal."""
        self.logger.info(f"Navigating to {Colors.cyan(url)}")
        try:
            await self.session.navigate(url, wait_until='networkidle', timeout=self.timings.navigation_timeout)
        except SessionTimeoutError as e:
            raise NavigationError(f"Timed out loading {url}") from e
        except Exception as e:
            raise NavigationError(f"Could not load {url}: {e}") from e

    async def probe_pagination(self, options: PaginationOptions):
        """
        Decide whether to paginate and estimate the page count.

        Returns:
            (detected, total_pages)
        """
        if not options.auto_paginate:
            return False, 1

        detected = await self.pagination.detect(self.session)
        self.logger.info(f"Pagination detected: {detected}")
        if not detected:
            return False, 1
        return True, await self.pagination.estimate_total_pages(self.session)

    async def traverse(
        self,
        paginate: bool,
        max_pages: int,
        page_settle: float,
        on_page: Optional[PageHook] = None,
    ) -> Traversal:
        """
        Extract the current page and, when paginating, the pages after it.

        Args:
            paginate: Follow next-page controls
            max_pages: Upper bound on pages visited
            page_settle: Seconds to wait after each page change
            on_page: Extra per-page work, called with the 1-based page number

        Returns:
            Traversal with concatenated markup, Markdown and rows
        """
        result = Traversal()

        if not paginate:
            snapshot = await self.content.extract(self.session)
            result.html = snapshot.html
            result.markdown = snapshot.markdown
            result.table_data = list(snapshot.table_data)
            result.pages_scraped = 1
            if on_page:
                await on_page(1)
            return result

        while result.pages_scraped < max_pages:
            page_number = result.pages_scraped + 1
            self.logger.info(f"Extracting content for page {page_number}/{max_pages}")

            snapshot = await self.content.extract(self.session)
            result.table_data.extend(snapshot.table_data)
            result.html += snapshot.html
            result.markdown += f"\n\n--- Page {page_number} ---\n\n{snapshot.markdown}"
            result.pages_scraped = page_number

            if on_page:
                await on_page(page_number)

            if result.pages_scraped >= max_pages:
                break
            if not await self.pagination.advance(self.session):
                self.logger.info("No more pages available")
                break
            await self.settle(page_settle)

        return result

    async def scrape(self, url: str, options: PaginationOptions) -> ScrapeResult:
        await self.open(url)

        guard = CaptchaGuard(
            self.session,
            recovery_delay=self.timings.captcha_recovery_delay,
            navigation_timeout=self.timings.navigation_timeout,
        )
        await guard.check_and_recover()

        detected, total_pages = await self.probe_pagination(options)
        traversal = await self.traverse(detected, options.max_pages, self.timings.page_settle)
        metadata = await self.collect_metadata()

        self.logger.info(Colors.green(
            f"Scraped {traversal.pages_scraped} page(s), {len(traversal.table_data)} rows from {url}"
        ))
        return ScrapeResult(
            success=True,
            url=url,
            html=traversal.html,
            markdown=traversal.markdown,
            table_data=traversal.table_data,
            metadata=metadata,
            pagination_info=PaginationInfo(
                detected=detected,
                total_pages=total_pages,
                pages_scraped=traversal.pages_scraped,
            ),
        )
