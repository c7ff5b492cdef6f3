"""
Scraper Manager - routes scrape requests to the right flow.

Picks the site flow from the URL signature, runs it on a fresh browser
session (or on the remote backend) and turns fatal failures into
unsuccessful ScrapeResults.
"""

from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Type
import logging

from .base import (
    BaseScraper,
    HarvestError,
    PaginationInfo,
    PaginationOptions,
    ScrapeResult,
    ScrapeTimings,
    ScraperType,
    SiteConfig,
    Colors,
)
from .config import GENERIC_SITE, SITES, get_site_config, site_for_url
from .crawlers.remote import RemoteCrawlOptions, RemoteCrawlResult, RemoteScrapeClient, RemoteScrapeOptions
from .crawlers.stealth import StealthBrowser
from .scraper import Scraper
from .sites.rera_karnataka import ReraKarnatakaScraper
from .utils.extractors import TableExtractor

logger = logging.getLogger(__name__)


# Registry of implemented flows
SCRAPER_REGISTRY: Dict[str, Type[BaseScraper]] = {
    'generic': Scraper,
    'rera_karnataka': ReraKarnatakaScraper,
}


class ScraperManager:
    """
    Runs scrape requests against the registered flows.

    Usage:
        manager = ScraperManager(browser_factory=StealthBrowser)
        result = await manager.scrape(url, PaginationOptions(max_pages=3))

        # Remote backend instead of the in-process browser
        manager = ScraperManager(remote_client=RemoteScrapeClient(api_key))
        result = await manager.scrape(url, engine=ScraperType.REMOTE)
    """

    def __init__(
        self,
        browser_factory: Optional[Callable[[], Any]] = None,
        remote_client: Optional[RemoteScrapeClient] = None,
        timings: Optional[ScrapeTimings] = None,
        site_options: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        """
        Initialize the manager.

        Args:
            browser_factory: Callable returning an async context manager that
                yields a BrowserSession (one per request)
            remote_client: Client for the remote backend, if configured
            timings: Delays and timeouts handed to every flow
            site_options: Per-site overrides merged into SiteConfig.options
        """
        self.browser_factory = browser_factory or StealthBrowser
        self.remote_client = remote_client
        self.timings = timings or ScrapeTimings()
        self.site_options = site_options or {}
        self.table_extractor = TableExtractor()

    def resolve_site(self, url: str) -> str:
        return site_for_url(url)

    def site_config(self, site_key: str) -> SiteConfig:
        """SiteConfig with any configured option overrides applied."""
        config = get_site_config(site_key)
        overrides = self.site_options.get(site_key)
        if overrides:
            config = replace(config, options={**config.options, **overrides})
        return config

    def get_scraper(self, site_key: str, session) -> BaseScraper:
        """
        Build the flow for a site around a live session.

        Args:
            site_key: Site identifier
            session: BrowserSession the flow will drive

        Returns:
            Scraper instance (the generic flow for unregistered sites)
        """
        scraper_class = SCRAPER_REGISTRY.get(site_key)
        if scraper_class is None:
            logger.warning(f"No dedicated flow for site: {site_key}, using generic")
            scraper_class = SCRAPER_REGISTRY[GENERIC_SITE]
        return scraper_class(session, self.site_config(site_key), self.timings)

    async def scrape(
        self,
        url: str,
        options: Optional[PaginationOptions] = None,
        engine: ScraperType = ScraperType.BROWSER,
    ) -> ScrapeResult:
        """
        Scrape a URL with the requested engine.

        Args:
            url: Page to scrape
            options: Pagination budget (defaults when omitted)
            engine: In-process browser or remote backend

        Returns:
            ScrapeResult; never raises for scrape failures
        """
        options = options or PaginationOptions()
        if engine == ScraperType.REMOTE:
            return await self.scrape_remote(url)
        return await self.scrape_with_browser(url, options)

    async def scrape_with_browser(self, url: str, options: PaginationOptions) -> ScrapeResult:
        site_key = self.resolve_site(url)
        logger.info(f"Starting scrape of {url} with {Colors.bold(site_key)} flow (max_pages={options.max_pages})")

        try:
            async with self.browser_factory() as session:
                scraper = self.get_scraper(site_key, session)
                result = await scraper.scrape(url, options)
        except HarvestError as e:
            logger.error(Colors.red(f"Scrape failed for {url}: {e}"))
            return ScrapeResult.failure(url, str(e))
        except Exception as e:
            logger.error(Colors.red(f"Unexpected error scraping {url}: {e}"))
            return ScrapeResult.failure(url, str(e) or e.__class__.__name__)

        logger.info(f"Finished {url}: {result.pagination_info.pages_scraped} page(s), {len(result.table_data)} rows")
        return result

    async def scrape_remote(self, url: str) -> ScrapeResult:
        """
        Scrape through the remote backend and shape the answer like a browser run.

        Sites with a dedicated flow are treated as slow, bot-averse targets.
        """
        if self.remote_client is None:
            return ScrapeResult.failure(url, 'Remote backend is not configured')

        site_key = self.resolve_site(url)
        logger.info(f"Starting remote scrape of {url}")
        try:
            if site_key == GENERIC_SITE:
                remote = await self.remote_client.scrape(url, RemoteScrapeOptions())
            else:
                remote = await self.remote_client.scrape_government_site(url)
        except Exception as e:
            logger.error(Colors.red(f"Remote scrape failed for {url}: {e}"))
            return ScrapeResult.failure(url, str(e))

        if not remote.success:
            return ScrapeResult.failure(url, remote.error or 'Remote scrape failed')

        html = remote.html or ''
        metadata = {k: str(v) for k, v in (remote.metadata or {}).items() if isinstance(v, (str, int, float))}
        metadata.setdefault('title', '')
        return ScrapeResult(
            success=True,
            url=url,
            html=html,
            markdown=remote.markdown or '',
            table_data=self.table_extractor.extract_table(html),
            metadata=metadata,
            pagination_info=PaginationInfo(),
        )

    async def crawl(self, url: str, limit: int = 100) -> RemoteCrawlResult:
        """Run a crawl job on the remote backend."""
        if self.remote_client is None:
            return RemoteCrawlResult(success=False, error='Remote backend is not configured')

        try:
            return await self.remote_client.crawl(url, RemoteCrawlOptions(limit=limit))
        except Exception as e:
            logger.error(Colors.red(f"Remote crawl failed for {url}: {e}"))
            return RemoteCrawlResult(success=False, error=str(e) or e.__class__.__name__)

    def list_scrapers(self) -> List[Dict]:
        """
        List all configured sites and their implementation status.

        Returns:
            List of site info dictionaries
        """
        scrapers = []
        for key, config in SITES.items():
            scrapers.append({
                'key': key,
                'name': config.name,
                'short_name': config.short_name,
                'type': config.scraper_type.value,
                'domain': config.domain,
                'enabled': config.enabled,
                'implemented': key in SCRAPER_REGISTRY,
            })
        return scrapers
