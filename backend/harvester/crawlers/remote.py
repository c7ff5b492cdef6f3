"""
Client for the remote scraping/crawling backend.

The remote backend is a drop-in substitute for the in-process browser
pipeline. It speaks a Firecrawl-compatible REST API: ``POST /v1/scrape``
for single pages and ``POST /v1/crawl`` + ``GET /v1/crawl/{id}`` for crawl
jobs.

The client is constructed explicitly with its credentials and injected where
it is needed; there is no process-wide instance.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import httpx
import logging

logger = logging.getLogger(__name__)


DESKTOP_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
}


@dataclass
class RemoteScrapeOptions:
    """Options for a single-page remote scrape."""
    formats: List[str] = field(default_factory=lambda: ['markdown', 'html'])
    wait_ms: int = 15000
    timeout_ms: int = 120000
    headers: Dict[str, str] = field(default_factory=lambda: dict(DESKTOP_HEADERS, **{'Cache-Control': 'no-cache', 'Pragma': 'no-cache'}))
    actions: List[Dict[str, Any]] = field(default_factory=lambda: [
        {'type': 'wait', 'milliseconds': 5000},
        {'type': 'scroll', 'position': 'bottom'},
        {'type': 'wait', 'milliseconds': 3000},
    ])
    skip_tls_verification: bool = True
    mobile: bool = False
    block_ads: bool = True
    remove_base64_images: bool = True

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            'formats': self.formats,
            'waitFor': self.wait_ms,
            'timeout': self.timeout_ms,
            'skipTlsVerification': self.skip_tls_verification,
            'mobile': self.mobile,
            'blockAds': self.block_ads,
            'removeBase64Images': self.remove_base64_images,
        }
        if self.headers:
            payload['headers'] = self.headers
        if self.actions:
            payload['actions'] = self.actions
        return payload


@dataclass
class RemoteCrawlOptions:
    """Options for a remote crawl job."""
    limit: int = 100
    max_depth: int = 1
    ignore_query_parameters: bool = False
    scrape_options: RemoteScrapeOptions = field(default_factory=lambda: RemoteScrapeOptions(
        wait_ms=10000,
        timeout_ms=60000,
        headers=dict(DESKTOP_HEADERS),
        actions=[
            {'type': 'wait', 'selector': '.content-wrapper'},
            {'type': 'scroll', 'position': 'bottom'},
        ],
        block_ads=False,
        remove_base64_images=False,
    ))

    def to_payload(self) -> Dict[str, Any]:
        scrape_payload = self.scrape_options.to_payload()
        # Crawl jobs do not take these page-level flags
        scrape_payload.pop('blockAds', None)
        scrape_payload.pop('removeBase64Images', None)
        payload = {
            'limit': self.limit,
            'maxDepth': self.max_depth,
            'scrapeOptions': scrape_payload,
        }
        if self.ignore_query_parameters:
            payload['ignoreQueryParameters'] = True
        return payload


@dataclass
class RemotePage:
    """One page returned by the remote backend."""
    url: Optional[str] = None
    markdown: Optional[str] = None
    html: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RemoteScrapeResult:
    success: bool
    markdown: Optional[str] = None
    html: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class RemoteCrawlResult:
    success: bool
    pages: List[RemotePage] = field(default_factory=list)
    error: Optional[str] = None


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decode a JSON object body; ValueError for anything else (e.g. a proxy's HTML error page)."""
    body = response.json()
    if not isinstance(body, dict):
        raise ValueError(f"Expected a JSON object from {response.request.url}, got {type(body).__name__}")
    return body


def _page_from_payload(data: Dict[str, Any]) -> RemotePage:
    metadata = data.get('metadata') or {}
    return RemotePage(
        url=metadata.get('sourceURL') or metadata.get('url'),
        markdown=data.get('markdown'),
        html=data.get('html'),
        metadata=metadata,
    )


class RemoteScrapeClient:
    """
    Async client for the remote scraping backend.

    Usage:
        async with RemoteScrapeClient(api_key=key) as client:
            result = await client.scrape(url)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = 'https://api.firecrawl.dev',
        timeout: float = 180.0,
        poll_interval: float = 2.0,
        max_poll_seconds: float = 600.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token for the backend
            base_url: Backend root URL
            timeout: Per-request HTTP timeout in seconds
            poll_interval: Seconds between crawl status checks
            max_poll_seconds: Give up on a crawl job after this long
            client: Pre-built httpx client (mainly for tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_poll_seconds = max_poll_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    'Authorization': f'Bearer {self.api_key}',
                    'Content-Type': 'application/json',
                },
            )
        return self._client

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._get_client().post(path, json=payload)
        response.raise_for_status()
        return _json_body(response)

    async def scrape(self, url: str, options: Optional[RemoteScrapeOptions] = None) -> RemoteScrapeResult:
        """
        Scrape a single page on the remote backend.

        Args:
            url: Page to scrape
            options: Scrape options (defaults when omitted)

        Returns:
            RemoteScrapeResult; failures are reported in ``error``
        """
        options = options or RemoteScrapeOptions()
        logger.debug(f"Remote scrape: {url}")
        try:
            body = await self._post('/v1/scrape', {'url': url, **options.to_payload()})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Remote scrape failed for {url}: {e}")
            return RemoteScrapeResult(success=False, error=str(e))

        if not body.get('success'):
            error = body.get('error') or 'Remote scrape failed'
            logger.warning(f"Remote scrape unsuccessful for {url}: {error}")
            return RemoteScrapeResult(success=False, error=error)

        page = _page_from_payload(body.get('data') or {})
        return RemoteScrapeResult(success=True, markdown=page.markdown, html=page.html, metadata=page.metadata)

    async def crawl(self, url: str, options: Optional[RemoteCrawlOptions] = None) -> RemoteCrawlResult:
        """
        Start a crawl job and wait for it to finish.

        Args:
            url: Crawl root
            options: Crawl options (defaults when omitted)

        Returns:
            RemoteCrawlResult with every page the job produced
        """
        options = options or RemoteCrawlOptions()
        logger.debug(f"Remote crawl: {url} (limit={options.limit}, depth={options.max_depth})")
        try:
            body = await self._post('/v1/crawl', {'url': url, **options.to_payload()})
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Remote crawl failed for {url}: {e}")
            return RemoteCrawlResult(success=False, error=str(e))

        if not body.get('success') or not body.get('id'):
            error = body.get('error') or 'Remote crawl was not accepted'
            logger.warning(f"Remote crawl unsuccessful for {url}: {error}")
            return RemoteCrawlResult(success=False, error=error)

        return await self._wait_for_crawl(body['id'])

    async def _wait_for_crawl(self, job_id: str) -> RemoteCrawlResult:
        client = self._get_client()
        pages: List[RemotePage] = []
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_poll_seconds
        path = f'/v1/crawl/{job_id}'

        while True:
            try:
                response = await client.get(path)
                response.raise_for_status()
                body = _json_body(response)
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Polling crawl {job_id} failed: {e}")
                return RemoteCrawlResult(success=False, pages=pages, error=str(e))

            status = body.get('status')
            if status == 'failed':
                return RemoteCrawlResult(success=False, pages=pages, error=body.get('error') or 'Crawl job failed')

            if status == 'completed':
                pages.extend(_page_from_payload(item) for item in body.get('data') or [])
                next_url = body.get('next')
                if next_url:
                    # Large jobs are paginated; keep following the cursor
                    path = next_url
                    continue
                logger.info(f"Crawl {job_id} completed with {len(pages)} pages")
                return RemoteCrawlResult(success=True, pages=pages)

            if loop.time() >= deadline:
                return RemoteCrawlResult(success=False, pages=pages, error=f"Crawl {job_id} did not finish in {self.max_poll_seconds}s")

            logger.debug(f"Crawl {job_id} status: {status} ({body.get('completed', 0)}/{body.get('total', '?')})")
            await asyncio.sleep(self.poll_interval)

    async def scrape_government_site(self, url: str, formats: Optional[List[str]] = None) -> RemoteScrapeResult:
        """
        Scrape a slow, bot-averse site.

        Tries a single-page crawl first, then falls back to a mobile scrape.

        Args:
            url: Page to scrape
            formats: Output formats

        Returns:
            RemoteScrapeResult from whichever attempt succeeded first
        """
        formats = formats or ['markdown', 'html']
        crawl = await self.crawl(url, RemoteCrawlOptions(
            limit=1,
            max_depth=0,
            ignore_query_parameters=True,
            scrape_options=RemoteScrapeOptions(
                formats=formats,
                wait_ms=20000,
                timeout_ms=180000,
                headers={
                    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36',
                    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
                    'Accept-Language': 'en-US,en;q=0.9',
                },
                actions=[],
            ),
        ))
        if crawl.success and crawl.pages:
            page = crawl.pages[0]
            return RemoteScrapeResult(success=True, markdown=page.markdown, html=page.html, metadata=page.metadata)

        logger.info(f"Single-page crawl failed for {url} ({crawl.error}), trying mobile scrape")
        return await self.scrape(url, RemoteScrapeOptions(
            formats=formats,
            wait_ms=30000,
            timeout_ms=180000,
            headers={},
            actions=[],
            mobile=True,
        ))
