"""
Tests for the remote scraping backend client.
"""

import json

import httpx
import pytest

from harvester.crawlers.remote import RemoteCrawlOptions, RemoteScrapeClient, RemoteScrapeOptions


BASE = 'https://remote.test'


@pytest.fixture
async def remote():
    """Client pointed at the mocked backend with instant polling."""
    client = RemoteScrapeClient(api_key='test-key', base_url=BASE, poll_interval=0)
    yield client
    await client.close()


def scrape_body(markdown='# Title', html='<h1>Title</h1>', **metadata):
    return {
        'success': True,
        'data': {
            'markdown': markdown,
            'html': html,
            'metadata': {'title': 'Title', 'sourceURL': 'https://site.test/', **metadata},
        },
    }


class TestScrape:
    """Test single-page scrapes."""

    async def test_success(self, remote, respx_mock):
        """Test that the page content and metadata are returned."""
        respx_mock.post(f'{BASE}/v1/scrape').mock(return_value=httpx.Response(200, json=scrape_body()))

        result = await remote.scrape('https://site.test/')

        assert result.success is True
        assert result.markdown == '# Title'
        assert result.html == '<h1>Title</h1>'
        assert result.metadata['title'] == 'Title'

    async def test_request_carries_credentials_and_options(self, remote, respx_mock):
        """Test the bearer token and the payload layout."""
        route = respx_mock.post(f'{BASE}/v1/scrape').mock(return_value=httpx.Response(200, json=scrape_body()))

        await remote.scrape('https://site.test/', RemoteScrapeOptions(formats=['markdown']))

        request = route.calls.last.request
        payload = json.loads(request.content)
        assert request.headers['Authorization'] == 'Bearer test-key'
        assert payload['url'] == 'https://site.test/'
        assert payload['formats'] == ['markdown']
        assert payload['mobile'] is False
        assert 'actions' in payload

    async def test_http_error_is_reported(self, remote, respx_mock):
        """Test that an HTTP failure becomes an unsuccessful result."""
        respx_mock.post(f'{BASE}/v1/scrape').mock(return_value=httpx.Response(502))

        result = await remote.scrape('https://site.test/')

        assert result.success is False
        assert result.error

    async def test_unsuccessful_body(self, remote, respx_mock):
        """Test that a backend-reported failure keeps its message."""
        respx_mock.post(f'{BASE}/v1/scrape').mock(
            return_value=httpx.Response(200, json={'success': False, 'error': 'Blocked'})
        )

        result = await remote.scrape('https://site.test/')

        assert result.success is False
        assert result.error == 'Blocked'

    async def test_non_json_body_is_reported(self, remote, respx_mock):
        """Test that an HTML page answered with 200 becomes an unsuccessful result."""
        respx_mock.post(f'{BASE}/v1/scrape').mock(return_value=httpx.Response(200, text='<html>gateway</html>'))

        result = await remote.scrape('https://site.test/')

        assert result.success is False
        assert result.error


class TestCrawl:
    """Test crawl jobs and status polling."""

    async def test_polls_until_completed(self, remote, respx_mock):
        """Test that a running job is polled and its pages collected."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': True, 'id': 'job-1'})
        )
        status = respx_mock.get(f'{BASE}/v1/crawl/job-1').mock(side_effect=[
            httpx.Response(200, json={'status': 'scraping', 'completed': 0, 'total': 2}),
            httpx.Response(200, json={
                'status': 'completed',
                'data': [
                    {'markdown': 'one', 'metadata': {'sourceURL': 'https://site.test/1'}},
                    {'markdown': 'two', 'metadata': {'sourceURL': 'https://site.test/2'}},
                ],
            }),
        ])

        result = await remote.crawl('https://site.test/', RemoteCrawlOptions(limit=2))

        assert result.success is True
        assert [page.url for page in result.pages] == ['https://site.test/1', 'https://site.test/2']
        assert [page.markdown for page in result.pages] == ['one', 'two']
        assert status.call_count == 2

    async def test_follows_next_cursor(self, remote, respx_mock):
        """Test that paginated job results are followed to the end."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': True, 'id': 'job-2'})
        )
        respx_mock.get(f'{BASE}/v1/crawl/job-2').mock(return_value=httpx.Response(200, json={
            'status': 'completed',
            'data': [{'markdown': 'one', 'metadata': {'url': 'https://site.test/1'}}],
            'next': f'{BASE}/v1/crawl/job-2/more',
        }))
        respx_mock.get(f'{BASE}/v1/crawl/job-2/more').mock(return_value=httpx.Response(200, json={
            'status': 'completed',
            'data': [{'markdown': 'two', 'metadata': {'url': 'https://site.test/2'}}],
        }))

        result = await remote.crawl('https://site.test/')

        assert [page.markdown for page in result.pages] == ['one', 'two']

    async def test_failed_job(self, remote, respx_mock):
        """Test that a failed job is reported."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': True, 'id': 'job-3'})
        )
        respx_mock.get(f'{BASE}/v1/crawl/job-3').mock(
            return_value=httpx.Response(200, json={'status': 'failed', 'error': 'Robots disallowed'})
        )

        result = await remote.crawl('https://site.test/')

        assert result.success is False
        assert result.error == 'Robots disallowed'

    async def test_rejected_job(self, remote, respx_mock):
        """Test that a job the backend does not accept is never polled."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': False, 'error': 'Invalid URL'})
        )

        result = await remote.crawl('not-a-url')

        assert result.success is False
        assert result.error == 'Invalid URL'

    async def test_crawl_payload(self, remote, respx_mock):
        """Test that crawl options are sent in the backend's field names."""
        route = respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': False})
        )

        await remote.crawl('https://site.test/', RemoteCrawlOptions(limit=5, max_depth=2))

        payload = json.loads(route.calls.last.request.content)
        assert payload['limit'] == 5
        assert payload['maxDepth'] == 2
        assert 'blockAds' not in payload['scrapeOptions']

    async def test_non_json_start_is_reported(self, remote, respx_mock):
        """Test that an HTML body from the crawl endpoint becomes an unsuccessful result."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(return_value=httpx.Response(200, text='<html>gateway</html>'))

        result = await remote.crawl('https://site.test/')

        assert result.success is False
        assert result.error

    async def test_non_json_status_is_reported(self, remote, respx_mock):
        """Test that an HTML body while polling ends the job as unsuccessful."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': True, 'id': 'job-4'})
        )
        respx_mock.get(f'{BASE}/v1/crawl/job-4').mock(return_value=httpx.Response(200, text='<html>gateway</html>'))

        result = await remote.crawl('https://site.test/')

        assert result.success is False
        assert result.pages == []


class TestGovernmentSite:
    """Test the crawl-then-mobile-scrape strategy."""

    async def test_single_page_crawl_wins(self, remote, respx_mock):
        """Test that a successful one-page crawl is used directly."""
        crawl = respx_mock.post(f'{BASE}/v1/crawl').mock(
            return_value=httpx.Response(200, json={'success': True, 'id': 'gov'})
        )
        respx_mock.get(f'{BASE}/v1/crawl/gov').mock(return_value=httpx.Response(200, json={
            'status': 'completed',
            'data': [{'markdown': 'registry', 'html': '<p>registry</p>', 'metadata': {'title': 'Registry'}}],
        }))

        result = await remote.scrape_government_site('https://gov.test/')

        payload = json.loads(crawl.calls.last.request.content)
        assert payload['limit'] == 1
        assert payload['ignoreQueryParameters'] is True
        assert result.success is True
        assert result.markdown == 'registry'

    async def test_falls_back_to_mobile_scrape(self, remote, respx_mock):
        """Test that a failed crawl is retried as a mobile scrape."""
        respx_mock.post(f'{BASE}/v1/crawl').mock(return_value=httpx.Response(500))
        scrape = respx_mock.post(f'{BASE}/v1/scrape').mock(return_value=httpx.Response(200, json=scrape_body()))

        result = await remote.scrape_government_site('https://gov.test/')

        payload = json.loads(scrape.calls.last.request.content)
        assert payload['mobile'] is True
        assert result.success is True
        assert result.markdown == '# Title'
