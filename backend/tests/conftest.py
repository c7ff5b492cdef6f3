"""
Pytest configuration and fixtures for harvester tests.

FakeSession is a scripted, in-memory BrowserSession: the "rendered document"
is an HTML string, clicks run registered handlers that swap the document,
and the handful of page scripts the engine evaluates are answered from the
parsed markup.
"""

from dataclasses import fields
from typing import Any, Callable, Dict, List, Optional

import pytest
from bs4 import BeautifulSoup
from fastapi.testclient import TestClient

from harvester.base import ClickError, ScrapeTimings, SessionTimeoutError
from harvester.captcha import PAGE_TEXT_SCRIPT
from harvester.crawlers.session import BrowserSession
from harvester.pagination import DATATABLES_IDLE_SCRIPT
from harvester.sites.rera_karnataka import MODAL_HIDDEN_SCRIPT


# Every delay and timeout zeroed
FAST_TIMINGS = ScrapeTimings(**{f.name: 0.0 for f in fields(ScrapeTimings)})


def is_visible(element) -> bool:
    """Element and all of its ancestors are displayed."""
    node = element
    while node is not None and getattr(node, 'name', None) not in (None, '[document]'):
        if node.has_attr('hidden'):
            return False
        style = (node.get('style') or '').replace(' ', '').lower()
        if 'display:none' in style:
            return False
        node = node.parent
    return True


class FakeSession(BrowserSession):
    """
    In-memory BrowserSession.

    Args:
        html: Initial document
        pages: URL -> document served by navigate()
    """

    def __init__(self, html: str = '', pages: Optional[Dict[str, str]] = None, url: str = 'about:blank'):
        self.html = html
        self.pages = dict(pages or {})
        self.url = url

        # Scripting hooks
        self.on_click: Dict[str, Callable[['FakeSession'], None]] = {}
        self.scripts: Dict[str, Callable[[Any], Any]] = {}
        self.click_errors = set()
        self.navigation_timeouts = set()
        self.reload_html: Optional[str] = None
        self.evaluate_error: Optional[Exception] = None
        self.content_error: Optional[Exception] = None
        self.reload_error: Optional[Exception] = None

        # Recorded calls
        self.navigations: List[str] = []
        self.clicks: List[str] = []
        self.evaluations: List[tuple] = []
        self.selected: List[tuple] = []
        self.keys: List[str] = []
        self.user_agents: List[str] = []
        self.headers: Dict[str, str] = {}
        self.screenshots: List[str] = []
        self.reloads = 0

    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, 'html.parser')

    @property
    def current_url(self) -> str:
        return self.url

    async def navigate(self, url: str, wait_until: str = 'networkidle', timeout: float = 90.0):
        self.navigations.append(url)
        if url not in self.pages:
            raise SessionTimeoutError(f"Navigation to {url} timed out after {timeout}s")
        self.url = url
        self.html = self.pages[url]

    async def reload(self, wait_until: str = 'networkidle', timeout: float = 90.0):
        self.reloads += 1
        if self.reload_error is not None:
            raise self.reload_error
        if self.reload_html is not None:
            self.html = self.reload_html

    async def content(self) -> str:
        if self.content_error is not None:
            raise self.content_error
        return self.html

    async def title(self) -> str:
        tag = self.soup().find('title')
        return tag.get_text().strip() if tag else ''

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        if self.evaluate_error is not None:
            raise self.evaluate_error
        if script in self.scripts:
            return self.scripts[script](arg)
        if script == PAGE_TEXT_SCRIPT:
            body = self.soup().body
            if body is None:
                return ['', '']
            return [body.get_text(), body.decode_contents()]
        return None

    def _run_click(self, selector: str):
        self.clicks.append(selector)
        if selector in self.click_errors:
            raise ClickError(f"Could not click {selector}")
        handler = self.on_click.get(selector)
        if handler is not None:
            handler(self)

    async def click(self, selector: str, timeout: float = 10.0):
        self._run_click(selector)

    async def click_and_wait_for_navigation(self, selector: str, wait_until: str = 'networkidle', timeout: float = 10.0):
        self._run_click(selector)
        if selector in self.navigation_timeouts:
            raise SessionTimeoutError(f"Navigation after clicking {selector} not finished")

    async def wait_for_selector(self, selector: str, state: str = 'visible', timeout: float = 30.0):
        element = self.soup().select_one(selector)
        if state == 'attached' and element is not None:
            return element
        if state == 'visible' and element is not None and is_visible(element):
            return element
        if state in ('hidden', 'detached') and (element is None or not is_visible(element)):
            return None
        raise SessionTimeoutError(f"Waiting for {selector} ({state}) timed out")

    async def wait_for_function(self, script: str, arg: Any = None, timeout: float = 10.0):
        soup = self.soup()
        if script in self.scripts:
            result = self.scripts[script](arg)
        elif script == DATATABLES_IDLE_SCRIPT:
            processing = soup.select_one('.dataTables_processing')
            result = processing is None or not is_visible(processing)
        elif script == MODAL_HIDDEN_SCRIPT:
            modal = soup.select_one('.modal-dialog')
            result = modal is None or not is_visible(modal)
        else:
            result = True
        if not result:
            raise SessionTimeoutError("Condition not met")
        return result

    async def wait_for_load_state(self, state: str = 'networkidle', timeout: float = 10.0):
        return None

    async def select_option(self, selector: str, value: Optional[str] = None, label: Optional[str] = None):
        select = self.soup().select_one(selector)
        if select is None:
            raise SessionTimeoutError(f"{selector} not found")
        for option in select.find_all('option'):
            if (value is not None and option.get('value') == value) or \
                    (label is not None and option.get_text().strip() == label):
                self.selected.append((selector, option.get('value')))
                return [option.get('value')]
        raise ValueError(f"No option matching value={value!r} label={label!r}")

    async def press(self, key: str):
        self.keys.append(key)

    async def set_user_agent(self, user_agent: str):
        self.user_agents.append(user_agent)

    async def set_headers(self, headers: Dict[str, str]):
        self.headers.update(headers)

    async def screenshot(self, path: str):
        self.screenshots.append(path)


class FakeBrowser:
    """Stands in for StealthBrowser: yields a prepared session."""

    def __init__(self, session: FakeSession):
        self.session = session
        self.closed = False

    async def __aenter__(self) -> FakeSession:
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True


def table_page(rows, title='Listing', next_enabled=True, page_links=('1', '2')):
    """A simple listing page with a header row, data rows and a pager."""
    body_rows = ''.join(f"<tr><td>{name}</td><td>{city}</td></tr>" for name, city in rows)
    next_class = 'next' if next_enabled else 'next disabled'
    links = ''.join(f'<a href="?page={n}">{n}</a>' for n in page_links)
    return f"""
    <html>
      <head><title>{title}</title><meta name="description" content="Project listing"></head>
      <body>
        <header>Site header</header>
        <table id="results">
          <tr><th>Name</th><th>City</th></tr>
          {body_rows}
        </table>
        <div class="pagination">{links}<a class="{next_class}" href="?page=2">Next</a></div>
        <footer>Footer text</footer>
      </body>
    </html>
    """


@pytest.fixture
def fast_timings():
    """Timings with every delay and timeout set to zero."""
    return FAST_TIMINGS


@pytest.fixture
def fake_session():
    """An empty FakeSession."""
    return FakeSession()


@pytest.fixture
def paged_session():
    """
    Two listing pages: three rows on page 1, two on page 2 whose Next is
    disabled.
    """
    page1 = table_page([('A', 'Mysuru'), ('B', 'Hubli'), ('C', 'Udupi')])
    page2 = table_page([('D', 'Mangaluru'), ('E', 'Belagavi')], next_enabled=False)

    session = FakeSession(pages={'https://example.com/list': page1})

    def go_to_page2(s):
        s.html = page2
        s.url = 'https://example.com/list?page=2'

    session.on_click[':nth-match(a:not([disabled]), 3)'] = go_to_page2
    return session


@pytest.fixture
def client(paged_session):
    """Create a test client whose browser serves the paged listing."""
    from harvest_api.main import app, get_manager
    from harvester.manager import ScraperManager

    app.dependency_overrides[get_manager] = lambda: ScraperManager(
        browser_factory=lambda: FakeBrowser(paged_session),
        timings=FAST_TIMINGS,
    )

    # Use TestClient directly without context manager for compatibility
    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
