"""
Base classes for the harvester scraping engine.

This module defines the abstract base class, the data structures shared by
the generic and site-specific flows, and the engine's exception hierarchy.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field
from enum import Enum
import asyncio
import logging

from bs4 import BeautifulSoup

from .utils.extractors import extract_metadata

logger = logging.getLogger(__name__)

# A flattened table row: column label -> cell text, in column order
RowRecord = Dict[str, str]


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


# ============================================================
# ERRORS
# ============================================================

class HarvestError(Exception):
    """Base class for unrecoverable scrape failures."""


class NavigationError(HarvestError):
    """A required navigation target could not be reached."""


class FormNotFoundError(HarvestError):
    """A required form control was absent after all fallbacks."""


class NoDistrictsError(HarvestError):
    """The district dropdown offered nothing to select."""


class ModalNotFoundError(HarvestError):
    """A detail modal did not become visible. Scoped to a single trigger."""


class SessionTimeoutError(Exception):
    """A browser session operation exceeded its timeout."""


class ClickError(Exception):
    """An element could not be clicked."""


# ============================================================
# CONFIGURATION TYPES
# ============================================================

class ScraperType(Enum):
    """Extraction engines a request can be served by."""
    BROWSER = "browser"     # Playwright-rendered, in-process
    REMOTE = "remote"       # Remote scraping backend (drop-in substitute)


@dataclass
class SiteConfig:
    """Configuration for a scraping target."""
    name: str                           # Full display name
    short_name: str                     # Logger / registry identifier
    start_url: str                      # Entry page for the flow
    base_url: str                       # Base URL for relative navigation
    scraper_type: ScraperType           # Which engine serves the site
    domain: Optional[str] = None        # URL signature routing to this site
    selectors: Dict[str, str] = field(default_factory=dict)  # CSS selectors
    options: Dict[str, Any] = field(default_factory=dict)    # Flow-specific knobs
    enabled: bool = True


@dataclass(frozen=True)
class ScrapeTimings:
    """
    Delays and timeouts used by the engine, all in seconds.

    Settle delays tolerate asynchronous rendering that offers no completion
    signal; timeouts bound individual waits.
    """
    navigation_timeout: float = 90.0
    content_settle: float = 3.0
    page_settle: float = 3.0
    captcha_recovery_delay: float = 12.0
    pagination_wait_timeout: float = 10.0
    modal_open_timeout: float = 30.0
    modal_settle: float = 3.0
    modal_close_timeout: float = 10.0
    tab_render_timeout: float = 10.0
    form_wait_timeout: float = 30.0
    form_submit_timeout: float = 60.0
    select_settle: float = 3.0
    results_wait_timeout: float = 30.0
    results_settle: float = 5.0
    site_page_settle: float = 5.0
    site_captcha_recovery_delay: float = 5.0


@dataclass
class PaginationOptions:
    """Caller-supplied traversal budget."""
    max_pages: int = 10
    auto_paginate: bool = True

    def __post_init__(self):
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {self.max_pages}")


# ============================================================
# RESULTS
# ============================================================

@dataclass(frozen=True)
class PaginationInfo:
    """Pagination summary. total_pages is an estimate, not authoritative."""
    detected: bool = False
    total_pages: int = 1
    pages_scraped: int = 1

    def to_dict(self) -> Dict:
        return {
            'detected': self.detected,
            'totalPages': self.total_pages,
            'pagesScraped': self.pages_scraped,
        }


@dataclass
class PageSnapshot:
    """Per-page extraction result, consumed immediately by the orchestrator."""
    html: str = ''
    markdown: str = ''
    table_data: List[RowRecord] = field(default_factory=list)


@dataclass
class ProjectDetail:
    """Detail record harvested from one modal dialog."""
    id: Optional[str]
    name: str = 'Unknown Project'
    registration_number: str = 'N/A'
    acknowledgement_number: str = 'N/A'
    tabs: Dict[str, Dict[str, Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'registrationNumber': self.registration_number,
            'acknowledgementNumber': self.acknowledgement_number,
            'details': self.tabs,
        }


@dataclass(frozen=True)
class ScrapeResult:
    """Result of one top-level scrape request."""
    success: bool
    url: str
    html: str = ''
    markdown: str = ''
    table_data: List[RowRecord] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    pagination_info: PaginationInfo = field(default_factory=PaginationInfo)
    detailed_project_data: Optional[List[ProjectDetail]] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, url: str, error: str) -> 'ScrapeResult':
        return cls(success=False, url=url, error=error)

    def to_dict(self) -> Dict:
        if not self.success:
            return {'success': False, 'url': self.url, 'error': self.error or 'Unknown error'}

        data = {
            'success': True,
            'url': self.url,
            'html': self.html,
            'markdown': self.markdown,
            'tableData': self.table_data,
            'metadata': self.metadata,
            'paginationInfo': self.pagination_info.to_dict(),
        }
        if self.detailed_project_data is not None:
            data['detailedProjectData'] = [d.to_dict() for d in self.detailed_project_data]
        return data


# ============================================================
# BASE SCRAPER
# ============================================================

class BaseScraper(ABC):
    """
    Abstract base class for all scrape flows.

    A scraper owns one browser session for the duration of one request and
    drives it strictly sequentially.

    Subclasses must implement:
    - scrape(): Run the flow and return a ScrapeResult
    """

    def __init__(self, session, config: SiteConfig, timings: Optional[ScrapeTimings] = None):
        """
        Initialize the scraper.

        Args:
            session: BrowserSession the flow drives
            config: Site configuration
            timings: Delays and timeouts (defaults when omitted)
        """
        self.session = session
        self.config = config
        self.timings = timings or ScrapeTimings()
        self.logger = logging.getLogger(f"scraper.{config.short_name}")

    @abstractmethod
    async def scrape(self, url: str, options: PaginationOptions) -> ScrapeResult:
        """
        Run the flow.

        Args:
            url: Requested URL
            options: Pagination budget

        Returns:
            ScrapeResult
        """
        pass

    async def settle(self, seconds: float):
        """Wait out a fixed settle delay."""
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def soup(self) -> BeautifulSoup:
        """Parse the current rendered document."""
        html = await self.session.content()
        return BeautifulSoup(html, 'html.parser')

    async def collect_metadata(self) -> Dict[str, str]:
        """
        Collect the document title and named meta tags.

        Returns:
            Mapping with at least 'title'
        """
        try:
            return extract_metadata(await self.soup())
        except Exception as e:
            self.logger.warning(f"Metadata extraction failed: {e}")
            return {'title': ''}
