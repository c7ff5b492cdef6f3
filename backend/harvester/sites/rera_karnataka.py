"""
RERA Karnataka project registry scraper.

Site structure:
- viewAllProjects: search form with a district dropdown (#projectDist)
- Results: DataTables listing (#unregprojList) with one "view" button per
  project that opens a detail modal
- Detail modal: identity header (.user_name) and tabs (.nav-tabs), each tab
  pane holding .inner_wrapper sections of label/value rows and tables
"""

from abc import ABC, abstractmethod
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..base import (
    ClickError,
    Colors,
    FormNotFoundError,
    ModalNotFoundError,
    NavigationError,
    NoDistrictsError,
    PaginationInfo,
    PaginationOptions,
    ProjectDetail,
    ScrapeResult,
    ScrapeTimings,
    SessionTimeoutError,
    SiteConfig,
)
from ..captcha import CaptchaGuard
from ..pagination import nth_match
from ..scraper import Scraper
from ..utils.extractors import flatten_section_table
from ..utils.normalizers import cell_text, clean_label, clean_section_title


MARKUP_CAPTCHA_SIGNALS = ('captcha', 'robot', 'verification')

TRIGGER_SELECTOR = 'a.btn[onclick*="showFileApplicationPreview"]'
MODAL_SELECTOR = '.inner_wrapper'
TAB_SELECTOR = '.nav-tabs li a'
CLOSE_SELECTORS = ('.modal-header .close, .close', '.modal-backdrop')

MODAL_HIDDEN_SCRIPT = """
() => {
    const modal = document.querySelector('.modal-dialog');
    return !modal || window.getComputedStyle(modal).display === 'none';
}
"""

SELECT_BY_TEXT_SCRIPT = """
([selector, text]) => {
    const select = document.querySelector(selector);
    if (!select) return false;
    const option = Array.from(select.querySelectorAll('option'))
        .find(opt => (opt.textContent || '').trim() === text);
    if (!option) return false;
    select.value = option.getAttribute('value') || '';
    select.dispatchEvent(new Event('change', { bubbles: true }));
    return true;
}
"""

SUBMIT_FORM_SCRIPT = """
() => {
    const form = document.querySelector('form');
    if (!form) return false;
    form.submit();
    return true;
}
"""


# ============================================================
# FIELD PAIRING
# ============================================================

class FieldPairing(ABC):
    """Pairs label elements with value elements inside one layout row."""

    @abstractmethod
    def pair(self, row: Tag) -> List[Tuple[Tag, Tag]]:
        pass


class PositionalFieldPairing(FieldPairing):
    """
    Bootstrap grid pairing: the n-th ``.text-right`` label goes with the n-th
    value column (``.col-md-3`` that is not a label column, or ``.col-md-9``).
    """

    label_selector = '.text-right'
    value_selector = '.col-md-3, .col-md-9'

    def _is_label_column(self, element: Tag) -> bool:
        classes = element.get('class') or []
        return 'text-right' in classes or element.select_one(self.label_selector) is not None

    def pair(self, row: Tag) -> List[Tuple[Tag, Tag]]:
        labels = row.select(self.label_selector)
        values = [
            el for el in row.select(self.value_selector)
            if 'col-md-9' in (el.get('class') or []) or not self._is_label_column(el)
        ]
        return list(zip(labels, values))


def parse_section(section: Tag, pairing: FieldPairing) -> Dict[str, Any]:
    """
    Harvest label/value fields and nested tables from one detail section.

    Link values are replaced by the link text and the href is kept under
    ``<label> URL``. Empty values are dropped.
    """
    data: Dict[str, Any] = {}

    for row in section.select('.row'):
        for label_el, value_el in pairing.pair(row):
            label = clean_label(cell_text(label_el))
            if not label:
                continue

            value = cell_text(value_el)
            link = value_el.find('a')
            if link is not None:
                link_text = cell_text(link)
                if link_text:
                    value = link_text
                    if link.get('href'):
                        data[f"{label} URL"] = link['href']

            if value:
                data[label] = value

    tables = section.find_all('table')
    if tables:
        data['tables'] = [flatten_section_table(table) for table in tables]
    return data


def parse_tab_pane(pane: Tag, pairing: FieldPairing) -> Dict[str, Dict[str, Any]]:
    """Map cleaned section titles to section data for one tab pane."""
    sections = {}
    for index, section in enumerate(pane.select(MODAL_SELECTOR)):
        heading = section.find('h1')
        title = cell_text(heading) or f"Section {index + 1}"
        sections[clean_section_title(title)] = parse_section(section, pairing)
    return sections


def parse_identity(soup: BeautifulSoup) -> Dict[str, Optional[str]]:
    """
    Read project name, registration number and acknowledgement number.

    Returns:
        Dictionary with 'name', 'registration_number' and
        'acknowledgement_number' (None when absent)
    """
    identity = {'name': None, 'registration_number': None, 'acknowledgement_number': None}

    name_el = soup.select_one('.user_name b')
    if name_el is not None:
        identity['name'] = cell_text(name_el) or None

    for element in soup.select('.user_name'):
        text = element.get_text()
        if identity['registration_number'] is None and 'Registration Number' in text:
            identity['registration_number'] = cell_text(element.find('b')) or None
        if identity['acknowledgement_number'] is None and 'Acknowledgement Number' in text:
            identity['acknowledgement_number'] = cell_text(element.find('b')) or None

    return identity


# ============================================================
# DETAIL MODALS
# ============================================================

class DetailModalExtractor:
    """
    Opens each project's detail modal, walks its tabs and closes it again.

    Failures are scoped to one trigger: the trigger is logged and skipped.
    """

    def __init__(
        self,
        session,
        timings: Optional[ScrapeTimings] = None,
        max_details: int = 10,
        pairing: Optional[FieldPairing] = None,
        logger=None,
    ):
        self.session = session
        self.timings = timings or ScrapeTimings()
        self.max_details = max_details
        self.pairing = pairing or PositionalFieldPairing()
        self.logger = logger or logging.getLogger(__name__)

    async def _soup(self) -> BeautifulSoup:
        return BeautifulSoup(await self.session.content(), 'html.parser')

    async def _settle(self, seconds: float):
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def trigger_ids(self) -> List[str]:
        """Ids of the detail triggers on the current page, bounded by max_details."""
        soup = await self._soup()
        ids = [a.get('id') for a in soup.select(TRIGGER_SELECTOR) if a.get('id')]
        return ids[:self.max_details]

    async def extract_all(self) -> List[ProjectDetail]:
        """
        Extract detail records for the current results page.

        Returns:
            One ProjectDetail per trigger that could be processed
        """
        try:
            ids = await self.trigger_ids()
        except Exception as e:
            self.logger.error(f"Could not enumerate detail triggers: {e}")
            return []

        self.logger.info(f"Found {len(ids)} detail buttons to process")
        details = []
        for index, trigger_id in enumerate(ids):
            self.logger.info(f"Processing detail button {index + 1}/{len(ids)} (ID: {trigger_id})")
            try:
                details.append(await self.extract_one(trigger_id))
            except ModalNotFoundError as e:
                self.logger.warning(f"Skipping {trigger_id}: {e}")
            except Exception as e:
                self.logger.error(f"Error extracting details for {trigger_id}: {e}")
        return details

    async def extract_one(self, trigger_id: str) -> ProjectDetail:
        """Open, read and close the modal for one trigger."""
        await self.session.click(f'a.btn[id="{trigger_id}"]')
        try:
            await self.session.wait_for_selector(MODAL_SELECTOR, state='visible', timeout=self.timings.modal_open_timeout)
        except SessionTimeoutError as e:
            # Dismiss a half-opened modal or backdrop before the next trigger
            await self.close_modal()
            raise ModalNotFoundError(f"Modal not visible within {self.timings.modal_open_timeout}s") from e

        try:
            await self._settle(self.timings.modal_settle)
            identity = parse_identity(await self._soup())
            tabs = await self.read_tabs()
        finally:
            await self.close_modal()

        return ProjectDetail(
            id=trigger_id,
            name=identity['name'] or 'Unknown Project',
            registration_number=identity['registration_number'] or 'N/A',
            acknowledgement_number=identity['acknowledgement_number'] or 'N/A',
            tabs=tabs,
        )

    async def read_tabs(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Activate every tab in turn and parse its pane once visible."""
        soup = await self._soup()
        links = [(cell_text(a), a.get('href') or '') for a in soup.select(TAB_SELECTOR)]

        tabs = {}
        for index, (text, href) in enumerate(links):
            tab_name = text or f"Tab {index + 1}"
            tabs[tab_name] = {}

            try:
                await self.session.click(nth_match(TAB_SELECTOR, index))
            except ClickError as e:
                self.logger.debug(f"Tab '{tab_name}' not clickable: {e}")

            pane_id = href[1:] if href.startswith('#') else ''
            if not pane_id:
                self.logger.debug(f"Tab '{tab_name}' has no pane reference")
                continue

            try:
                await self.session.wait_for_selector(f'[id="{pane_id}"]', state='visible', timeout=self.timings.tab_render_timeout)
            except SessionTimeoutError:
                self.logger.debug(f"Pane for tab '{tab_name}' not visible, reading anyway")

            pane = (await self._soup()).find(id=pane_id)
            if pane is None:
                self.logger.debug(f"Tab content not found for {tab_name}")
                continue
            tabs[tab_name] = parse_tab_pane(pane, self.pairing)

        return tabs

    async def close_modal(self):
        """Dismiss the modal: close button, then backdrop, then Escape."""
        soup = await self._soup()
        for selector in CLOSE_SELECTORS:
            if soup.select_one(selector) is None:
                continue
            try:
                await self.session.click(selector, timeout=self.timings.modal_close_timeout)
                break
            except ClickError as e:
                self.logger.debug(f"Could not click {selector}: {e}")

        try:
            await self.session.wait_for_function(MODAL_HIDDEN_SCRIPT, timeout=self.timings.modal_close_timeout)
        except SessionTimeoutError:
            self.logger.debug("Modal did not close within timeout, pressing Escape")
            await self.session.press('Escape')

        await self._settle(self.timings.modal_settle)


# ============================================================
# SITE FLOW
# ============================================================

class ReraKarnatakaScraper(Scraper):
    """
    Specialized flow for rera.karnataka.gov.in.

    Selects a district on the search form, submits it, then walks the result
    pages collecting table rows and per-project detail records.
    """

    def __init__(self, session, config: SiteConfig, timings: Optional[ScrapeTimings] = None, **kwargs):
        super().__init__(session, config, timings, **kwargs)
        self.selectors = config.selectors
        self.details = DetailModalExtractor(
            session,
            timings=self.timings,
            max_details=config.options.get('max_details', 10),
            logger=self.logger,
        )

    async def capture(self, name: str):
        """Save a debug screenshot when screenshots are enabled."""
        if not self.config.options.get('screenshots'):
            return
        directory = Path(self.config.options.get('screenshot_dir') or '/tmp')
        path = directory / name
        try:
            directory.mkdir(parents=True, exist_ok=True)
            await self.session.screenshot(str(path))
            self.logger.debug(f"Screenshot saved to {path}")
        except Exception as e:
            self.logger.warning(f"Screenshot {name} failed: {e}")

    async def open_results_directly(self):
        """Fallback when the search form is missing: load the results page itself."""
        direct_url = self.config.options.get('direct_url') or f"{self.config.base_url}projectViewDetails"
        self.logger.info(f"Form not found, navigating directly to {direct_url}")
        await self.open(direct_url)
        await self.capture('rera-direct-navigation.png')

        if (await self.soup()).find('table') is None:
            raise NavigationError('Unable to access the project details page')
        self.logger.info("Successfully navigated directly to results page")

    async def select_district(self, district: str):
        select = self.selectors['district']
        try:
            await self.session.wait_for_selector(select, state='visible', timeout=self.timings.form_wait_timeout)
        except SessionTimeoutError:
            self.logger.info("Timeout waiting for district dropdown, continuing anyway")

        soup = await self.soup()
        districts = [
            (option.get('value'), cell_text(option))
            for option in soup.select(f'{select} option')
            if option.get('value') != '0'
        ]
        self.logger.info(f"Found {len(districts)} districts")
        if not districts:
            await self.capture('rera-no-districts.png')
            raise NoDistrictsError('No districts found in dropdown')

        self.logger.info(f"Selecting district: {Colors.cyan(district)}")
        try:
            await self.session.select_option(select, value=district)
        except Exception as e:
            self.logger.info(f"Select by value failed ({e}), matching option text")
            if not await self.session.evaluate(SELECT_BY_TEXT_SCRIPT, [select, district]):
                self.logger.warning(f"District '{district}' not offered, submitting current selection")

        await self.settle(self.timings.select_settle)

    async def submit_search(self):
        await self.capture('rera-before-submit.png')
        self.logger.info("Submitting search form...")
        try:
            await self.session.click_and_wait_for_navigation(
                self.selectors['submit'],
                timeout=self.timings.form_submit_timeout,
            )
            return
        except (ClickError, SessionTimeoutError) as e:
            self.logger.info(f"Submit click failed ({e}), submitting the form directly")

        if not await self.session.evaluate(SUBMIT_FORM_SCRIPT):
            raise FormNotFoundError('Search form disappeared before it could be submitted')
        try:
            await self.session.wait_for_load_state('networkidle', timeout=self.timings.form_submit_timeout)
        except SessionTimeoutError:
            self.logger.info("Navigation timeout, continuing anyway")

    async def open_results(self):
        """Get from the search form to the first results page."""
        soup = await self.soup()
        has_form = soup.find('form') is not None and soup.select_one(self.selectors['district']) is not None

        if not has_form:
            await self.open_results_directly()
        else:
            await self.select_district(self.config.options.get('district', 'Bengaluru Urban'))
            await self.submit_search()

        await self.capture('rera-after-submit.png')
        self.logger.info(f"Navigated to: {self.session.current_url}")

        try:
            await self.session.wait_for_selector('table', state='attached', timeout=self.timings.results_wait_timeout)
        except SessionTimeoutError:
            self.logger.info("Table selector not found, continuing anyway")
        await self.settle(self.timings.results_settle)

    async def scrape(self, url: str, options: PaginationOptions) -> ScrapeResult:
        start_url = self.config.start_url
        await self.open(start_url)
        await self.capture('rera-initial-page.png')

        guard = CaptchaGuard(
            self.session,
            recovery_delay=self.timings.site_captcha_recovery_delay,
            navigation_timeout=self.timings.navigation_timeout,
            signals=MARKUP_CAPTCHA_SIGNALS,
        )
        if await guard.check_and_recover() is not None:
            await self.capture('rera-after-reload.png')

        await self.open_results()

        detected, total_pages = await self.probe_pagination(options)
        details: List[ProjectDetail] = []

        async def collect_details(page_number: int):
            self.logger.info(f"Extracting detail records for page {page_number}")
            details.extend(await self.details.extract_all())

        traversal = await self.traverse(detected, options.max_pages, self.timings.site_page_settle, on_page=collect_details)

        self.logger.info(Colors.green(
            f"RERA Karnataka: {len(traversal.table_data)} rows, {len(details)} detail records "
            f"from {traversal.pages_scraped} page(s)"
        ))
        return ScrapeResult(
            success=True,
            url=url,
            html='',
            markdown='',
            table_data=traversal.table_data,
            metadata={'title': 'RERA Karnataka Projects', 'source': 'Specialized Scraper'},
            pagination_info=PaginationInfo(
                detected=detected,
                total_pages=total_pages,
                pages_scraped=traversal.pages_scraped,
            ),
            detailed_project_data=details,
        )
