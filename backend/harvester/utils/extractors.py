"""
Data extraction utilities for scrapers.

Table flattening lives here as a set of pluggable strategies: each strategy
decides whether it recognises a document and which table it flattens. The
generic "largest table wins" heuristic is just the last strategy in the
default chain, so site-specific rules can be added in front of it without
touching the generic path.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Union
import logging

from bs4 import BeautifulSoup
from bs4.element import Tag

from .normalizers import cell_text

logger = logging.getLogger(__name__)

Markup = Union[str, BeautifulSoup, Tag]


def as_soup(markup: Markup) -> Union[BeautifulSoup, Tag]:
    """Parse markup unless it is already a parsed tree."""
    if isinstance(markup, (BeautifulSoup, Tag)):
        return markup
    return BeautifulSoup(markup or '', 'html.parser')


def rows_to_records(
    headers: List[str],
    rows: Sequence[Tag],
    default_header: str = 'column{n}',
    clip_to_headers: bool = True,
) -> List[Dict[str, str]]:
    """
    Turn table rows into label -> text records.

    Args:
        headers: Header labels in column order (may be empty)
        rows: Row elements to flatten
        default_header: Label template for columns without a header
        clip_to_headers: Drop cells beyond the header row when headers exist

    Returns:
        List of row records
    """
    records = []
    for row in rows:
        record = {}
        for index, cell in enumerate(row.select('td')):
            if clip_to_headers and headers and index >= len(headers):
                break
            label = headers[index] if index < len(headers) and headers[index] else default_header.format(n=index + 1)
            record[label] = cell_text(cell)
        records.append(record)
    return records


class TableStrategy(ABC):
    """Chooses and flattens a table from a rendered document."""

    name = 'base'

    @abstractmethod
    def matches(self, soup: BeautifulSoup) -> bool:
        """Whether this strategy applies to the document."""
        pass

    @abstractmethod
    def extract(self, soup: BeautifulSoup) -> List[Dict[str, str]]:
        """Flatten the chosen table into row records."""
        pass


class DataTablesStrategy(TableStrategy):
    """
    Known DataTables widget with a designated table id.

    Headers come from ``thead th`` and data rows from ``tbody tr``.
    """

    name = 'datatables'

    def __init__(self, wrapper_selector: str = '#unregprojList_wrapper', table_selector: str = '#unregprojList'):
        self.wrapper_selector = wrapper_selector
        self.table_selector = table_selector

    def matches(self, soup: BeautifulSoup) -> bool:
        return soup.select_one(self.wrapper_selector) is not None

    def extract(self, soup: BeautifulSoup) -> List[Dict[str, str]]:
        table = soup.select_one(self.table_selector)
        if table is None:
            logger.debug(f"DataTables wrapper present but {self.table_selector} missing")
            return []

        headers = [cell_text(th) for th in table.select('thead th')]
        return rows_to_records(headers, table.select('tbody tr'))


class LargestTableStrategy(TableStrategy):
    """
    Generic heuristic: the table with the most rows wins.

    Ties go to the first table in document order. The first row supplies the
    headers when it has ``th`` cells; otherwise every row is data.
    """

    name = 'largest'

    def matches(self, soup: BeautifulSoup) -> bool:
        return soup.find('table') is not None

    def extract(self, soup: BeautifulSoup) -> List[Dict[str, str]]:
        main_table = None
        max_rows = -1
        for table in soup.find_all('table'):
            row_count = len(table.select('tr'))
            if row_count > max_rows:
                max_rows = row_count
                main_table = table

        if main_table is None:
            return []

        rows = main_table.select('tr')
        if not rows:
            return []

        headers = [cell_text(th) for th in rows[0].select('th')]
        data_rows = rows[1:] if headers else rows
        return rows_to_records(headers, data_rows)


DEFAULT_TABLE_STRATEGIES = (DataTablesStrategy(), LargestTableStrategy())


class TableExtractor:
    """
    Locates and flattens the most relevant table on a page.

    Strategies are consulted in order; the first that matches is used.
    Never raises: any failure yields an empty list.
    """

    def __init__(self, strategies: Optional[Sequence[TableStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else list(DEFAULT_TABLE_STRATEGIES)

    def extract_table(self, markup: Markup) -> List[Dict[str, str]]:
        """
        Extract row records from the page.

        Args:
            markup: HTML string or parsed tree

        Returns:
            List of row records (empty when no table exists)
        """
        try:
            soup = as_soup(markup)
            for strategy in self.strategies:
                if strategy.matches(soup):
                    logger.debug(f"Using table strategy: {strategy.name}")
                    return strategy.extract(soup)
        except Exception as e:
            logger.warning(f"Table extraction failed: {e}")
        return []


def flatten_section_table(table: Tag) -> List[Dict[str, str]]:
    """
    Flatten a table nested inside a detail section.

    Headers come from ``thead th, thead td`` (``Column N`` when missing) and
    rows from ``tbody tr``.
    """
    headers = [cell_text(cell) for cell in table.select('thead th, thead td')]
    return rows_to_records(headers, table.select('tbody tr'), default_header='Column {n}', clip_to_headers=False)


def extract_metadata(soup: BeautifulSoup) -> Dict[str, str]:
    """
    Extract the page title and meta tags with a name or property.

    Args:
        soup: Parsed document

    Returns:
        Mapping containing 'title' plus one entry per named meta tag
    """
    title_tag = soup.find('title')
    meta = {'title': title_tag.get_text().strip() if title_tag else ''}
    for tag in soup.find_all('meta'):
        name = tag.get('name') or tag.get('property')
        content = tag.get('content')
        if name and content:
            meta[name] = content
    return meta
