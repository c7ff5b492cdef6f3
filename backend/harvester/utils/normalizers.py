"""
Text normalization utilities for scrapers.

These functions standardize text pulled out of rendered documents.
"""

import re
from typing import Optional

from bs4.element import Tag


SECTION_TITLE_SUFFIXES = ['Details', 'Detail', ' Work', ' Document', ' Documents']


def cell_text(element: Optional[Tag]) -> str:
    """Trimmed text content of an element ('' for None)."""
    if element is None:
        return ''
    return element.get_text().strip()


def control_text(element: Optional[Tag]) -> str:
    """
    Lowercased, trimmed text of a clickable control.

    Examples:
        " Next " -> "next"
        "»" -> "»"
    """
    return cell_text(element).lower()


def clean_label(text: str) -> str:
    """
    Strip the first colon and surrounding whitespace from a field label.

    Examples:
        "Project Name :" -> "Project Name"
        "Status" -> "Status"
    """
    if not text:
        return ''
    return text.replace(':', '', 1).strip()


def clean_section_title(title: str) -> str:
    """
    Drop trailing boilerplate words from a section heading.

    Suffixes are checked in order and each is removed at most once.

    Examples:
        "Project Details" -> "Project"
        "Development Work" -> "Development"
        "Uploaded Documents" -> "Uploaded"
    """
    cleaned = title
    for suffix in SECTION_TITLE_SUFFIXES:
        if cleaned.endswith(suffix):
            cleaned = cleaned[:len(cleaned) - len(suffix)].strip()
    return cleaned


def parse_page_number(text: str) -> Optional[int]:
    """
    Parse a leading integer the way a pager label reads.

    Examples:
        "3" -> 3
        " 12 " -> 12
        "Next" -> None
    """
    match = re.match(r'\s*([+-]?\d+)', text or '')
    if match:
        return int(match.group(1))
    return None


def parse_entry_count(text: str) -> Optional[int]:
    """
    Parse Z out of a "Showing X to Y of Z entries" caption.

    Examples:
        "Showing 1 to 10 of 1,234 entries" -> 1234
        "No data" -> None
    """
    match = re.search(r'Showing \d+ to \d+ of ([\d,]+) entries', text or '', re.IGNORECASE)
    if match:
        return int(match.group(1).replace(',', ''))
    return None
