"""Shared utilities for scrapers."""

from .normalizers import (
    cell_text,
    clean_label,
    clean_section_title,
    parse_entry_count,
    parse_page_number,
)
from .extractors import (
    TableExtractor,
    extract_metadata,
    flatten_section_table,
)

__all__ = [
    'cell_text',
    'clean_label',
    'clean_section_title',
    'parse_entry_count',
    'parse_page_number',
    'TableExtractor',
    'extract_metadata',
    'flatten_section_table',
]
