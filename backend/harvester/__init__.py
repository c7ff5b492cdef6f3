"""
Adaptive scraping engine.

This package provides:
- A generic page traversal flow (content, tables, pagination, anti-bot recovery)
- Site-specific flows registered by URL signature
- A remote backend client usable as a drop-in substitute engine
"""

from .base import BaseScraper, PaginationOptions, ScrapeResult, ScraperType, SiteConfig
from .config import SITES, get_site_config, get_enabled_sites, site_for_url
from .manager import ScraperManager

__all__ = [
    'BaseScraper',
    'PaginationOptions',
    'ScrapeResult',
    'ScraperType',
    'SiteConfig',
    'SITES',
    'get_site_config',
    'get_enabled_sites',
    'site_for_url',
    'ScraperManager',
]
