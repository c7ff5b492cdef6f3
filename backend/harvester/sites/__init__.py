"""Per-site scraper implementations."""

from .rera_karnataka import ReraKarnatakaScraper, DetailModalExtractor

__all__ = ['ReraKarnatakaScraper', 'DetailModalExtractor']
