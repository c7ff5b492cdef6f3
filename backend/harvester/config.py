"""
Site configurations for the harvester.

Each site has a SiteConfig that defines:
- Entry URL and the URL signature that routes requests to it
- Engine (in-process browser or remote backend)
- CSS selectors and flow-specific options
"""

from typing import Optional

from .base import SiteConfig, ScraperType


GENERIC_SITE = 'generic'


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

SITES = {
    # Any page without a dedicated flow
    'generic': SiteConfig(
        name='Generic Page',
        short_name='generic',
        start_url='',
        base_url='',
        scraper_type=ScraperType.BROWSER,
        options={'page_size': 10},
        enabled=True,
    ),

    # Karnataka Real Estate Regulatory Authority project registry
    'rera_karnataka': SiteConfig(
        name='RERA Karnataka',
        short_name='RERA-KA',
        start_url='https://rera.karnataka.gov.in/viewAllProjects',
        base_url='https://rera.karnataka.gov.in/',
        scraper_type=ScraperType.BROWSER,
        domain='rera.karnataka.gov.in',
        selectors={
            'district': '#projectDist',
            'submit': 'input[name="btn1"][type="submit"]',
        },
        options={
            'direct_url': 'https://rera.karnataka.gov.in/projectViewDetails',
            'district': 'Bengaluru Urban',
            'max_details': 10,
            'page_size': 10,
            'screenshots': False,
            'screenshot_dir': '/tmp',
        },
        enabled=True,
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key: str) -> SiteConfig:
    """
    Get configuration for a site by its key.

    Args:
        site_key: Site identifier (e.g., 'generic', 'rera_karnataka')

    Returns:
        SiteConfig for the site

    Raises:
        ValueError: If site_key is not found
    """
    if site_key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ValueError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[site_key]


def get_enabled_sites() -> dict:
    """Get all enabled sites."""
    return {k: v for k, v in SITES.items() if v.enabled}


def site_for_url(url: Optional[str]) -> str:
    """
    Pick the site flow for a URL.

    A URL containing an enabled site's domain signature routes to that site;
    everything else is handled by the generic flow.
    """
    for key, config in get_enabled_sites().items():
        if config.domain and url and config.domain in url:
            return key
    return GENERIC_SITE


def get_site_summary() -> list:
    """Get a summary of all sites for display."""
    summary = []
    for key, config in SITES.items():
        summary.append({
            'key': key,
            'name': config.name,
            'short_name': config.short_name,
            'type': config.scraper_type.value,
            'domain': config.domain,
            'enabled': config.enabled,
            'url': config.start_url or None,
        })
    return summary
