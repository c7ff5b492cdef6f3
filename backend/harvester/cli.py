#!/usr/bin/env python3
"""
Run a single scrape from the command line.

Usage:
    cd backend
    python -m harvester.cli URL [options]

Examples:
    python -m harvester.cli https://example.com/listing            # Generic flow
    python -m harvester.cli https://example.com --max-pages 3
    python -m harvester.cli https://rera.karnataka.gov.in --json  # Full JSON result
    python -m harvester.cli https://example.com --remote          # Remote backend
    python -m harvester.cli --list                                # List site flows
"""

import asyncio
import argparse
import json
import logging
import os

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from harvester.base import PaginationOptions, ScraperType, Colors
from harvester.config import get_site_summary, site_for_url
from harvester.crawlers.remote import RemoteScrapeClient
from harvester.manager import ScraperManager, SCRAPER_REGISTRY


def list_sites():
    """List all configured site flows."""
    print(f"\n{'='*60}")
    print("Available Site Flows")
    print(f"{'='*60}\n")

    for site in get_site_summary():
        status = "✅" if site['enabled'] else "⏳"
        impl = "IMPL" if site['key'] in SCRAPER_REGISTRY else "TODO"
        print(f"{status} [{impl}] {site['key']:16} - {site['name']}")
        print(f"              Type: {site['type']}")
        if site['domain']:
            print(f"              Domain: {site['domain']}")
        print()


def print_summary(data: dict):
    """Print a human-readable summary of a scrape result."""
    if not data['success']:
        print(Colors.red(f"FAILED: {data.get('error')}"))
        return

    info = data['paginationInfo']
    print(Colors.green("SUCCESS"))
    print(f"  Title: {data['metadata'].get('title', '')}")
    print(f"  Pagination: detected={info['detected']} total={info['totalPages']} scraped={info['pagesScraped']}")
    print(f"  Rows: {len(data['tableData'])}")
    print(f"  HTML: {len(data['html'])} chars, Markdown: {len(data['markdown'])} chars")

    for i, row in enumerate(data['tableData'][:5]):
        print(f"  {i+1}. {row}")
    if len(data['tableData']) > 5:
        print(f"  ... and {len(data['tableData']) - 5} more rows")

    details = data.get('detailedProjectData')
    if details is not None:
        print(f"  Detail records: {len(details)}")
        for detail in details[:5]:
            print(f"    - {detail['name']} ({detail['registrationNumber']})")


async def run(url: str, max_pages: int, auto_paginate: bool, remote: bool) -> dict:
    remote_client = None
    if remote:
        api_key = os.environ.get('REMOTE_API_KEY')
        if not api_key:
            return {'success': False, 'url': url, 'error': 'REMOTE_API_KEY is not set'}
        remote_client = RemoteScrapeClient(
            api_key=api_key,
            base_url=os.environ.get('REMOTE_BASE_URL', 'https://api.firecrawl.dev'),
        )

    manager = ScraperManager(remote_client=remote_client)
    try:
        result = await manager.scrape(
            url,
            PaginationOptions(max_pages=max_pages, auto_paginate=auto_paginate),
            engine=ScraperType.REMOTE if remote else ScraperType.BROWSER,
        )
    finally:
        if remote_client is not None:
            await remote_client.close()
    return result.to_dict()


async def main():
    parser = argparse.ArgumentParser(description='Scrape a page with the harvester')
    parser.add_argument('url', nargs='?', help='URL to scrape')
    parser.add_argument('--list', action='store_true', help='List all site flows')
    parser.add_argument('--max-pages', type=int, default=10, help='Maximum pages to visit')
    parser.add_argument('--no-paginate', action='store_true', help='Only scrape the first page')
    parser.add_argument('--remote', action='store_true', help='Use the remote backend')
    parser.add_argument('--json', action='store_true', help='Print the full JSON result')

    args = parser.parse_args()

    if args.list:
        list_sites()
        return

    if not args.url:
        parser.print_help()
        print("\nExample: python -m harvester.cli https://example.com")
        return

    if args.max_pages < 1:
        parser.error('--max-pages must be at least 1')

    print(f"\n{'='*60}")
    print(f"Scraping: {args.url} ({site_for_url(args.url)} flow)")
    print(f"{'='*60}\n")

    data = await run(args.url, args.max_pages, not args.no_paginate, args.remote)

    if args.json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print_summary(data)


def entrypoint():
    asyncio.run(main())


if __name__ == '__main__':
    entrypoint()
