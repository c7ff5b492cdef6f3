"""
Tests for pagination detection, estimation and traversal.
"""

import pytest
from bs4 import BeautifulSoup

from harvester.pagination import (
    DATATABLES_NEXT,
    PaginationHandler,
    detect_pagination,
    estimate_total_pages,
    find_next_control,
)

from conftest import FakeSession


def soup_of(html):
    return BeautifulSoup(html, 'html.parser')


DATATABLES_PAGE = """
<div id="unregprojList_wrapper">
  <table id="unregprojList"><thead><tr><th>Project</th></tr></thead><tbody><tr><td>A</td></tr></tbody></table>
  <div class="dataTables_info">Showing 1 to 10 of 95 entries</div>
  <div class="dataTables_paginate">
    <a class="paginate_button previous disabled">Previous</a>
    <a class="paginate_button current">1</a>
    <a class="paginate_button next">Next</a>
  </div>
</div>
"""


class TestDetection:
    """Test pagination detection."""

    @pytest.mark.parametrize("html", [
        '<ul class="pagination"><li>1</li></ul>',
        '<div class="wp-pagenavi"></div>',
        '<nav aria-label="pagination"></nav>',
        '<div data-testid="pagination"></div>',
        '<a href="/results?page=2">2</a>',
        '<a href="/blog/page/3/">older</a>',
        '<a href="#">Previous</a>',
        '<a href="#">Go to page 4</a>',
    ])
    def test_detects_pagination(self, html):
        """Test each detection rule."""
        assert detect_pagination(soup_of(html)) is True

    def test_plain_page(self):
        """Test that a page without pager controls is not paginated."""
        assert detect_pagination(soup_of('<a href="/about">About us</a><p>Text</p>')) is False


class TestEstimate:
    """Test total page estimation."""

    def test_datatables_caption(self):
        """Test that the entry count is divided by the page size and rounded up."""
        assert estimate_total_pages(soup_of(DATATABLES_PAGE)) == 10

    def test_datatables_caption_with_custom_page_size(self):
        """Test that the page size is configurable."""
        assert estimate_total_pages(soup_of(DATATABLES_PAGE), page_size=25) == 4

    def test_thousands_separator(self):
        """Test that counts with commas are parsed."""
        html = '<div class="dataTables_info">Showing 1 to 10 of 1,234 entries</div>'

        assert estimate_total_pages(soup_of(html)) == 124

    def test_largest_pager_number(self):
        """Test that the largest numeric pager link wins."""
        html = '<div class="pagination"><a>1</a><a>2</a><a>7</a><a>Next</a></div>'

        assert estimate_total_pages(soup_of(html)) == 7

    def test_defaults_to_one(self):
        """Test the fallback when nothing is known."""
        assert estimate_total_pages(soup_of('<p>nothing</p>')) == 1


class TestFindNext:
    """Test generic next-control lookup."""

    def test_finds_next_link(self):
        """Test that the index refers to matches of the winning selector."""
        html = '<a href="/">Home</a><a href="?page=1">1</a><a href="?page=2">Next »</a>'

        assert find_next_control(soup_of(html)) == ('a:not([disabled])', 2)

    def test_symbol_only_control(self):
        """Test that a lone '>' reads as next."""
        html = '<button>&lt;</button><button>&gt;</button>'

        assert find_next_control(soup_of(html)) == ('button:not([disabled])', 1)

    def test_skips_disabled_controls(self):
        """Test that disabled class and aria-disabled are respected."""
        html = """
        <a class="next disabled">Next</a>
        <a aria-disabled="true">Next</a>
        <button disabled>Next</button>
        """

        assert find_next_control(soup_of(html)) is None

    def test_aria_label_fallback(self):
        """Test that a control found only through its label is matched by text."""
        html = '<span role="link" aria-label="next page">Next page</span>'

        assert find_next_control(soup_of(html)) == ('[aria-label*="next"]:not([disabled])', 0)


class TestPaginationHandler:
    """Test advancing on a live session."""

    async def test_detect_and_estimate(self):
        """Test that the handler parses the session's document."""
        handler = PaginationHandler()
        session = FakeSession(DATATABLES_PAGE)

        assert await handler.detect(session) is True
        assert await handler.estimate_total_pages(session) == 10

    async def test_datatables_advance(self):
        """Test that the enabled DataTables next button is clicked."""
        session = FakeSession(DATATABLES_PAGE)

        assert await PaginationHandler(wait_timeout=0).advance(session) is True
        assert session.clicks == [DATATABLES_NEXT]

    async def test_datatables_last_page(self):
        """Test that a disabled next button ends traversal without clicking."""
        session = FakeSession(DATATABLES_PAGE.replace('paginate_button next', 'paginate_button next disabled'))

        assert await PaginationHandler(wait_timeout=0).advance(session) is False
        assert session.clicks == []

    async def test_datatables_processing_timeout_is_not_fatal(self):
        """Test that a stuck processing indicator still counts as advanced."""
        html = DATATABLES_PAGE + '<div class="dataTables_processing">Processing...</div>'
        session = FakeSession(html)

        assert await PaginationHandler(wait_timeout=0).advance(session) is True

    async def test_generic_advance(self):
        """Test that the generic next link is clicked with navigation wait."""
        session = FakeSession('<div class="pager"><a href="?page=2">Next</a></div>')

        assert await PaginationHandler(wait_timeout=0).advance(session) is True
        assert session.clicks == [':nth-match(a:not([disabled]), 1)']

    async def test_generic_navigation_timeout_still_advances(self):
        """Test that a slow navigation after the click is tolerated."""
        session = FakeSession('<a href="?page=2">Next</a>')
        session.navigation_timeouts.add(':nth-match(a:not([disabled]), 1)')

        assert await PaginationHandler(wait_timeout=0).advance(session) is True

    async def test_generic_click_failure(self):
        """Test that an unclickable control ends traversal."""
        session = FakeSession('<a href="?page=2">Next</a>')
        session.click_errors.add(':nth-match(a:not([disabled]), 1)')

        assert await PaginationHandler(wait_timeout=0).advance(session) is False

    async def test_no_next_control(self):
        """Test that a page without a next control cannot advance."""
        session = FakeSession('<a href="?page=1">1</a>')

        assert await PaginationHandler(wait_timeout=0).advance(session) is False

    async def test_generic_driver_error_ends_traversal(self):
        """Test that an unexpected driver error while advancing returns False."""
        session = FakeSession('<a href="?page=2">Next</a>')

        def aborted(s):
            raise RuntimeError("net::ERR_ABORTED")

        session.on_click[':nth-match(a:not([disabled]), 1)'] = aborted

        assert await PaginationHandler(wait_timeout=0).advance(session) is False

    async def test_datatables_driver_error_ends_traversal(self):
        """Test that an unexpected driver error on the DataTables button returns False."""
        session = FakeSession(DATATABLES_PAGE)

        def detached(s):
            raise RuntimeError("Element is not attached to the DOM")

        session.on_click[DATATABLES_NEXT] = detached

        assert await PaginationHandler(wait_timeout=0).advance(session) is False
        assert session.clicks == [DATATABLES_NEXT]
