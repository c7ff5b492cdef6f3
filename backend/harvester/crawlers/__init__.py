"""Browser sessions and crawler backends."""

from .session import BrowserSession, PlaywrightSession
from .stealth import StealthBrowser
from .remote import RemoteScrapeClient

__all__ = ['BrowserSession', 'PlaywrightSession', 'StealthBrowser', 'RemoteScrapeClient']
