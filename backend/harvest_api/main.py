from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from typing import Literal, Optional
import logging
import re

from harvest_api.config import settings
from harvester.base import PaginationOptions, ScraperType
from harvester.crawlers.remote import RemoteScrapeClient
from harvester.crawlers.stealth import StealthBrowser
from harvester.manager import ScraperManager

# Setup logging directory
settings.log_dir.mkdir(parents=True, exist_ok=True)


# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)


# Setup logging with color support for console, stripped for file
file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
file_handler.setFormatter(ColorStripFormatter(settings.log_format))

console_handler = logging.StreamHandler()
console_handler.setFormatter(logging.Formatter(settings.log_format))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[file_handler, console_handler],
    force=True  # Override any existing configuration
)

# Flow loggers (scraper.<site>) get their own handlers and do not propagate,
# so each line is written once
scraper_logger = logging.getLogger('scraper')
scraper_logger.propagate = False
if not scraper_logger.handlers:
    scraper_file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    scraper_file_handler.setFormatter(ColorStripFormatter(settings.log_format))
    scraper_logger.addHandler(scraper_file_handler)

    scraper_console_handler = logging.StreamHandler()
    scraper_console_handler.setFormatter(logging.Formatter(settings.log_format))
    scraper_logger.addHandler(scraper_console_handler)
scraper_logger.setLevel(getattr(logging, settings.log_level.upper()))

# Quiet third-party chatter
for noisy in ('playwright', 'httpx', 'httpcore'):
    logging.getLogger(noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info("Harvester API Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"Headless browser: {settings.browser_headless}")
    logger.info(f"Remote backend: {'configured' if settings.remote_api_key else 'not configured'}")
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    logger.info("=" * 60)
    logger.info("Harvester API Shutting Down")
    logger.info("=" * 60)


app = FastAPI(
    title="Harvester API",
    version="1.0.0",
    lifespan=lifespan
)

# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Request models

class PaginationOptionsRequest(BaseModel):
    maxPages: int = Field(10, ge=1)
    autoPaginate: bool = True


class ScrapeRequest(BaseModel):
    url: Optional[str] = None
    paginationOptions: PaginationOptionsRequest = Field(default_factory=PaginationOptionsRequest)
    engine: Literal["browser", "remote"] = "browser"


class CrawlRequest(BaseModel):
    url: Optional[str] = None
    limit: int = Field(100, ge=1)


# Dependencies

def get_browser_factory():
    """Factory producing one stealth browser per request."""
    def factory():
        return StealthBrowser(
            headless=settings.browser_headless,
            user_agent=settings.scraper_user_agent,
        )
    return factory


async def get_remote_client():
    """Remote backend client for the request, or None when no key is configured."""
    if not settings.remote_api_key:
        yield None
        return

    client = RemoteScrapeClient(
        api_key=settings.remote_api_key,
        base_url=settings.remote_base_url,
        timeout=settings.remote_timeout,
    )
    try:
        yield client
    finally:
        await client.close()


def get_manager(
    browser_factory=Depends(get_browser_factory),
    remote_client: Optional[RemoteScrapeClient] = Depends(get_remote_client),
) -> ScraperManager:
    return ScraperManager(
        browser_factory=browser_factory,
        remote_client=remote_client,
        timings=settings.scrape_timings(),
        site_options=settings.site_options(),
    )


# API Endpoints

@app.get("/")
async def root():
    return {"message": "Harvester API", "version": "1.0.0"}


@app.get("/api/sites")
async def list_sites():
    """List the registered site flows"""
    return {"sites": ScraperManager().list_scrapers()}


@app.post("/api/scrape")
async def scrape(request: ScrapeRequest, manager: ScraperManager = Depends(get_manager)):
    """Scrape a URL, following pagination up to maxPages"""
    if not request.url:
        raise HTTPException(status_code=400, detail="URL is required")

    options = PaginationOptions(
        max_pages=request.paginationOptions.maxPages,
        auto_paginate=request.paginationOptions.autoPaginate,
    )
    result = await manager.scrape(request.url, options, engine=ScraperType(request.engine))

    if not result.success:
        return JSONResponse(status_code=500, content={"success": False, "error": result.error})
    return result.to_dict()


@app.post("/api/crawl")
async def crawl(request: CrawlRequest, manager: ScraperManager = Depends(get_manager)):
    """Crawl a site on the remote backend"""
    if not request.url:
        raise HTTPException(status_code=400, detail="URL is required")

    result = await manager.crawl(request.url, limit=request.limit)
    if not result.success:
        return JSONResponse(status_code=500, content={"success": False, "error": result.error})

    return {
        "success": True,
        "url": request.url,
        "pages": [
            {"url": page.url, "markdown": page.markdown, "html": page.html, "metadata": page.metadata}
            for page in result.pages
        ],
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        access_log=True,
        log_config=None,
        timeout_keep_alive=5,
        timeout_graceful_shutdown=5.0,
    )
