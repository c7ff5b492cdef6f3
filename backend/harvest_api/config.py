"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path

from harvester.base import ScrapeTimings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # CORS Configuration
    cors_origins: List[str] = ["*"]  # Allow all origins for development

    # Browser Configuration
    browser_headless: bool = True
    scraper_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )

    # Timing Configuration (seconds)
    navigation_timeout: float = 90.0
    content_settle_delay: float = 3.0
    page_settle_delay: float = 3.0
    captcha_recovery_delay: float = 12.0
    site_page_settle_delay: float = 5.0
    site_captcha_recovery_delay: float = 5.0

    # RERA Karnataka flow
    rera_district: str = "Bengaluru Urban"
    screenshots_enabled: bool = False
    screenshot_dir: str = "/tmp"

    # Remote backend
    remote_api_key: Optional[str] = None
    remote_base_url: str = "https://api.firecrawl.dev"
    remote_timeout: float = 180.0

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    def scrape_timings(self) -> ScrapeTimings:
        """Build the engine's delays and timeouts from these settings."""
        return ScrapeTimings(
            navigation_timeout=self.navigation_timeout,
            content_settle=self.content_settle_delay,
            page_settle=self.page_settle_delay,
            captcha_recovery_delay=self.captcha_recovery_delay,
            site_page_settle=self.site_page_settle_delay,
            site_captcha_recovery_delay=self.site_captcha_recovery_delay,
        )

    def site_options(self) -> dict:
        """Per-site overrides for SiteConfig.options."""
        return {
            'rera_karnataka': {
                'district': self.rera_district,
                'screenshots': self.screenshots_enabled,
                'screenshot_dir': self.screenshot_dir,
            },
        }

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
