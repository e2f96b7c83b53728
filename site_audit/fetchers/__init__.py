"""
Concrete fetchers.

Contains:
- HttpxFetcher - HTTP проверки через httpx
- PlaywrightFetcher - навигация в браузере через Playwright
- CompositeFetcher - HTTP через httpx, UI через Playwright
"""

from typing import Optional

from site_audit.config import AuditConfig
from site_audit.core.fetcher import FetchOptions, HttpResponse, PageSnapshot
from site_audit.fetchers.browser import PlaywrightFetcher
from site_audit.fetchers.http_fetcher import HttpxFetcher


class CompositeFetcher:
    """Объединяет HTTP и браузерный fetcher'ы. Браузер запускается только при первой UI проверке."""

    def __init__(self, http: HttpxFetcher, browser: PlaywrightFetcher):
        self.http = http
        self.browser = browser

    async def fetch_http(self, url: str, options: Optional[FetchOptions] = None) -> HttpResponse:
        return await self.http.fetch_http(url, options)

    async def navigate(self, url: str, options: Optional[FetchOptions] = None) -> PageSnapshot:
        return await self.browser.navigate(url, options)

    async def aclose(self) -> None:
        try:
            await self.http.aclose()
        finally:
            await self.browser.aclose()

    async def __aenter__(self) -> "CompositeFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_fetcher(config: AuditConfig) -> CompositeFetcher:
    """Собрать fetcher по конфигурации."""
    return CompositeFetcher(
        http=HttpxFetcher(
            timeout_seconds=config.default_timeout_seconds,
            user_agent=config.user_agent,
            verify=config.verify_tls,
        ),
        browser=PlaywrightFetcher(
            browser_type=config.browser_type,
            headless=config.headless,
            timeout_seconds=config.default_timeout_seconds,
            user_agent=config.user_agent,
            ignore_https_errors=not config.verify_tls,
        ),
    )


__all__ = [
    "CompositeFetcher",
    "HttpxFetcher",
    "PlaywrightFetcher",
    "create_fetcher",
]
