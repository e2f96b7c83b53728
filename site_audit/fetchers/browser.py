"""
Browser fetcher built on Playwright (async API).

Navigation renders the page in a real browser and captures:
- status and headers of the main document response
- visible text of <body>
- document title and final URL
"""

import asyncio
import logging
import time
from typing import Callable, Optional

from playwright.async_api import async_playwright

from site_audit.core.exceptions import ConfigurationError, TransportError
from site_audit.core.fetcher import FetchOptions, HttpResponse, PageSnapshot


logger = logging.getLogger(__name__)

# Playwright по умолчанию следует максимум за 20 редиректами
MAX_REDIRECTS = 20


class PlaywrightFetcher:
    """Fetcher для UI проверок: каждая навигация в отдельном browser context."""

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        wait_until: str = "load",
        timeout_seconds: float = 30.0,
        user_agent: Optional[str] = None,
        ignore_https_errors: bool = False,
        viewport_width: int = 1280,
        viewport_height: int = 720,
        playwright_factory: Callable = async_playwright,
    ):
        """
        Args:
            browser_type: Браузер (chromium, firefox, webkit)
            headless: Запуск без окна
            wait_until: Условие завершения навигации (load, domcontentloaded, networkidle)
            timeout_seconds: Таймаут навигации по умолчанию
            user_agent: Заголовок User-Agent
            ignore_https_errors: Не проверять TLS сертификаты
            viewport_width: Ширина viewport
            viewport_height: Высота viewport
            playwright_factory: Фабрика playwright (подменяется в тестах)
        """
        self.browser_type = browser_type
        self.headless = headless
        self.wait_until = wait_until
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.ignore_https_errors = ignore_https_errors
        self.viewport = {"width": viewport_width, "height": viewport_height}
        self._playwright_factory = playwright_factory

        self._playwright = None
        self._browser = None
        self._playwright_lock = asyncio.Lock()
        self._browser_lock = asyncio.Lock()

    async def _ensure_playwright(self):
        # Параллельные fetch_http/navigate не должны запускать несколько драйверов
        async with self._playwright_lock:
            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()
        return self._playwright

    async def _ensure_browser(self):
        playwright = await self._ensure_playwright()
        # Параллельные проверки не должны запускать несколько браузеров
        async with self._browser_lock:
            if self._browser is None:
                launcher = getattr(playwright, self.browser_type, None)
                if launcher is None:
                    raise ConfigurationError(f"Unknown browser type: {self.browser_type}")

                logger.info(f"Launching {self.browser_type} (headless={self.headless})")
                self._browser = await launcher.launch(headless=self.headless)
        return self._browser

    def _timeout_ms(self, options: FetchOptions) -> float:
        return (options.timeout_seconds or self.timeout_seconds) * 1000

    async def navigate(self, url: str, options: Optional[FetchOptions] = None) -> PageSnapshot:
        """
        Открыть страницу и снять её состояние.

        Raises:
            playwright.async_api.Error: ошибки навигации и таймауты
            TransportError: навигация не дала ответа документа
        """
        options = options or FetchOptions()
        browser = await self._ensure_browser()

        context = await browser.new_context(
            viewport=self.viewport,
            user_agent=self.user_agent,
            ignore_https_errors=self.ignore_https_errors,
            extra_http_headers=dict(options.headers) or None,
        )
        try:
            page = await context.new_page()

            start_time = time.perf_counter()
            response = await page.goto(url, wait_until=self.wait_until, timeout=self._timeout_ms(options))
            latency_ms = (time.perf_counter() - start_time) * 1000

            if response is None:
                raise TransportError("navigation returned no document response", url=url)

            snapshot = PageSnapshot(
                status=response.status,
                headers=await response.all_headers(),
                body_text=await page.inner_text("body"),
                latency_ms=latency_ms,
                url=page.url,
                title=await page.title(),
            )
        finally:
            await context.close()

        logger.debug(f"navigate {url} -> {snapshot.status} in {snapshot.latency_ms:.0f}ms")
        return snapshot

    async def fetch_http(self, url: str, options: Optional[FetchOptions] = None) -> HttpResponse:
        """Выполнить HTTP запрос через APIRequestContext Playwright (без рендеринга)."""
        options = options or FetchOptions()
        playwright = await self._ensure_playwright()

        request_context = await playwright.request.new_context(
            user_agent=self.user_agent,
            ignore_https_errors=self.ignore_https_errors,
        )
        try:
            start_time = time.perf_counter()
            response = await request_context.fetch(
                url,
                method=options.method,
                headers=dict(options.headers) or None,
                max_redirects=MAX_REDIRECTS if options.follow_redirects else 0,
                timeout=self._timeout_ms(options),
            )
            latency_ms = (time.perf_counter() - start_time) * 1000

            result = HttpResponse(
                status=response.status,
                headers=response.headers,
                body=await response.text(),
                latency_ms=latency_ms,
                url=response.url,
            )
        finally:
            await request_context.dispose()

        return result

    async def aclose(self) -> None:
        """Закрыть браузер и остановить Playwright."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> "PlaywrightFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
