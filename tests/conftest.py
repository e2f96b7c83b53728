"""
Pytest configuration and fixtures.

Использование:
    pytest tests/ -v
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Пакет доступен без установки, если pytest запущен из корня проекта
sys.path.insert(0, str(Path(__file__).parent.parent))

from site_audit.core.exceptions import TransportError  # noqa: E402
from site_audit.core.fetcher import HttpResponse, PageSnapshot  # noqa: E402


# ═══════════════════════════════════════════════════════
# FAKE FETCHERS
# ═══════════════════════════════════════════════════════

class FakeFetcher:
    """
    Fetcher без сети.

    Ответы задаются по URL: объект ответа, исключение (будет выброшено)
    или callable(url) -> ответ. Неизвестный URL -> TransportError.
    """

    def __init__(self, responses=None, pages=None, delays=None):
        self.responses = dict(responses or {})
        self.pages = dict(pages or {})
        self.delays = dict(delays or {})
        self.calls = []
        self.options = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def _respond(self, table, operation, url, options):
        self.calls.append((operation, url))
        self.options.append(options)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delays.get(url, 0)
            if delay:
                await asyncio.sleep(delay)
            if url not in table:
                raise TransportError(f"no route to {url}", url=url)
            response = table[url]
            if callable(response):
                response = response(url)
            if isinstance(response, BaseException):
                raise response
            return response
        finally:
            self.active -= 1

    async def fetch_http(self, url, options=None):
        return await self._respond(self.responses, "fetch_http", url, options)

    async def navigate(self, url, options=None):
        return await self._respond(self.pages, "navigate", url, options)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed = True


class HttpOnlyFetcher:
    """Fetcher без navigate (для проверки ConfigurationError)."""

    async def fetch_http(self, url, options=None):
        return HttpResponse(status=200, headers={}, body="", latency_ms=1.0)


def http_response(status=200, body="", headers=None, latency_ms=10.0, url=None):
    return HttpResponse(
        status=status,
        headers=headers if headers is not None else {"Content-Type": "text/html; charset=utf-8"},
        body=body,
        latency_ms=latency_ms,
        url=url,
    )


def page_snapshot(status=200, body_text="", title="", url=None, headers=None, latency_ms=50.0):
    return PageSnapshot(
        status=status,
        headers=headers if headers is not None else {"content-type": "text/html"},
        body_text=body_text,
        latency_ms=latency_ms,
        url=url,
        title=title,
    )


@pytest.fixture
def fake_fetcher():
    """Пустой FakeFetcher; тест сам заполняет responses/pages."""
    return FakeFetcher()
