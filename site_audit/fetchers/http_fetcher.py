"""
HTTP fetcher built on httpx.
"""

import logging
import time
from typing import Optional

import httpx

from site_audit.core.fetcher import FetchOptions, HttpResponse


logger = logging.getLogger(__name__)


class HttpxFetcher:
    """
    Выполняет HTTP проверки через httpx.AsyncClient.

    Клиент создаётся лениво и живёт до aclose(); используйте как
    async context manager:

        async with HttpxFetcher() as fetcher:
            report = await run(specs, fetcher)
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        user_agent: Optional[str] = None,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout_seconds: Таймаут запроса по умолчанию
            user_agent: Заголовок User-Agent (None = по умолчанию httpx)
            verify: Проверять TLS сертификаты
            transport: Альтернативный транспорт (например httpx.MockTransport в тестах)
        """
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.verify = verify
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers=headers,
                verify=self.verify,
                transport=self.transport,
            )
        return self._client

    async def fetch_http(self, url: str, options: Optional[FetchOptions] = None) -> HttpResponse:
        """
        Выполнить HTTP запрос.

        Raises:
            httpx.HTTPError: сетевые ошибки, DNS, таймауты
        """
        options = options or FetchOptions()
        client = self._ensure_client()
        timeout = options.timeout_seconds or self.timeout_seconds

        start_time = time.perf_counter()
        response = await client.request(
            options.method,
            url,
            headers=dict(options.headers) or None,
            follow_redirects=options.follow_redirects,
            timeout=timeout,
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(f"{options.method} {url} -> {response.status_code} in {latency_ms:.0f}ms")

        return HttpResponse(
            status=response.status_code,
            headers=dict(response.headers.items()),
            body=response.text,
            latency_ms=latency_ms,
            url=str(response.url),
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
