"""
Fetcher contract: the capability the runner uses to reach a target.

A fetcher exposes `fetch_http(url, options)` for HTTP checks and
`navigate(url, options)` for UI checks. Either may be a coroutine function or a
plain function; responses may be the dataclasses below or plain mappings.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Protocol, Union

from .exceptions import ConfigurationError, TransportError
from .models import CheckMode, CheckSpec, Observation


# Операция fetcher'а, необходимая для каждого режима
REQUIRED_OPERATIONS = {
    CheckMode.HTTP: "fetch_http",
    CheckMode.UI: "navigate",
}


@dataclass(frozen=True)
class FetchOptions:
    """Параметры одного запроса, передаваемые fetcher'у."""

    method: str = "GET"
    follow_redirects: bool = True
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: Optional[float] = None

    @classmethod
    def for_spec(cls, spec: CheckSpec, timeout_seconds: Optional[float] = None) -> "FetchOptions":
        return cls(
            method=spec.method,
            follow_redirects=spec.follow_redirects,
            headers=dict(spec.request_headers),
            timeout_seconds=timeout_seconds,
        )


@dataclass(frozen=True)
class HttpResponse:
    """Ответ fetch_http."""

    status: int
    headers: Mapping[str, str]
    body: Union[bytes, str]
    latency_ms: float
    url: Optional[str] = None


@dataclass(frozen=True)
class PageSnapshot:
    """Результат navigate: статус документа и видимый текст страницы."""

    status: int
    headers: Mapping[str, str]
    body_text: str
    latency_ms: float
    url: Optional[str] = None
    title: Optional[str] = None


class Fetcher(Protocol):
    async def fetch_http(self, url: str, options: Optional[FetchOptions] = None) -> HttpResponse:
        ...

    async def navigate(self, url: str, options: Optional[FetchOptions] = None) -> PageSnapshot:
        ...


def ensure_capabilities(fetcher: Any, modes: Iterable[CheckMode]) -> None:
    """
    Проверить, что fetcher умеет всё, что нужно проверкам.

    Raises:
        ConfigurationError: fetcher отсутствует или не имеет нужной операции
    """
    if fetcher is None:
        raise ConfigurationError("fetcher is required")

    for mode in sorted(set(modes), key=lambda m: m.value):
        operation = REQUIRED_OPERATIONS[mode]
        if not callable(getattr(fetcher, operation, None)):
            raise ConfigurationError(
                f"fetcher {type(fetcher).__name__} has no '{operation}' operation "
                f"required by {mode.value} checks"
            )


async def invoke(operation, url: str, options: FetchOptions) -> Any:
    """Вызвать операцию fetcher'а; поддерживает и sync, и async реализации."""
    if inspect.iscoroutinefunction(operation):
        return await operation(url, options)

    # Sync fetcher не должен блокировать event loop
    result = await asyncio.to_thread(operation, url, options)
    if inspect.isawaitable(result):
        result = await result
    return result


# Допустимые имена полей ответа (snake_case и camelCase)
_ALIASES = {
    "status": ("status", "status_code"),
    "headers": ("headers",),
    "latency_ms": ("latency_ms", "latencyMs"),
    "url": ("url",),
    "title": ("title",),
}
_BODY_FIELDS = {
    CheckMode.HTTP: ("body", "body_text", "bodyText", "text"),
    CheckMode.UI: ("body_text", "bodyText", "body", "text"),
}

_MISSING = object()


def _lookup(raw: Any, names) -> Any:
    for name in names:
        if isinstance(raw, Mapping):
            if name in raw:
                return raw[name]
        else:
            value = getattr(raw, name, _MISSING)
            if value is not _MISSING:
                return value
    return _MISSING


def decode_body(body: Any) -> str:
    """Тело ответа всегда сравнивается как текст, не как байты."""
    if body is None or body is _MISSING:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body).decode("utf-8", errors="replace")
    return str(body)


def normalize_response(
    raw: Any,
    mode: CheckMode,
    fallback_latency_ms: Optional[float] = None,
) -> Observation:
    """
    Привести ответ fetcher'а к Observation.

    Args:
        raw: HttpResponse / PageSnapshot / mapping
        mode: режим проверки (определяет имя поля с телом)
        fallback_latency_ms: измеренное runner'ом время, если fetcher его не вернул

    Raises:
        TransportError: ответ непригоден (нет статуса, битые заголовки)
    """
    if raw is None:
        raise TransportError("fetcher returned no response")

    status = _lookup(raw, _ALIASES["status"])
    if status is _MISSING:
        raise TransportError("response has no status")
    if isinstance(status, bool) or not isinstance(status, int):
        raise TransportError(f"response has no valid status: {status!r}")

    headers = _lookup(raw, _ALIASES["headers"])
    if headers is _MISSING or headers is None:
        headers = {}
    try:
        headers = {str(k).lower(): str(v) for k, v in dict(headers).items()}
    except (TypeError, ValueError) as e:
        raise TransportError(f"response headers are malformed: {e}")

    latency = _lookup(raw, _ALIASES["latency_ms"])
    if latency is _MISSING or latency is None:
        latency = fallback_latency_ms
    if latency is None:
        raise TransportError("response has no latency measurement")

    url = _lookup(raw, _ALIASES["url"])
    title = _lookup(raw, _ALIASES["title"])

    return Observation(
        status=status,
        headers=headers,
        body_text=decode_body(_lookup(raw, _BODY_FIELDS[mode])),
        latency_ms=float(latency),
        url=None if url is _MISSING or url is None else str(url),
        title=None if title is _MISSING or title is None else str(title),
    )
