"""
Core data models for site audit.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .exceptions import ConfigurationError


class CheckMode(Enum):
    """Способ получения цели проверки."""
    HTTP = "http"  # Сырой HTTP запрос
    UI = "ui"      # Навигация браузера


def format_status_set(statuses) -> str:
    """{200, 301} в стабильном порядке для сообщений и отчётов."""
    return "{" + ", ".join(str(s) for s in sorted(statuses)) + "}"


@dataclass(frozen=True)
class CheckSpec:
    """
    Декларативное описание одной проверки.

    Поля приводятся к неизменяемым типам в __post_init__,
    инварианты проверяются в validate().
    """

    target: str
    expected_status: FrozenSet[int] = frozenset({200})
    expected_headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    expected_body_contains: Tuple[str, ...] = ()
    max_response_time_ms: Optional[float] = None
    mode: CheckMode = CheckMode.HTTP
    name: Optional[str] = None
    method: str = "GET"
    follow_redirects: bool = True
    request_headers: Mapping[str, str] = field(default_factory=dict, hash=False)
    expected_title_contains: Optional[str] = None
    expected_url_contains: Optional[str] = None

    def __post_init__(self):
        try:
            mode = self.mode if isinstance(self.mode, CheckMode) else CheckMode(self.mode)
        except ValueError:
            raise ConfigurationError(f"unknown check mode: {self.mode!r}")

        if isinstance(self.expected_status, int):
            statuses = [self.expected_status]
        else:
            statuses = list(self.expected_status or ())
        try:
            statuses = frozenset(int(s) for s in statuses)
        except (TypeError, ValueError):
            raise ConfigurationError(f"status codes must be integers, got {self.expected_status!r}")

        if isinstance(self.expected_body_contains, str):
            body = (self.expected_body_contains,)
        else:
            body = tuple(self.expected_body_contains or ())

        if self.max_response_time_ms is not None:
            try:
                object.__setattr__(self, "max_response_time_ms", float(self.max_response_time_ms))
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"max_response_time_ms must be a number, got {self.max_response_time_ms!r}"
                )

        object.__setattr__(self, "mode", mode)
        object.__setattr__(self, "expected_status", statuses)
        object.__setattr__(self, "expected_body_contains", body)
        object.__setattr__(self, "expected_headers", MappingProxyType(dict(self.expected_headers or {})))
        object.__setattr__(self, "request_headers", MappingProxyType(dict(self.request_headers or {})))
        object.__setattr__(self, "method", (self.method or "GET").upper())

    @property
    def label(self) -> str:
        """Имя проверки для логов и отчётов."""
        return self.name or self.target

    def validate(self) -> None:
        """
        Проверить инварианты спецификации.

        Raises:
            ConfigurationError: если проверка некорректна или ничего не проверяет
        """
        if not isinstance(self.target, str) or not self.target.strip():
            raise ConfigurationError("target must be a non-empty string")

        if self.mode == CheckMode.HTTP and not self.expected_status:
            raise ConfigurationError("expected_status must not be empty for HTTP checks")

        for status in self.expected_status:
            if not 100 <= status <= 599:
                raise ConfigurationError(f"invalid HTTP status code: {status}")

        if self.max_response_time_ms is not None and self.max_response_time_ms <= 0:
            raise ConfigurationError("max_response_time_ms must be positive")

        for header, expected in self.expected_headers.items():
            if not isinstance(header, str) or not header:
                raise ConfigurationError(f"invalid header name: {header!r}")
            if not isinstance(expected, str):
                raise ConfigurationError(f"expected value for header '{header}' must be a string")

        for fragment in self.expected_body_contains:
            if not isinstance(fragment, str) or not fragment:
                raise ConfigurationError(f"body fragments must be non-empty strings, got {fragment!r}")

        asserts_something = (
            self.expected_headers
            or self.expected_body_contains
            or self.max_response_time_ms is not None
            or self.expected_title_contains
            or self.expected_url_contains
        )
        if not asserts_something:
            raise ConfigurationError(
                "check asserts nothing: set expected_headers, expected_body_contains, "
                "max_response_time_ms, expected_title_contains or expected_url_contains"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "name": self.label,
            "target": self.target,
            "mode": self.mode.value,
            "method": self.method,
            "follow_redirects": self.follow_redirects,
            "expected_status": sorted(self.expected_status),
            "expected_headers": dict(self.expected_headers),
            "expected_body_contains": list(self.expected_body_contains),
            "expected_title_contains": self.expected_title_contains,
            "expected_url_contains": self.expected_url_contains,
            "max_response_time_ms": self.max_response_time_ms,
        }


@dataclass(frozen=True)
class Observation:
    """Нормализованный ответ fetcher'а (HTTP или страница браузера)."""

    status: int
    headers: Mapping[str, str]  # ключи в нижнем регистре
    body_text: str
    latency_ms: float
    url: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class CheckResult:
    """Результат выполнения одной проверки."""

    spec: CheckSpec
    index: int
    failures: Tuple[str, ...] = ()
    observed_status: Optional[int] = None
    observed_headers: Mapping[str, str] = field(default_factory=dict)
    observed_latency_ms: Optional[float] = None
    observed_url: Optional[str] = None
    transport_error: bool = False
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "index": self.index,
            "spec": self.spec.to_dict(),
            "passed": self.passed,
            "failures": list(self.failures),
            "observed_status": self.observed_status,
            "observed_headers": dict(self.observed_headers),
            "observed_latency_ms": self.observed_latency_ms,
            "observed_url": self.observed_url,
            "transport_error": self.transport_error,
            "cancelled": self.cancelled,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class Report:
    """Итоговый отчёт запуска: результаты в порядке входных проверок."""

    results: Tuple[CheckResult, ...]
    started_at: datetime = field(default_factory=datetime.now)
    duration_seconds: float = 0.0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed_count(self) -> int:
        return self.total - self.passed_count

    @property
    def passed(self) -> bool:
        return self.failed_count == 0

    def failed_results(self) -> Tuple[CheckResult, ...]:
        """Получить только упавшие проверки."""
        return tuple(r for r in self.results if not r.passed)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразовать в словарь для JSON."""
        return {
            "started_at": self.started_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "cancelled": self.cancelled,
            "passed": self.passed,
            "summary": {
                "total": self.total,
                "passed": self.passed_count,
                "failed": self.failed_count,
            },
            "results": [r.to_dict() for r in self.results],
        }
