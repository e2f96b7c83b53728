"""
Assertion variants evaluated against an observation.

Each CheckSpec expands into a flat list of tagged assertions. Every assertion
is evaluated independently and all failures are collected; the list is built
in a fixed category order (status, headers, body, title, url, latency) so the
failure list of a check is stable across runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import CheckSpec, Observation, format_status_set


class AssertionKind(Enum):
    """Категория утверждения."""
    STATUS = "status"
    HEADER = "header"
    BODY = "body"
    TITLE = "title"
    URL = "url"
    LATENCY = "latency"


@dataclass(frozen=True)
class Assertion:
    """Одно утверждение: вид, ожидаемое значение и (для заголовков) имя."""

    kind: AssertionKind
    expected: Any
    name: str = ""

    def evaluate(self, observation: Observation) -> Optional[str]:
        """
        Проверить утверждение.

        Returns:
            Текст ошибки или None, если утверждение выполнено
        """
        return _EVALUATORS[self.kind](self, observation)


def _check_status(assertion: Assertion, observation: Observation) -> Optional[str]:
    if observation.status in assertion.expected:
        return None
    return f"status {observation.status} not in {format_status_set(assertion.expected)}"


def _check_header(assertion: Assertion, observation: Observation) -> Optional[str]:
    # Имена заголовков регистронезависимы, значения сравниваются как есть
    value = observation.headers.get(assertion.name.lower())
    if value is None:
        return f"header '{assertion.name}' missing"
    if assertion.expected not in value:
        return f"header '{assertion.name}' value {value!r} does not contain {assertion.expected!r}"
    return None


def _check_body(assertion: Assertion, observation: Observation) -> Optional[str]:
    if assertion.expected in observation.body_text:
        return None
    return f"body does not contain {assertion.expected!r}"


def _check_title(assertion: Assertion, observation: Observation) -> Optional[str]:
    if observation.title is None:
        return f"title unavailable, expected to contain {assertion.expected!r}"
    if assertion.expected not in observation.title:
        return f"title {observation.title!r} does not contain {assertion.expected!r}"
    return None


def _check_url(assertion: Assertion, observation: Observation) -> Optional[str]:
    if observation.url is None:
        return f"final url unavailable, expected to contain {assertion.expected!r}"
    if assertion.expected not in observation.url:
        return f"url {observation.url!r} does not contain {assertion.expected!r}"
    return None


def _check_latency(assertion: Assertion, observation: Observation) -> Optional[str]:
    if observation.latency_ms <= assertion.expected:
        return None
    return f"latency {observation.latency_ms:.0f}ms exceeds {assertion.expected:g}ms"


_EVALUATORS: Dict[AssertionKind, Callable[[Assertion, Observation], Optional[str]]] = {
    AssertionKind.STATUS: _check_status,
    AssertionKind.HEADER: _check_header,
    AssertionKind.BODY: _check_body,
    AssertionKind.TITLE: _check_title,
    AssertionKind.URL: _check_url,
    AssertionKind.LATENCY: _check_latency,
}


def build_assertions(spec: CheckSpec) -> List[Assertion]:
    """Развернуть CheckSpec в список утверждений в фиксированном порядке."""
    assertions = []

    # Для UI проверок статус может быть не задан
    if spec.expected_status:
        assertions.append(Assertion(AssertionKind.STATUS, frozenset(spec.expected_status)))

    for header, expected in spec.expected_headers.items():
        assertions.append(Assertion(AssertionKind.HEADER, expected, name=header))

    for fragment in spec.expected_body_contains:
        assertions.append(Assertion(AssertionKind.BODY, fragment))

    if spec.expected_title_contains:
        assertions.append(Assertion(AssertionKind.TITLE, spec.expected_title_contains))

    if spec.expected_url_contains:
        assertions.append(Assertion(AssertionKind.URL, spec.expected_url_contains))

    if spec.max_response_time_ms is not None:
        assertions.append(Assertion(AssertionKind.LATENCY, spec.max_response_time_ms))

    return assertions


def evaluate(spec: CheckSpec, observation: Observation) -> Tuple[str, ...]:
    """Выполнить все утверждения проверки и собрать все ошибки (без short-circuit)."""
    failures = []
    for assertion in build_assertions(spec):
        failure = assertion.evaluate(observation)
        if failure is not None:
            failures.append(failure)
    return tuple(failures)
