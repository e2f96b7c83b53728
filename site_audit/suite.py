"""
Suite loader: reads check declarations from YAML or JSON.

Format:

    name: playwright.dev smoke
    base_url: https://playwright.dev
    defaults:
      max_response_time_ms: 10000
    checks:
      - name: homepage
        target: /
        expected_headers: {content-type: text/html}
        expected_body_contains: [Playwright]
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urljoin, urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from site_audit.core.exceptions import ConfigurationError
from site_audit.core.models import CheckMode, CheckSpec


logger = logging.getLogger(__name__)


class CheckModel(BaseModel):
    """Схема одной проверки в suite-файле."""

    model_config = ConfigDict(extra="forbid")

    target: str = Field(..., description="URL or path relative to base_url")
    name: Optional[str] = Field(None, description="Display name")
    mode: CheckMode = Field(CheckMode.HTTP, description="http or ui")
    method: str = Field("GET", description="HTTP method (http mode)")
    follow_redirects: bool = Field(True, description="Follow redirects (http mode)")
    request_headers: Dict[str, str] = Field(default_factory=dict)
    expected_status: List[int] = Field(default_factory=lambda: [200])
    expected_headers: Dict[str, str] = Field(default_factory=dict)
    expected_body_contains: List[str] = Field(default_factory=list)
    expected_title_contains: Optional[str] = None
    expected_url_contains: Optional[str] = None
    max_response_time_ms: Optional[float] = Field(None, gt=0)

    @field_validator("expected_status", mode="before")
    @classmethod
    def _wrap_single_status(cls, value: Any) -> Any:
        if isinstance(value, int):
            return [value]
        return value

    @field_validator("expected_body_contains", mode="before")
    @classmethod
    def _wrap_single_fragment(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("expected_headers", mode="before")
    @classmethod
    def _stringify_header_values(cls, value: Any) -> Any:
        # YAML превращает `content-length: ""` и числа в разные типы
        if isinstance(value, Mapping):
            return {k: "" if v is None else str(v) for k, v in value.items()}
        return value


class SuiteModel(BaseModel):
    """Схема suite-файла."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    base_url: Optional[str] = None
    defaults: Dict[str, Any] = Field(default_factory=dict)
    checks: List[Dict[str, Any]]


@dataclass
class Suite:
    """Загруженный набор проверок."""

    checks: List[CheckSpec]
    name: Optional[str] = None
    base_url: Optional[str] = None
    source: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.checks)


def resolve_target(target: str, base_url: Optional[str]) -> str:
    """Присоединить относительный путь к base_url; абсолютные URL не трогать."""
    if not base_url or urlparse(target).scheme:
        return target
    return urljoin(base_url.rstrip("/") + "/", target.lstrip("/"))


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_suite(data: Any, source: Union[str, Path] = "<memory>") -> Suite:
    """
    Построить Suite из уже разобранных данных (dict из YAML/JSON).

    Raises:
        ConfigurationError: данные не соответствуют схеме или проверка ничего не проверяет
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{source}: suite must be a mapping with a 'checks' list")

    try:
        suite_model = SuiteModel.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: {_format_validation_error(e)}") from e

    checks = []
    for i, raw_check in enumerate(suite_model.checks):
        merged = {**suite_model.defaults, **raw_check}
        try:
            model = CheckModel.model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError(f"{source}: checks[{i}]: {_format_validation_error(e)}") from e

        spec = CheckSpec(
            target=resolve_target(model.target, suite_model.base_url),
            expected_status=frozenset(model.expected_status),
            expected_headers=model.expected_headers,
            expected_body_contains=tuple(model.expected_body_contains),
            max_response_time_ms=model.max_response_time_ms,
            mode=model.mode,
            name=model.name,
            method=model.method,
            follow_redirects=model.follow_redirects,
            request_headers=model.request_headers,
            expected_title_contains=model.expected_title_contains,
            expected_url_contains=model.expected_url_contains,
        )
        try:
            spec.validate()
        except ConfigurationError as e:
            raise ConfigurationError(f"{source}: checks[{i}] ({spec.label}): {e}") from e
        checks.append(spec)

    return Suite(
        checks=checks,
        name=suite_model.name,
        base_url=suite_model.base_url,
        source=Path(source) if isinstance(source, Path) else None,
    )


def load_suite(path: Union[str, Path]) -> Suite:
    """
    Загрузить suite-файл (.yaml, .yml или .json).

    Raises:
        ConfigurationError: файл не найден, не разбирается или невалиден
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"suite file not found: {path}")

    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    try:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ConfigurationError(f"unsupported suite format '{suffix}', expected .yaml, .yml or .json")
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"{path}: cannot parse suite: {e}") from e

    suite = parse_suite(data, source=path)
    logger.info(f"Loaded {len(suite)} checks from {path}")
    return suite
