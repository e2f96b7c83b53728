"""
Check runner: executes CheckSpecs against an injected fetcher.

Features:
- Bounded parallel execution of independent checks
- Per-check timeout (transport failure on expiry)
- Collect-all assertion failures per check
- Cooperative cancellation via asyncio.Event
- Report order always equals input order
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, List, Optional, Sequence

from site_audit.config import AuditConfig
from site_audit.core.assertions import evaluate
from site_audit.core.exceptions import ConfigurationError
from site_audit.core.fetcher import (
    REQUIRED_OPERATIONS,
    Fetcher,
    FetchOptions,
    ensure_capabilities,
    invoke,
    normalize_response,
)
from site_audit.core.models import CheckResult, CheckSpec, Report


logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "check cancelled before execution"


class FetchFailed(Exception):
    """Исключение, выброшенное самим fetcher'ом (в отличие от таймаута runner'а)."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


class CheckRunner:
    """Выполняет набор проверок и собирает Report."""

    def __init__(
        self,
        max_parallel: Optional[int] = None,
        default_timeout_seconds: float = 30.0,
        timeout_factor: float = 2.0,
    ):
        """
        Args:
            max_parallel: Максимум одновременных проверок (None или 0 = без ограничений)
            default_timeout_seconds: Таймаут проверки без max_response_time_ms
            timeout_factor: Множитель max_response_time_ms для таймаута проверки
        """
        if max_parallel is not None and max_parallel < 0:
            raise ConfigurationError("max_parallel must not be negative")
        if default_timeout_seconds <= 0:
            raise ConfigurationError("default_timeout_seconds must be positive")
        if timeout_factor < 1:
            raise ConfigurationError("timeout_factor must be at least 1")

        self.max_parallel = max_parallel
        self.default_timeout_seconds = default_timeout_seconds
        self.timeout_factor = timeout_factor

    @classmethod
    def from_config(cls, config: AuditConfig) -> "CheckRunner":
        return cls(
            max_parallel=config.max_parallel,
            default_timeout_seconds=config.default_timeout_seconds,
            timeout_factor=config.timeout_factor,
        )

    def timeout_for(self, spec: CheckSpec) -> float:
        """Таймаут одной проверки в секундах."""
        if spec.max_response_time_ms is not None:
            return spec.max_response_time_ms / 1000 * self.timeout_factor
        return self.default_timeout_seconds

    def validate(self, specs: Sequence[CheckSpec], fetcher: Fetcher) -> None:
        """
        Проверить конфигурацию до запуска первой проверки.

        Raises:
            ConfigurationError: битая проверка или fetcher без нужной операции
        """
        for i, spec in enumerate(specs):
            if not isinstance(spec, CheckSpec):
                raise ConfigurationError(f"check #{i} is not a CheckSpec: {type(spec).__name__}")
            try:
                spec.validate()
            except ConfigurationError as e:
                raise ConfigurationError(f"check #{i} ({spec.label}): {e}") from e

        ensure_capabilities(fetcher, (spec.mode for spec in specs))

    async def run(
        self,
        specs: Sequence[CheckSpec],
        fetcher: Fetcher,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Report:
        """
        Запустить проверки.

        Args:
            specs: Проверки в нужном порядке
            fetcher: Объект с fetch_http / navigate
            cancel_event: После установки новые проверки не запускаются

        Returns:
            Report с результатами в порядке specs

        Raises:
            ConfigurationError: только для некорректной конфигурации
        """
        specs = list(specs)
        try:
            self.validate(specs, fetcher)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise

        started_at = datetime.now()
        start_time = time.perf_counter()

        if not specs:
            logger.info("No checks to run")
            return Report(results=(), started_at=started_at, duration_seconds=0.0)

        limit = self.max_parallel or len(specs)
        logger.info(f"Running {len(specs)} checks (max_parallel={limit})...")

        semaphore = asyncio.Semaphore(limit)
        tasks = [
            self._run_slot(i, spec, fetcher, semaphore, cancel_event)
            for i, spec in enumerate(specs)
        ]

        # gather сохраняет порядок входных задач независимо от порядка завершения
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: List[CheckResult] = []
        for i, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.error(f"Check {specs[i].label} crashed: {outcome}", exc_info=outcome)
                outcome = CheckResult(
                    spec=specs[i],
                    index=i,
                    failures=(f"internal error: {type(outcome).__name__}: {outcome}",),
                )
            results.append(outcome)

        report = Report(
            results=tuple(results),
            started_at=started_at,
            duration_seconds=time.perf_counter() - start_time,
            cancelled=bool(cancel_event and cancel_event.is_set()),
        )

        logger.info(
            f"Completed {report.total} checks: "
            f"passed={report.passed_count}, failed={report.failed_count}, "
            f"duration={report.duration_seconds:.2f}s"
        )
        return report

    async def _run_slot(
        self,
        index: int,
        spec: CheckSpec,
        fetcher: Fetcher,
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
    ) -> CheckResult:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"[{index + 1}] Skipping {spec.label}: run cancelled")
                return CheckResult(
                    spec=spec,
                    index=index,
                    failures=(CANCELLED_MESSAGE,),
                    cancelled=True,
                )
            return await self.execute(index, spec, fetcher)

    async def _fetch(self, operation, spec: CheckSpec, options: FetchOptions) -> Any:
        try:
            return await invoke(operation, spec.target, options)
        except Exception as e:
            # TimeoutError самого fetcher'а не должен выглядеть как таймаут runner'а
            raise FetchFailed(e) from e

    def _transport_failure(self, index: int, spec: CheckSpec, message: str, start_time: float) -> CheckResult:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.warning(f"[{index + 1}] {spec.label} transport error: {message}")
        return CheckResult(
            spec=spec,
            index=index,
            failures=(f"transport error: {message}",),
            transport_error=True,
            duration_ms=duration_ms,
        )

    async def execute(self, index: int, spec: CheckSpec, fetcher: Fetcher) -> CheckResult:
        """Выполнить одну проверку. Никогда не пробрасывает ошибки транспорта."""
        timeout = self.timeout_for(spec)
        operation = getattr(fetcher, REQUIRED_OPERATIONS[spec.mode])
        options = FetchOptions.for_spec(spec, timeout_seconds=timeout)

        logger.info(f"[{index + 1}] {spec.mode.value.upper()} {spec.method} {spec.target}")
        start_time = time.perf_counter()

        try:
            raw = await asyncio.wait_for(self._fetch(operation, spec, options), timeout=timeout)
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            observation = normalize_response(raw, spec.mode, fallback_latency_ms=elapsed_ms)

        except FetchFailed as e:
            return self._transport_failure(index, spec, f"{type(e.error).__name__}: {e.error}", start_time)

        except asyncio.TimeoutError:
            return self._transport_failure(index, spec, f"timed out after {timeout:g}s", start_time)

        except Exception as e:
            return self._transport_failure(index, spec, f"{type(e).__name__}: {e}", start_time)

        failures = evaluate(spec, observation)
        duration_ms = (time.perf_counter() - start_time) * 1000

        if failures:
            logger.warning(f"[{index + 1}] ❌ FAILED {spec.label}: " + "; ".join(failures))
        else:
            logger.info(f"[{index + 1}] ✅ PASSED {spec.label} ({observation.latency_ms:.0f}ms)")

        return CheckResult(
            spec=spec,
            index=index,
            failures=failures,
            observed_status=observation.status,
            observed_headers=observation.headers,
            observed_latency_ms=observation.latency_ms,
            observed_url=observation.url,
            duration_ms=duration_ms,
        )


async def run(
    specs: Sequence[CheckSpec],
    fetcher: Fetcher,
    *,
    max_parallel: Optional[int] = None,
    default_timeout_seconds: float = 30.0,
    timeout_factor: float = 2.0,
    cancel_event: Optional[asyncio.Event] = None,
) -> Report:
    """Удобная функция: запустить проверки с параметрами по умолчанию."""
    runner = CheckRunner(
        max_parallel=max_parallel,
        default_timeout_seconds=default_timeout_seconds,
        timeout_factor=timeout_factor,
    )
    return await runner.run(specs, fetcher, cancel_event=cancel_event)


def run_sync(specs: Sequence[CheckSpec], fetcher: Fetcher, **kwargs) -> Report:
    """Синхронная обёртка над run() для скриптов и тестов без event loop."""
    return asyncio.run(run(specs, fetcher, **kwargs))
