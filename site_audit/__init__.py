"""
Site Audit - declarative endpoint/UI check runner.

Выполняет декларативные проверки сайта:
- HTTP статус, заголовки и содержимое ответа
- Загрузку страниц в браузере (Playwright)
- Ограничения по времени ответа

Usage:
    site-audit run examples/playwright_dev.yaml
"""

from site_audit.core.exceptions import ConfigurationError, TransportError
from site_audit.core.models import CheckMode, CheckResult, CheckSpec, Report
from site_audit.runner import CheckRunner, run, run_sync

__version__ = "1.0.0"

__all__ = [
    "CheckMode",
    "CheckResult",
    "CheckRunner",
    "CheckSpec",
    "ConfigurationError",
    "Report",
    "TransportError",
    "run",
    "run_sync",
]
