"""
Exceptions for site audit.
"""


class SiteAuditError(Exception):
    """Базовое исключение site audit."""
    pass


class ConfigurationError(SiteAuditError):
    """
    Некорректная конфигурация: битый CheckSpec, suite-файл или fetcher.

    Прерывает запуск до выполнения первой проверки.
    """
    pass


class TransportError(SiteAuditError):
    """Fetcher не смог получить пригодный ответ (сеть, DNS, навигация)."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url
