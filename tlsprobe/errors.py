"""Иерархия ошибок сканирования."""

from __future__ import annotations


class ScanError(Exception):
    """Базовая ошибка зонда. Всё, что не наследует её, — баг, а не результат."""


class ResolutionError(ScanError):
    """DNS не ответил или вернул пустой список адресов."""


class ConnectError(ScanError):
    """Не удалось открыть TCP-соединение (отказ, таймаут, недоступный адрес)."""


class HandshakeError(ScanError):
    """TLS-рукопожатие не состоялось."""


class SessionResumptionError(HandshakeError):
    """Кэш сессий после рукопожатия не содержит ровно одного состояния для адреса."""

    def __init__(self, address: str, stored: int):
        super().__init__(f"{address}: ожидалась 1 сессия в кэше, получено {stored}")
        self.address = address
        self.stored = stored


class ProtocolViolation(ScanError):
    """Сервер выбрал версию или шифр, которых клиент не предлагал."""


class ConfigError(ScanError):
    """Некорректные параметры запуска."""


class ScanAborted(ScanError):
    """Сканирование отменено или вышло за общий дедлайн."""
