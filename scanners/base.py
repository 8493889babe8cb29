"""Базовый класс сканера и семейство сканеров."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from tlsprobe.context import ScanContext
from tlsprobe.errors import ResolutionError, ScanError
from tlsprobe.models import Grade, ScanResult
from tlsprobe.netutil import split_host_port

logger = logging.getLogger(__name__)


def split_target(host: str, ctx: ScanContext) -> tuple[str, int]:
    """Разобрать `name[:port]` с портом по умолчанию из контекста."""
    try:
        return split_host_port(host, ctx.default_port)
    except ValueError as exc:
        raise ResolutionError(str(exc)) from exc


class BaseScanner(ABC):
    """Интерфейс сканера. Один сканер = одна проба одного свойства хоста."""

    #: Уникальное имя сканера
    name: str = ""
    #: Что проверяет сканер
    description: str = ""

    @abstractmethod
    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        """Выполнить ровно одну попытку пробы хоста.

        Args:
            host: Хост в виде `name[:port]`.
            ctx: Контекст сканирования (таймауты, дедлайн, история).

        Returns:
            Результат (оценка, вывод, ошибка). При ошибке вывод может быть
            частичным — собранные данные не выбрасываются. Вместо возврата
            ошибки проба может бросить ScanError.
        """
        ...

    def scan(self, host: str, ctx: ScanContext) -> ScanResult:
        """Запустить пробу и записать вывод в историю, если ошибки не было."""
        logger.debug("Запуск сканера %s на %s", self.name, host)
        try:
            result = self.probe(host, ctx)
        except ScanError as exc:
            result = ScanResult(grade=Grade.BAD, error=exc)

        if result.error is not None:
            logger.warning("%s: %s", self.name, result.error)
            return result

        if result.output is not None:
            ctx.history.store(self.name, host, result.output)
        return result

    def label(self, verbose: bool = False) -> str:
        return f"{self.name}: {self.description}" if verbose else self.name

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<Scanner {self.name!r}>"


class Family(BaseModel):
    """Упорядоченный набор сканеров, запускаемых вместе."""

    name: str = Field(..., description="Короткое имя семейства")
    description: str = Field(..., description="Что проверяет семейство")
    scanners: tuple[BaseScanner, ...] = Field(default=(), description="Сканеры в порядке запуска")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    def scanner_names(self) -> list[str]:
        return [s.name for s in self.scanners]

    def run(self, host: str, ctx: ScanContext) -> list[tuple[BaseScanner, ScanResult]]:
        """Запустить сканеры строго по порядку; ошибка одного не останавливает остальные."""
        return [(scanner, scanner.scan(host, ctx)) for scanner in self.scanners]

    def label(self, verbose: bool = False) -> str:
        return f"{self.name}: {self.description}" if verbose else self.name

    def __str__(self) -> str:
        return self.name
