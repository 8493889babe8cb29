"""Контекст сканирования: таймауты, общий дедлайн, отмена и история."""

from __future__ import annotations

import threading
import time
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from tlsprobe.errors import ConfigError, ScanAborted
from tlsprobe.history import History


class ScanContext(BaseModel):
    """Явный контекст, передаваемый в каждый запуск сканера.

    Заменяет глобальные настройки дозвона и глобальную историю: два контекста
    полностью изолированы друг от друга.
    """

    timeout: float = Field(1.0, gt=0, description="Таймаут TCP-дозвона, с")
    handshake_timeout: float = Field(2.0, gt=0, description="Таймаут одного рукопожатия, с")
    default_port: int = Field(443, ge=1, le=65535, description="Порт, если в хосте он не указан")
    deadline_seconds: Optional[float] = Field(
        None, gt=0, description="Общий бюджет времени на всё сканирование, с"
    )
    verbose: bool = Field(False, description="Подробные описания в текстовом выводе")
    history: History = Field(default_factory=History)
    cancel_event: threading.Event = Field(default_factory=threading.Event)
    started_at: float = Field(default_factory=time.monotonic)

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def from_options(cls, **options: Any) -> ScanContext:
        """Собрать контекст из опций CLI; ошибки валидации → ConfigError."""
        try:
            return cls(**{k: v for k, v in options.items() if v is not None})
        except ValidationError as exc:
            raise ConfigError(f"некорректные параметры сканирования: {exc}") from exc

    def cancel(self) -> None:
        self.cancel_event.set()

    def remaining(self) -> Optional[float]:
        """Сколько секунд осталось до общего дедлайна (None — дедлайна нет)."""
        if self.deadline_seconds is None:
            return None
        return self.deadline_seconds - (time.monotonic() - self.started_at)

    def check(self) -> None:
        """Бросить ScanAborted, если скан отменён или дедлайн истёк."""
        if self.cancel_event.is_set():
            raise ScanAborted("сканирование отменено")
        left = self.remaining()
        if left is not None and left <= 0:
            raise ScanAborted("истёк общий дедлайн сканирования")

    def op_timeout(self, base: float) -> float:
        """Таймаут сетевой операции, урезанный до остатка общего дедлайна."""
        self.check()
        left = self.remaining()
        return base if left is None else min(base, left)
