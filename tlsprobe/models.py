"""Модели данных tlsprobe: Grade, варианты Output, ScanResult, отчёты."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from tlsprobe.errors import ScanError


class Grade(str, Enum):
    """Категориальная оценка хоста. Не шкала: Legacy не «хуже» Bad, а другое."""

    BAD = "Bad"
    LEGACY = "Legacy"
    GOOD = "Good"

    def __str__(self) -> str:
        return self.value


class AddressList(BaseModel):
    """Адреса в порядке, в котором их вернул резолвер."""

    kind: Literal["address_list"] = "address_list"
    addresses: list[str] = Field(default_factory=list, description="Адреса хоста")

    model_config = {"frozen": True}

    def describe(self) -> str:
        return "Адреса хоста в порядке ответа резолвера"

    def __str__(self) -> str:
        return "\n".join(self.addresses)


class CipherVersionMap(BaseModel):
    """Версия протокола → шифронаборы (имена IANA) в порядке предпочтения сервера.

    CipherSuite заполняет версии SSL3.0..TLS1.2; TLSDialScanner кладёт одну
    согласованную версию, в том числе TLS1.3.
    """

    kind: Literal["cipher_version_map"] = "cipher_version_map"
    versions: dict[str, list[str]] = Field(
        default_factory=dict, description="Метка версии → шифры по убыванию предпочтения"
    )
    violations: dict[str, str] = Field(
        default_factory=dict, description="Метка версии → описание нарушения протокола"
    )

    model_config = {"frozen": True}

    def describe(self) -> str:
        return "Шифронаборы хоста по версиям SSL/TLS в порядке предпочтения сервера"

    def __str__(self) -> str:
        lines = [f"{vers}\t{', '.join(ciphers)}" for vers, ciphers in self.versions.items()]
        lines.extend(f"{vers}\tнарушение протокола: {msg}" for vers, msg in self.violations.items())
        return "\n".join(lines)


class SessionKeyMap(BaseModel):
    """Ключ сессии (ip:port) → состояния сессий, сохранённые под ним."""

    kind: Literal["session_key_map"] = "session_key_map"
    sessions: dict[str, list[str]] = Field(default_factory=dict, description="Ключ → состояния")

    model_config = {"frozen": True}

    def describe(self) -> str:
        return "Сессии TLS, сохранённые клиентом по каждому адресу хоста"

    def __str__(self) -> str:
        return "\n".join(f"{key}: {', '.join(states) or '—'}" for key, states in self.sessions.items())


#: Закрытый набор вариантов результата зонда
Output = Annotated[
    Union[AddressList, CipherVersionMap, SessionKeyMap],
    Field(discriminator="kind"),
]


class ScanResult(BaseModel):
    """Результат одного запуска сканера: (оценка, вывод, ошибка)."""

    grade: Grade = Grade.BAD
    output: Optional[Output] = None
    error: Optional[ScanError] = None

    model_config = {"arbitrary_types_allowed": True}

    @property
    def ok(self) -> bool:
        return self.error is None


class ScanRecord(BaseModel):
    """Строка отчёта: результат сканера для конкретного хоста."""

    host: str = Field(..., description="Хост в виде host:port")
    family: str = Field(..., description="Имя семейства")
    scanner: str = Field(..., description="Имя сканера")
    grade: Grade
    output: Optional[Output] = None
    error: Optional[str] = Field(None, description="Текст ошибки, если была")
    ts: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Временная метка",
    )

    @classmethod
    def from_result(cls, host: str, family: str, scanner: str, result: ScanResult) -> ScanRecord:
        return cls(
            host=host,
            family=family,
            scanner=scanner,
            grade=result.grade,
            output=result.output,
            error=str(result.error) if result.error is not None else None,
        )


class HostReport(BaseModel):
    """Все результаты по одному хосту в порядке запуска сканеров."""

    host: str
    scanned_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    records: list[ScanRecord] = Field(default_factory=list)

    def by_scanner(self, scanner_name: str) -> list[ScanRecord]:
        """Вернуть записи конкретного сканера."""
        return [r for r in self.records if r.scanner == scanner_name]

    def by_family(self, family_name: str) -> list[ScanRecord]:
        """Вернуть записи конкретного семейства."""
        return [r for r in self.records if r.family == family_name]

    @property
    def failed(self) -> list[ScanRecord]:
        return [r for r in self.records if r.error is not None]
