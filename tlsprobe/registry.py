"""Реестр семейств сканеров и фильтрация по именам."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from scanners.base import BaseScanner, Family
from scanners.connectivity import Connectivity
from scanners.tls_handshake import TLSHandshake
from scanners.tls_session import TLSSession
from tlsprobe.errors import ConfigError

#: Все семейства в порядке запуска; неизменяемы на всё время жизни процесса
ALL_FAMILIES: tuple[Family, ...] = (Connectivity, TLSHandshake, TLSSession)


def filter_families(
    family_pattern: str = "",
    scanner_pattern: str = "",
    families: Sequence[Family] = ALL_FAMILIES,
) -> list[Family]:
    """Отобрать семейства и сканеры, имена которых содержат совпадение с regexp.

    Исходные семейства не меняются: возвращаются копии только с подходящими
    сканерами. Семейства, в которых не осталось сканеров, отбрасываются.

    Raises:
        ConfigError: некорректное регулярное выражение.
    """
    try:
        family_re = re.compile(family_pattern)
        scanner_re = re.compile(scanner_pattern)
    except re.error as exc:
        raise ConfigError(f"некорректное регулярное выражение: {exc}") from exc

    selected: list[Family] = []
    for family in families:
        if not family_re.search(family.name):
            continue
        scanners = tuple(s for s in family.scanners if scanner_re.search(s.name))
        if scanners:
            selected.append(family.model_copy(update={"scanners": scanners}))
    return selected


def all_scanners(families: Sequence[Family] = ALL_FAMILIES) -> list[BaseScanner]:
    return [s for family in families for s in family.scanners]


def find_scanner(name: str, families: Sequence[Family] = ALL_FAMILIES) -> Optional[BaseScanner]:
    """Найти сканер по точному имени."""
    for scanner in all_scanners(families):
        if scanner.name == name:
            return scanner
    return None
