"""Запуск семейств сканеров по хостам: хосты параллельно, сканеры по порядку."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional, Sequence

from scanners.base import Family
from tlsprobe.context import ScanContext
from tlsprobe.models import HostReport, ScanRecord

logger = logging.getLogger(__name__)


def run_host(host: str, families: Sequence[Family], ctx: ScanContext) -> HostReport:
    """Прогнать все семейства по одному хосту строго последовательно.

    Args:
        host: Хост в виде host:port.
        families: Семейства в порядке запуска.
        ctx: Контекст сканирования.

    Returns:
        Отчёт с результатами всех сканеров в порядке запуска.
    """
    report = HostReport(host=host)
    for family in families:
        logger.debug("[%s] семейство %s", host, family.name)
        for scanner, result in family.run(host, ctx):
            report.records.append(ScanRecord.from_result(host, family.name, scanner.name, result))
            logger.info("[%s] %s: %s", host, scanner.name, result.grade)
    return report


def run_scan(
    hosts: Sequence[str],
    families: Sequence[Family],
    ctx: ScanContext,
    max_workers: int = 4,
) -> list[HostReport]:
    """Просканировать хосты параллельно и вернуть отчёты в порядке хостов.

    Args:
        hosts: Хосты для сканирования.
        families: Семейства в порядке запуска.
        ctx: Общий контекст; история в нём потокобезопасна.
        max_workers: Максимальное число одновременно сканируемых хостов.

    Returns:
        Отчёты, по одному на хост, в том же порядке, что и `hosts`.
    """
    # Хост может повторяться: отчёты собираются по позиции, а не по имени
    reports: list[Optional[HostReport]] = [None] * len(hosts)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(run_host, host, families, ctx): i for i, host in enumerate(hosts)}

        for future in as_completed(futures):
            i = futures[future]
            host = hosts[i]
            try:
                reports[i] = future.result()
                logger.info("[%s] %d результатов", host, len(reports[i].records))
            except Exception as exc:
                logger.error("[%s] ошибка: %s", host, exc)
                reports[i] = HostReport(host=host)

    return reports
