"""CLI точка входа tlsprobe: команды `tlsprobe list` и `tlsprobe scan`."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import click

from scanners.base import Family
from tlsprobe.context import ScanContext
from tlsprobe.errors import ConfigError
from tlsprobe.models import HostReport
from tlsprobe.netutil import join_host_port, split_host_port
from tlsprobe.registry import filter_families
from tlsprobe.runner import run_scan

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

INDENT = "    "


def _select(family: str, scanner: str) -> list[Family]:
    """Отобрать семейства по regexp, ошибки выражений — ошибки параметров."""
    try:
        return filter_families(family, scanner)
    except ConfigError as exc:
        raise click.BadParameter(str(exc))


def _with_default_port(host: str) -> str:
    """Хост без порта дополняется :443."""
    try:
        name, port = split_host_port(host)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="HOSTS")
    return join_host_port(name, port)


def _echo_indented(block: str, level: int = 1) -> None:
    for line in block.splitlines():
        click.echo(f"{INDENT * level}{line}")


def _echo_report(report: HostReport, verbose: bool) -> None:
    click.echo(f"Сканирование {report.host}")
    current_family = None
    for record in report.records:
        if verbose and record.family != current_family:
            click.echo(f"[{record.family}]")
            current_family = record.family
        click.echo(f"{record.scanner}: {record.grade}")
        if verbose and record.output is not None:
            _echo_indented(str(record.output))
        if record.error:
            _echo_indented(f"ошибка: {record.error}")


@click.group()
@click.option("--debug", is_flag=True, help="Отладочный журнал")
def cli(debug: bool) -> None:
    """tlsprobe — проверка доступности, шифров и возобновления сессий TLS."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command(name="list")
@click.option("--family", "-f", default="", help="Regexp для имён семейств")
@click.option("--scanner", "-s", default="", help="Regexp для имён сканеров")
@click.option("--verbose", "-v", is_flag=True, help="Показывать описания")
def list_cmd(family: str, scanner: str, verbose: bool) -> None:
    """Показать доступные семейства и сканеры."""
    for fam in _select(family, scanner):
        click.echo(fam.label(verbose))
        for s in fam.scanners:
            click.echo(f"{INDENT}{s.label(verbose)}")


@cli.command()
@click.argument("hosts", nargs=-1, required=True)
@click.option("--family", "-f", default="", help="Regexp для имён семейств")
@click.option("--scanner", "-s", default="", help="Regexp для имён сканеров")
@click.option("--verbose", "-v", is_flag=True, help="Выводить описания и результаты проб")
@click.option("--timeout", default=1.0, show_default=True, help="Таймаут TCP-дозвона, с")
@click.option("--handshake-timeout", default=2.0, show_default=True, help="Таймаут рукопожатия, с")
@click.option("--deadline", default=None, type=float, help="Общий бюджет времени на скан, с")
@click.option(
    "--workers", default=4, show_default=True, type=click.IntRange(min=1),
    help="Сколько хостов сканировать параллельно",
)
@click.option("--out", "-o", default=None, help="JSON-файл для сохранения отчёта")
def scan(
    hosts: tuple[str, ...],
    family: str,
    scanner: str,
    verbose: bool,
    timeout: float,
    handshake_timeout: float,
    deadline: Optional[float],
    workers: int,
    out: Optional[str],
) -> None:
    """Просканировать хосты (host[:port], порт по умолчанию 443)."""
    families = _select(family, scanner)
    if not families:
        click.echo("Ни одно семейство не подходит под фильтры")
        return

    try:
        ctx = ScanContext.from_options(
            timeout=timeout,
            handshake_timeout=handshake_timeout,
            deadline_seconds=deadline,
            verbose=verbose,
        )
    except ConfigError as exc:
        raise click.UsageError(str(exc))

    targets = [_with_default_port(h) for h in hosts]
    reports = run_scan(targets, families, ctx, max_workers=workers)

    for report in reports:
        _echo_report(report, verbose)

    if out:
        out_file = Path(out)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(
            json.dumps(
                [r.model_dump(mode="json") for r in reports],
                ensure_ascii=False,
                indent=2,
            ),
            encoding="utf-8",
        )
        click.echo(f"Отчёт: {out_file}")

    if any(r.failed for r in reports):
        raise click.exceptions.Exit(1)
