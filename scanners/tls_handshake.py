"""Семейство TLSHandshake: порядок предпочтения шифров по версиям протокола."""

from __future__ import annotations

import logging
from typing import Optional

from scanners.base import BaseScanner, Family, split_target
from tlsprobe import hello
from tlsprobe.cipher_suites import (
    SCAN_VERSIONS,
    TLSVersion,
    all_cipher_ids,
    cipher_name,
    version_label,
)
from tlsprobe.context import ScanContext
from tlsprobe.errors import ConnectError, HandshakeError, ProtocolViolation, ScanAborted
from tlsprobe.models import CipherVersionMap, Grade, ScanResult

logger = logging.getLogger(__name__)


def enumerate_version(
    name: str, port: int, version: TLSVersion, ctx: ScanContext
) -> tuple[list[int], Optional[ProtocolViolation]]:
    """Узнать полный порядок предпочтения шифров сервера для одной версии.

    Каждое рукопожатие раскрывает самый предпочтительный для сервера шифр
    из предложенных. Он удаляется из кандидатов, и рукопожатие повторяется:
    k поддерживаемых шифров обходятся за k + 1 рукопожатие.

    Returns:
        (шифры по убыванию предпочтения, нарушение протокола или None).
        Шифры, найденные до нарушения, сохраняются.

    Raises:
        ConnectError: соединение не открылось — хост недоступен.
        ScanAborted: отмена или истёк общий дедлайн.
    """
    candidates = all_cipher_ids()
    discovered: list[int] = []

    while candidates:
        ctx.check()
        try:
            server_hello = hello.say_hello(
                name,
                port,
                candidates,
                version,
                timeout=ctx.op_timeout(ctx.handshake_timeout),
                server_name=name,
            )
        except HandshakeError as exc:
            # Нормальное завершение: версия не поддерживается или шифры кончились
            logger.debug("%s %s: перебор окончен (%s)", name, version.label, exc)
            break

        if server_hello.version != version:
            return discovered, ProtocolViolation(
                f"{version.label}: сервер выбрал версию {version_label(server_hello.version)}, "
                f"которую клиент не предлагал"
            )
        if server_hello.cipher_suite not in candidates:
            return discovered, ProtocolViolation(
                f"{version.label}: сервер выбрал шифр {cipher_name(server_hello.cipher_suite)}, "
                f"которого не было в предложении"
            )

        discovered.append(server_hello.cipher_suite)
        candidates.remove(server_hello.cipher_suite)

    return discovered, None


def grade_versions(versions: dict[str, list[str]]) -> Grade:
    """Legacy, если SSL 3.0 что-то согласовал; иначе Good при любом успехе; иначе Bad."""
    if versions.get(TLSVersion.SSL3_0.label):
        return Grade.LEGACY
    if any(versions.values()):
        return Grade.GOOD
    return Grade.BAD


class CipherSuiteScanner(BaseScanner):
    """Перебирает версии от SSL 3.0 до TLS 1.2 и шифры в порядке предпочтения сервера."""

    name = "CipherSuite"
    description = "Determines host's cipher suites accepted and prefered order"

    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        name, port = split_target(host, ctx)
        versions: dict[str, list[str]] = {}
        violations: dict[str, str] = {}

        try:
            for version in SCAN_VERSIONS:
                ciphers, violation = enumerate_version(name, port, version, ctx)
                if ciphers:
                    versions[version.label] = [cipher_name(c) for c in ciphers]
                if violation is not None:
                    logger.warning("[%s] %s", host, violation)
                    violations[version.label] = str(violation)
        except (ConnectError, ScanAborted) as exc:
            output = CipherVersionMap(versions=versions, violations=violations)
            return ScanResult(grade=Grade.BAD, output=output, error=exc)

        output = CipherVersionMap(versions=versions, violations=violations)
        error = None
        if violations:
            error = ProtocolViolation(
                "нарушения протокола в версиях: " + ", ".join(violations)
            )
        return ScanResult(grade=grade_versions(versions), output=output, error=error)


TLSHandshake = Family(
    name="TLSHandshake",
    description="Scans for host's SSL/TLS version and cipher suite negotiation",
    scanners=(CipherSuiteScanner(),),
)
