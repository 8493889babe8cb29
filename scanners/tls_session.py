"""Семейство TLSSession: возобновление сессий на всех адресах хоста."""

from __future__ import annotations

import logging
import ssl
from typing import Any, Optional

from scanners.base import BaseScanner, Family, split_target
from tlsprobe import netutil
from tlsprobe.context import ScanContext
from tlsprobe.errors import HandshakeError, ScanError, SessionResumptionError
from tlsprobe.models import Grade, ScanResult, SessionKeyMap

logger = logging.getLogger(__name__)


class SessionCache:
    """Клиентский кэш сессий, записывающий каждую операцию get/put.

    Под одним ключом хранится вся последовательность сохранённых состояний,
    а не только последнее: именно их число и проверяет сканер.
    """

    def __init__(self) -> None:
        self._states: dict[str, list[Any]] = {}
        self.operations: list[tuple[str, str]] = []

    def get(self, key: str) -> Optional[Any]:
        """Последнее состояние под ключом или None."""
        self.operations.append(("get", key))
        states = self._states.get(key)
        return states[-1] if states else None

    def put(self, key: str, session: Any) -> None:
        self.operations.append(("put", key))
        self._states.setdefault(key, []).append(session)

    def count(self, key: str) -> int:
        return len(self._states.get(key, ()))

    def keys(self) -> list[str]:
        return list(self._states)

    def to_output(self) -> SessionKeyMap:
        return SessionKeyMap(
            sessions={key: [describe_session(s) for s in states] for key, states in self._states.items()}
        )

    def __len__(self) -> int:
        return len(self._states)


def describe_session(session: Any) -> str:
    """Короткое описание состояния сессии для вывода."""
    if not isinstance(session, ssl.SSLSession):
        return str(session)
    parts = [f"id={session.id.hex()[:16]}" if session.id else "id=—"]
    if session.has_ticket:
        parts.append(f"ticket {session.ticket_lifetime_hint}s")
    return " ".join(parts)


def client_context() -> ssl.SSLContext:
    """Контекст без проверки сертификатов, не выше TLS 1.2.

    На TLS 1.2 состояние сессии (id или ticket) известно сразу после
    рукопожатия; тикеты TLS 1.3 приходят позже и в рукопожатие не попадают.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    context.maximum_version = ssl.TLSVersion.TLSv1_2
    return context


def resume_handshake(
    context: ssl.SSLContext,
    address: str,
    port: int,
    server_name: str,
    cache: SessionCache,
    connect_timeout: float,
    handshake_timeout: float,
) -> None:
    """Полное рукопожатие с адресом через общий кэш; соединение сразу закрывается.

    Перед рукопожатием из кэша берётся сессия для ключа `ip:port`, после
    невозобновлённого рукопожатия новая сессия кладётся в кэш.
    """
    key = netutil.join_host_port(address, port)
    with netutil.dial(address, port, connect_timeout) as sock:
        sock.settimeout(handshake_timeout)
        server_hostname = None if netutil.is_ip_address(server_name) else server_name
        try:
            with context.wrap_socket(
                sock, server_hostname=server_hostname, session=cache.get(key)
            ) as tls:
                session = tls.session
                if not tls.session_reused and session is not None and (session.id or session.has_ticket):
                    cache.put(key, session)
                logger.debug("%s: %s, resumed=%s", key, tls.version(), tls.session_reused)
        except OSError as exc:
            raise HandshakeError(f"{key}: {exc}") from exc


class SessionResumeScanner(BaseScanner):
    """Каждый адрес хоста выдаёт ровно одну сессию; первый же сбой останавливает скан."""

    name = "SessionResumeScanner"
    description = "Host is able to resume sessions accross all addresses."

    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        name, port = split_target(host, ctx)
        addresses = netutil.resolve(name)
        cache = SessionCache()
        context = client_context()

        for address in addresses:
            key = netutil.join_host_port(address, port)
            try:
                resume_handshake(
                    context,
                    address,
                    port,
                    name,
                    cache,
                    connect_timeout=ctx.op_timeout(ctx.timeout),
                    handshake_timeout=ctx.op_timeout(ctx.handshake_timeout),
                )
            except ScanError as exc:
                return ScanResult(grade=Grade.BAD, output=cache.to_output(), error=exc)

            stored = cache.count(key)
            if stored != 1:
                error = SessionResumptionError(key, stored)
                return ScanResult(grade=Grade.BAD, output=cache.to_output(), error=error)

        return ScanResult(grade=Grade.GOOD, output=cache.to_output())


TLSSession = Family(
    name="TLSSessionScanners",
    description="Scans host's implementation of TLS session resumption using session tickets/session IDs",
    scanners=(SessionResumeScanner(),),
)
