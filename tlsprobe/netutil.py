"""Сетевые примитивы: разбор host:port, системный DNS, TCP-дозвон."""

from __future__ import annotations

import ipaddress
import logging
import socket

from tlsprobe.errors import ConnectError, ResolutionError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 443


def split_host_port(host: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """Разделить `host[:port]` на имя и порт.

    Поддерживает `[v6]:port` и голый IPv6 без порта. Порт по умолчанию — 443.
    """
    host = host.strip()
    if host.startswith("["):
        name, sep, rest = host[1:].partition("]")
        if not sep:
            raise ValueError(f"незакрытая скобка в адресе {host!r}")
        if rest.startswith(":") and rest[1:]:
            return name, _parse_port(rest[1:], host)
        return name, default_port
    if host.count(":") == 1:
        name, _, port = host.partition(":")
        return name, _parse_port(port, host) if port else default_port
    # Без двоеточий это имя, с несколькими двоеточиями IPv6 без скобок
    return host, default_port


def _parse_port(raw: str, host: str) -> int:
    if not raw.isdigit() or not 0 < int(raw) < 65536:
        raise ValueError(f"некорректный порт в {host!r}")
    return int(raw)


def join_host_port(name: str, port: int) -> str:
    """Склеить имя и порт, IPv6 — в квадратных скобках."""
    if ":" in name:
        return f"[{name}]:{port}"
    return f"{name}:{port}"


def is_ip_address(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
        return True
    except ValueError:
        return False


def resolve(name: str) -> list[str]:
    """Разрешить имя через системный DNS, сохранив порядок резолвера.

    Raises:
        ResolutionError: если резолвер вернул ошибку или ни одного адреса.
    """
    try:
        infos = socket.getaddrinfo(name, None, type=socket.SOCK_STREAM)
    except (OSError, UnicodeError) as exc:
        raise ResolutionError(f"{name}: {exc}") from exc
    addresses = [info[4][0] for info in infos]
    if not addresses:
        raise ResolutionError(f"{name}: резолвер не вернул ни одного адреса")
    logger.debug("DNS %s → %s", name, addresses)
    return addresses


def dial(name: str, port: int, timeout: float) -> socket.socket:
    """Открыть TCP-соединение. Любой отказ или таймаут → ConnectError."""
    try:
        return socket.create_connection((name, port), timeout=timeout)
    except socket.timeout as exc:
        raise ConnectError(f"{join_host_port(name, port)}: таймаут {timeout:g} с") from exc
    except (OSError, UnicodeError) as exc:
        raise ConnectError(f"{join_host_port(name, port)}: {exc}") from exc
