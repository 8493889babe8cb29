"""Семейство Connectivity: DNS, TCP-дозвон, TLS-рукопожатие."""

from __future__ import annotations

import logging
import ssl

from scanners.base import BaseScanner, Family, split_target
from tlsprobe.cipher_suites import cipher_name
from tlsprobe.context import ScanContext
from tlsprobe.errors import HandshakeError
from tlsprobe.models import AddressList, CipherVersionMap, Grade, ScanResult
from tlsprobe.netutil import dial, is_ip_address, join_host_port, resolve

logger = logging.getLogger(__name__)

# Имена версий OpenSSL → метки, которыми пользуется весь вывод
_SSL_VERSION_LABELS = {
    "SSLv3": "SSL3.0",
    "TLSv1": "TLS1.0",
    "TLSv1.1": "TLS1.1",
    "TLSv1.2": "TLS1.2",
    "TLSv1.3": "TLS1.3",
}


def iana_cipher_name(context: ssl.SSLContext, openssl_name: str) -> str:
    """Имя шифра OpenSSL → имя IANA, как в выводе CipherSuite."""
    for info in context.get_ciphers():
        if info["name"] == openssl_name:
            return cipher_name(info["id"] & 0xFFFF)
    return openssl_name


class DNSLookupScanner(BaseScanner):
    """Хост разрешается через DNS хотя бы в один адрес."""

    name = "DNSLookupScanner"
    description = "Host can be resolved through DNS"

    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        name, _ = split_target(host, ctx)
        ctx.check()
        addresses = resolve(name)
        return ScanResult(grade=Grade.GOOD, output=AddressList(addresses=addresses))


class TCPDialScanner(BaseScanner):
    """К хосту можно подключиться по TCP."""

    name = "TCPDialScanner"
    description = "Host can be connected to through TCP"

    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        name, port = split_target(host, ctx)
        with dial(name, port, ctx.op_timeout(ctx.timeout)) as sock:
            peer = sock.getpeername()[0]
        logger.debug("TCP %s → %s", join_host_port(name, port), peer)
        return ScanResult(grade=Grade.GOOD, output=AddressList(addresses=[peer]))


class TLSDialScanner(BaseScanner):
    """Хост завершает TLS-рукопожатие с настройками по умолчанию."""

    name = "TLSDialScanner"
    description = "Host can perform a TLS Handshake"

    def probe(self, host: str, ctx: ScanContext) -> ScanResult:
        name, port = split_target(host, ctx)
        # Доверие к сертификатам этот сканер не проверяет
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        with dial(name, port, ctx.op_timeout(ctx.timeout)) as sock:
            sock.settimeout(ctx.op_timeout(ctx.handshake_timeout))
            server_hostname = None if is_ip_address(name) else name
            try:
                with context.wrap_socket(sock, server_hostname=server_hostname) as tls:
                    version = tls.version() or ""
                    cipher = tls.cipher()
            except OSError as exc:
                raise HandshakeError(f"{join_host_port(name, port)}: {exc}") from exc

        label = _SSL_VERSION_LABELS.get(version, version)
        ciphers = [iana_cipher_name(context, cipher[0])] if cipher else []
        output = CipherVersionMap(versions={label: ciphers})
        return ScanResult(grade=Grade.GOOD, output=output)


Connectivity = Family(
    name="Connectivity",
    description="Scans for basic connectivity with the host through DNS and TCP/TLS dials",
    scanners=(DNSLookupScanner(), TCPDialScanner(), TLSDialScanner()),
)
