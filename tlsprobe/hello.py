"""Сырой обмен ClientHello/ServerHello для перебора версий и шифров.

Стандартный `ssl` не позволяет задать точный список предлагаемых шифров
и закрепить SSL 3.0, поэтому рукопожатие ведётся вручную: отправляется
ClientHello, читается ответ до первого ServerHello (или alert), и
соединение закрывается. Сообщения собирает и разбирает tlslite-ng,
запись TLS читается здесь.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence

from tlslite.constants import AlertDescription, ContentType, ECPointFormat, ExtensionType, HandshakeType
from tlslite.extensions import (
    ECPointFormatsExtension,
    SignatureAlgorithmsExtension,
    SNIExtension,
    SupportedGroupsExtension,
    TLSExtension,
)
from tlslite.messages import Alert, ClientHello, RecordHeader3, ServerHello as TLSServerHello
from tlslite.utils.codec import Parser

from tlsprobe.cipher_suites import TLSVersion, cipher_name, version_label
from tlsprobe.errors import HandshakeError
from tlsprobe.netutil import dial, is_ip_address, join_host_port

logger = logging.getLogger(__name__)

# 2^14 открытого текста + запас на сжатие/шифрование
MAX_RECORD_LENGTH = 2**14 + 2048

# x25519, secp256r1, secp384r1, secp521r1
SUPPORTED_GROUPS = (0x001D, 0x0017, 0x0018, 0x0019)
SIGNATURE_ALGORITHMS = (
    0x0403, 0x0503, 0x0603,  # ECDSA SHA256/384/512
    0x0804, 0x0805, 0x0806,  # RSA-PSS-RSAE SHA256/384/512
    0x0401, 0x0501, 0x0601,  # RSA-PKCS1 SHA256/384/512
    0x0201, 0x0203,          # RSA-PKCS1-SHA1, ECDSA-SHA1
)


@dataclass(frozen=True)
class ServerHello:
    version: int
    cipher_suite: int
    session_id: bytes = b""
    compression: int = 0

    def __str__(self) -> str:
        return f"{version_label(self.version)} {cipher_name(self.cipher_suite)}"


def _u16_pair(value: int) -> tuple[int, int]:
    return value >> 8, value & 0xFF


def _extensions(version: int, server_name: Optional[str]) -> list:
    extensions = []
    if server_name and not is_ip_address(server_name):
        extensions.append(SNIExtension().create(bytearray(server_name.encode("idna"))))
    extensions.append(SupportedGroupsExtension().create(list(SUPPORTED_GROUPS)))
    extensions.append(ECPointFormatsExtension().create([ECPointFormat.uncompressed]))
    extensions.append(TLSExtension(extType=ExtensionType.renegotiation_info).create(bytearray(1)))
    if version >= TLSVersion.TLS1_2:
        extensions.append(
            SignatureAlgorithmsExtension().create([_u16_pair(a) for a in SIGNATURE_ALGORITHMS])
        )
    return extensions


def make_client_hello(version: int, ciphers: Sequence[int], server_name: Optional[str] = None) -> bytes:
    """Собрать TLS-запись с ClientHello.

    Версия клиента закреплена (min = max = `version`), шифры предлагаются
    ровно в переданном порядке. Session id пустой и расширения session ticket
    нет: каждое рукопожатие независимо. Для SSL 3.0 расширения не шлются.
    """
    if not ciphers:
        raise ValueError("пустой список шифров")
    hello = ClientHello().create(
        _u16_pair(version),
        bytearray(os.urandom(32)),
        bytearray(0),
        list(ciphers),
        extensions=_extensions(version, server_name) if version > TLSVersion.SSL3_0 else None,
    )
    handshake = hello.write()
    # Версия записи не выше TLS 1.0: часть серверов рвёт соединение иначе
    record_version = _u16_pair(min(version, TLSVersion.TLS1_0))
    header = RecordHeader3().create(record_version, ContentType.handshake, len(handshake))
    return bytes(header.write() + handshake)


def parse_server_hello(body: bytes) -> ServerHello:
    """Разобрать тело сообщения ServerHello (без 4-байтного заголовка)."""
    parser = Parser(bytearray(len(body).to_bytes(3, "big") + body))
    try:
        hello = TLSServerHello().parse(parser)
    except SyntaxError as exc:
        # DecodeError в tlslite-ng наследует SyntaxError
        raise HandshakeError(f"некорректный ServerHello ({len(body)} байт): {exc}") from exc
    major, minor = hello.server_version
    return ServerHello(
        version=(major << 8) | minor,
        cipher_suite=hello.cipher_suite,
        session_id=bytes(hello.session_id),
        compression=hello.compression_method,
    )


def _recv_exact(sock, length: int) -> bytes:
    buf = bytearray()
    while len(buf) < length:
        chunk = sock.recv(length - len(buf))
        if not chunk:
            raise HandshakeError("сервер закрыл соединение до ServerHello")
        buf += chunk
    return bytes(buf)


def _alert_name(fragment: bytes) -> str:
    try:
        alert = Alert().parse(Parser(bytearray(fragment)))
    except SyntaxError:
        return "некорректный alert"
    return AlertDescription.toStr(alert.description)


def read_server_hello(sock) -> ServerHello:
    """Читать записи, пока не соберётся первое handshake-сообщение.

    Alert, неожиданный тип записи или сообщения — HandshakeError.
    ServerHello может быть разрезан на несколько записей.
    """
    handshake = bytearray()
    while True:
        header = RecordHeader3().parse(Parser(bytearray(_recv_exact(sock, 5))))
        if header.length > MAX_RECORD_LENGTH:
            raise HandshakeError(f"запись длиной {header.length} байт превышает предел")
        fragment = _recv_exact(sock, header.length)

        if header.type == ContentType.alert:
            raise HandshakeError(f"alert: {_alert_name(fragment)}")
        if header.type != ContentType.handshake:
            raise HandshakeError(f"неожиданный тип записи 0x{header.type:02X}")

        handshake += fragment
        if len(handshake) < 4:
            continue
        if handshake[0] != HandshakeType.server_hello:
            raise HandshakeError(f"ожидался ServerHello, получен тип {handshake[0]}")
        message_length = int.from_bytes(handshake[1:4], "big")
        if len(handshake) >= 4 + message_length:
            return parse_server_hello(bytes(handshake[4:4 + message_length]))


def say_hello(
    address: str,
    port: int,
    ciphers: Sequence[int],
    version: int,
    timeout: float,
    server_name: Optional[str] = None,
) -> ServerHello:
    """Одно рукопожатие до ServerHello на свежем соединении.

    Raises:
        ConnectError: TCP-соединение не открылось.
        HandshakeError: сервер ответил alert, закрыл соединение или не уложился в таймаут.
    """
    target = join_host_port(address, port)
    with dial(address, port, timeout) as sock:
        try:
            sock.settimeout(timeout)
            sock.sendall(make_client_hello(version, ciphers, server_name or address))
            hello = read_server_hello(sock)
        except OSError as exc:
            raise HandshakeError(f"{target}: {exc}") from exc
    logger.debug("%s %s → %s", target, version_label(version), hello)
    return hello
