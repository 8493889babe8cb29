"""Общие фикстуры: локальный TCP-сервер, поддельный TLS-сервер до ServerHello
и настоящий TLS-сервер на ssl."""

from __future__ import annotations

import socket
import ssl
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


# ---------------------------------------------------------------------------
# Сборка ответов сервера
# ---------------------------------------------------------------------------

def server_hello_record(version: int, cipher: int) -> bytes:
    body = (
        version.to_bytes(2, "big")
        + b"\x11" * 32
        + b"\x00"  # session id
        + cipher.to_bytes(2, "big")
        + b"\x00"
    )
    handshake = b"\x02" + len(body).to_bytes(3, "big") + body
    return b"\x16" + version.to_bytes(2, "big") + len(handshake).to_bytes(2, "big") + handshake


def alert_record(description: int) -> bytes:
    return b"\x15\x03\x01\x00\x02\x02" + bytes([description])


def parse_client_hello(record: bytes) -> tuple[int, list[int]]:
    """Из записи ClientHello достать версию клиента и список шифров."""
    hello = record[5 + 4:]
    version = int.from_bytes(hello[0:2], "big")
    offset = 35 + hello[34]
    length = int.from_bytes(hello[offset:offset + 2], "big")
    offset += 2
    ciphers = [int.from_bytes(hello[i:i + 2], "big") for i in range(offset, offset + length, 2)]
    return version, ciphers


def _recv_exact(conn: socket.socket, length: int) -> bytes:
    buf = b""
    while len(buf) < length:
        chunk = conn.recv(length - len(buf))
        if not chunk:
            raise ConnectionError("клиент закрыл соединение")
        buf += chunk
    return buf


# ---------------------------------------------------------------------------
# Поддельный TLS-сервер
# ---------------------------------------------------------------------------

class FakeTLSServer:
    """Отвечает на ClientHello по заданной политике и закрывает соединение.

    prefs: версия → шифры в порядке предпочтения сервера.
    rogue: версия клиента → (версия, шифр), которые сервер вернёт всегда.
    """

    def __init__(self, prefs: dict[int, list[int]], rogue: Optional[dict[int, tuple[int, int]]] = None):
        self.prefs = prefs
        self.rogue = rogue or {}
        self.hellos: list[tuple[int, list[int]]] = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(64)
        self._sock.settimeout(0.1)
        self._stop = threading.Event()
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def host(self) -> str:
        return f"127.0.0.1:{self.port}"

    def respond(self, version: int, offered: list[int]) -> bytes:
        if version in self.rogue:
            return server_hello_record(*self.rogue[version])
        if version not in self.prefs:
            return alert_record(70)  # protocol_version
        for cipher in self.prefs[version]:
            if cipher in offered:
                return server_hello_record(version, cipher)
        return alert_record(40)  # handshake_failure

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2)
                try:
                    header = _recv_exact(conn, 5)
                    record = header + _recv_exact(conn, int.from_bytes(header[3:5], "big"))
                    version, offered = parse_client_hello(record)
                    self.hellos.append((version, offered))
                    conn.sendall(self.respond(version, offered))
                except OSError:
                    continue

    def hellos_for(self, version: int) -> list[list[int]]:
        return [offered for v, offered in self.hellos if v == version]

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()


@pytest.fixture
def fake_tls_server() -> Callable[..., FakeTLSServer]:
    servers: list[FakeTLSServer] = []

    def start(prefs: dict[int, list[int]], rogue: Optional[dict[int, tuple[int, int]]] = None) -> FakeTLSServer:
        server = FakeTLSServer(prefs, rogue)
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.close()


# ---------------------------------------------------------------------------
# Простые TCP-цели
# ---------------------------------------------------------------------------

@pytest.fixture
def tcp_listener():
    """Сервер, который принимает соединение и сразу его закрывает."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(16)
    sock.settimeout(0.1)
    stop = threading.Event()

    def serve() -> None:
        while not stop.is_set():
            try:
                conn, _ = sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield f"127.0.0.1:{sock.getsockname()[1]}"
    stop.set()
    thread.join(timeout=2)
    sock.close()


@pytest.fixture
def closed_port() -> str:
    """Адрес, на котором заведомо никто не слушает."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"127.0.0.1:{port}"


# ---------------------------------------------------------------------------
# Настоящий TLS-сервер (ssl) с самоподписанным сертификатом
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def tls_certificate(tmp_path_factory) -> tuple[str, str]:
    """Самоподписанный сертификат localhost: (путь к cert, путь к key)."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    directory = tmp_path_factory.mktemp("tls")
    cert_path = directory / "cert.pem"
    key_path = directory / "key.pem"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ))
    return str(cert_path), str(key_path)


class LocalTLSServer:
    """Сервер на ssl, выдающий сессии TLS 1.2; каждое соединение закрывается после рукопожатия."""

    def __init__(self, certfile: str, keyfile: str):
        self.context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self.context.load_cert_chain(certfile, keyfile)
        self.context.maximum_version = ssl.TLSVersion.TLSv1_2
        self.handshakes = 0
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(16)
        self._sock.settimeout(0.1)
        self._stop = threading.Event()
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    @property
    def host(self) -> str:
        return f"127.0.0.1:{self.port}"

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(2)
            try:
                with self.context.wrap_socket(conn, server_side=True):
                    self.handshakes += 1
            except OSError:
                conn.close()

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()


@pytest.fixture
def tls_server(tls_certificate):
    server = LocalTLSServer(*tls_certificate)
    yield server
    server.close()
