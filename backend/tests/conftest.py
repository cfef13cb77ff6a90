"""Shared fixtures: a fake store, a SQLite store, and local TLS servers."""
import asyncio
import contextlib
import ipaddress
import socket
import ssl
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from healthwatch.config import Settings
from healthwatch.database import build_engine, build_session_factory, init_db
from healthwatch.schemas.monitor import Monitor, MonitorRecord
from healthwatch.services.store import SqlMonitorStore

LEAF_SERIAL = 0x1A2B3C4D


class FakeStore:
    """In-memory stand-in for the monitor store that records every call."""

    def __init__(self, records: Optional[List[MonitorRecord]] = None):
        self.records = list(records or [])
        self.upserts: List[Monitor] = []
        self.results: Dict[str, tuple] = {}
        self.list_error: Optional[Exception] = None
        self.upsert_ok = True
        self.update_ok = True

    async def list_monitors(self) -> List[MonitorRecord]:
        if self.list_error:
            raise self.list_error
        return list(self.records)

    async def upsert_monitor(self, monitor: Monitor) -> bool:
        self.upserts.append(monitor)
        return self.upsert_ok

    async def update_check_result(self, monitor_id, http_result, ssl_result=None) -> bool:
        self.results[monitor_id] = (http_result, ssl_result)
        return self.update_ok


@pytest.fixture
def config() -> Settings:
    return Settings(
        data_path="/tmp",
        retry_delay_seconds=1.0,
        tls_timeout_seconds=2.0,
        run_interval_seconds=0,
    )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
async def sql_store(tmp_path: Path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield SqlMonitorStore(build_session_factory(engine))
    await engine.dispose()


# --- certificates ---------------------------------------------------------


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def make_ca() -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    ski = x509.SubjectKeyIdentifier.from_public_key(key.public_key())
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name("Healthwatch Test CA"))
        .issuer_name(_name("Healthwatch Test CA"))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=30))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True, content_commitment=False, key_encipherment=False,
                data_encipherment=False, key_agreement=False, key_cert_sign=True,
                crl_sign=True, encipher_only=False, decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(ski, critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski), critical=False)
        .sign(key, hashes.SHA256())
    )
    return key, cert


def make_leaf(
    ca_key,
    ca_cert: x509.Certificate,
    not_after: datetime,
    common_name: str = "healthwatch.test",
    not_before: Optional[datetime] = None,
) -> Tuple[ec.EllipticCurvePrivateKey, x509.Certificate]:
    key = ec.generate_private_key(ec.SECP256R1())
    not_before = not_before or min(not_after, datetime.now(timezone.utc)) - timedelta(days=30)
    ca_ski = ca_cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    cert = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(LEAF_SERIAL)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName(common_name),
                x509.DNSName(f"www.{common_name}"),
                x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
            ]),
            critical=False,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ca_ski), critical=False)
        .sign(ca_key, hashes.SHA256())
    )
    return key, cert


class CertFactory:
    """Writes a test CA and leaf certificates to disk."""

    def __init__(self, directory: Path):
        self.directory = directory
        self.ca_key, self.ca_cert = make_ca()
        self.ca_path = directory / "ca.pem"
        self.ca_path.write_bytes(self.ca_cert.public_bytes(serialization.Encoding.PEM))

    def leaf(self, days_valid: float, name: str = "leaf") -> Tuple[Path, Path, x509.Certificate]:
        not_after = datetime.now(timezone.utc) + timedelta(days=days_valid)
        key, cert = make_leaf(self.ca_key, self.ca_cert, not_after)
        cert_path = self.directory / f"{name}.pem"
        key_path = self.directory / f"{name}.key"
        cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
        return cert_path, key_path, cert

    def trusting_context(self) -> ssl.SSLContext:
        return ssl.create_default_context(cafile=str(self.ca_path))


@pytest.fixture
def certs(tmp_path: Path) -> CertFactory:
    return CertFactory(tmp_path)


@pytest.fixture
async def tls_server():
    """Start TLS servers on 127.0.0.1; returns the bound port."""
    servers = []

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        try:
            await reader.read()
        except (ConnectionError, ssl.SSLError):
            pass
        finally:
            writer.close()

    async def start(cert_path: Optional[Path] = None, key_path: Optional[Path] = None) -> int:
        context = None
        if cert_path is not None:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            context.load_cert_chain(str(cert_path), str(key_path))
        server = await asyncio.start_server(handle, "127.0.0.1", 0, ssl=context)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield start

    for server in servers:
        server.close()
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(server.wait_closed(), timeout=2)


@pytest.fixture
def unused_port() -> int:
    """A localhost port with nothing listening."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
