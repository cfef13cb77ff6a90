"""TLS certificate inspector - reads and evaluates the certificate an endpoint presents.

Inspection is a two-step contract:

1. Handshake with full verification (chain of trust + hostname). If it passes,
   the certificate is trusted.
2. If verification fails, record the verifier's reason and handshake again with
   verification disabled, purely to read the certificate details.

The trust verdict therefore always comes from the platform verifier, while an
untrusted or expired certificate can still be reported field by field.
"""
import asyncio
import logging
import math
import ssl
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.x509.oid import ExtensionOID, NameOID

from ..config import Settings, settings
from ..utils.net_errors import classify_transport_error

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
EXPIRY_WARNING_DAYS = 30


@dataclass
class SslCheckResult:
    """Outcome of one TLS inspection."""
    valid: bool = False
    subject_cn: str = ""
    issuer_cn: str = ""
    serial_number: str = ""
    version: int = 0
    expires_at: Optional[datetime] = None
    days_until_expiry: int = 0
    alternative_names: List[str] = field(default_factory=list)
    protocol_version: str = ""
    cipher_suite: str = ""
    error_message: str = ""


def days_until(not_after: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until ``not_after``, rounded up; negative once expired."""
    now = now or datetime.now(timezone.utc)
    return math.ceil((not_after - now).total_seconds() / SECONDS_PER_DAY)


def _common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return ""
    value = attributes[0].value
    return value.decode(errors="replace") if isinstance(value, bytes) else str(value)


def _alternative_names(cert: x509.Certificate) -> List[str]:
    """Subject alternative names in certificate order, without type prefixes."""
    try:
        extension = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return []
    names = []
    for general_name in extension.value:
        if isinstance(general_name, x509.DNSName):
            names.append(general_name.value.strip())
        elif isinstance(general_name, x509.IPAddress):
            names.append(str(general_name.value))
    return names


def parse_certificate(cert_der: bytes, result: SslCheckResult, now: Optional[datetime] = None) -> SslCheckResult:
    """Fill ``result`` from a DER certificate.

    Fields are assigned one by one so that whatever was read before a parsing
    error stays populated.
    """
    cert = x509.load_der_x509_certificate(cert_der)
    result.subject_cn = _common_name(cert.subject)
    result.issuer_cn = _common_name(cert.issuer)
    result.serial_number = format(cert.serial_number, "X")
    result.version = cert.version.value + 1
    result.expires_at = cert.not_valid_after_utc
    result.days_until_expiry = days_until(result.expires_at, now)
    result.alternative_names = _alternative_names(cert)
    return result


class TlsInspector:
    """Opens raw TLS sessions and reports certificate details. ``inspect`` never raises."""

    def __init__(self, config: Settings = settings, verify_context: Optional[ssl.SSLContext] = None):
        self.config = config
        self._verify_context = verify_context or ssl.create_default_context()
        self._read_context = ssl.create_default_context()
        self._read_context.check_hostname = False
        self._read_context.verify_mode = ssl.CERT_NONE

    async def _handshake(self, hostname: str, port: int, context: ssl.SSLContext) -> Tuple[bytes, str, str]:
        """Complete a handshake and return (leaf DER, protocol, cipher)."""
        reader, writer = await asyncio.open_connection(
            hostname,
            port,
            ssl=context,
            server_hostname=hostname,
            # inspect() bounds the whole exchange; this only keeps asyncio from waiting longer
            ssl_handshake_timeout=self.config.tls_timeout_seconds + 1,
        )
        try:
            ssl_object = writer.get_extra_info("ssl_object")
            cert_der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
            protocol = ssl_object.version() if ssl_object else None
            cipher = ssl_object.cipher() if ssl_object else None
            return cert_der or b"", protocol or "", cipher[0] if cipher else ""
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError):
                # Peer may drop the connection first; the transport is closed either way
                pass

    async def _inspect(self, hostname: str, port: int, result: SslCheckResult) -> SslCheckResult:
        try:
            cert_der, protocol, cipher = await self._handshake(hostname, port, self._verify_context)
            trusted = True
        except ssl.SSLCertVerificationError as e:
            trusted = False
            result.error_message = getattr(e, "verify_message", None) or "Certificate validation failed"
            logger.warning(f"SSL certificate validation failed for {hostname}:{port}: {result.error_message}")
            cert_der, protocol, cipher = await self._handshake(hostname, port, self._read_context)

        result.protocol_version = protocol
        result.cipher_suite = cipher
        if not cert_der:
            result.error_message = result.error_message or "No certificate found"
            return result

        parse_certificate(cert_der, result)

        expired = result.days_until_expiry <= 0
        result.valid = trusted and not expired
        if trusted and expired:
            result.error_message = "Certificate expired"

        if 0 < result.days_until_expiry <= EXPIRY_WARNING_DAYS:
            logger.warning(
                f"SSL certificate for {hostname}:{port} expires soon: {result.days_until_expiry} days remaining"
            )
        elif expired:
            logger.error(
                f"SSL certificate for {hostname}:{port} has expired: {abs(result.days_until_expiry)} days ago"
            )
        return result

    async def inspect(self, hostname: str, port: int = 443) -> SslCheckResult:
        """Inspect the certificate served at ``hostname:port``."""
        result = SslCheckResult()
        try:
            return await asyncio.wait_for(
                self._inspect(hostname, port, result),
                timeout=self.config.tls_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"SSL connection timeout for {hostname}:{port}")
            result.error_message = "Connection timeout"
        except (OSError, EOFError) as e:
            transport_message = classify_transport_error(e).message
            # Keep the verifier's reason when the unverified re-read is what failed
            if result.error_message:
                result.error_message = f"{result.error_message}; {transport_message}"
            else:
                result.error_message = transport_message
            logger.warning(f"SSL connection error for {hostname}:{port}: {result.error_message}")
        except Exception as e:
            # Certificate parsing errors keep whatever fields were read
            result.error_message = f"Certificate parsing error: {e}"
            logger.warning(f"Error processing SSL certificate for {hostname}:{port}: {e}")
        result.valid = False
        return result
