"""Document signer certificate parsing and validation.

Parsing goes through the CertificateParser contract so tests and deployments
can substitute their own X.509 stack. The default parser uses `cryptography`.

Validation failures are returned as reasons for the report, never raised:
an expired or untrusted DSC is a verdict, not a malformed request.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import SignatureAlgorithmOID

from app.core.config import (
    CERT_CLOCK_SKEW_SECONDS,
    DEV_MODE_ENFORCE_VALIDITY,
    REQUIRE_TRUST_ANCHORS,
)
from .exceptions import CertificateParseError

log = logging.getLogger(__name__)


# Signature algorithm OID -> circuit signature family
_SIGNATURE_FAMILIES = {
    SignatureAlgorithmOID.RSA_WITH_SHA1: "rsa",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "rsa",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "rsa",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "rsa",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "rsa",
    SignatureAlgorithmOID.RSASSA_PSS: "rsapss",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "ecdsa",
    SignatureAlgorithmOID.ECDSA_WITH_SHA224: "ecdsa",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ecdsa",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ecdsa",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ecdsa",
}


@dataclass(frozen=True)
class ParsedCertificate:
    """What the verifier needs from a DSC."""
    der: bytes
    not_before: datetime
    not_after: datetime
    signature_algorithm: str
    hash_function: str
    modulus: Optional[int] = None
    authority_key_identifier: Optional[bytes] = None


class CertificateParser(Protocol):
    def parse(self, pem: str) -> ParsedCertificate:
        ...


class X509CertificateParser:
    """CertificateParser backed by the cryptography package."""

    def parse(self, pem: str) -> ParsedCertificate:
        """Parse a PEM certificate.

        Raises:
            CertificateParseError: On empty, malformed PEM or DER content.
        """
        if not pem or not pem.strip():
            raise CertificateParseError.malformed("certificate is empty")
        try:
            cert = x509.load_pem_x509_certificate(pem.strip().encode("ascii"))
        except (ValueError, UnicodeEncodeError) as e:
            raise CertificateParseError.malformed(str(e)) from e

        algorithm, hash_function = signature_algorithm_of(cert)

        modulus = None
        try:
            public_key = cert.public_key()
        except (ValueError, UnsupportedAlgorithm) as e:
            raise CertificateParseError.malformed(f"public key unreadable: {e}") from e
        if isinstance(public_key, rsa.RSAPublicKey):
            modulus = public_key.public_numbers().n

        return ParsedCertificate(
            der=cert.public_bytes(Encoding.DER),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            signature_algorithm=algorithm,
            hash_function=hash_function,
            modulus=modulus,
            authority_key_identifier=_authority_key_identifier(cert),
        )


def signature_algorithm_of(cert: x509.Certificate) -> Tuple[str, str]:
    """Map a certificate's signature algorithm to (family, hash).

    Unknown algorithms keep their dotted OID as the family so that key
    lookup reports them, rather than failing here.
    """
    oid = cert.signature_algorithm_oid
    family = _SIGNATURE_FAMILIES.get(oid, oid.dotted_string)
    try:
        hash_algorithm = cert.signature_hash_algorithm
    except UnsupportedAlgorithm:
        hash_algorithm = None
    hash_function = hash_algorithm.name if hash_algorithm is not None else "unknown"
    return family, hash_function


def _authority_key_identifier(cert: x509.Certificate) -> Optional[bytes]:
    try:
        ext = cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier)
    except x509.ExtensionNotFound:
        return None
    return ext.value.key_identifier


def _subject_key_identifier(cert: x509.Certificate) -> bytes:
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value.digest
    except x509.ExtensionNotFound:
        return x509.SubjectKeyIdentifier.from_public_key(cert.public_key()).digest


# =============================================================================
# Trust store
# =============================================================================


class CscaTrustStore:
    """Country signing CA certificates indexed by subject key identifier.

    Production anchors are always trusted; dev anchors (mock CSCAs) only
    when the validity policy allows them.
    """

    def __init__(
        self,
        anchors: Iterable[x509.Certificate] = (),
        dev_anchors: Iterable[x509.Certificate] = (),
    ):
        self._anchors: Dict[bytes, x509.Certificate] = {}
        self._dev_anchors: Dict[bytes, x509.Certificate] = {}
        for cert in anchors:
            self._anchors[_subject_key_identifier(cert)] = cert
        for cert in dev_anchors:
            self._dev_anchors[_subject_key_identifier(cert)] = cert

    @classmethod
    def from_directories(
        cls,
        directory: Optional[str] = None,
        dev_directory: Optional[str] = None,
    ) -> "CscaTrustStore":
        """Load every *.pem file (one or more certificates each)."""
        return cls(_load_pem_dir(directory), _load_pem_dir(dev_directory))

    def __len__(self) -> int:
        return len(self._anchors) + len(self._dev_anchors)

    def has_anchors(self, include_dev: bool) -> bool:
        return bool(self._anchors) or (include_dev and bool(self._dev_anchors))

    def find(self, key_identifier: bytes, include_dev: bool) -> Optional[x509.Certificate]:
        cert = self._anchors.get(key_identifier)
        if cert is None and include_dev:
            cert = self._dev_anchors.get(key_identifier)
        return cert


def _load_pem_dir(directory: Optional[str]) -> List[x509.Certificate]:
    if not directory:
        return []
    path = Path(directory)
    if not path.is_dir():
        log.warning(f"CSCA directory not found: {directory}")
        return []
    certs: List[x509.Certificate] = []
    for pem_file in sorted(path.glob("*.pem")):
        certs.extend(x509.load_pem_x509_certificates(pem_file.read_bytes()))
    log.info(f"loaded {len(certs)} CSCA certificate(s) from {directory}")
    return certs


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class ValidityPolicy:
    """How strictly a DSC is validated.

    Attributes:
        enforce_window: Check notBefore <= now <= notAfter.
        clock_skew_seconds: Tolerance applied on both window edges.
        accept_dev_anchors: Trust mock CSCAs from the dev trust store.
        require_anchors: Fail when no anchor is configured at all.
    """
    enforce_window: bool = True
    clock_skew_seconds: int = CERT_CLOCK_SKEW_SECONDS
    accept_dev_anchors: bool = False
    require_anchors: bool = REQUIRE_TRUST_ANCHORS

    @classmethod
    def for_mode(cls, dev_mode: bool) -> "ValidityPolicy":
        """Production enforces the window; dev mode skips it (unless
        DEV_MODE_ENFORCE_VALIDITY) and also trusts dev anchors."""
        if dev_mode:
            return cls(enforce_window=DEV_MODE_ENFORCE_VALIDITY, accept_dev_anchors=True)
        return cls()


def validate_certificate(
    cert: ParsedCertificate,
    policy: ValidityPolicy,
    trust_store: Optional[CscaTrustStore] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """Validate a parsed DSC.

    Returns:
        Failure reasons; empty when the certificate is acceptable.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    reasons: List[str] = []

    if policy.enforce_window:
        skew = timedelta(seconds=policy.clock_skew_seconds)
        if now + skew < cert.not_before:
            reasons.append(f"certificate not valid before {cert.not_before.isoformat()}")
        if now - skew > cert.not_after:
            reasons.append(f"certificate expired at {cert.not_after.isoformat()}")

    reasons.extend(_check_issuer(cert, policy, trust_store))
    return reasons


def _check_issuer(
    cert: ParsedCertificate,
    policy: ValidityPolicy,
    trust_store: Optional[CscaTrustStore],
) -> List[str]:
    include_dev = policy.accept_dev_anchors
    if trust_store is None or not trust_store.has_anchors(include_dev):
        if policy.require_anchors:
            return ["no CSCA trust anchors configured"]
        log.debug("no CSCA trust anchors configured, issuer check skipped")
        return []

    if cert.authority_key_identifier is None:
        return ["certificate has no authority key identifier"]

    csca = trust_store.find(cert.authority_key_identifier, include_dev)
    if csca is None:
        return [f"no trusted CSCA for key id {cert.authority_key_identifier.hex()}"]

    dsc = x509.load_der_x509_certificate(cert.der)
    try:
        dsc.verify_directly_issued_by(csca)
    except InvalidSignature:
        return ["certificate signature does not verify against CSCA"]
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        return [f"certificate not issued by CSCA: {e}"]
    return []
