"""Shared fixtures: certificates, public signals and proof verifier fakes."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from app.zkpassport.api_models import ProofPayload, VerifyRequest
from app.zkpassport.modulus import split_to_words
from app.zkpassport.proof import VerificationKeyRegistry
from app.zkpassport.reveal import pack_reveal
from app.zkpassport.signals import current_date_signals, scope_to_int

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
SCOPE = "voting-app"
VKEY = {"protocol": "groth16", "curve": "bn128", "nPublic": 45}


# =============================================================================
# Certificates
# =============================================================================


def _name(cn: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "FR"),
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
    ])


def build_certificate(
    subject_key,
    subject_cn: str,
    issuer_key,
    issuer_cn: str,
    not_before: datetime = NOW - timedelta(days=365),
    not_after: datetime = NOW + timedelta(days=365),
    ca: bool = False,
    hash_algorithm=None,
    authority_key=None,
) -> x509.Certificate:
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(subject_cn))
        .issuer_name(_name(issuer_cn))
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(subject_key.public_key()),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(
                (authority_key or issuer_key).public_key()
            ),
            critical=False,
        )
    )
    return builder.sign(issuer_key, hash_algorithm or hashes.SHA256())


def to_pem(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")


@pytest.fixture(scope="session")
def csca_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def dsc_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def csca_cert(csca_key):
    return build_certificate(csca_key, "CSCA France", csca_key, "CSCA France", ca=True)


@pytest.fixture(scope="session")
def dsc_cert(dsc_key, csca_key):
    return build_certificate(dsc_key, "DSC France 01", csca_key, "CSCA France")


@pytest.fixture(scope="session")
def dsc_pem(dsc_cert):
    return to_pem(dsc_cert)


@pytest.fixture(scope="session")
def dsc_modulus(dsc_key):
    return dsc_key.public_key().public_numbers().n


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


# =============================================================================
# Public signals
# =============================================================================


def mrz(
    issuing_state: str = "FRA",
    name: str = "DUPONT<<MARIE",
    passport_number: str = "15AA81234",
    nationality: str = "FRA",
    date_of_birth: str = "900101",
    gender: str = "F",
    expiry_date: str = "300101",
) -> str:
    """A TD3 MRZ (88 chars) with placeholder check digits."""
    line1 = ("P<" + issuing_state + name).ljust(44, "<")
    line2 = (
        passport_number + "6" + nationality + date_of_birth + "1"
        + gender + expiry_date + "1" + "<" * 14 + "<" + "4"
    )
    assert len(line1) == 44 and len(line2) == 44
    return line1 + line2


def build_signals(
    modulus: int,
    scope: str = SCOPE,
    now: datetime = NOW,
    revealed: str = None,
    nullifier: int = 0xABCDEF,
    user_identifier: int = 0x1234,
) -> list:
    if revealed is None:
        revealed = mrz() + "18" + "\x01"
    return (
        ["1"]
        + pack_reveal(revealed)
        + [str(nullifier)]
        + [str(w) for w in split_to_words(modulus)]
        + [str(scope_to_int(scope))]
        + [str(d) for d in current_date_signals(now)]
        + [str(user_identifier)]
    )


def build_request(signals: list, pem: str, circuit: str = "prove") -> VerifyRequest:
    return VerifyRequest(
        proof=ProofPayload(public_signals=signals, proof={"pi_a": ["1", "2", "1"]}),
        certificate_pem=pem,
        circuit_id=circuit,
    )


# =============================================================================
# Proof verifier fakes
# =============================================================================


class FakeProofVerifier:
    """ProofVerifier returning a fixed verdict and recording calls."""

    def __init__(self, result: bool = True):
        self.result = result
        self.calls = []

    async def verify(self, key, public_signals, proof) -> bool:
        self.calls.append((key, list(public_signals), proof))
        return self.result


@pytest.fixture
def accepting_verifier():
    return FakeProofVerifier(True)


@pytest.fixture
def rejecting_verifier():
    return FakeProofVerifier(False)


@pytest.fixture
def key_registry():
    return VerificationKeyRegistry({("prove", "rsa", "sha256"): VKEY})
