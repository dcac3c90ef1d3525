"""Passport disclosure proof verification.

Verifies zero-knowledge proofs of passport attributes against the relying
party's scope and requirements, and binds each proof to the document signer
certificate it was generated with.
"""

from .exceptions import (
    VerifierError,
    MalformedSignalsError,
    UnknownAttributeError,
    UnknownVerificationKeyError,
    CertificateParseError,
    ProofVerifierUnavailableError,
)
from .api_models import ProofPayload, VerifyRequest, VerifyResponse
from .report import FailedAttribute, VerificationReport
from .reveal import Attribute, unpack_reveal, extract_attribute
from .requirements import Requirement, parse_requirements, evaluate_requirements
from .signals import CircuitLayout, PublicSignals, parse_public_signals
from .proof import (
    ProofVerifier,
    SnarkjsGroth16Verifier,
    VerificationKeyRegistry,
    get_vkey_registry,
)
from .certificate import (
    CertificateParser,
    CscaTrustStore,
    ParsedCertificate,
    ValidityPolicy,
    X509CertificateParser,
    validate_certificate,
)
from .modulus import split_to_words, words_to_int, check_modulus_consistency
from .verify import PassportVerifier, VerificationEvent

__all__ = [
    # Exceptions
    "VerifierError",
    "MalformedSignalsError",
    "UnknownAttributeError",
    "UnknownVerificationKeyError",
    "CertificateParseError",
    "ProofVerifierUnavailableError",
    # Models
    "ProofPayload",
    "VerifyRequest",
    "VerifyResponse",
    "FailedAttribute",
    "VerificationReport",
    # Decoding
    "CircuitLayout",
    "PublicSignals",
    "parse_public_signals",
    "Attribute",
    "unpack_reveal",
    "extract_attribute",
    # Requirements
    "Requirement",
    "parse_requirements",
    "evaluate_requirements",
    # Proof
    "ProofVerifier",
    "SnarkjsGroth16Verifier",
    "VerificationKeyRegistry",
    "get_vkey_registry",
    # Certificate
    "CertificateParser",
    "CscaTrustStore",
    "ParsedCertificate",
    "ValidityPolicy",
    "X509CertificateParser",
    "validate_certificate",
    # Modulus
    "split_to_words",
    "words_to_int",
    "check_modulus_consistency",
    # Orchestration
    "PassportVerifier",
    "VerificationEvent",
]
