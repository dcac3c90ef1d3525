"""
Passport disclosure verifier exceptions.

Only structural faults are raised: the request cannot be evaluated at all.
Semantic failures (wrong scope, invalid proof, ...) are recorded in the
VerificationReport instead.
"""

from app.zkpassport.api_models import ErrorCode


class VerifierError(Exception):
    """Base exception for fatal verification errors.

    Carries an error code that maps to ErrorCode constants.
    The caller is responsible for converting this to ErrorDetail.
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class MalformedSignalsError(VerifierError):
    """Public signals do not match the circuit layout."""

    def __init__(self, message: str = "Public signals are malformed"):
        super().__init__(ErrorCode.MALFORMED_SIGNALS, message)

    @classmethod
    def arity(cls, circuit: str, version: int, expected: int, got: int) -> "MalformedSignalsError":
        """Factory for a length mismatch."""
        return cls(
            f"circuit {circuit} v{version} expects {expected} public signals, got {got}"
        )

    @classmethod
    def unknown_layout(cls, circuit: str, version=None) -> "MalformedSignalsError":
        """Factory for a circuit (or version) with no registered layout."""
        if version is None:
            return cls(f"no public signal layout registered for circuit {circuit!r}")
        return cls(f"no public signal layout registered for circuit {circuit!r} v{version}")

    @classmethod
    def not_decimal(cls, index: int, value) -> "MalformedSignalsError":
        """Factory for a signal that is not a decimal field element."""
        return cls(f"public signal {index} is not a decimal integer: {str(value)[:20]!r}")

    @classmethod
    def out_of_field(cls, index: int) -> "MalformedSignalsError":
        """Factory for a value outside the circuit's scalar field."""
        return cls(f"public signal {index} is not a field element (>= field modulus)")


class UnknownAttributeError(VerifierError):
    """Requirement names an attribute with no registered position."""

    def __init__(self, attribute: str):
        self.attribute = attribute
        super().__init__(
            ErrorCode.UNKNOWN_ATTRIBUTE,
            f"unknown disclosure attribute: {attribute!r}",
        )


class UnknownVerificationKeyError(VerifierError):
    """No verification key registered for circuit/algorithm/hash."""

    def __init__(self, circuit: str, algorithm: str, hash_function: str):
        self.circuit = circuit
        self.algorithm = algorithm
        self.hash_function = hash_function
        super().__init__(
            ErrorCode.UNKNOWN_VERIFICATION_KEY,
            f"no verification key for circuit={circuit} "
            f"algorithm={algorithm} hash={hash_function}",
        )


class CertificateParseError(VerifierError):
    """Signer certificate is not a parseable PEM X.509 certificate."""

    def __init__(self, message: str = "Certificate could not be parsed"):
        super().__init__(ErrorCode.CERTIFICATE_PARSE_FAILED, message)

    @classmethod
    def malformed(cls, reason: str) -> "CertificateParseError":
        """Factory for malformed PEM/DER input."""
        return cls(f"certificate parse failed: {reason}")


class ProofVerifierUnavailableError(VerifierError):
    """The delegated proof verifier could not produce a verdict.

    Recoverable: the caller may retry the whole verification.
    """

    def __init__(self, message: str = "Proof verifier unavailable"):
        super().__init__(ErrorCode.PROOF_VERIFIER_UNAVAILABLE, message)
