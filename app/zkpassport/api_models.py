"""
Passport disclosure verifier API models.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Request Models
# =============================================================================

class ProofPayload(BaseModel):
    """Proof plus the public signals it is checked against."""
    model_config = ConfigDict(populate_by_name=True)

    public_signals: List[str] = Field(alias="publicSignals")
    proof: Any


class VerifyRequest(BaseModel):
    """Request body for /verify and input to PassportVerifier.verify."""
    model_config = ConfigDict(populate_by_name=True)

    proof: ProofPayload
    certificate_pem: str = Field(alias="certificatePem")
    circuit_id: str = Field(alias="circuitId")
    circuit_version: Optional[int] = Field(default=None, alias="circuitVersion")


# =============================================================================
# Error Models
# =============================================================================

class ErrorDetail(BaseModel):
    """Fatal error detail returned instead of a report."""
    code: str
    message: str
    recoverable: bool


class ErrorCode:
    """Error code registry for fatal (structural) failures."""
    MALFORMED_SIGNALS = "MALFORMED_SIGNALS"
    UNKNOWN_ATTRIBUTE = "UNKNOWN_ATTRIBUTE"
    UNKNOWN_VERIFICATION_KEY = "UNKNOWN_VERIFICATION_KEY"
    CERTIFICATE_PARSE_FAILED = "CERTIFICATE_PARSE_FAILED"
    PROOF_VERIFIER_UNAVAILABLE = "PROOF_VERIFIER_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Recoverability mapping: a caller may retry only recoverable errors
ERROR_RECOVERABILITY: Dict[str, bool] = {
    ErrorCode.MALFORMED_SIGNALS: False,
    ErrorCode.UNKNOWN_ATTRIBUTE: False,
    ErrorCode.UNKNOWN_VERIFICATION_KEY: False,
    ErrorCode.CERTIFICATE_PARSE_FAILED: False,
    ErrorCode.PROOF_VERIFIER_UNAVAILABLE: True,  # Recoverable
    ErrorCode.INTERNAL_ERROR: True,              # Recoverable
}


# =============================================================================
# Response Models
# =============================================================================

class FailureDetail(BaseModel):
    """One failed attribute in a verification report."""
    attribute: str
    reason: str
    observed: Optional[str] = None
    expected: Optional[str] = None


class VerifyResponse(BaseModel):
    """Response schema for /verify."""
    verified: bool
    failures: List[FailureDetail] = Field(default_factory=list)
    nullifier: Optional[str] = None
    user_identifier: Optional[str] = None
