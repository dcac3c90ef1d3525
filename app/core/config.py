"""
Passport disclosure verifier configuration constants.

Constants are organized into:
- NORMATIVE: Fixed by the proof circuit, cannot change without a new circuit version
- CONFIGURABLE: Defaults that may be overridden by deployment policy
- POLICY: Implementation choices for behavior the circuit does not pin down
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import json
import os
from pathlib import Path
from typing import List, Optional, Tuple

# =============================================================================
# NORMATIVE CONSTANTS (fixed by the circuit)
# =============================================================================

# Attestation identifier for ICAO 9303 passports
PASSPORT_ATTESTATION_ID: str = (
    "8518753152044246090169372947057357973469996808638122125210848696986717482788"
)

# Default RPC endpoint. Carried in verifier configuration; the verification
# path itself never calls it.
DEFAULT_RPC_URL: str = "https://mainnet.optimism.io"

# Public key words embedded in the public signals
# RSA moduli up to 2048 bits: 32 words of 64 bits, least significant first
PUBKEY_WORD_SIZE_BITS: int = 64
PUBKEY_WORD_COUNT: int = 32

# Packed reveal words: three field elements carrying 31 bytes each
REVEAL_PACKED_WORDS: int = 3
REVEAL_BYTES_PER_WORD: int = 31

# Scope strings are packed into a single field element
MAX_SCOPE_BYTES: int = 31

# Current date is disclosed as six decimal digits YYMMDD
CURRENT_DATE_DIGITS: int = 6

# Public signals are elements of the BN254 scalar field
SNARK_SCALAR_FIELD: int = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

# =============================================================================
# CONFIGURABLE DEFAULTS
# =============================================================================

# Clock skew tolerated when checking the DSC validity window
CERT_CLOCK_SKEW_SECONDS: int = int(os.getenv("ZKP_CERT_CLOCK_SKEW", "300"))

# =============================================================================
# POLICY CONSTANTS
# =============================================================================

# Certificate validity window enforcement in dev mode.
# True: dev mode still enforces notBefore/notAfter
# False (default): dev mode skips the window so expired test DSCs verify
#
# Production always enforces the window.
DEV_MODE_ENFORCE_VALIDITY: bool = os.getenv(
    "ZKP_DEV_MODE_ENFORCE_VALIDITY", "false"
).lower() == "true"

# When no CSCA anchors are configured the issuer chain check is skipped.
# True: an empty trust store fails every certificate
REQUIRE_TRUST_ANCHORS: bool = os.getenv(
    "ZKP_REQUIRE_TRUST_ANCHORS", "false"
).lower() == "true"

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Admin endpoint visibility
ADMIN_ENDPOINT_ENABLED: bool = os.getenv("ADMIN_ENDPOINT_ENABLED", "true").lower() == "true"

# Scope the service verifies proofs for
VERIFIER_SCOPE: str = os.getenv("ZKP_VERIFIER_SCOPE", "")

# Dev mode (mock CSCAs accepted, relaxed validity window)
VERIFIER_DEV_MODE: bool = os.getenv("ZKP_VERIFIER_DEV_MODE", "false").lower() == "true"

# Directory of verification keys named {circuit}_{algorithm}_{hash}.json
VKEY_DIR: Path = Path(os.getenv("ZKP_VKEY_DIR", "vkeys"))

# CSCA trust anchor directories (PEM files)
CSCA_DIR: Optional[str] = os.getenv("ZKP_CSCA_DIR") or None
CSCA_DEV_DIR: Optional[str] = os.getenv("ZKP_CSCA_DEV_DIR") or None

# snarkjs binary used by the default proof verifier
SNARKJS_BIN: str = os.getenv("ZKP_SNARKJS_BIN", "snarkjs")

# Subprocess timeout for snarkjs (0 disables)
SNARKJS_TIMEOUT_SECONDS: float = float(os.getenv("ZKP_SNARKJS_TIMEOUT", "0"))


def _parse_requirements() -> List[Tuple[str, str]]:
    """Parse requirements from the environment.

    Environment variable format (JSON list of pairs):
        ZKP_VERIFIER_REQUIREMENTS='[["nationality", "FRA"], ["older_than", "18"]]'

    Returns:
        List of (attribute, expected value) tuples. Empty if unset.

    Raises:
        ValueError: If the value is not a JSON list of string pairs.
    """
    env_value = os.getenv("ZKP_VERIFIER_REQUIREMENTS", "")
    if not env_value.strip():
        return []
    parsed = json.loads(env_value)
    if not isinstance(parsed, list):
        raise ValueError("ZKP_VERIFIER_REQUIREMENTS must be a JSON list")
    result = []
    for item in parsed:
        if not isinstance(item, list) or len(item) != 2:
            raise ValueError(f"requirement must be an [attribute, value] pair: {item!r}")
        result.append((str(item[0]), str(item[1])))
    return result


# Requirements the service enforces on every proof
VERIFIER_REQUIREMENTS: List[Tuple[str, str]] = _parse_requirements()
