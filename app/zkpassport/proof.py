"""Zero-knowledge proof verification.

The proof system is an external dependency reached through the ProofVerifier
contract. Verification keys are selected by (circuit, signature algorithm,
hash function) from a read-only registry shared across requests.

The default ProofVerifier shells out to the snarkjs CLI.
"""

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

from app.core.config import SNARKJS_BIN, SNARKJS_TIMEOUT_SECONDS, VKEY_DIR
from .exceptions import ProofVerifierUnavailableError, UnknownVerificationKeyError

log = logging.getLogger(__name__)

KeyId = Tuple[str, str, str]

# snarkjs logs this when the pairing check fails
INVALID_PROOF_MARKER = "Invalid proof"


class ProofVerifier(Protocol):
    async def verify(self, key: Dict[str, Any], public_signals: Sequence[str], proof: Any) -> bool:
        ...


# =============================================================================
# Verification key registry
# =============================================================================


class VerificationKeyRegistry:
    """Verification keys by (circuit, signature algorithm, hash function).

    Keys come from an explicit mapping and, on a miss, from
    ``{directory}/{circuit}_{algorithm}_{hash}.json``. Loaded keys are
    cached; entries are never modified after insertion, so concurrent
    readers need no lock. Two racing misses both load the same file.
    """

    def __init__(
        self,
        keys: Optional[Dict[KeyId, Dict[str, Any]]] = None,
        directory: Optional[Path] = None,
    ):
        self._keys: Dict[KeyId, Dict[str, Any]] = dict(keys or {})
        self._directory = Path(directory) if directory is not None else None

    def register(self, circuit: str, algorithm: str, hash_function: str, key: Dict[str, Any]) -> None:
        self._keys[(circuit, algorithm, hash_function)] = key

    def get(self, circuit: str, algorithm: str, hash_function: str) -> Dict[str, Any]:
        """Resolve a verification key.

        Raises:
            UnknownVerificationKeyError: If no key is registered or on disk.
        """
        key_id = (circuit, algorithm, hash_function)
        key = self._keys.get(key_id)
        if key is not None:
            return key

        path = self._path_for(key_id)
        if path is None or not path.is_file():
            raise UnknownVerificationKeyError(circuit, algorithm, hash_function)

        try:
            key = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            log.error(f"verification key {path} unreadable: {e}")
            raise UnknownVerificationKeyError(circuit, algorithm, hash_function) from e

        self._keys[key_id] = key
        log.info(f"loaded verification key {path.name}")
        return key

    def _path_for(self, key_id: KeyId) -> Optional[Path]:
        if self._directory is None:
            return None
        # Key ids come from certificates; keep them inside the directory
        if any("/" in part or "\\" in part or part.startswith(".") for part in key_id):
            return None
        return self._directory / ("_".join(key_id) + ".json")


_vkey_registry: Optional[VerificationKeyRegistry] = None


def get_vkey_registry() -> VerificationKeyRegistry:
    """Get or create the verification key registry singleton."""
    global _vkey_registry
    if _vkey_registry is None:
        _vkey_registry = VerificationKeyRegistry(directory=VKEY_DIR)
    return _vkey_registry


def reset_vkey_registry() -> None:
    """Drop the singleton (tests)."""
    global _vkey_registry
    _vkey_registry = None


# =============================================================================
# snarkjs delegate
# =============================================================================


class SnarkjsGroth16Verifier:
    """ProofVerifier that runs ``snarkjs groth16 verify``.

    Exit status 0 means the proof is valid. A non-zero status with the
    "Invalid proof" message means invalid. A missing binary, a timeout or
    any other failure raises ProofVerifierUnavailableError, since no
    verdict was produced.
    """

    def __init__(self, binary: str = SNARKJS_BIN, timeout: Optional[float] = None):
        self.binary = binary
        if timeout is None:
            timeout = SNARKJS_TIMEOUT_SECONDS or None
        self.timeout = timeout

    async def verify(self, key: Dict[str, Any], public_signals: Sequence[str], proof: Any) -> bool:
        with tempfile.TemporaryDirectory(prefix="zkp-verify-") as tmp:
            out = Path(tmp)
            vkey_path = out / "verification_key.json"
            public_path = out / "public.json"
            proof_path = out / "proof.json"
            vkey_path.write_text(json.dumps(key))
            public_path.write_text(json.dumps(list(public_signals)))
            proof_path.write_text(json.dumps(proof))

            try:
                process = await asyncio.create_subprocess_exec(
                    self.binary, "groth16", "verify",
                    str(vkey_path), str(public_path), str(proof_path),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except (FileNotFoundError, PermissionError) as e:
                raise ProofVerifierUnavailableError(
                    f"cannot run {self.binary}: {e}"
                ) from e

            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
            except asyncio.TimeoutError as e:
                process.kill()
                await process.wait()
                raise ProofVerifierUnavailableError(
                    f"{self.binary} timed out after {self.timeout}s"
                ) from e

        if process.returncode == 0:
            return True

        output = (stdout + stderr).decode(errors="replace")
        if INVALID_PROOF_MARKER in output:
            log.info(f"snarkjs rejected proof: rc={process.returncode}")
            return False

        # snarkjs exits non-zero on its own errors too (bad key JSON, OOM)
        log.error(f"snarkjs failed: rc={process.returncode} {output.strip()[:200]}")
        raise ProofVerifierUnavailableError(
            f"{self.binary} exited with {process.returncode} without a verdict"
        )


_default_verifier: Optional[ProofVerifier] = None


def get_proof_verifier() -> ProofVerifier:
    """Get or create the default (snarkjs) proof verifier."""
    global _default_verifier
    if _default_verifier is None:
        _default_verifier = SnarkjsGroth16Verifier()
    return _default_verifier


async def verify_proof(
    verifier: ProofVerifier,
    key: Dict[str, Any],
    public_signals: Sequence[str],
    proof: Any,
) -> bool:
    """Run the delegated verifier. Its boolean verdict is authoritative.

    Raises:
        ProofVerifierUnavailableError: Propagated from the delegate.
    """
    verified = await verifier.verify(key, public_signals, proof)
    return bool(verified)
