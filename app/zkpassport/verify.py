"""Passport disclosure verification orchestration.

PassportVerifier binds the relying party's configuration (scope,
requirements, dev mode) and verifies one proof per verify() call:

1. Parse public signals, DSC and verification key (fatal on error)
2. Scope and current date
3. Disclosure requirements
4. Zero-knowledge proof
5. Nullifier and user identifier extraction
6. DSC validity
7. DSC modulus vs. proof public key

Steps 2-7 never abort: each failure becomes a report entry so the caller
sees every reason a credential was rejected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from app.core.config import DEFAULT_RPC_URL, PASSPORT_ATTESTATION_ID
from .api_models import VerifyRequest
from .certificate import (
    CertificateParser,
    CscaTrustStore,
    ValidityPolicy,
    X509CertificateParser,
    validate_certificate,
)
from .modulus import check_modulus_consistency, words_to_int
from .proof import ProofVerifier, VerificationKeyRegistry, get_proof_verifier, get_vkey_registry, verify_proof
from .report import VerificationReport
from .requirements import Requirement, evaluate_requirements, parse_requirements
from .reveal import unpack_reveal
from .signals import (
    PublicSignals,
    current_date_signals,
    int_to_scope,
    parse_public_signals,
    to_fixed_hex,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationEvent:
    """Outcome of one verification stage, for optional observers."""
    stage: str
    passed: bool
    detail: Optional[str] = None


EventHook = Callable[[VerificationEvent], None]


def _date_str(digits: Sequence[int]) -> str:
    return "".join(str(d) for d in digits)


class PassportVerifier:
    """Verifies passport disclosure proofs for one scope.

    Holds only immutable configuration, so one instance may serve many
    concurrent verify() calls.
    """

    def __init__(
        self,
        scope: str,
        attestation_id: str = PASSPORT_ATTESTATION_ID,
        requirements: Iterable[Union[Requirement, Sequence[str]]] = (),
        rpc_url: str = DEFAULT_RPC_URL,
        dev_mode: bool = False,
        *,
        proof_verifier: Optional[ProofVerifier] = None,
        key_registry: Optional[VerificationKeyRegistry] = None,
        certificate_parser: Optional[CertificateParser] = None,
        trust_store: Optional[CscaTrustStore] = None,
        validity_policy: Optional[ValidityPolicy] = None,
        on_event: Optional[EventHook] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Raises:
            UnknownAttributeError: If a requirement names an unknown attribute.
        """
        self.scope = scope
        self.attestation_id = attestation_id or PASSPORT_ATTESTATION_ID
        self.requirements: Tuple[Requirement, ...] = parse_requirements(requirements)
        self.rpc_url = rpc_url or DEFAULT_RPC_URL
        self.dev_mode = dev_mode
        self.proof_verifier = proof_verifier
        self.key_registry = key_registry
        self.certificate_parser = certificate_parser or X509CertificateParser()
        self.trust_store = trust_store
        self.validity_policy = validity_policy or ValidityPolicy.for_mode(dev_mode)
        self.on_event = on_event
        self.clock = clock

    def _emit(self, stage: str, passed: bool, detail: Optional[str] = None) -> None:
        log.info(
            f"- {stage} {'verified' if passed else 'FAILED'}" + (f": {detail}" if detail else ""),
            extra={"stage": stage, "passed": passed},
        )
        if self.on_event is not None:
            self.on_event(VerificationEvent(stage=stage, passed=passed, detail=detail))

    async def verify(self, request: VerifyRequest) -> VerificationReport:
        """Verify one disclosure proof.

        Args:
            request: Proof, public signals, DSC PEM and circuit id.

        Returns:
            VerificationReport; ``report.verified`` is the verdict.

        Raises:
            MalformedSignalsError: Signals do not fit the circuit layout.
            CertificateParseError: DSC cannot be parsed.
            UnknownVerificationKeyError: No key for circuit/algorithm/hash.
            ProofVerifierUnavailableError: Delegated verifier gave no verdict.
        """
        now = self.clock() if self.clock is not None else None
        report = VerificationReport()

        # ---------------------------------------------------------------------
        # Structural parsing (fatal)
        # ---------------------------------------------------------------------
        signals = parse_public_signals(
            request.proof.public_signals,
            request.circuit_id,
            request.circuit_version,
        )
        dsc = self.certificate_parser.parse(request.certificate_pem)
        registry = self.key_registry or get_vkey_registry()
        vkey = registry.get(request.circuit_id, dsc.signature_algorithm, dsc.hash_function)
        log.info(
            f"verify: circuit={request.circuit_id} v{signals.layout.version} "
            f"alg={dsc.signature_algorithm} hash={dsc.hash_function}",
            extra={"circuit": request.circuit_id},
        )

        # ---------------------------------------------------------------------
        # Semantic checks (reported)
        # ---------------------------------------------------------------------
        self._check_scope(signals, report)
        self._check_current_date(signals, report, now)

        revealed = unpack_reveal(signals.revealed_data_packed)
        before = len(report.failures)
        evaluate_requirements(revealed, self.requirements, report)
        self._emit("requirements", len(report.failures) == before)

        verifier = self.proof_verifier or get_proof_verifier()
        if await verify_proof(verifier, vkey, signals.raw, request.proof.proof):
            self._emit("proof", True)
        else:
            report.fail("proof", "zero-knowledge proof did not verify")
            self._emit("proof", False)

        report.nullifier = to_fixed_hex(signals.nullifier)
        report.user_identifier = to_fixed_hex(signals.user_identifier)

        reasons = validate_certificate(dsc, self.validity_policy, self.trust_store, now)
        if reasons:
            report.fail("certificate", "; ".join(reasons))
        self._emit("certificate", not reasons, "; ".join(reasons) or None)

        mismatch = check_modulus_consistency(
            dsc.modulus,
            signals.pubkey,
            signals.layout.pubkey_word_size,
            signals.layout.pubkey_word_count,
        )
        if mismatch is not None:
            report.fail(
                "modulus",
                mismatch,
                observed=format(words_to_int(signals.pubkey, signals.layout.pubkey_word_size), "x"),
                expected=format(dsc.modulus, "x") if dsc.modulus is not None else None,
            )
        self._emit("modulus", mismatch is None, mismatch)

        log.info(f"verify complete: verified={report.verified} failed={report.failed_attributes}")
        return report

    def _check_scope(self, signals: PublicSignals, report: VerificationReport) -> None:
        observed = int_to_scope(signals.scope)
        if observed != self.scope:
            report.fail(
                "scope",
                "proof was generated for a different scope",
                observed=observed if observed is not None else str(signals.scope),
                expected=self.scope,
            )
            self._emit("scope", False)
        else:
            self._emit("scope", True)

    def _check_current_date(
        self,
        signals: PublicSignals,
        report: VerificationReport,
        now: Optional[datetime],
    ) -> None:
        expected = current_date_signals(now)
        if tuple(signals.current_date) != expected:
            report.fail(
                "current_date",
                "proof current date is not today",
                observed=_date_str(signals.current_date),
                expected=_date_str(expected),
            )
            self._emit("current_date", False)
        else:
            self._emit("current_date", True)
