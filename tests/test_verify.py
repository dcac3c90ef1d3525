"""Unit tests for verification orchestration."""

import asyncio
from datetime import timedelta

import pytest

from app.zkpassport.certificate import CscaTrustStore, ValidityPolicy
from app.zkpassport.exceptions import (
    CertificateParseError,
    MalformedSignalsError,
    ProofVerifierUnavailableError,
    UnknownAttributeError,
    UnknownVerificationKeyError,
)
from app.zkpassport.proof import VerificationKeyRegistry
from app.zkpassport.report import VerificationReport
from app.zkpassport.signals import to_fixed_hex
from app.zkpassport.verify import PassportVerifier, VerificationEvent

from conftest import (
    NOW,
    SCOPE,
    VKEY,
    FakeProofVerifier,
    build_certificate,
    build_request,
    build_signals,
    mrz,
    to_pem,
)


@pytest.fixture
def make_verifier(accepting_verifier, key_registry):
    def _make(**kwargs):
        kwargs.setdefault("proof_verifier", accepting_verifier)
        kwargs.setdefault("key_registry", key_registry)
        kwargs.setdefault("clock", lambda: NOW)
        kwargs.setdefault("validity_policy", ValidityPolicy())
        return PassportVerifier(kwargs.pop("scope", SCOPE), **kwargs)
    return _make


# =============================================================================
# Report
# =============================================================================


class TestVerificationReport:

    def test_empty_report_is_verified(self):
        assert VerificationReport().verified

    def test_any_failure_is_not_verified(self):
        report = VerificationReport()
        report.fail("proof", "bad")
        assert not report.verified
        assert report.has_failed("proof")

    def test_failed_attribute_names_unique_in_order(self):
        report = VerificationReport()
        report.fail("scope", "a")
        report.fail("nationality", "b")
        report.fail("scope", "c")
        assert report.failed_attributes == ["scope", "nationality"]

    def test_to_response(self):
        report = VerificationReport(nullifier="aa", user_identifier="bb")
        report.fail("scope", "different", observed="x", expected="y")
        response = report.to_response()
        assert response.verified is False
        assert response.failures[0].attribute == "scope"
        assert response.failures[0].observed == "x"
        assert response.nullifier == "aa"


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:

    def test_defaults(self):
        from app.core.config import DEFAULT_RPC_URL, PASSPORT_ATTESTATION_ID

        verifier = PassportVerifier("scope")
        assert verifier.attestation_id == PASSPORT_ATTESTATION_ID
        assert verifier.rpc_url == DEFAULT_RPC_URL
        assert verifier.requirements == ()
        assert verifier.dev_mode is False
        assert verifier.validity_policy.enforce_window

    def test_unknown_requirement_rejected_at_construction(self):
        with pytest.raises(UnknownAttributeError):
            PassportVerifier("scope", requirements=[["favourite_colour", "blue"]])

    def test_dev_mode_policy(self):
        verifier = PassportVerifier("scope", dev_mode=True)
        assert verifier.validity_policy.accept_dev_anchors


# =============================================================================
# verify()
# =============================================================================


class TestVerify:

    @pytest.mark.asyncio
    async def test_all_checks_pass(self, make_verifier, dsc_pem, dsc_modulus, accepting_verifier):
        verifier = make_verifier(requirements=[["nationality", "FRA"], ["older_than", "18"]])
        signals = build_signals(dsc_modulus)
        report = await verifier.verify(build_request(signals, dsc_pem))

        assert report.verified
        assert report.failures == []
        assert report.nullifier == to_fixed_hex(0xABCDEF)
        assert report.user_identifier == to_fixed_hex(0x1234)
        assert len(report.nullifier) == 64

        # the delegate saw the key and the untouched signals
        key, public_signals, proof = accepting_verifier.calls[0]
        assert key is VKEY
        assert public_signals == signals
        assert proof == {"pi_a": ["1", "2", "1"]}

    @pytest.mark.asyncio
    async def test_scope_mismatch_other_checks_still_run(self, make_verifier, dsc_pem, dsc_modulus,
                                                         accepting_verifier):
        verifier = make_verifier(requirements=[["nationality", "DEU"]])
        signals = build_signals(dsc_modulus, scope="another-app")
        report = await verifier.verify(build_request(signals, dsc_pem))

        assert report.failed_attributes == ["scope", "nationality"]
        scope_failure = report.failures[0]
        assert scope_failure.observed == "another-app"
        assert scope_failure.expected == SCOPE
        assert report.nullifier is not None
        assert report.user_identifier is not None
        assert len(accepting_verifier.calls) == 1

    @pytest.mark.asyncio
    async def test_stale_date(self, make_verifier, dsc_pem, dsc_modulus):
        verifier = make_verifier()
        signals = build_signals(dsc_modulus, now=NOW - timedelta(days=1))
        report = await verifier.verify(build_request(signals, dsc_pem))

        assert report.failed_attributes == ["current_date"]
        assert report.failures[0].observed == "261018"
        assert report.failures[0].expected == "261019"

    @pytest.mark.asyncio
    async def test_requirement_example(self, make_verifier, dsc_pem, dsc_modulus):
        verifier = make_verifier(requirements=[["nationality", "FRA"]])

        fra = build_signals(dsc_modulus, revealed=mrz(nationality="FRA"))
        assert (await verifier.verify(build_request(fra, dsc_pem))).verified

        deu = build_signals(dsc_modulus, revealed=mrz(nationality="DEU"))
        report = await verifier.verify(build_request(deu, dsc_pem))
        assert report.failed_attributes == ["nationality"]

    @pytest.mark.asyncio
    async def test_invalid_proof_is_reported(self, make_verifier, rejecting_verifier, dsc_pem,
                                             dsc_modulus):
        verifier = make_verifier(proof_verifier=rejecting_verifier)
        report = await verifier.verify(build_request(build_signals(dsc_modulus), dsc_pem))

        assert report.failed_attributes == ["proof"]
        assert report.failures[0].observed is None
        assert report.nullifier == to_fixed_hex(0xABCDEF)

    @pytest.mark.asyncio
    async def test_tampered_pubkey_word(self, make_verifier, dsc_pem, dsc_modulus):
        verifier = make_verifier()
        signals = build_signals(dsc_modulus)
        signals[5 + 7] = str(int(signals[5 + 7]) ^ 0xFF)
        report = await verifier.verify(build_request(signals, dsc_pem))

        assert report.failed_attributes == ["modulus"]
        failure = report.failures[0]
        assert "key word 7" in failure.reason
        assert failure.expected == format(dsc_modulus, "x")
        assert failure.observed != failure.expected

    @pytest.mark.asyncio
    async def test_unrelated_certificate(self, make_verifier, dsc_modulus, csca_key):
        from cryptography.hazmat.primitives.asymmetric import rsa

        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        other_pem = to_pem(build_certificate(other_key, "DSC Other", csca_key, "CSCA France"))
        verifier = make_verifier()
        report = await verifier.verify(build_request(build_signals(dsc_modulus), other_pem))

        assert report.failed_attributes == ["modulus"]

    @pytest.mark.asyncio
    async def test_expired_certificate_reported(self, make_verifier, dsc_key, csca_key,
                                                dsc_modulus):
        expired = to_pem(build_certificate(
            dsc_key, "DSC", csca_key, "CSCA",
            not_before=NOW - timedelta(days=900),
            not_after=NOW - timedelta(days=30),
        ))
        verifier = make_verifier()
        report = await verifier.verify(build_request(build_signals(dsc_modulus), expired))

        assert report.failed_attributes == ["certificate"]
        assert "expired" in report.failures[0].reason

    @pytest.mark.asyncio
    async def test_expired_certificate_dev_mode(self, accepting_verifier, key_registry, dsc_key,
                                                csca_key, dsc_modulus):
        expired = to_pem(build_certificate(
            dsc_key, "DSC", csca_key, "CSCA",
            not_before=NOW - timedelta(days=900),
            not_after=NOW - timedelta(days=30),
        ))
        verifier = PassportVerifier(
            SCOPE,
            dev_mode=True,
            proof_verifier=accepting_verifier,
            key_registry=key_registry,
            clock=lambda: NOW,
        )
        report = await verifier.verify(build_request(build_signals(dsc_modulus), expired))
        assert report.verified

    @pytest.mark.asyncio
    async def test_untrusted_issuer_reported(self, make_verifier, dsc_pem, dsc_modulus):
        from cryptography.hazmat.primitives.asymmetric import rsa

        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        other_csca = build_certificate(other_key, "CSCA Other", other_key, "CSCA Other", ca=True)
        verifier = make_verifier(trust_store=CscaTrustStore([other_csca]))
        report = await verifier.verify(build_request(build_signals(dsc_modulus), dsc_pem))

        assert report.failed_attributes == ["certificate"]

    @pytest.mark.asyncio
    async def test_every_failure_reported(self, make_verifier, rejecting_verifier, dsc_pem,
                                          dsc_modulus):
        verifier = make_verifier(
            proof_verifier=rejecting_verifier,
            requirements=[["nationality", "USA"], ["older_than", "21"]],
        )
        signals = build_signals(dsc_modulus, scope="other", now=NOW - timedelta(days=3))
        signals[5] = "0"
        report = await verifier.verify(build_request(signals, dsc_pem))

        assert report.failed_attributes == [
            "scope", "current_date", "nationality", "older_than", "proof", "modulus",
        ]
        assert report.nullifier is not None

    @pytest.mark.asyncio
    async def test_events_emitted(self, make_verifier, dsc_pem, dsc_modulus):
        events = []
        verifier = make_verifier(on_event=events.append)
        await verifier.verify(build_request(build_signals(dsc_modulus, scope="x"), dsc_pem))

        assert [e.stage for e in events] == [
            "scope", "current_date", "requirements", "proof", "certificate", "modulus",
        ]
        assert events[0] == VerificationEvent(stage="scope", passed=False)
        assert all(e.passed for e in events[1:])


class TestVerifyFatal:

    @pytest.mark.asyncio
    async def test_short_signals(self, make_verifier, dsc_pem, dsc_modulus, accepting_verifier):
        signals = build_signals(dsc_modulus)[:40]
        with pytest.raises(MalformedSignalsError):
            await make_verifier().verify(build_request(signals, dsc_pem))
        assert accepting_verifier.calls == []

    @pytest.mark.asyncio
    async def test_unknown_circuit(self, make_verifier, dsc_pem, dsc_modulus):
        request = build_request(build_signals(dsc_modulus), dsc_pem, circuit="register")
        with pytest.raises(MalformedSignalsError):
            await make_verifier().verify(request)

    @pytest.mark.asyncio
    async def test_bad_certificate(self, make_verifier, dsc_modulus):
        request = build_request(build_signals(dsc_modulus), "not a certificate")
        with pytest.raises(CertificateParseError):
            await make_verifier().verify(request)

    @pytest.mark.asyncio
    async def test_no_verification_key(self, make_verifier, dsc_pem, dsc_modulus):
        verifier = make_verifier(key_registry=VerificationKeyRegistry())
        with pytest.raises(UnknownVerificationKeyError):
            await verifier.verify(build_request(build_signals(dsc_modulus), dsc_pem))

    @pytest.mark.asyncio
    async def test_verifier_unavailable_propagates(self, make_verifier, dsc_pem, dsc_modulus):
        class BrokenVerifier:
            async def verify(self, key, public_signals, proof):
                raise ProofVerifierUnavailableError("snarkjs crashed")

        verifier = make_verifier(proof_verifier=BrokenVerifier())
        with pytest.raises(ProofVerifierUnavailableError):
            await verifier.verify(build_request(build_signals(dsc_modulus), dsc_pem))


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_parallel_calls_are_independent(self, make_verifier, dsc_pem, dsc_modulus):
        class SlowVerifier:
            async def verify(self, key, public_signals, proof):
                await asyncio.sleep(0.01)
                return proof["ok"]

        verifier = make_verifier(proof_verifier=SlowVerifier())

        def request(i):
            req = build_request(build_signals(dsc_modulus, nullifier=i), dsc_pem)
            req.proof.proof = {"ok": i % 2 == 0}
            return req

        reports = await asyncio.gather(*(verifier.verify(request(i)) for i in range(6)))

        for i, report in enumerate(reports):
            assert report.nullifier == to_fixed_hex(i)
            assert report.verified is (i % 2 == 0)
