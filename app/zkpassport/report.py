"""Verification report accumulated over one verification run.

Every semantic check records its failure here and the run carries on, so a
caller sees all the reasons a credential was rejected, not only the first.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .api_models import FailureDetail, VerifyResponse


@dataclass(frozen=True)
class FailedAttribute:
    """One failed check.

    observed/expected are set for checks that compare values (scope,
    current_date, requirements, modulus); boolean checks (proof,
    certificate) carry a reason only.
    """
    attribute: str
    reason: str
    observed: Optional[str] = None
    expected: Optional[str] = None


@dataclass
class VerificationReport:
    """Accumulates failures and extracted identifiers.

    Owned by a single verify() call until returned to the caller.
    """

    failures: List[FailedAttribute] = field(default_factory=list)
    nullifier: Optional[str] = None
    user_identifier: Optional[str] = None

    def fail(
        self,
        attribute: str,
        reason: str,
        observed: Optional[str] = None,
        expected: Optional[str] = None,
    ) -> None:
        """Record a failed attribute."""
        self.failures.append(
            FailedAttribute(
                attribute=attribute,
                reason=reason,
                observed=observed,
                expected=expected,
            )
        )

    @property
    def verified(self) -> bool:
        """True iff no check failed."""
        return not self.failures

    @property
    def failed_attributes(self) -> List[str]:
        """Names of failed attributes in first-failure order, without repeats."""
        seen: List[str] = []
        for failure in self.failures:
            if failure.attribute not in seen:
                seen.append(failure.attribute)
        return seen

    def has_failed(self, attribute: str) -> bool:
        return any(f.attribute == attribute for f in self.failures)

    def to_response(self) -> VerifyResponse:
        return VerifyResponse(
            verified=self.verified,
            failures=[
                FailureDetail(
                    attribute=f.attribute,
                    reason=f.reason,
                    observed=f.observed,
                    expected=f.expected,
                )
                for f in self.failures
            ],
            nullifier=self.nullifier,
            user_identifier=self.user_identifier,
        )
