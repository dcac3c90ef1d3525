"""Disclosure requirement evaluation.

A requirement pins one disclosed attribute to an expected value. Country
fields are compared through the country table; everything else must match the
revealed characters exactly.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple, Union

from .country_codes import country_matches, normalize_country_code
from .report import VerificationReport
from .reveal import Attribute, NOT_REVEALED, extract_attribute

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Requirement:
    """Caller constraint on one disclosed attribute."""
    attribute: Attribute
    expected: str


def parse_requirements(
    pairs: Iterable[Union[Requirement, Sequence[str]]],
) -> Tuple[Requirement, ...]:
    """Convert (attribute, value) pairs to Requirements.

    Raises:
        UnknownAttributeError: If any attribute name is not registered.
        ValueError: If an item is not a pair.
    """
    result: List[Requirement] = []
    for item in pairs:
        if isinstance(item, Requirement):
            result.append(item)
            continue
        if len(item) != 2:
            raise ValueError(f"requirement must be an (attribute, value) pair: {item!r}")
        attribute, expected = item
        result.append(Requirement(attribute=Attribute.parse(attribute), expected=str(expected)))
    return tuple(result)


def evaluate_requirement(revealed: Sequence[str], requirement: Requirement) -> Tuple[bool, str]:
    """Check one requirement against the decoded reveal.

    Returns:
        (passed, observed value)
    """
    observed = extract_attribute(revealed, requirement.attribute)
    if requirement.attribute.is_country_code:
        return country_matches(observed, requirement.expected), observed
    return observed == requirement.expected, observed


def evaluate_requirements(
    revealed: Sequence[str],
    requirements: Iterable[Requirement],
    report: VerificationReport,
) -> None:
    """Evaluate every requirement, recording each mismatch in the report."""
    for requirement in requirements:
        passed, observed = evaluate_requirement(revealed, requirement)
        name = requirement.attribute.value
        if passed:
            log.info(f"  requirement {name} satisfied")
            continue

        if NOT_REVEALED in observed:
            reason = f"{name} was not disclosed"
        elif requirement.attribute.is_country_code and normalize_country_code(observed) is None:
            reason = f"{name} code {observed!r} is not a known country"
        else:
            reason = f"{name} does not match"
        report.fail(
            name,
            reason,
            observed=observed.replace(NOT_REVEALED, ""),
            expected=requirement.expected,
        )
        log.info(f"  requirement {name} FAILED: {reason}")
