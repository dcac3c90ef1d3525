"""
Public signal decoding for the passport disclosure circuits.

The circuit emits a flat list of decimal field elements. Which element means
what is a contract of the (circuit, version) pair, recorded here as a
CircuitLayout rather than as offsets scattered through the verifier.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.config import (
    CURRENT_DATE_DIGITS,
    MAX_SCOPE_BYTES,
    PUBKEY_WORD_COUNT,
    PUBKEY_WORD_SIZE_BITS,
    REVEAL_PACKED_WORDS,
    SNARK_SCALAR_FIELD,
)
from app.zkpassport.exceptions import MalformedSignalsError


@dataclass(frozen=True)
class CircuitLayout:
    """Field layout of one circuit version.

    Each field is a half-open (start, stop) slice into the signal list.
    """
    circuit: str
    version: int
    arity: int
    fields: Dict[str, Tuple[int, int]]
    pubkey_word_size: int = PUBKEY_WORD_SIZE_BITS
    pubkey_word_count: int = PUBKEY_WORD_COUNT

    def slice(self, signals: Sequence, name: str) -> list:
        start, stop = self.fields[name]
        return list(signals[start:stop])


def _sequential_layout(circuit: str, version: int, widths: List[Tuple[str, int]]) -> CircuitLayout:
    fields = {}
    offset = 0
    for name, width in widths:
        fields[name] = (offset, offset + width)
        offset += width
    return CircuitLayout(circuit=circuit, version=version, arity=offset, fields=fields)


PROVE_V1 = _sequential_layout("prove", 1, [
    ("signature_algorithm", 1),
    ("revealed_data_packed", REVEAL_PACKED_WORDS),
    ("nullifier", 1),
    ("pubkey", PUBKEY_WORD_COUNT),
    ("scope", 1),
    ("current_date", CURRENT_DATE_DIGITS),
    ("user_identifier", 1),
])

# (circuit, version) -> layout
LAYOUTS: Dict[Tuple[str, int], CircuitLayout] = {
    (PROVE_V1.circuit, PROVE_V1.version): PROVE_V1,
}

# circuit -> version used when the request does not name one
CURRENT_VERSIONS: Dict[str, int] = {
    "prove": 1,
}


def get_layout(circuit: str, version: Optional[int] = None) -> CircuitLayout:
    """Resolve the layout for a circuit version.

    Raises:
        MalformedSignalsError: If no layout is registered.
    """
    if version is None:
        version = CURRENT_VERSIONS.get(circuit)
        if version is None:
            raise MalformedSignalsError.unknown_layout(circuit)
    layout = LAYOUTS.get((circuit, version))
    if layout is None:
        raise MalformedSignalsError.unknown_layout(circuit, version)
    return layout


@dataclass(frozen=True)
class PublicSignals:
    """Public signals decoded into named fields."""
    layout: CircuitLayout
    raw: Tuple[str, ...]
    signature_algorithm: int
    revealed_data_packed: Tuple[int, ...]
    nullifier: int
    pubkey: Tuple[int, ...]
    scope: int
    current_date: Tuple[int, ...]
    user_identifier: int


def parse_public_signals(
    signals: Sequence[str],
    circuit: str,
    version: Optional[int] = None,
) -> PublicSignals:
    """Decode the public signals of a proof.

    Args:
        signals: Decimal-string field elements in circuit order.
        circuit: Circuit identifier (e.g. "prove").
        version: Layout version; defaults to the circuit's current version.

    Returns:
        PublicSignals with every field converted to int.

    Raises:
        MalformedSignalsError: Unknown layout, wrong length, or a value that
            is not a decimal integer.

    Note:
        No semantic checks happen here. Scope, date and key material are
        compared by the verifier.
    """
    layout = get_layout(circuit, version)
    if len(signals) != layout.arity:
        raise MalformedSignalsError.arity(circuit, layout.version, layout.arity, len(signals))

    values = [_to_int(i, s) for i, s in enumerate(signals)]

    return PublicSignals(
        layout=layout,
        raw=tuple(str(s) for s in signals),
        signature_algorithm=layout.slice(values, "signature_algorithm")[0],
        revealed_data_packed=tuple(layout.slice(values, "revealed_data_packed")),
        nullifier=layout.slice(values, "nullifier")[0],
        pubkey=tuple(layout.slice(values, "pubkey")),
        scope=layout.slice(values, "scope")[0],
        current_date=tuple(layout.slice(values, "current_date")),
        user_identifier=layout.slice(values, "user_identifier")[0],
    )


def _to_int(index: int, value) -> int:
    # bool is an int subclass; JSON true/false is never a field element
    if isinstance(value, bool):
        raise MalformedSignalsError.not_decimal(index, value)
    if isinstance(value, int):
        if value < 0:
            raise MalformedSignalsError.not_decimal(index, value)
        number = value
    elif isinstance(value, str) and value.isascii() and value.isdigit():
        number = int(value)
    else:
        raise MalformedSignalsError.not_decimal(index, value)
    if number >= SNARK_SCALAR_FIELD:
        raise MalformedSignalsError.out_of_field(index)
    return number


# =============================================================================
# Encodings shared with the circuit
# =============================================================================


def scope_to_int(scope: str) -> int:
    """Pack a scope string into a field element (big-endian ASCII bytes)."""
    data = scope.encode("ascii")
    if len(data) > MAX_SCOPE_BYTES:
        raise ValueError(f"scope longer than {MAX_SCOPE_BYTES} bytes: {scope!r}")
    return int.from_bytes(data, "big")


def int_to_scope(value: int) -> Optional[str]:
    """Unpack a scope field element. Returns None if it is not ASCII text."""
    if value < 0:
        return None
    length = (value.bit_length() + 7) // 8
    if length > MAX_SCOPE_BYTES:
        return None
    try:
        return value.to_bytes(length, "big").decode("ascii")
    except UnicodeDecodeError:
        return None


def to_fixed_hex(value: int) -> str:
    """Render a field element as 64 lowercase hex digits.

    Parsed signals are below SNARK_SCALAR_FIELD (< 2**254), so the width is fixed.
    """
    return format(value, "064x")


def current_date_signals(now: Optional[datetime] = None) -> Tuple[int, ...]:
    """Current UTC date as the six YYMMDD digits the circuit discloses."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        # naive clocks are taken to be UTC, not local time
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)
    return tuple(int(c) for c in now.strftime("%y%m%d"))
