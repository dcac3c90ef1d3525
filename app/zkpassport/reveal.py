"""Selective disclosure bitmap decoding.

The circuit packs the revealed MRZ characters (plus the older_than and ofac
outputs) into three field elements of 31 bytes each, least significant byte
first. Positions the prover did not reveal decode to NOT_REVEALED.
"""

from enum import Enum
from typing import List, Sequence, Tuple, Union

from app.core.config import REVEAL_BYTES_PER_WORD
from app.zkpassport.exceptions import UnknownAttributeError

NOT_REVEALED = "\x00"


class Attribute(str, Enum):
    """Disclosable passport attributes and their inclusive reveal ranges."""

    ISSUING_STATE = "issuing_state"
    NAME = "name"
    PASSPORT_NUMBER = "passport_number"
    NATIONALITY = "nationality"
    DATE_OF_BIRTH = "date_of_birth"
    GENDER = "gender"
    EXPIRY_DATE = "expiry_date"
    OLDER_THAN = "older_than"
    OFAC = "ofac"

    @property
    def position(self) -> Tuple[int, int]:
        return ATTRIBUTE_POSITIONS[self]

    @property
    def is_country_code(self) -> bool:
        return self in COUNTRY_CODE_ATTRIBUTES

    @classmethod
    def parse(cls, name: Union[str, "Attribute"]) -> "Attribute":
        """Resolve an attribute name.

        Raises:
            UnknownAttributeError: If the name is not registered.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownAttributeError(str(name)) from None


# Positions in the TD3 MRZ (88 chars) followed by the circuit outputs
ATTRIBUTE_POSITIONS = {
    Attribute.ISSUING_STATE: (2, 4),
    Attribute.NAME: (5, 43),
    Attribute.PASSPORT_NUMBER: (44, 52),
    Attribute.NATIONALITY: (54, 56),
    Attribute.DATE_OF_BIRTH: (57, 62),
    Attribute.GENDER: (64, 64),
    Attribute.EXPIRY_DATE: (65, 70),
    Attribute.OLDER_THAN: (88, 89),
    Attribute.OFAC: (90, 90),
}

COUNTRY_CODE_ATTRIBUTES = frozenset({Attribute.ISSUING_STATE, Attribute.NATIONALITY})


def unpack_reveal(packed: Sequence[Union[int, str]]) -> List[str]:
    """Unpack revealed-data words into one character per position.

    Every word yields exactly REVEAL_BYTES_PER_WORD characters, whatever its
    value; bits above the 31st byte are ignored.
    """
    chars: List[str] = []
    for word in packed:
        value = int(word)
        for byte_index in range(REVEAL_BYTES_PER_WORD):
            chars.append(chr((value >> (8 * byte_index)) & 0xFF))
    return chars


def pack_reveal(chars: str, words: int = 3) -> List[str]:
    """Inverse of unpack_reveal, used to build disclosure fixtures."""
    width = REVEAL_BYTES_PER_WORD
    padded = chars.ljust(words * width, NOT_REVEALED)
    if len(padded) > words * width:
        raise ValueError(f"at most {words * width} characters fit in {words} words")
    packed = []
    for w in range(words):
        value = 0
        for i, ch in enumerate(padded[w * width:(w + 1) * width]):
            value |= (ord(ch) & 0xFF) << (8 * i)
        packed.append(str(value))
    return packed


def extract_attribute(revealed: Sequence[str], attribute: Union[str, Attribute]) -> str:
    """Concatenate the revealed characters in the attribute's range."""
    start, end = Attribute.parse(attribute).position
    return "".join(revealed[start:end + 1])
