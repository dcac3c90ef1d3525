"""DSC modulus consistency check.

The proof commits to the RSA modulus it was generated against as fixed-width
words. Re-encoding the presented certificate's modulus the same way and
comparing word by word binds the proof to that certificate.
"""

from typing import List, Optional, Sequence

from app.core.config import PUBKEY_WORD_COUNT, PUBKEY_WORD_SIZE_BITS


def split_to_words(
    value: int,
    word_size: int = PUBKEY_WORD_SIZE_BITS,
    word_count: int = PUBKEY_WORD_COUNT,
) -> List[int]:
    """Split a non-negative integer into little-endian words.

    Raises:
        ValueError: If the value is negative or needs more than
            word_size * word_count bits.
    """
    if value < 0:
        raise ValueError("cannot split a negative integer")
    if value.bit_length() > word_size * word_count:
        raise ValueError(
            f"{value.bit_length()}-bit value does not fit in "
            f"{word_count} words of {word_size} bits"
        )
    mask = (1 << word_size) - 1
    return [(value >> (word_size * i)) & mask for i in range(word_count)]


def words_to_int(words: Sequence[int], word_size: int = PUBKEY_WORD_SIZE_BITS) -> int:
    """Inverse of split_to_words."""
    value = 0
    for i, word in enumerate(words):
        value |= int(word) << (word_size * i)
    return value


def check_modulus_consistency(
    modulus: Optional[int],
    pubkey_words: Sequence[int],
    word_size: int = PUBKEY_WORD_SIZE_BITS,
    word_count: int = PUBKEY_WORD_COUNT,
) -> Optional[str]:
    """Compare a certificate modulus with the proof's public key words.

    Args:
        modulus: RSA modulus of the DSC, or None for a non-RSA key.
        pubkey_words: Words taken from the public signals.
        word_size: Bits per word of the circuit version.
        word_count: Words per key of the circuit version.

    Returns:
        None if they match, otherwise a reason string.
    """
    if modulus is None:
        return "certificate public key is not RSA"
    if len(pubkey_words) != word_count:
        return f"proof carries {len(pubkey_words)} key words, expected {word_count}"
    try:
        expected = split_to_words(modulus, word_size, word_count)
    except ValueError as e:
        return f"certificate modulus does not fit the circuit: {e}"

    for i, (want, got) in enumerate(zip(expected, pubkey_words)):
        if want != int(got):
            return f"key word {i} differs from certificate modulus"
    return None
