"""
Mnemonic Phrases - BIP-39 generation and validation.

Phrases are generated from the operating system's CSPRNG and checked
against the BIP-39 English wordlist and checksum. A failing entropy source
is fatal: there is no fallback to a weaker generator.
"""

import logging
import secrets
from typing import Callable, Optional

from mnemonic import Mnemonic

from .errors import EntropyUnavailable, GenerationError, InputValidationError, InvalidMnemonic

logger = logging.getLogger(__name__)


# Word count -> entropy bits (checksum is entropy_bits / 32)
WORD_COUNT_ENTROPY_BITS = {
    12: 128,
    15: 160,
    18: 192,
    21: 224,
    24: 256,
}

DEFAULT_WORD_COUNT = 12

_MNEMO = Mnemonic("english")


def wordlist() -> list[str]:
    """The BIP-39 English wordlist (2048 words)."""
    return list(_MNEMO.wordlist)


def split_words(phrase: str) -> list[str]:
    """Split a phrase into normalized (lowercase) words."""
    return phrase.strip().lower().split()


def entropy_bytes_for(word_count: int) -> int:
    """Entropy size in bytes for a given word count."""
    if word_count not in WORD_COUNT_ENTROPY_BITS:
        raise InputValidationError(
            f"word_count must be one of {sorted(WORD_COUNT_ENTROPY_BITS)}, got {word_count}"
        )
    return WORD_COUNT_ENTROPY_BITS[word_count] // 8


def generate_mnemonic(
    word_count: int = DEFAULT_WORD_COUNT,
    entropy_source: Optional[Callable[[int], bytes]] = None
) -> str:
    """
    Generate a fresh checksum-valid mnemonic phrase.

    Args:
        word_count: 12, 15, 18, 21 or 24
        entropy_source: Callable returning n random bytes (default: secrets.token_bytes)

    Raises:
        EntropyUnavailable: If the entropy source fails or returns short data
        GenerationError: If the generated phrase fails self-validation
    """
    n_bytes = entropy_bytes_for(word_count)
    source = entropy_source or secrets.token_bytes

    try:
        entropy = source(n_bytes)
    except (OSError, NotImplementedError) as e:
        logger.error(f"Entropy source failed: {e.__class__.__name__}")
        raise EntropyUnavailable("Secure entropy source is unavailable") from e

    if not isinstance(entropy, (bytes, bytearray)) or len(entropy) != n_bytes:
        raise EntropyUnavailable(
            f"Entropy source returned {len(entropy) if entropy else 0} bytes, expected {n_bytes}"
        )

    entropy = bytearray(entropy)
    try:
        phrase = _MNEMO.to_mnemonic(bytes(entropy))
    except ValueError as e:
        raise GenerationError("Failed to encode entropy as mnemonic") from e
    finally:
        for i in range(len(entropy)):
            entropy[i] = 0

    if len(phrase.split()) != word_count or not _MNEMO.check(phrase):
        raise GenerationError("Generated mnemonic failed checksum self-validation")

    return phrase


def is_valid_mnemonic(phrase: str) -> bool:
    """Check word count, wordlist membership and checksum."""
    if not isinstance(phrase, str):
        return False
    words = split_words(phrase)
    if len(words) not in WORD_COUNT_ENTROPY_BITS:
        return False
    try:
        return _MNEMO.check(" ".join(words))
    except (ValueError, LookupError):
        return False


def validate_mnemonic(phrase: str) -> str:
    """
    Validate a user-supplied phrase and return its canonical form.

    Raises:
        InvalidMnemonic: Empty input, wrong word count, unknown words or bad checksum
    """
    if not isinstance(phrase, str) or not phrase.strip():
        raise InvalidMnemonic("Mnemonic cannot be empty")

    words = split_words(phrase)
    if len(words) not in WORD_COUNT_ENTROPY_BITS:
        raise InvalidMnemonic(f"Invalid word count: {len(words)}")

    known = set(_MNEMO.wordlist)
    unknown = sum(1 for w in words if w not in known)
    if unknown:
        # Count only: the words themselves may be secret
        raise InvalidMnemonic(f"Mnemonic contains {unknown} unknown word(s)")

    canonical = " ".join(words)
    if not _MNEMO.check(canonical):
        raise InvalidMnemonic("Invalid mnemonic checksum")

    return canonical


def mnemonic_to_seed(phrase: str, passphrase: str = "") -> bytes:
    """BIP-39 seed (PBKDF2-HMAC-SHA512, 2048 rounds) for a validated phrase."""
    return Mnemonic.to_seed(validate_mnemonic(phrase), passphrase=passphrase)
