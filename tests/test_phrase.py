"""
Tests for wallet.phrase - mnemonic generation and validation.
"""

import pytest

from wallet.errors import EntropyUnavailable, InputValidationError, InvalidMnemonic
from wallet.phrase import (
    generate_mnemonic,
    is_valid_mnemonic,
    mnemonic_to_seed,
    split_words,
    validate_mnemonic,
    wordlist,
)

from conftest import TEST_MNEMONIC, zero_entropy


class TestGeneration:

    def test_default_is_twelve_valid_words(self):
        phrase = generate_mnemonic()
        assert len(phrase.split()) == 12
        assert is_valid_mnemonic(phrase)

    @pytest.mark.parametrize("count", [12, 15, 18, 21, 24])
    def test_word_counts(self, count):
        phrase = generate_mnemonic(count)
        assert len(phrase.split()) == count
        assert is_valid_mnemonic(phrase)

    def test_words_come_from_wordlist(self):
        words = set(wordlist())
        assert len(words) == 2048
        assert all(w in words for w in generate_mnemonic().split())

    def test_injected_entropy_is_deterministic(self):
        assert generate_mnemonic(entropy_source=zero_entropy) == TEST_MNEMONIC

    def test_unsupported_word_count(self):
        with pytest.raises(InputValidationError):
            generate_mnemonic(13)

    def test_entropy_failure_is_fatal(self):
        def broken(n):
            raise OSError("no randomness")

        with pytest.raises(EntropyUnavailable):
            generate_mnemonic(entropy_source=broken)

    def test_short_entropy_is_rejected(self):
        with pytest.raises(EntropyUnavailable):
            generate_mnemonic(entropy_source=lambda n: b"\x00" * (n - 1))

    def test_fresh_phrases_differ(self):
        assert generate_mnemonic() != generate_mnemonic()


class TestValidation:

    def test_canonical_form(self):
        messy = "  " + TEST_MNEMONIC.upper().replace(" ", "   ") + "\n"
        assert validate_mnemonic(messy) == TEST_MNEMONIC

    @pytest.mark.parametrize("phrase", ["", "   ", None])
    def test_empty(self, phrase):
        with pytest.raises(InvalidMnemonic, match="empty"):
            validate_mnemonic(phrase)

    def test_wrong_word_count(self):
        with pytest.raises(InvalidMnemonic, match="word count"):
            validate_mnemonic("abandon " * 10 + "about")

    def test_unknown_word_count_only(self):
        phrase = TEST_MNEMONIC.replace("about", "zzzzzz")
        with pytest.raises(InvalidMnemonic) as exc:
            validate_mnemonic(phrase)
        assert "1 unknown" in exc.value.message
        assert "zzzzzz" not in exc.value.message

    def test_bad_checksum(self):
        with pytest.raises(InvalidMnemonic, match="checksum"):
            validate_mnemonic("abandon " * 12)

    def test_error_code(self):
        with pytest.raises(InvalidMnemonic) as exc:
            validate_mnemonic("abandon " * 12)
        assert exc.value.code == "INVALID_MNEMONIC"

    def test_is_valid_handles_garbage(self):
        assert not is_valid_mnemonic(12345)
        assert not is_valid_mnemonic("hello world")

    def test_split_words(self):
        assert split_words("  Abandon  ABOUT ") == ["abandon", "about"]


class TestSeed:

    def test_known_seed(self):
        seed = mnemonic_to_seed(TEST_MNEMONIC)
        assert len(seed) == 64
        assert seed.hex().startswith("5eb00bbddcf069084889a8ab9155568165f5c453")

    def test_invalid_phrase_has_no_seed(self):
        with pytest.raises(InvalidMnemonic):
            mnemonic_to_seed("abandon " * 12)
