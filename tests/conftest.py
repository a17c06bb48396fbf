"""
Shared pytest fixtures for the Zenith test suite.
"""

import random

import pytest

from wallet.crypto import KdfParams
from wallet.store import MemoryVaultStore

# BIP-39 test phrase (all-zero entropy)
TEST_MNEMONIC = "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"
ZERO_ENTROPY_WORDS = TEST_MNEMONIC.split()

# Known addresses for TEST_MNEMONIC at index 0
ETH_ADDRESS_0 = "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"
BTC_ADDRESS_0 = "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"

STRONG_PASSWORD = "Aa1!aaaa"


def zero_entropy(n: int) -> bytes:
    """Entropy source that always yields TEST_MNEMONIC for 12 words."""
    return bytes(n)


def solve(challenge, words):
    """Submit words in order against a challenge; returns the last result."""
    result = None
    for word in words:
        result = challenge.submit(word, challenge.pool.index(word))
    return result


@pytest.fixture(autouse=True)
def zenith_home(tmp_path, monkeypatch):
    """Keep every test's data directory inside tmp_path."""
    home = tmp_path / "zenith-home"
    monkeypatch.setenv("ZENITH_HOME", str(home))
    return home


@pytest.fixture
def fast_kdf():
    """Cheap Argon2id parameters so tests don't spend 64 MB per KDF."""
    return KdfParams(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def mnemonic():
    return TEST_MNEMONIC


@pytest.fixture
def rng():
    return random.Random(1337)


@pytest.fixture
def memory_store():
    return MemoryVaultStore()
