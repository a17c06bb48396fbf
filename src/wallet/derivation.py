"""
Key Derivation - Deterministic multi-chain HD derivation.

Derivation rules per chain:
- Ethereum: BIP-44 m/44'/60'/0'/0/{index}, EIP-55 address (eth_account)
- Solana:   SLIP-0010 ed25519 m/44'/501'/{index}'/0', base58 address (bip_utils)
- Bitcoin:  BIP-84 m/84'/0'/0'/0/{index}, bech32 P2WPKH address (bip_utils)

The same (mnemonic, chain, index) always yields the same keypair and
address. The engine never keeps the phrase; seeds and private keys live in
SecretBuffers that are wiped when the caller is done with them.
"""

import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from bip_utils import Bip44, Bip44Changes, Bip44Coins, Bip84, Bip84Coins
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed
from eth_account import Account
from eth_account.hdaccount import key_from_seed
from eth_account.messages import encode_defunct

from networks import (
    BITCOIN,
    CHAINS,
    ETHEREUM,
    MAX_DERIVATION_INDEX,
    SOLANA,
    ChainConfig,
    get_chain,
)

from .errors import (
    DerivationError,
    InputValidationError,
    InvalidIndex,
    KeyWiped,
    SigningError,
    UnsupportedChain,
)
from .phrase import mnemonic_to_seed
from .secure import SecretBuffer, wipe_bytearray

# Enable HD wallet features
Account.enable_unaudited_hdwallet_features()

logger = logging.getLogger(__name__)

BITCOIN_MESSAGE_MAGIC = b"\x18Bitcoin Signed Message:\n"


# ============================================
# Validation
# ============================================

def validate_index(index) -> int:
    """Account index must be a non-negative integer below the hardened range."""
    if isinstance(index, bool) or not isinstance(index, int):
        raise InvalidIndex("Index must be a non-negative integer")
    if index < 0 or index > MAX_DERIVATION_INDEX:
        raise InvalidIndex(f"Index must be between 0 and {MAX_DERIVATION_INDEX}, got {index}")
    return index


def resolve_chain(chain: str | ChainConfig) -> ChainConfig:
    """Look up a chain config, raising UnsupportedChain for unknown names."""
    if isinstance(chain, ChainConfig):
        return chain
    config = get_chain(chain)
    if config is None:
        raise UnsupportedChain(f"Unsupported chain: {chain!r}")
    return config


def _message_bytes(message: str | bytes) -> bytes:
    if isinstance(message, str):
        message = message.encode('utf-8')
    if not isinstance(message, (bytes, bytearray)):
        raise InputValidationError("Message must be text or bytes")
    if not message:
        raise InputValidationError("Message cannot be empty")
    return bytes(message)


def _varint(n: int) -> bytes:
    if n < 0xfd:
        return bytes([n])
    if n <= 0xffff:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xffffffff:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


# ============================================
# Chain Derivers
# ============================================

class ChainDeriver:
    """Derivation and signing rules for one chain."""

    chain: str = ""

    @property
    def config(self) -> ChainConfig:
        return CHAINS[self.chain]

    def derive_keypair(self, seed: bytes, index: int) -> tuple[bytes, str]:
        """Return (private_key, address) for an account index."""
        raise NotImplementedError

    def public_key(self, private_key: bytes) -> bytes:
        raise NotImplementedError

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        raise NotImplementedError


class EthereumDeriver(ChainDeriver):
    """Account-model secp256k1 chain, EIP-191 personal-message signatures."""

    chain = ETHEREUM

    def derive_keypair(self, seed: bytes, index: int) -> tuple[bytes, str]:
        private_key = key_from_seed(seed, self.config.derivation_path(index))
        return private_key, Account.from_key(private_key).address

    def public_key(self, private_key: bytes) -> bytes:
        return _secp256k1_public_key(private_key)

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        signed = Account.sign_message(encode_defunct(primitive=message), private_key=private_key)
        return bytes(signed.signature)


class SolanaDeriver(ChainDeriver):
    """Account-model ed25519 chain (SLIP-0010, hardened path only)."""

    chain = SOLANA

    def derive_keypair(self, seed: bytes, index: int) -> tuple[bytes, str]:
        ctx = (
            Bip44.FromSeed(seed, Bip44Coins.SOLANA)
            .Purpose()
            .Coin()
            .Account(index)
            .Change(Bip44Changes.CHAIN_EXT)
        )
        return ctx.PrivateKey().Raw().ToBytes(), ctx.PublicKey().ToAddress()

    def public_key(self, private_key: bytes) -> bytes:
        key = ed25519.Ed25519PrivateKey.from_private_bytes(private_key)
        return key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        return ed25519.Ed25519PrivateKey.from_private_bytes(private_key).sign(message)


class BitcoinDeriver(ChainDeriver):
    """UTXO-model chain, native SegWit receive addresses."""

    chain = BITCOIN

    def derive_keypair(self, seed: bytes, index: int) -> tuple[bytes, str]:
        ctx = (
            Bip84.FromSeed(seed, Bip84Coins.BITCOIN)
            .Purpose()
            .Coin()
            .Account(0)
            .Change(Bip44Changes.CHAIN_EXT)
            .AddressIndex(index)
        )
        return ctx.PrivateKey().Raw().ToBytes(), ctx.PublicKey().ToAddress()

    def public_key(self, private_key: bytes) -> bytes:
        return _secp256k1_public_key(private_key)

    @staticmethod
    def message_digest(message: bytes) -> bytes:
        """Double SHA-256 of the Bitcoin signed-message envelope."""
        envelope = BITCOIN_MESSAGE_MAGIC + _varint(len(message)) + message
        return hashlib.sha256(hashlib.sha256(envelope).digest()).digest()

    def sign(self, private_key: bytes, message: bytes) -> bytes:
        """
        ECDSA over the signed-message digest, returned DER-encoded.

        This is not the 65-byte compact recoverable form that Bitcoin Core's
        verifymessage expects; verify with the public key and message_digest.
        """
        key = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
        return key.sign(self.message_digest(message), ec.ECDSA(Prehashed(hashes.SHA256())))


def _secp256k1_public_key(private_key: bytes) -> bytes:
    """Compressed SEC1 public key."""
    key = ec.derive_private_key(int.from_bytes(private_key, "big"), ec.SECP256K1())
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint
    )


DERIVERS: dict[str, ChainDeriver] = {
    d.chain: d for d in (SolanaDeriver(), EthereumDeriver(), BitcoinDeriver())
}


# ============================================
# Key Handles
# ============================================

class KeyHandle:
    """
    A derived private key, usable for signing until wiped.

    Usage:
        with engine.derive(mnemonic, "ethereum", 0).handle as key:
            signature = key.sign(b"hello")
    """

    def __init__(self, deriver: ChainDeriver, index: int, private_key: bytes, address: str = ""):
        self._deriver = deriver
        self.chain = deriver.chain
        self.index = index
        self.public_address = address
        self._secret = SecretBuffer(private_key)

    @property
    def is_wiped(self) -> bool:
        return self._secret.is_wiped

    def _private_key(self) -> bytes:
        if self._secret.is_wiped:
            raise KeyWiped(f"Key handle for {self.chain} #{self.index} has been wiped")
        return self._secret.reveal()

    def public_key(self) -> bytes:
        return self._deriver.public_key(self._private_key())

    def sign(self, message: str | bytes) -> bytes:
        """Sign a message with the chain's signing scheme."""
        data = _message_bytes(message)
        private_key = self._private_key()
        try:
            return self._deriver.sign(private_key, data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Signing failed for {self.chain} #{self.index}: {e.__class__.__name__}")
            raise SigningError(f"Failed to sign message for {self.chain}") from e

    def wipe(self) -> None:
        self._secret.wipe()

    def __enter__(self) -> "KeyHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        state = "wiped" if self.is_wiped else "live"
        return f"<KeyHandle {self.chain} #{self.index} {state}>"


@dataclass
class DerivedKey:
    """Result of deriving one account."""
    chain: str
    index: int
    path: str
    address: str
    handle: KeyHandle = field(repr=False)


# ============================================
# Derivation Engine
# ============================================

class KeyDerivationEngine:
    """
    Derives per-chain keys and addresses from a mnemonic.

    Usage:
        engine = KeyDerivationEngine()
        address = engine.derive_address(mnemonic, "solana", 0)

        with engine.open_key(mnemonic, "ethereum", 1) as key:
            signature = engine.sign(key, "hello")
    """

    def __init__(self, chains: Optional[list[str]] = None):
        names = chains if chains is not None else list(DERIVERS.keys())
        self._derivers = {}
        for name in names:
            config = resolve_chain(name)
            self._derivers[config.name] = DERIVERS[config.name]

    @property
    def chains(self) -> list[str]:
        return list(self._derivers.keys())

    def _deriver_for(self, chain: str | ChainConfig) -> ChainDeriver:
        config = resolve_chain(chain)
        if config.name not in self._derivers:
            raise UnsupportedChain(f"Chain not enabled: {config.name}")
        return self._derivers[config.name]

    def derive(self, mnemonic: str, chain: str, index: int) -> DerivedKey:
        """
        Derive the keypair and address for (chain, index).

        Raises:
            UnsupportedChain, InvalidIndex, InvalidMnemonic: On bad input (nothing derived)
            DerivationError: If the underlying library fails
        """
        deriver = self._deriver_for(chain)
        validate_index(index)

        seed = bytearray(mnemonic_to_seed(mnemonic))
        try:
            private_key, address = deriver.derive_keypair(bytes(seed), index)
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Derivation failed for {deriver.chain} #{index}: {e.__class__.__name__}")
            raise DerivationError(f"Failed to derive {deriver.chain} key at index {index}") from e
        finally:
            wipe_bytearray(seed)

        return DerivedKey(
            chain=deriver.chain,
            index=index,
            path=deriver.config.derivation_path(index),
            address=address,
            handle=KeyHandle(deriver, index, private_key, address),
        )

    def derive_address(self, mnemonic: str, chain: str, index: int) -> str:
        """Derive only the address; the private key is wiped immediately."""
        derived = self.derive(mnemonic, chain, index)
        derived.handle.wipe()
        return derived.address

    @contextmanager
    def open_key(self, mnemonic: str, chain: str, index: int) -> Iterator[KeyHandle]:
        """Derive a key handle that is wiped on every exit path."""
        derived = self.derive(mnemonic, chain, index)
        try:
            yield derived.handle
        finally:
            derived.handle.wipe()

    def sign(self, handle: KeyHandle, message: str | bytes) -> bytes:
        return handle.sign(message)

    def sign_message(self, mnemonic: str, chain: str, index: int, message: str | bytes) -> bytes:
        """Derive, sign and wipe in one call."""
        data = _message_bytes(message)
        with self.open_key(mnemonic, chain, index) as key:
            return key.sign(data)


# Shared engine with all chains enabled
default_engine = KeyDerivationEngine()


def derive(mnemonic: str, chain: str, index: int) -> DerivedKey:
    return default_engine.derive(mnemonic, chain, index)


def derive_address(mnemonic: str, chain: str, index: int) -> str:
    return default_engine.derive_address(mnemonic, chain, index)


def sign(handle: KeyHandle, message: str | bytes) -> bytes:
    return default_engine.sign(handle, message)
