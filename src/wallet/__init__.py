"""
Wallet package - Key management core for Zenith.

Contains:
- phrase: BIP-39 mnemonic generation and validation
- derivation: Multi-chain HD key derivation and signing
- crypto: Argon2id + AES-256-GCM vault codec
- manager: Account registry
- challenge: Backup verification challenge
- session: Unlocked wallet state
- store: Vault persistence boundary
"""

from .errors import (
    WalletError,
    InputValidationError,
    InvalidMnemonic,
    InvalidIndex,
    UnsupportedChain,
    InvalidSelection,
    PasswordPolicyError,
    AuthenticationFailure,
    AUTH_FAILURE_MESSAGE,
    MalformedVault,
    EntropyUnavailable,
    StateViolation,
    ChallengeSpent,
    KeyWiped,
    DuplicateAccount,
    WalletLocked,
    NoVault,
    GenerationError,
    DerivationError,
    SigningError,
)
from .secure import SecretBuffer, scoped_secret
from .phrase import (
    generate_mnemonic,
    validate_mnemonic,
    is_valid_mnemonic,
    mnemonic_to_seed,
    split_words,
)
from .derivation import (
    KeyDerivationEngine,
    KeyHandle,
    DerivedKey,
    default_engine,
)
from .crypto import (
    KdfParams,
    EncryptedVault,
    encrypt_vault,
    decrypt_vault,
    reencrypt_vault,
)
from .password import password_strength, strength_label, check_password
from .manager import AccountRegistry
from .challenge import VerificationChallenge, ChallengeStatus, SubmitResult
from .session import WalletSession
from .store import StoredWallet, VaultStore, MemoryVaultStore, FileVaultStore

__all__ = [
    # Errors
    "WalletError",
    "InputValidationError",
    "InvalidMnemonic",
    "InvalidIndex",
    "UnsupportedChain",
    "InvalidSelection",
    "PasswordPolicyError",
    "AuthenticationFailure",
    "AUTH_FAILURE_MESSAGE",
    "MalformedVault",
    "EntropyUnavailable",
    "StateViolation",
    "ChallengeSpent",
    "KeyWiped",
    "DuplicateAccount",
    "WalletLocked",
    "NoVault",
    "GenerationError",
    "DerivationError",
    "SigningError",
    # Secrets
    "SecretBuffer",
    "scoped_secret",
    # Phrases
    "generate_mnemonic",
    "validate_mnemonic",
    "is_valid_mnemonic",
    "mnemonic_to_seed",
    "split_words",
    # Derivation
    "KeyDerivationEngine",
    "KeyHandle",
    "DerivedKey",
    "default_engine",
    # Vault
    "KdfParams",
    "EncryptedVault",
    "encrypt_vault",
    "decrypt_vault",
    "reencrypt_vault",
    # Password
    "password_strength",
    "strength_label",
    "check_password",
    # Accounts
    "AccountRegistry",
    # Challenge
    "VerificationChallenge",
    "ChallengeStatus",
    "SubmitResult",
    # Session / storage
    "WalletSession",
    "StoredWallet",
    "VaultStore",
    "MemoryVaultStore",
    "FileVaultStore",
]
