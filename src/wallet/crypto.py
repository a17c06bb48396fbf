"""
Wallet Crypto - Password-based vault encryption.

Industry-standard security:
- Argon2id key derivation (memory-hard)
- AES-256-GCM authenticated encryption
- KDF parameters stored with every vault so they can be tuned forward
- Vault header bound to the ciphertext as associated data

The mnemonic never exists unencrypted in a vault record.
"""

import base64
import binascii
import json
import logging
import os
import secrets
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Optional

# Cryptography
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from argon2.low_level import hash_secret_raw, Type
from argon2.exceptions import HashingError

from .errors import (
    AuthenticationFailure,
    InputValidationError,
    MalformedVault,
)
from .phrase import validate_mnemonic, is_valid_mnemonic
from .secure import wipe_bytearray

logger = logging.getLogger(__name__)

# Internal-only channel for decrypt failure diagnostics (never user-facing)
diagnostics = logging.getLogger(__name__ + ".diagnostics")


# ============================================
# Security Constants
# ============================================

VAULT_VERSION = 1
SUPPORTED_VERSIONS = frozenset([1])

KDF_ALGORITHM = "argon2id"
CIPHER = "aes-256-gcm"

# Argon2id parameters (OWASP recommendations for high-security)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4
ARGON2_HASH_LEN = 32  # 256 bits for AES-256

# Bounds accepted when reading a vault (guards against hostile parameters)
TIME_COST_RANGE = (1, 10)
MEMORY_COST_RANGE = (8, 1024 * 1024)  # KiB
PARALLELISM_RANGE = (1, 16)

# AES-GCM constants
SALT_SIZE = 16
AES_IV_SIZE = 12  # 96 bits (recommended for GCM)
AES_TAG_SIZE = 16

# Secure file permissions (Unix only)
SECURE_FILE_MODE = 0o600  # Owner read/write only


def set_secure_permissions(filepath: Path) -> None:
    """
    Set restrictive file permissions on Unix systems.

    Sets file to mode 0600 (owner read/write only) to protect vault data.
    No-op on Windows (NTFS uses ACLs, not Unix permissions).
    """
    if os.name == 'posix':
        try:
            os.chmod(filepath, SECURE_FILE_MODE)
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {filepath}: {e}")


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class KdfParams:
    """Argon2id parameters stored alongside the ciphertext."""
    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM
    hash_len: int = ARGON2_HASH_LEN

    def validate(self) -> "KdfParams":
        """Raise MalformedVault if any parameter is out of bounds."""
        checks = (
            ("time_cost", self.time_cost, TIME_COST_RANGE),
            ("memory_cost", self.memory_cost, MEMORY_COST_RANGE),
            ("parallelism", self.parallelism, PARALLELISM_RANGE),
            ("hash_len", self.hash_len, (ARGON2_HASH_LEN, ARGON2_HASH_LEN)),
        )
        for name, value, (low, high) in checks:
            if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
                raise MalformedVault(f"KDF parameter {name} out of range: {value!r}")
        if self.memory_cost < 8 * self.parallelism:
            raise MalformedVault("KDF memory_cost must be at least 8 * parallelism")
        return self


@dataclass(frozen=True)
class EncryptedVault:
    """An encrypted mnemonic record. Immutable; re-encryption makes a new one."""
    salt: bytes
    nonce: bytes
    ciphertext: bytes          # AES-GCM ciphertext with the 16-byte tag appended
    kdf: KdfParams = field(default_factory=KdfParams)
    version: int = VAULT_VERSION
    kdf_algorithm: str = KDF_ALGORITHM
    cipher: str = CIPHER

    def header(self) -> dict:
        """Everything except the ciphertext; authenticated as associated data."""
        return {
            "version": self.version,
            "kdf": {
                "algorithm": self.kdf_algorithm,
                "salt": self.salt.hex(),
                **asdict(self.kdf),
            },
            "cipher": self.cipher,
            "nonce": self.nonce.hex(),
        }

    def associated_data(self) -> bytes:
        return json.dumps(self.header(), separators=(',', ':'), sort_keys=True).encode('utf-8')

    def to_dict(self) -> dict:
        return {**self.header(), "ciphertext": self.ciphertext.hex()}

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedVault":
        """
        Parse a vault record.

        Raises:
            MalformedVault: On any structural problem
        """
        if not isinstance(data, dict):
            raise MalformedVault("Vault record must be an object")

        version = data.get("version")
        if isinstance(version, bool) or version not in SUPPORTED_VERSIONS:
            raise MalformedVault(f"Unsupported vault version: {version!r}")

        kdf = data.get("kdf")
        if not isinstance(kdf, dict):
            raise MalformedVault("Vault record is missing KDF parameters")
        if kdf.get("algorithm") != KDF_ALGORITHM:
            raise MalformedVault(f"Unsupported KDF algorithm: {kdf.get('algorithm')!r}")
        if data.get("cipher") != CIPHER:
            raise MalformedVault(f"Unsupported cipher: {data.get('cipher')!r}")

        try:
            params = KdfParams(
                time_cost=kdf["time_cost"],
                memory_cost=kdf["memory_cost"],
                parallelism=kdf["parallelism"],
                hash_len=kdf.get("hash_len", ARGON2_HASH_LEN),
            )
        except KeyError as e:
            raise MalformedVault(f"Vault record is missing KDF field: {e.args[0]}") from e
        params.validate()

        salt = _hex_field(kdf, "salt")
        nonce = _hex_field(data, "nonce")
        ciphertext = _hex_field(data, "ciphertext")

        if len(salt) < SALT_SIZE:
            raise MalformedVault(f"Salt must be at least {SALT_SIZE} bytes")
        if len(nonce) != AES_IV_SIZE:
            raise MalformedVault(f"Nonce must be {AES_IV_SIZE} bytes")
        if len(ciphertext) <= AES_TAG_SIZE:
            raise MalformedVault("Ciphertext is too short")

        return cls(salt=salt, nonce=nonce, ciphertext=ciphertext, kdf=params, version=version)

    def to_blob(self) -> str:
        """Opaque transport form: base64 of the canonical JSON record."""
        raw = json.dumps(self.to_dict(), separators=(',', ':'), sort_keys=True)
        return base64.b64encode(raw.encode('utf-8')).decode('ascii')

    @classmethod
    def from_blob(cls, blob: str) -> "EncryptedVault":
        if not isinstance(blob, str) or not blob.strip():
            raise MalformedVault("Encrypted data cannot be empty")
        try:
            raw = base64.b64decode(blob.strip(), validate=True)
            data = json.loads(raw.decode('utf-8'))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedVault("Encrypted data is not a valid vault blob") from e
        return cls.from_dict(data)


def _hex_field(data: dict, name: str) -> bytes:
    value = data.get(name)
    if not isinstance(value, str) or not value:
        raise MalformedVault(f"Vault record is missing {name}")
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise MalformedVault(f"Vault field {name} is not valid hex") from e


# ============================================
# Key Derivation
# ============================================

def derive_key(password: str, salt: bytes, params: Optional[KdfParams] = None) -> bytes:
    """
    Derive an encryption key from password using Argon2id.

    Argon2id is memory-hard, making brute-force attacks expensive.
    With the default parameters, each password guess requires ~64MB RAM
    and takes ~1 second on modern hardware.
    """
    params = params or KdfParams()
    return hash_secret_raw(
        secret=password.encode('utf-8'),
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=params.hash_len,
        type=Type.ID
    )


# ============================================
# Encryption
# ============================================

def encrypt_vault(mnemonic: str, password: str, params: Optional[KdfParams] = None) -> EncryptedVault:
    """
    Encrypt a mnemonic phrase with a password.

    Raises:
        InvalidMnemonic: If the phrase fails validation
        InputValidationError: If the password is empty
    """
    phrase = validate_mnemonic(mnemonic)
    if not isinstance(password, str) or not password:
        raise InputValidationError("Password cannot be empty")

    params = (params or KdfParams()).validate()
    salt = secrets.token_bytes(SALT_SIZE)
    iv = secrets.token_bytes(AES_IV_SIZE)

    # Header is fixed before sealing so it can be authenticated
    shell = EncryptedVault(salt=salt, nonce=iv, ciphertext=b"", kdf=params)

    key = bytearray(derive_key(password, salt, params))
    try:
        aesgcm = AESGCM(bytes(key))
        ciphertext_and_tag = aesgcm.encrypt(iv, phrase.encode('utf-8'), shell.associated_data())
    finally:
        wipe_bytearray(key)

    logger.debug(f"Vault encrypted (argon2id t={params.time_cost} m={params.memory_cost} p={params.parallelism})")
    return EncryptedVault(salt=salt, nonce=iv, ciphertext=ciphertext_and_tag, kdf=params)


def decrypt_vault(vault: EncryptedVault | dict | str, password: str) -> str:
    """
    Decrypt a vault and return the mnemonic phrase.

    Raises:
        MalformedVault: Structurally invalid record (safe to surface)
        AuthenticationFailure: Wrong password, tampered data, or a plaintext
            that is not a valid mnemonic; never differentiated
    """
    if isinstance(vault, str):
        vault = EncryptedVault.from_blob(vault)
    elif isinstance(vault, dict):
        vault = EncryptedVault.from_dict(vault)
    elif not isinstance(vault, EncryptedVault):
        raise MalformedVault("Unrecognized vault type")
    else:
        vault.kdf.validate()

    if not isinstance(password, str) or not password:
        raise InputValidationError("Password cannot be empty")

    try:
        key = bytearray(derive_key(password, vault.salt, vault.kdf))
    except HashingError as e:
        diagnostics.debug("vault decrypt: key derivation rejected parameters")
        raise AuthenticationFailure() from e

    try:
        plaintext = AESGCM(bytes(key)).decrypt(vault.nonce, vault.ciphertext, vault.associated_data())
    except InvalidTag as e:
        diagnostics.debug("vault decrypt: authentication tag mismatch")
        raise AuthenticationFailure() from e
    finally:
        wipe_bytearray(key)

    try:
        phrase = plaintext.decode('utf-8')
    except UnicodeDecodeError as e:
        diagnostics.debug("vault decrypt: plaintext is not utf-8")
        raise AuthenticationFailure() from e

    if not is_valid_mnemonic(phrase):
        diagnostics.debug("vault decrypt: plaintext is not a valid mnemonic")
        raise AuthenticationFailure()

    return phrase


def reencrypt_vault(
    vault: EncryptedVault,
    old_password: str,
    new_password: str,
    params: Optional[KdfParams] = None
) -> EncryptedVault:
    """
    Re-encrypt under a new password (e.g. password change).

    Produces a new record with fresh salt and nonce; the input is untouched.
    KDF parameters default to the current defaults, not the old vault's.
    """
    phrase = decrypt_vault(vault, old_password)
    return encrypt_vault(phrase, new_password, params)


def is_vault_blob(blob: str) -> bool:
    """Check whether a string parses as a vault blob (no decryption)."""
    try:
        EncryptedVault.from_blob(blob)
        return True
    except MalformedVault:
        return False


__all__ = [
    "KdfParams",
    "EncryptedVault",
    "derive_key",
    "encrypt_vault",
    "decrypt_vault",
    "reencrypt_vault",
    "is_vault_blob",
    "set_secure_permissions",
]
