"""
Wallet API - Transport-agnostic boundary operations.

Every function returns a dict: the result on success, or
{"error": message, "code": CODE} on failure. Errors never echo the
mnemonic, password or key material.
"""

import base64
import logging
from typing import Optional

from wallet import (
    InputValidationError,
    KdfParams,
    WalletError,
    decrypt_vault,
    default_engine,
    encrypt_vault,
)
from wallet import phrase as phrase_module
from wallet.derivation import KeyDerivationEngine, resolve_chain, validate_index

logger = logging.getLogger(__name__)


def _error(e: WalletError) -> dict:
    return e.to_dict()


def generate_mnemonic(word_count: int = 12) -> dict:
    """Fresh BIP-39 phrase."""
    try:
        return {"mnemonic": phrase_module.generate_mnemonic(word_count)}
    except WalletError as e:
        logger.error(f"Mnemonic generation failed: {e.code}")
        return _error(e)


def derive_address(
    mnemonic: str,
    chain: str,
    index: int = 0,
    engine: Optional[KeyDerivationEngine] = None,
) -> dict:
    """Address for (chain, index)."""
    engine = engine or default_engine
    try:
        config = resolve_chain(chain)
        validate_index(index)
        address = engine.derive_address(mnemonic, config.name, index)
        return {"address": address, "chain": config.name, "index": index, "path": config.derivation_path(index)}
    except WalletError as e:
        return _error(e)


def sign_message(
    mnemonic: str,
    chain: str,
    index: int,
    message: str,
    engine: Optional[KeyDerivationEngine] = None,
) -> dict:
    """Sign a message with the key at (chain, index); signature is base64."""
    engine = engine or default_engine
    try:
        if not isinstance(message, str) or not message:
            raise InputValidationError("Message cannot be empty")
        config = resolve_chain(chain)
        validate_index(index)
        signature = engine.sign_message(mnemonic, config.name, index, message)
        return {"signature": base64.b64encode(signature).decode('ascii')}
    except WalletError as e:
        if e.code == "SIGNING_FAILED":
            logger.warning(f"Signing failed for {chain} #{index}")
        return _error(e)


def encrypt_wallet(mnemonic: str, password: str, kdf_params: Optional[KdfParams] = None) -> dict:
    """Seal a phrase into an opaque vault blob."""
    try:
        vault = encrypt_vault(mnemonic, password, kdf_params)
        return {"encrypted": vault.to_blob()}
    except WalletError as e:
        return _error(e)


def decrypt_wallet(encrypted: str, password: str) -> dict:
    """Open a vault blob. Wrong password and tampering share one error."""
    try:
        if not isinstance(encrypted, str) or not encrypted.strip():
            raise InputValidationError("Encrypted data cannot be empty")
        if not isinstance(password, str) or not password:
            raise InputValidationError("Password cannot be empty")
        return {"mnemonic": decrypt_vault(encrypted, password)}
    except WalletError as e:
        return _error(e)
