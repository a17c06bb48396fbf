"""
Tests for wallet.crypto - Argon2id + AES-256-GCM vault encryption.

Covers:
- Round trip through record, dict and blob forms
- Wrong password and tampering collapse to one authentication failure
- Structural validation (MalformedVault) before any KDF work
- Re-encryption under a new password
"""

import base64
import json
import logging

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wallet.crypto import (
    AES_IV_SIZE,
    SALT_SIZE,
    EncryptedVault,
    KdfParams,
    decrypt_vault,
    derive_key,
    encrypt_vault,
    is_vault_blob,
    reencrypt_vault,
)
from wallet.errors import (
    AUTH_FAILURE_MESSAGE,
    AuthenticationFailure,
    InputValidationError,
    InvalidMnemonic,
    MalformedVault,
)

from conftest import STRONG_PASSWORD, TEST_MNEMONIC


@pytest.fixture
def vault(fast_kdf):
    return encrypt_vault(TEST_MNEMONIC, STRONG_PASSWORD, fast_kdf)


class TestRoundTrip:

    def test_decrypt_record(self, vault):
        assert decrypt_vault(vault, STRONG_PASSWORD) == TEST_MNEMONIC

    def test_decrypt_dict(self, vault):
        assert decrypt_vault(vault.to_dict(), STRONG_PASSWORD) == TEST_MNEMONIC

    def test_decrypt_blob(self, vault):
        blob = vault.to_blob()
        assert is_vault_blob(blob)
        assert decrypt_vault(blob, STRONG_PASSWORD) == TEST_MNEMONIC

    def test_record_has_no_plaintext(self, vault):
        serialized = json.dumps(vault.to_dict())
        assert "abandon" not in serialized
        assert STRONG_PASSWORD not in serialized

    def test_header_fields(self, vault, fast_kdf):
        record = vault.to_dict()
        assert record["version"] == 1
        assert record["cipher"] == "aes-256-gcm"
        assert record["kdf"]["algorithm"] == "argon2id"
        assert record["kdf"]["time_cost"] == fast_kdf.time_cost
        assert len(bytes.fromhex(record["kdf"]["salt"])) == SALT_SIZE
        assert len(bytes.fromhex(record["nonce"])) == AES_IV_SIZE

    def test_fresh_salt_and_nonce_each_time(self, fast_kdf):
        a = encrypt_vault(TEST_MNEMONIC, STRONG_PASSWORD, fast_kdf)
        b = encrypt_vault(TEST_MNEMONIC, STRONG_PASSWORD, fast_kdf)
        assert a.salt != b.salt
        assert a.nonce != b.nonce
        assert a.ciphertext != b.ciphertext

    def test_phrase_is_canonicalized(self, fast_kdf):
        vault = encrypt_vault("  " + TEST_MNEMONIC.upper(), STRONG_PASSWORD, fast_kdf)
        assert decrypt_vault(vault, STRONG_PASSWORD) == TEST_MNEMONIC

    def test_from_dict_round_trip(self, vault):
        assert EncryptedVault.from_dict(vault.to_dict()) == vault


class TestAuthentication:

    def test_wrong_password(self, vault):
        with pytest.raises(AuthenticationFailure) as exc:
            decrypt_vault(vault, "Wrong1!pass")
        assert exc.value.message == AUTH_FAILURE_MESSAGE
        assert exc.value.code == "AUTH_FAILED"

    def test_tampered_ciphertext(self, vault):
        record = vault.to_dict()
        raw = bytearray(bytes.fromhex(record["ciphertext"]))
        raw[0] ^= 0x01
        record["ciphertext"] = raw.hex()
        with pytest.raises(AuthenticationFailure) as exc:
            decrypt_vault(record, STRONG_PASSWORD)
        assert exc.value.message == AUTH_FAILURE_MESSAGE

    def test_tampered_nonce(self, vault):
        record = vault.to_dict()
        record["nonce"] = "00" * AES_IV_SIZE
        with pytest.raises(AuthenticationFailure):
            decrypt_vault(record, STRONG_PASSWORD)

    def test_tampered_kdf_header(self, vault):
        record = vault.to_dict()
        record["kdf"]["time_cost"] = record["kdf"]["time_cost"] + 1
        with pytest.raises(AuthenticationFailure):
            decrypt_vault(record, STRONG_PASSWORD)

    def test_non_mnemonic_plaintext_is_auth_failure(self, fast_kdf, caplog):
        salt = b"\x01" * SALT_SIZE
        nonce = b"\x02" * AES_IV_SIZE
        shell = EncryptedVault(salt=salt, nonce=nonce, ciphertext=b"", kdf=fast_kdf)
        key = derive_key(STRONG_PASSWORD, salt, fast_kdf)
        ciphertext = AESGCM(key).encrypt(nonce, b"not a phrase", shell.associated_data())
        forged = EncryptedVault(salt=salt, nonce=nonce, ciphertext=ciphertext, kdf=fast_kdf)

        with caplog.at_level(logging.DEBUG, logger="wallet.crypto.diagnostics"):
            with pytest.raises(AuthenticationFailure) as exc:
                decrypt_vault(forged, STRONG_PASSWORD)

        assert exc.value.message == AUTH_FAILURE_MESSAGE
        assert any("not a valid mnemonic" in r.getMessage() for r in caplog.records)

    def test_empty_password(self, vault):
        with pytest.raises(InputValidationError):
            decrypt_vault(vault, "")


class TestMalformed:

    def test_unsupported_version(self, vault):
        record = vault.to_dict()
        record["version"] = 2
        with pytest.raises(MalformedVault, match="version"):
            decrypt_vault(record, STRONG_PASSWORD)

    def test_bool_version_rejected(self, vault):
        record = vault.to_dict()
        record["version"] = True
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_missing_kdf(self, vault):
        record = vault.to_dict()
        del record["kdf"]
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_missing_kdf_field(self, vault):
        record = vault.to_dict()
        del record["kdf"]["memory_cost"]
        with pytest.raises(MalformedVault, match="memory_cost"):
            EncryptedVault.from_dict(record)

    @pytest.mark.parametrize("field,value", [
        ("time_cost", 0),
        ("time_cost", 11),
        ("memory_cost", 4),
        ("memory_cost", 2 * 1024 * 1024),
        ("parallelism", 0),
        ("parallelism", 17),
        ("hash_len", 16),
    ])
    def test_kdf_out_of_bounds(self, vault, field, value):
        record = vault.to_dict()
        record["kdf"][field] = value
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_memory_below_parallelism_floor(self, vault):
        record = vault.to_dict()
        record["kdf"]["memory_cost"] = 8
        record["kdf"]["parallelism"] = 2
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_wrong_algorithm(self, vault):
        record = vault.to_dict()
        record["kdf"]["algorithm"] = "scrypt"
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_wrong_cipher(self, vault):
        record = vault.to_dict()
        record["cipher"] = "chacha20"
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_bad_hex(self, vault):
        record = vault.to_dict()
        record["nonce"] = "zz" * AES_IV_SIZE
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_short_nonce(self, vault):
        record = vault.to_dict()
        record["nonce"] = "00" * 8
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_short_salt(self, vault):
        record = vault.to_dict()
        record["kdf"]["salt"] = "00" * 4
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    def test_ciphertext_shorter_than_tag(self, vault):
        record = vault.to_dict()
        record["ciphertext"] = "00" * 16
        with pytest.raises(MalformedVault):
            EncryptedVault.from_dict(record)

    @pytest.mark.parametrize("blob", [
        "",
        "   ",
        "not base64!!",
        base64.b64encode(b"not json").decode(),
        base64.b64encode(b"[1, 2, 3]").decode(),
    ])
    def test_bad_blobs(self, blob):
        assert not is_vault_blob(blob)
        with pytest.raises(MalformedVault):
            decrypt_vault(blob, STRONG_PASSWORD)

    def test_not_a_record(self):
        with pytest.raises(MalformedVault):
            decrypt_vault(42, STRONG_PASSWORD)

    def test_malformed_is_a_value_error(self):
        assert issubclass(MalformedVault, ValueError)


class TestEncryptInput:

    def test_invalid_mnemonic(self, fast_kdf):
        with pytest.raises(InvalidMnemonic):
            encrypt_vault("abandon " * 12, STRONG_PASSWORD, fast_kdf)

    def test_empty_password(self, fast_kdf):
        with pytest.raises(InputValidationError, match="Password"):
            encrypt_vault(TEST_MNEMONIC, "", fast_kdf)

    def test_bad_params_rejected(self):
        with pytest.raises(MalformedVault):
            encrypt_vault(TEST_MNEMONIC, STRONG_PASSWORD, KdfParams(time_cost=0))


class TestReencrypt:

    def test_new_password_opens_old_does_not(self, vault, fast_kdf):
        updated = reencrypt_vault(vault, STRONG_PASSWORD, "Bb2@bbbb", fast_kdf)
        assert decrypt_vault(updated, "Bb2@bbbb") == TEST_MNEMONIC
        with pytest.raises(AuthenticationFailure):
            decrypt_vault(updated, STRONG_PASSWORD)

    def test_fresh_salt(self, vault, fast_kdf):
        updated = reencrypt_vault(vault, STRONG_PASSWORD, "Bb2@bbbb", fast_kdf)
        assert updated.salt != vault.salt
        assert updated.nonce != vault.nonce

    def test_original_untouched(self, vault, fast_kdf):
        before = vault.to_dict()
        reencrypt_vault(vault, STRONG_PASSWORD, "Bb2@bbbb", fast_kdf)
        assert vault.to_dict() == before
        assert decrypt_vault(vault, STRONG_PASSWORD) == TEST_MNEMONIC

    def test_wrong_old_password(self, vault, fast_kdf):
        with pytest.raises(AuthenticationFailure):
            reencrypt_vault(vault, "Nope1!nope", "Bb2@bbbb", fast_kdf)
