"""
Wallet Errors - Exception taxonomy for the wallet core.

Every error carries a stable machine-readable code so service and transport
layers can map it to a response without inspecting the message:

- InputValidation: malformed mnemonic, bad index, unsupported chain
- AuthenticationFailure: wrong password or corrupted vault (one message only)
- MalformedVault: structurally broken vault record
- ResourceExhaustion: entropy source unavailable
- StateViolation: an operation attempted in the wrong lifecycle state

Messages never include mnemonic words, passwords or key material.
"""


class WalletError(Exception):
    """Base class for all wallet core errors."""

    code = "WALLET_ERROR"

    def __init__(self, message: str = "", code: str = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        """Structured error for boundary responses."""
        return {"error": self.message, "code": self.code}


# ============================================
# Input Validation
# ============================================

class InputValidationError(WalletError, ValueError):
    """Input rejected before any processing."""
    code = "INVALID_REQUEST"


class InvalidMnemonic(InputValidationError):
    code = "INVALID_MNEMONIC"


class InvalidIndex(InputValidationError):
    code = "INVALID_INDEX"


class UnsupportedChain(InputValidationError):
    code = "UNSUPPORTED_CHAIN"


class InvalidSelection(InputValidationError):
    """A verification challenge selection that does not match the pool."""
    code = "INVALID_SELECTION"


class PasswordPolicyError(InputValidationError):
    code = "WEAK_PASSWORD"


# ============================================
# Authentication / Vault
# ============================================

AUTH_FAILURE_MESSAGE = "Incorrect password or corrupted wallet"


class AuthenticationFailure(WalletError):
    """
    Decryption failed.

    Deliberately not differentiated between wrong password and tampered
    ciphertext.
    """
    code = "AUTH_FAILED"

    def __init__(self, message: str = AUTH_FAILURE_MESSAGE, code: str = None):
        super().__init__(message, code)


class MalformedVault(WalletError, ValueError):
    """The vault record is structurally invalid (carries no secret signal)."""
    code = "MALFORMED_VAULT"


# ============================================
# Resource Exhaustion
# ============================================

class EntropyUnavailable(WalletError):
    """The secure entropy source failed. Never retried with a weaker source."""
    code = "ENTROPY_UNAVAILABLE"


# ============================================
# State Violations
# ============================================

class StateViolation(WalletError):
    code = "STATE_VIOLATION"


class ChallengeSpent(StateViolation):
    code = "CHALLENGE_SPENT"


class KeyWiped(StateViolation):
    code = "KEY_WIPED"


class DuplicateAccount(StateViolation):
    code = "DUPLICATE_ACCOUNT"


class WalletLocked(StateViolation):
    code = "WALLET_LOCKED"


class NoVault(StateViolation):
    code = "NO_VAULT"


# ============================================
# Operational Failures
# ============================================

class GenerationError(WalletError):
    code = "GENERATION_FAILED"


class DerivationError(WalletError):
    code = "DERIVATION_FAILED"


class SigningError(WalletError):
    code = "SIGNING_FAILED"
