"""
Onboarding Service - Wallet lifecycle state machine.

Phases:
    WELCOME -> SECURE -> RECOVERY -> VERIFY -> DASHBOARD <-> LOCKED
    WELCOME -> LOCKED (existing wallet)

The module-level functions are pure transitions: they take a state plus
inputs and return a Transition or a TransitionFailure without touching the
input state. OnboardingController owns the current state and the unlocked
session, runs the side effects (persistence, derivation, wiping) and
reports progress through Qt signals.

DASHBOARD is only reachable by completing the backup verification or by
unlocking a persisted vault.
"""

import logging
import random
import threading
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from models import (
    Account,
    AccountSlot,
    DashboardState,
    LockedState,
    OnboardingState,
    Phase,
    RecoveryState,
    SecureState,
    Transition,
    TransitionFailure,
    TransitionResult,
    VerifyState,
    WelcomeState,
    default_label,
)
from networks import DEFAULT_CHAINS
from wallet import (
    AUTH_FAILURE_MESSAGE,
    AuthenticationFailure,
    ChallengeStatus,
    EncryptedVault,
    KdfParams,
    KeyDerivationEngine,
    MalformedVault,
    NoVault,
    SecretBuffer,
    StateViolation,
    StoredWallet,
    SubmitResult,
    VaultStore,
    VerificationChallenge,
    WalletError,
    WalletLocked,
    WalletSession,
    check_password,
    decrypt_vault,
    encrypt_vault,
    generate_mnemonic,
    reencrypt_vault,
    split_words,
)
from wallet.crypto import diagnostics

logger = logging.getLogger(__name__)


# ============================================
# Pure Transitions
# ============================================

def _wrong_phase(state: OnboardingState, action: str) -> TransitionFailure:
    return TransitionFailure(
        state.phase,
        f"Cannot {action} from {state.phase.value}",
        "INVALID_TRANSITION",
    )


def _failure(state: OnboardingState, error: WalletError) -> TransitionFailure:
    return TransitionFailure(state.phase, error.message, error.code)


def create_new(state: OnboardingState) -> TransitionResult:
    """WELCOME -> SECURE."""
    if not isinstance(state, WelcomeState):
        return _wrong_phase(state, "create a wallet")
    return Transition(SecureState())


def access_existing(state: OnboardingState, vault_exists: bool) -> TransitionResult:
    """WELCOME -> LOCKED, only when a persisted vault exists."""
    if not isinstance(state, WelcomeState):
        return _wrong_phase(state, "access an existing wallet")
    if not vault_exists:
        return TransitionFailure(state.phase, "No encrypted wallet found", NoVault.code)
    return Transition(LockedState())


def complete_secure(
    state: OnboardingState,
    password: str,
    confirmation: str,
    terms_accepted: bool,
    word_count: int = 12,
    kdf_params: Optional[KdfParams] = None,
    entropy_source: Optional[Callable[[int], bytes]] = None,
) -> TransitionResult:
    """
    SECURE -> RECOVERY.

    Checks the password policy, confirmation and terms, then generates the
    phrase and seals it. Any failure stays in SECURE with the cause.
    """
    if not isinstance(state, SecureState):
        return _wrong_phase(state, "set a password")

    try:
        check_password(password, confirmation)
    except WalletError as e:
        return _failure(state, e)

    if terms_accepted is not True:
        return TransitionFailure(state.phase, "You must accept the terms to continue", "TERMS_NOT_ACCEPTED")

    try:
        phrase = generate_mnemonic(word_count, entropy_source=entropy_source)
    except WalletError as e:
        logger.error(f"Mnemonic generation failed: {e.code}")
        return _failure(state, e)

    try:
        vault = encrypt_vault(phrase, password, kdf_params)
    except WalletError as e:
        logger.error(f"Vault encryption failed: {e.code}")
        return _failure(state, e)

    return Transition(RecoveryState(vault=vault, secret=SecretBuffer.from_text(phrase)))


def reveal_phrase(state: OnboardingState) -> TransitionResult:
    """RECOVERY -> RECOVERY with the phrase marked as shown."""
    if not isinstance(state, RecoveryState):
        return _wrong_phase(state, "reveal the recovery phrase")
    return Transition(RecoveryState(vault=state.vault, secret=state.secret, revealed=True))


def confirm_backup(
    state: OnboardingState,
    acknowledged: bool,
    rng: Optional[random.Random] = None,
) -> TransitionResult:
    """RECOVERY -> VERIFY, once the phrase was shown and the backup acknowledged."""
    if not isinstance(state, RecoveryState):
        return _wrong_phase(state, "confirm the backup")
    if not state.revealed:
        return TransitionFailure(state.phase, "Reveal the recovery phrase before continuing", "PHRASE_NOT_REVEALED")
    if acknowledged is not True:
        return TransitionFailure(state.phase, "Confirm that you wrote down the recovery phrase", "BACKUP_NOT_ACKNOWLEDGED")

    with state.secret.exposed() as phrase:
        challenge = VerificationChallenge(phrase, rng=rng)
    challenge.start()
    return Transition(VerifyState(vault=state.vault, secret=state.secret, challenge=challenge))


def complete_verification(state: OnboardingState) -> TransitionResult:
    """VERIFY -> DASHBOARD, only after the challenge matched."""
    if not isinstance(state, VerifyState):
        return _wrong_phase(state, "finish verification")
    if not state.challenge.is_complete:
        return TransitionFailure(state.phase, "Recovery phrase has not been verified", "NOT_VERIFIED")
    return Transition(DashboardState(), secret=state.secret)


def lock(state: OnboardingState) -> TransitionResult:
    """DASHBOARD -> LOCKED."""
    if not isinstance(state, DashboardState):
        return _wrong_phase(state, "lock")
    return Transition(LockedState())


def unlock(state: OnboardingState, vault: EncryptedVault, password: str) -> TransitionResult:
    """
    LOCKED -> DASHBOARD.

    Wrong password, tampering and malformed records all fail with the same
    message; only the diagnostics log tells them apart.
    """
    if not isinstance(state, LockedState):
        return _wrong_phase(state, "unlock")
    try:
        phrase = decrypt_vault(vault, password)
    except MalformedVault as e:
        diagnostics.debug(f"unlock: malformed vault ({e.message})")
        return TransitionFailure(state.phase, AUTH_FAILURE_MESSAGE, AuthenticationFailure.code)
    except WalletError as e:
        return _failure(state, e)
    return Transition(DashboardState(), secret=SecretBuffer.from_text(phrase))


def go_back(state: OnboardingState) -> TransitionResult:
    """Back navigation: SECURE->WELCOME, RECOVERY->SECURE, VERIFY->RECOVERY, LOCKED->WELCOME."""
    if isinstance(state, SecureState):
        return Transition(WelcomeState())
    if isinstance(state, RecoveryState):
        return Transition(SecureState())
    if isinstance(state, VerifyState):
        return Transition(RecoveryState(vault=state.vault, secret=state.secret, revealed=True))
    if isinstance(state, LockedState):
        return Transition(WelcomeState())
    return _wrong_phase(state, "go back")


# ============================================
# Controller
# ============================================

class OnboardingController(QObject):
    """
    Drives the wallet lifecycle.

    Transitions are serialized; a failed transition leaves the current state
    untouched and is reported through `activity` as an error.

    Usage:
        controller = OnboardingController(FileVaultStore(path))
        controller.create_new()
        controller.complete_secure(password, password, terms_accepted=True)
        words = controller.reveal_phrase()
        controller.confirm_backup(acknowledged=True)
        ...
    """

    phase_changed = pyqtSignal(str)  # Phase value
    activity = pyqtSignal(str, bool)  # message, is_error
    wallet_locked = pyqtSignal()
    wallet_unlocked = pyqtSignal()

    def __init__(
        self,
        store: VaultStore,
        engine: Optional[KeyDerivationEngine] = None,
        kdf_params: Optional[KdfParams] = None,
        default_chains: Optional[list[str]] = None,
        word_count: int = 12,
        rng: Optional[random.Random] = None,
        entropy_source: Optional[Callable[[int], bytes]] = None,
    ):
        super().__init__()
        self._store = store
        self._engine = engine or KeyDerivationEngine()
        self._kdf_params = kdf_params
        self._default_chains = list(default_chains or DEFAULT_CHAINS)
        self._word_count = word_count
        self._rng = rng
        self._entropy_source = entropy_source
        self._lock = threading.Lock()
        self._state: OnboardingState = WelcomeState()
        self._session: Optional[WalletSession] = None
        self._vault: Optional[EncryptedVault] = None

    @classmethod
    def from_settings(cls, settings, store: VaultStore, **kwargs) -> "OnboardingController":
        """Build a controller from WalletSettings."""
        return cls(
            store,
            engine=KeyDerivationEngine(list(settings.enabled_chains())),
            kdf_params=settings.kdf_params(),
            default_chains=list(settings.default_chains),
            word_count=settings.word_count,
            **kwargs,
        )

    # ---- views ----

    @property
    def state(self) -> OnboardingState:
        return self._state

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def is_unlocked(self) -> bool:
        return self._session is not None and not self._session.is_locked

    @property
    def challenge(self) -> Optional[VerificationChallenge]:
        state = self._state
        return state.challenge if isinstance(state, VerifyState) else None

    def has_vault(self) -> bool:
        return self._store.exists()

    # ---- bookkeeping ----

    def _commit(self, result: TransitionResult) -> TransitionResult:
        """Apply a transition result. Caller holds the lock."""
        if not result.ok:
            logger.info(f"Transition rejected in {result.phase.value}: {result.code}")
            self.activity.emit(result.reason, True)
            return result

        previous = self._state.phase
        self._state = result.state
        if result.state.phase != previous:
            logger.info(f"Phase {previous.value} -> {result.state.phase.value}")
            self.phase_changed.emit(result.state.phase.value)
        return result

    def _require_session(self) -> WalletSession:
        if not isinstance(self._state, DashboardState) or not self.is_unlocked:
            raise WalletLocked("Wallet is locked")
        return self._session

    def _default_slots(self) -> list[AccountSlot]:
        return [AccountSlot(chain, 0, default_label(0)) for chain in self._default_chains]

    def _open_session(self, secret: SecretBuffer, layout: list[AccountSlot]) -> WalletSession:
        """Build a session and derive the layout in saved order, after any missing defaults."""
        slots = [s for s in self._default_slots()
                 if not any(k.chain == s.chain and k.index == s.index for k in layout)]
        slots += layout

        with secret.exposed() as phrase:
            session = WalletSession(phrase, self._engine)
        try:
            for slot in slots:
                address = session.derive_address(slot.chain, slot.index)
                session.registry.register(slot.chain, slot.index, address, slot.label or None)
        except WalletError:
            session.lock()
            raise
        return session

    def _persist(self) -> None:
        """Save the vault with the current account layout."""
        layout = self._session.registry.layout() if self.is_unlocked else []
        self._store.save(StoredWallet(vault=self._vault, accounts=layout))

    # ---- transitions ----

    def create_new(self) -> TransitionResult:
        with self._lock:
            return self._commit(create_new(self._state))

    def access_existing(self) -> TransitionResult:
        with self._lock:
            return self._commit(access_existing(self._state, self._store.exists()))

    def complete_secure(self, password: str, confirmation: str, terms_accepted: bool) -> TransitionResult:
        with self._lock:
            result = complete_secure(
                self._state,
                password,
                confirmation,
                terms_accepted,
                word_count=self._word_count,
                kdf_params=self._kdf_params,
                entropy_source=self._entropy_source,
            )
            result = self._commit(result)
            if result.ok:
                self.activity.emit("Recovery phrase generated", False)
            return result

    def reveal_phrase(self) -> list[str]:
        """
        Show the pending recovery phrase.

        Raises:
            StateViolation: Not in RECOVERY
        """
        with self._lock:
            result = self._commit(reveal_phrase(self._state))
            if not result.ok:
                raise StateViolation(result.reason, result.code)
            with result.state.secret.exposed() as phrase:
                return split_words(phrase)

    def confirm_backup(self, acknowledged: bool) -> TransitionResult:
        with self._lock:
            return self._commit(confirm_backup(self._state, acknowledged, rng=self._rng))

    def submit_word(self, word: str, position: int) -> SubmitResult:
        """
        Pick a word from the challenge pool; finishes onboarding on a match.

        Raises:
            StateViolation: Not in VERIFY
            InvalidSelection: Bad position or word
        """
        with self._lock:
            challenge = self._live_challenge()
            result = challenge.submit(word, position)
            if result.status is ChallengeStatus.MISMATCH:
                self.activity.emit("Words are not in the right order, try again", True)
            elif result.matched:
                self._finish_verification()
            return result

    def reset_challenge(self) -> list[str]:
        with self._lock:
            return self._live_challenge().reset()

    def _live_challenge(self) -> VerificationChallenge:
        challenge = self.challenge
        if challenge is None:
            raise StateViolation(f"Cannot verify from {self.phase.value}", "INVALID_TRANSITION")
        return challenge

    def complete_verification(self) -> TransitionResult:
        """VERIFY -> DASHBOARD: derive default accounts, then persist the vault."""
        with self._lock:
            return self._finish_verification()

    def _finish_verification(self) -> TransitionResult:
        """Caller holds the lock."""
        state = self._state
        result = complete_verification(state)
        if not result.ok:
            return self._commit(result)

        session = None
        try:
            session = self._open_session(result.secret, [])
            self._store.save(StoredWallet(vault=state.vault, accounts=session.registry.layout()))
        except (WalletError, OSError) as e:
            if session is not None:
                session.lock()
            code = e.code if isinstance(e, WalletError) else "STORAGE_FAILED"
            logger.error(f"Failed to finish onboarding: {code}")
            return self._commit(TransitionFailure(state.phase, "Failed to save wallet", code))

        result.secret.wipe()
        self._session = session
        self._vault = state.vault
        result = self._commit(Transition(result.state))
        self.activity.emit("Wallet created", False)
        self.wallet_unlocked.emit()
        return result

    def lock(self) -> TransitionResult:
        """DASHBOARD -> LOCKED. Wipes the phrase and all key handles."""
        with self._lock:
            result = lock(self._state)
            if result.ok and self._session is not None:
                self._session.lock()
                self._session = None
            result = self._commit(result)
            if result.ok:
                self.wallet_locked.emit()
            return result

    def unlock(self, password: str) -> TransitionResult:
        """LOCKED -> DASHBOARD. Re-derives the default accounts and the remembered layout."""
        with self._lock:
            state = self._state
            if not isinstance(state, LockedState):
                return self._commit(_wrong_phase(state, "unlock"))
            try:
                stored = self._store.load()
            except NoVault as e:
                return self._commit(_failure(state, e))
            except MalformedVault as e:
                diagnostics.debug(f"unlock: stored wallet unreadable ({e.message})")
                return self._commit(TransitionFailure(state.phase, AUTH_FAILURE_MESSAGE, AuthenticationFailure.code))

            result = unlock(state, stored.vault, password)
            if not result.ok:
                return self._commit(result)

            try:
                session = self._open_session(result.secret, stored.accounts)
            except WalletError as e:
                logger.error(f"Failed to restore accounts: {e.code}")
                return self._commit(_failure(state, e))
            finally:
                result.secret.wipe()

            self._session = session
            self._vault = stored.vault
            result = self._commit(Transition(result.state))
            self.wallet_unlocked.emit()
            return result

    def go_back(self) -> TransitionResult:
        with self._lock:
            state = self._state
            result = self._commit(go_back(state))
            if result.ok and isinstance(state, RecoveryState):
                # Pending phrase and vault are discarded
                state.secret.wipe()
            return result

    # ---- dashboard ----

    def accounts(self) -> list[Account]:
        with self._lock:
            return self._require_session().registry.list()

    def add_account(self, chain: str, label: Optional[str] = None) -> Account:
        """
        Derive and register the next account on a chain.

        Raises:
            WalletLocked: Not unlocked
            UnsupportedChain: Chain not enabled
        """
        with self._lock:
            session = self._require_session()
            index = session.registry.next_index(chain)
            address = session.derive_address(chain, index)
            account = session.registry.register(chain, index, address, label)
            self._persist()
        logger.info(f"Added {account.chain} account #{account.index}")
        self.activity.emit(f"Added {account.display_label()}", False)
        return account

    def rename_account(self, chain: str, index: int, label: str) -> Account:
        with self._lock:
            account = self._require_session().registry.rename(chain, index, label)
            self._persist()
        return account

    def sign_message(self, chain: str, index: int, message: str | bytes) -> bytes:
        """Sign with a registered account's key."""
        with self._lock:
            session = self._require_session()
            if session.registry.get(chain, index) is None:
                raise StateViolation(f"No {chain} account at index {index}", "UNKNOWN_ACCOUNT")
            return session.sign(chain, index, message)

    def change_password(self, old_password: str, new_password: str, confirmation: str) -> None:
        """
        Re-encrypt the vault under a new password.

        Raises:
            PasswordPolicyError: New password rejected
            AuthenticationFailure: Old password wrong
        """
        with self._lock:
            self._require_session()
            check_password(new_password, confirmation)
            self._vault = reencrypt_vault(self._vault, old_password, new_password, self._kdf_params)
            self._persist()
        logger.info("Vault password changed")
        self.activity.emit("Password changed", False)
