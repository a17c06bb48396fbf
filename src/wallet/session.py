"""
Wallet Session - The unlocked wallet held in memory.

A session exists between creation/unlock and lock. It owns the mnemonic
(in a SecretBuffer), the account registry and any open key handles.
Locking wipes all of them.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from .derivation import KeyDerivationEngine, KeyHandle, default_engine
from .errors import WalletLocked
from .manager import AccountRegistry
from .secure import SecretBuffer

logger = logging.getLogger(__name__)


class WalletSession:
    """
    Unlocked wallet state.

    Usage:
        session = WalletSession(phrase)
        with session.mnemonic() as phrase:
            address = engine.derive_address(phrase, "solana", 0)
        session.lock()
    """

    def __init__(self, mnemonic: str, engine: Optional[KeyDerivationEngine] = None):
        self._lock = threading.RLock()
        self._mnemonic = SecretBuffer.from_text(mnemonic)
        self._handles: list[KeyHandle] = []
        self.engine = engine or default_engine
        self.registry = AccountRegistry()

    @property
    def is_locked(self) -> bool:
        return self._mnemonic.is_wiped

    @contextmanager
    def mnemonic(self) -> Iterator[str]:
        """
        Scoped access to the phrase.

        Raises:
            WalletLocked: If the session has been locked
        """
        with self._lock:
            if self._mnemonic.is_wiped:
                raise WalletLocked("Wallet is locked")
            with self._mnemonic.exposed() as phrase:
                yield phrase

    def derive_address(self, chain: str, index: int) -> str:
        with self.mnemonic() as phrase:
            return self.engine.derive_address(phrase, chain, index)

    @contextmanager
    def open_key(self, chain: str, index: int) -> Iterator[KeyHandle]:
        """Derive a key handle tracked by the session; wiped on exit or lock."""
        with self.mnemonic() as phrase:
            derived = self.engine.derive(phrase, chain, index)
        handle = derived.handle
        with self._lock:
            self._handles.append(handle)
        try:
            yield handle
        finally:
            handle.wipe()
            with self._lock:
                if handle in self._handles:
                    self._handles.remove(handle)

    def sign(self, chain: str, index: int, message: str | bytes) -> bytes:
        with self.open_key(chain, index) as key:
            return key.sign(message)

    def _wipe(self) -> None:
        with self._lock:
            for handle in self._handles:
                handle.wipe()
            self._handles.clear()
            self._mnemonic.wipe()
            self.registry.clear()

    def lock(self) -> None:
        """Wipe the mnemonic and every open key handle. Idempotent."""
        was_locked = self.is_locked
        self._wipe()
        if not was_locked:
            logger.info("Wallet session locked")

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        if hasattr(self, 'registry'):
            self._wipe()
