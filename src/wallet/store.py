"""
Vault Store - Persistence boundary for the encrypted wallet.

Exactly one record per wallet: the encrypted vault plus the non-secret
account layout. Nothing here ever sees the plaintext mnemonic.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.account import AccountSlot

from .crypto import EncryptedVault, set_secure_permissions
from .errors import MalformedVault, NoVault

logger = logging.getLogger(__name__)

STORE_VERSION = 1


@dataclass
class StoredWallet:
    """What gets persisted for one wallet."""
    vault: EncryptedVault
    accounts: list[AccountSlot] = field(default_factory=list)
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    def to_dict(self) -> dict:
        return {
            "version": STORE_VERSION,
            "created_at": self.created_at,
            "vault": self.vault.to_dict(),
            "accounts": [slot.to_dict() for slot in self.accounts],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredWallet":
        if not isinstance(data, dict):
            raise MalformedVault("Stored wallet must be an object")
        version = data.get("version", STORE_VERSION)
        if version != STORE_VERSION:
            raise MalformedVault(f"Unsupported wallet file version: {version}")
        vault = EncryptedVault.from_dict(data.get("vault"))
        try:
            accounts = [AccountSlot.from_dict(s) for s in data.get("accounts", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedVault("Stored account layout is invalid") from e
        return cls(vault=vault, accounts=accounts, created_at=data.get("created_at", ""))


class VaultStore:
    """Interface for wallet persistence."""

    def exists(self) -> bool:
        raise NotImplementedError

    def load(self) -> StoredWallet:
        """Raises NoVault if nothing is stored, MalformedVault if unreadable."""
        raise NotImplementedError

    def save(self, wallet: StoredWallet) -> None:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError


class MemoryVaultStore(VaultStore):
    """In-process store (tests, ephemeral sessions)."""

    def __init__(self, wallet: Optional[StoredWallet] = None):
        self._data: Optional[dict] = wallet.to_dict() if wallet else None
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self._data is not None

    def load(self) -> StoredWallet:
        with self._lock:
            if self._data is None:
                raise NoVault("No encrypted wallet found")
            return StoredWallet.from_dict(self._data)

    def save(self, wallet: StoredWallet) -> None:
        with self._lock:
            self._data = wallet.to_dict()

    def delete(self) -> None:
        with self._lock:
            self._data = None


class FileVaultStore(VaultStore):
    """JSON file store with atomic replace and owner-only permissions."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StoredWallet:
        with self._lock:
            if not self.path.exists():
                raise NoVault("No encrypted wallet found")
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (UnicodeDecodeError, ValueError) as e:
                raise MalformedVault("Wallet file is not valid JSON") from e
            except OSError as e:
                raise MalformedVault(f"Wallet file could not be read: {e.strerror}") from e
            return StoredWallet.from_dict(data)

    def save(self, wallet: StoredWallet) -> None:
        with self._lock:
            # Ensure directory exists
            self.path.parent.mkdir(parents=True, exist_ok=True)

            temp_path = self.path.with_suffix('.tmp')
            with open(temp_path, 'w') as f:
                json.dump(wallet.to_dict(), f, indent=2)
            set_secure_permissions(temp_path)

            temp_path.replace(self.path)
            set_secure_permissions(self.path)
        logger.info(f"Wallet saved to {self.path}")

    def delete(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
                logger.info(f"Wallet deleted: {self.path}")
