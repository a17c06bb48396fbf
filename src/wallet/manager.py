"""
Account Manager - Registry of derived accounts for the unlocked wallet.

Accounts are unique per (chain, index) and allocated contiguously from 0 on
each chain. The registry holds addresses and labels only; keys are derived
on demand from the session mnemonic.
"""

import threading
from dataclasses import replace
from typing import Optional

from models.account import Account, AccountSlot
from networks import get_chain

from .errors import DuplicateAccount, InvalidIndex, UnsupportedChain


MAX_ACCOUNTS_PER_CHAIN = 999


class AccountRegistry:
    """Ordered set of accounts for one wallet."""

    def __init__(self, accounts: Optional[list[Account]] = None):
        self._accounts: list[Account] = []
        self._lock = threading.Lock()
        for account in accounts or []:
            self.register(account.chain, account.index, account.address, account.label)

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self):
        return iter(self.list())

    @staticmethod
    def _chain_name(chain: str) -> str:
        config = get_chain(chain)
        if config is None:
            raise UnsupportedChain(f"Unsupported chain: {chain!r}")
        return config.name

    def next_index(self, chain: str) -> int:
        """The index the next account on this chain must use."""
        name = self._chain_name(chain)
        return sum(1 for a in self._accounts if a.chain == name)

    def can_add_account(self, chain: str) -> bool:
        return self.next_index(chain) < MAX_ACCOUNTS_PER_CHAIN

    def register(self, chain: str, index: int, address: str, label: Optional[str] = None) -> Account:
        """
        Register a derived account.

        Raises:
            UnsupportedChain: Unknown chain
            DuplicateAccount: (chain, index) already registered
            InvalidIndex: Index would leave a gap on the chain
        """
        name = self._chain_name(chain)
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidIndex("Index must be a non-negative integer")
        with self._lock:
            if any(a.chain == name and a.index == index for a in self._accounts):
                raise DuplicateAccount(f"Account {name} #{index} is already registered")
            expected = sum(1 for a in self._accounts if a.chain == name)
            if index != expected:
                raise InvalidIndex(f"Next {name} account index is {expected}, got {index}")
            account = Account(chain=name, index=index, address=address, label=label or "")
            self._accounts.append(account)
        return replace(account)

    def get(self, chain: str, index: int) -> Optional[Account]:
        name = self._chain_name(chain)
        for a in self._accounts:
            if a.chain == name and a.index == index:
                return replace(a)
        return None

    def for_chain(self, chain: str) -> list[Account]:
        name = self._chain_name(chain)
        return [replace(a) for a in self._accounts if a.chain == name]

    def _find(self, chain: str, index: int) -> Account:
        name = self._chain_name(chain)
        for a in self._accounts:
            if a.chain == name and a.index == index:
                return a
        raise KeyError(f"No account {name} #{index}")

    def rename(self, chain: str, index: int, label: str) -> Account:
        label = (label or "").strip()
        if not label:
            raise ValueError("Label cannot be empty")
        with self._lock:
            account = self._find(chain, index)
            account.label = label
        return replace(account)

    def set_balance(self, chain: str, index: int, balance: Optional[str]) -> Account:
        """Attach a display balance supplied by the caller."""
        with self._lock:
            account = self._find(chain, index)
            account.balance = balance
        return replace(account)

    def layout(self) -> list[AccountSlot]:
        """Non-secret (chain, index, label) entries for re-derivation."""
        return [AccountSlot(a.chain, a.index, a.label) for a in self._accounts]

    def clear(self) -> None:
        with self._lock:
            self._accounts.clear()

    # Defined last so the builtin stays visible to annotations above
    def list(self) -> list[Account]:
        """All accounts in insertion order (copies)."""
        return [replace(a) for a in self._accounts]
