"""
Account model.

A derived, addressable account on one chain. Accounts carry no key
material; the address is re-derivable from the mnemonic at (chain, index).
"""

from dataclasses import dataclass, asdict
from typing import Optional


def default_label(index: int) -> str:
    return f"Account {index + 1}"


@dataclass
class Account:
    """One registered account (chain, index) with its address."""
    chain: str
    index: int
    address: str
    label: str = ""
    balance: Optional[str] = None   # Display-only; never fetched here

    def __post_init__(self):
        if not self.label:
            self.label = default_label(self.index)

    @property
    def key(self) -> tuple[str, int]:
        return (self.chain, self.index)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        return cls(
            chain=data["chain"],
            index=data["index"],
            address=data["address"],
            label=data.get("label", ""),
            balance=data.get("balance"),
        )

    def display_label(self) -> str:
        """Format for display: Ethereum - Account 1"""
        return f"{self.chain.capitalize()} - {self.label}"


@dataclass(frozen=True)
class AccountSlot:
    """Non-secret account layout entry, persisted so unlock can re-derive."""
    chain: str
    index: int
    label: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AccountSlot":
        return cls(chain=data["chain"], index=int(data["index"]), label=data.get("label", ""))
