"""
Tests for wallet.manager - the account registry.
"""

import pytest

from models.account import Account, AccountSlot, default_label
from wallet.errors import DuplicateAccount, InvalidIndex, UnsupportedChain
from wallet.manager import AccountRegistry


@pytest.fixture
def registry():
    reg = AccountRegistry()
    reg.register("solana", 0, "SoLAddr0")
    reg.register("ethereum", 0, "0xEth0")
    return reg


class TestRegister:

    def test_default_labels(self, registry):
        assert [a.label for a in registry.list()] == ["Account 1", "Account 1"]
        assert default_label(4) == "Account 5"

    def test_contiguous_indices(self, registry):
        assert registry.next_index("ethereum") == 1
        account = registry.register("ethereum", 1, "0xEth1", "Savings")
        assert account.index == 1
        assert account.label == "Savings"
        assert registry.next_index("ethereum") == 2

    def test_duplicate(self, registry):
        with pytest.raises(DuplicateAccount):
            registry.register("ethereum", 0, "0xOther")
        assert len(registry) == 2

    def test_gap(self, registry):
        with pytest.raises(InvalidIndex):
            registry.register("ethereum", 2, "0xEth2")

    @pytest.mark.parametrize("index", [True, 1.0, "1", None])
    def test_non_integer_index(self, registry, index):
        with pytest.raises(InvalidIndex):
            registry.register("solana", index, "SoLAddr1")
        assert len(registry) == 2

    def test_first_index_on_new_chain_must_be_zero(self, registry):
        with pytest.raises(InvalidIndex):
            registry.register("bitcoin", 1, "bc1q")
        assert registry.register("bitcoin", 0, "bc1q").chain == "bitcoin"

    def test_unsupported_chain(self, registry):
        with pytest.raises(UnsupportedChain):
            registry.register("dogecoin", 0, "D123")

    def test_chain_name_normalized(self, registry):
        account = registry.register("ETHEREUM", 1, "0xEth1")
        assert account.chain == "ethereum"

    def test_seeded_from_accounts(self):
        reg = AccountRegistry([Account("solana", 0, "a"), Account("solana", 1, "b")])
        assert [a.index for a in reg.for_chain("solana")] == [0, 1]


class TestQueries:

    def test_list_preserves_insertion_order(self, registry):
        assert [a.key for a in registry] == [("solana", 0), ("ethereum", 0)]

    def test_returned_accounts_are_copies(self, registry):
        account = registry.get("ethereum", 0)
        account.label = "Mutated"
        registry.list()[0].address = "changed"
        assert registry.get("ethereum", 0).label == "Account 1"
        assert registry.get("solana", 0).address == "SoLAddr0"

    def test_get_missing(self, registry):
        assert registry.get("bitcoin", 0) is None

    def test_layout(self, registry):
        registry.rename("solana", 0, "Main")
        assert registry.layout() == [
            AccountSlot("solana", 0, "Main"),
            AccountSlot("ethereum", 0, "Account 1"),
        ]

    def test_can_add_account(self, registry):
        assert registry.can_add_account("bitcoin")


class TestMutation:

    def test_rename(self, registry):
        assert registry.rename("ethereum", 0, "  Trading ").label == "Trading"

    def test_rename_empty(self, registry):
        with pytest.raises(ValueError):
            registry.rename("ethereum", 0, "   ")

    def test_rename_missing(self, registry):
        with pytest.raises(KeyError):
            registry.rename("ethereum", 5, "Nope")

    def test_set_balance(self, registry):
        assert registry.set_balance("solana", 0, "1.5").balance == "1.5"

    def test_clear(self, registry):
        registry.clear()
        assert len(registry) == 0
        assert registry.next_index("solana") == 0


class TestAccountModel:

    def test_round_trip(self):
        account = Account("ethereum", 2, "0xabc", "Cold")
        assert Account.from_dict(account.to_dict()) == account

    def test_display_label(self):
        assert Account("ethereum", 0, "0xabc").display_label() == "Ethereum - Account 1"

    def test_slot_round_trip(self):
        slot = AccountSlot("bitcoin", 3, "Hodl")
        assert AccountSlot.from_dict(slot.to_dict()) == slot
