"""
Zenith Networks - Supported chain configurations.

Each chain declares its derivation path template, curve and address
encoding. The key derivation engine dispatches on these entries.
"""

from dataclasses import dataclass
from typing import Optional

# ============================================
# Chain Configurations
# ============================================

ETHEREUM = "ethereum"
SOLANA = "solana"
BITCOIN = "bitcoin"

# BIP-32 indices above this are hardened; account indices must stay below
MAX_DERIVATION_INDEX = 2**31 - 1


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a supported chain."""
    name: str                 # Identifier used across the API ("ethereum")
    display_name: str         # Human-readable name
    symbol: str               # Native asset symbol
    model: str                # "account" or "utxo"
    curve: str                # "secp256k1" or "ed25519"
    path_template: str        # Derivation path with {} for the account index
    address_encoding: str     # "eip55", "base58", "bech32"
    explorer_url: str

    def derivation_path(self, index: int) -> str:
        """Full derivation path for an account index."""
        return self.path_template.format(index)


CHAINS = {
    SOLANA: ChainConfig(
        name=SOLANA,
        display_name="Solana",
        symbol="SOL",
        model="account",
        curve="ed25519",
        path_template="m/44'/501'/{}'/0'",
        address_encoding="base58",
        explorer_url="https://explorer.solana.com",
    ),
    ETHEREUM: ChainConfig(
        name=ETHEREUM,
        display_name="Ethereum",
        symbol="ETH",
        model="account",
        curve="secp256k1",
        path_template="m/44'/60'/0'/0/{}",
        address_encoding="eip55",
        explorer_url="https://etherscan.io",
    ),
    BITCOIN: ChainConfig(
        name=BITCOIN,
        display_name="Bitcoin",
        symbol="BTC",
        model="utxo",
        curve="secp256k1",
        path_template="m/84'/0'/0'/0/{}",
        address_encoding="bech32",
        explorer_url="https://mempool.space",
    ),
}

# Chains that get an index-0 account when a wallet is created or unlocked
DEFAULT_CHAINS = (SOLANA, ETHEREUM)


# ============================================
# Utility Functions
# ============================================

def get_chain(name: str) -> Optional[ChainConfig]:
    """Get chain config by name (case-insensitive)."""
    if not isinstance(name, str):
        return None
    return CHAINS.get(name.strip().lower())


def supported_chains() -> list[str]:
    """Names of all supported chains, in display order."""
    return list(CHAINS.keys())


def format_address(address: str, chars: int = 4) -> str:
    """Format address as 0x1234...5678"""
    if len(address) <= chars * 2 + 2:
        return address
    prefix = 2 if address.startswith("0x") else 0
    return f"{address[:chars + prefix]}...{address[-chars:]}"
