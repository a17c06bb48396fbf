"""
Settings - User-editable configuration stored in settings.json.

Unknown keys are ignored so older builds can read newer files. An unreadable
file falls back to defaults with a warning; an explicit invalid value is an
error.
"""

import json
import logging
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Optional

from networks import DEFAULT_CHAINS, get_chain, supported_chains
from utils import get_settings_path
from wallet.crypto import KdfParams, ARGON2_MEMORY_COST, ARGON2_PARALLELISM, ARGON2_TIME_COST
from wallet.errors import MalformedVault
from wallet.phrase import WORD_COUNT_ENTROPY_BITS

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class WalletSettings:
    """Application settings with defaults."""
    word_count: int = 12
    default_chains: list[str] = field(default_factory=lambda: list(DEFAULT_CHAINS))
    kdf_time_cost: int = ARGON2_TIME_COST
    kdf_memory_cost: int = ARGON2_MEMORY_COST
    kdf_parallelism: int = ARGON2_PARALLELISM
    server_port: int = 8081
    allow_lan: bool = False
    requests_per_minute: int = 300
    log_level: str = "INFO"
    log_retention_days: int = 7

    def _check_types(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "default_chains":
                ok = isinstance(value, list) and all(isinstance(c, str) for c in value)
            elif f.type is bool:
                ok = isinstance(value, bool)
            elif f.type is int:
                ok = isinstance(value, int) and not isinstance(value, bool)
            else:
                ok = isinstance(value, f.type)
            if not ok:
                raise ValueError(f"{f.name} has the wrong type: {value!r}")

    def validate(self) -> "WalletSettings":
        """Raise ValueError on any invalid value."""
        self._check_types()
        if self.word_count not in WORD_COUNT_ENTROPY_BITS:
            raise ValueError(f"word_count must be one of {sorted(WORD_COUNT_ENTROPY_BITS)}")
        if not self.default_chains:
            raise ValueError("default_chains cannot be empty")
        for chain in self.default_chains:
            if get_chain(chain) is None:
                raise ValueError(f"Unsupported chain in default_chains: {chain!r}")
        try:
            self.kdf_params()
        except MalformedVault as e:
            raise ValueError(e.message) from e
        if not isinstance(self.server_port, int) or not 0 <= self.server_port <= 65535:
            raise ValueError(f"server_port out of range: {self.server_port}")
        if not isinstance(self.requests_per_minute, int) or self.requests_per_minute < 1:
            raise ValueError("requests_per_minute must be a positive integer")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if not isinstance(self.log_retention_days, int) or self.log_retention_days < 0:
            raise ValueError("log_retention_days must be >= 0")
        return self

    def kdf_params(self) -> KdfParams:
        return KdfParams(
            time_cost=self.kdf_time_cost,
            memory_cost=self.kdf_memory_cost,
            parallelism=self.kdf_parallelism,
        ).validate()

    def enabled_chains(self) -> list[str]:
        """All supported chains; defaults only pick which get an account up front."""
        return supported_chains()

    def log_level_value(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WalletSettings":
        known = {f.name for f in fields(cls)}
        settings = cls(**{k: v for k, v in data.items() if k in known})
        settings._check_types()
        settings.default_chains = [c.strip().lower() for c in settings.default_chains]
        return settings.validate()

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "WalletSettings":
        """Load settings; missing or unreadable files give defaults."""
        path = Path(path) if path else get_settings_path()
        if not path.exists():
            return cls()
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read settings from {path}, using defaults: {e}")
            return cls()
        if not isinstance(data, dict):
            logger.warning(f"Settings file {path} is not an object, using defaults")
            return cls()
        return cls.from_dict(data)

    def save(self, path: Optional[str | Path] = None) -> None:
        path = Path(path) if path else get_settings_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix('.tmp')
        with open(temp_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        temp_path.replace(path)
