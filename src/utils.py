"""
Filesystem locations for Zenith data.

Everything lives under one data directory: the encrypted vault in
wallets/, settings.json, and daily log files in logs/.
"""

import os
import sys
from pathlib import Path

# Overrides the data directory (tests, portable installs)
HOME_ENV_VAR = "ZENITH_HOME"


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_app_dir() -> Path:
    """Data directory, created on first use.

    ZENITH_HOME wins; a frozen build keeps data next to the executable,
    a source checkout next to src/.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return _ensure_dir(Path(override).expanduser())
    if getattr(sys, 'frozen', False):
        return _ensure_dir(Path(sys.executable).parent / "data")
    return _ensure_dir(Path(__file__).resolve().parent.parent / "data")


def get_wallet_dir() -> Path:
    return get_app_dir() / "wallets"


def get_default_vault_path() -> Path:
    """Location of the single encrypted vault file."""
    return get_wallet_dir() / "vault.json"


def get_settings_path() -> Path:
    return get_app_dir() / "settings.json"


def get_logs_dir() -> Path:
    return _ensure_dir(get_app_dir() / "logs")
