"""
Services package - Backend services for Zenith.

Contains:
- OnboardingController: Wallet lifecycle state machine
- WalletServer: HTTP server for the local wallet API
- WalletSettings: settings.json configuration
- TransitionWorker: Off-thread execution of slow calls
"""

from .onboarding import OnboardingController
from .server import WalletServer
from .settings import WalletSettings
from .workers import TransitionWorker

__all__ = [
    "OnboardingController",
    "WalletServer",
    "WalletSettings",
    "TransitionWorker",
]
