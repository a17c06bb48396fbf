"""
Models package - Data models for Zenith.

Contains:
- Account, AccountSlot: Derived accounts and their persisted layout
- Phase and the onboarding state records
- Transition, TransitionFailure: Results of state machine transitions
"""

from .account import Account, AccountSlot, default_label
from .phases import (
    Phase,
    WelcomeState,
    SecureState,
    RecoveryState,
    VerifyState,
    DashboardState,
    LockedState,
    OnboardingState,
    Transition,
    TransitionFailure,
    TransitionResult,
)

__all__ = [
    "Account",
    "AccountSlot",
    "default_label",
    "Phase",
    "WelcomeState",
    "SecureState",
    "RecoveryState",
    "VerifyState",
    "DashboardState",
    "LockedState",
    "OnboardingState",
    "Transition",
    "TransitionFailure",
    "TransitionResult",
]
