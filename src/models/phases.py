"""
Onboarding phases and state records.

Each phase has its own immutable state type carrying only what that phase
needs. Transitions build new states; they never mutate an existing one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Phase(str, Enum):
    WELCOME = "welcome"
    SECURE = "secure"
    RECOVERY = "recovery"
    VERIFY = "verify"
    DASHBOARD = "dashboard"
    LOCKED = "locked"


@dataclass(frozen=True)
class WelcomeState:
    phase: Phase = field(default=Phase.WELCOME, init=False)


@dataclass(frozen=True)
class SecureState:
    phase: Phase = field(default=Phase.SECURE, init=False)


@dataclass(frozen=True)
class RecoveryState:
    """Phrase generated and vault sealed; waiting for the backup acknowledgment."""
    vault: Any                                  # EncryptedVault (not yet persisted)
    secret: Any = field(repr=False, compare=False)   # SecretBuffer holding the pending phrase
    revealed: bool = False
    phase: Phase = field(default=Phase.RECOVERY, init=False)


@dataclass(frozen=True)
class VerifyState:
    vault: Any
    secret: Any = field(repr=False, compare=False)
    challenge: Any = field(compare=False)       # VerificationChallenge; tracks its own progress
    phase: Phase = field(default=Phase.VERIFY, init=False)


@dataclass(frozen=True)
class DashboardState:
    phase: Phase = field(default=Phase.DASHBOARD, init=False)


@dataclass(frozen=True)
class LockedState:
    phase: Phase = field(default=Phase.LOCKED, init=False)


OnboardingState = Union[
    WelcomeState, SecureState, RecoveryState, VerifyState, DashboardState, LockedState
]


@dataclass(frozen=True)
class Transition:
    """A successful transition to a new state."""
    state: OnboardingState
    secret: Any = field(default=None, repr=False, compare=False)   # Phrase handed to a new session

    @property
    def ok(self) -> bool:
        return True

    @property
    def phase(self) -> Phase:
        return self.state.phase


@dataclass(frozen=True)
class TransitionFailure:
    """A rejected transition; the machine stays in `phase`."""
    phase: Phase
    reason: str
    code: str = "STATE_VIOLATION"

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {"error": self.reason, "code": self.code, "phase": self.phase.value}


TransitionResult = Union[Transition, TransitionFailure]
