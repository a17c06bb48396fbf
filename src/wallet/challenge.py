"""
Backup Verification - Prove the recovery phrase was written down.

The user is shown the phrase words in a shuffled pool and must pick them
back in the original order. The order is only checked once every word has
been picked; a wrong order clears the selection and reshuffles the pool.
"""

import logging
import random
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from math import factorial
from typing import Optional

from .errors import ChallengeSpent, InvalidSelection
from .phrase import split_words

logger = logging.getLogger(__name__)

# Attempts at finding a layout distinct from the previous one
MAX_RESHUFFLES = 32


class ChallengeStatus(str, Enum):
    INCOMPLETE = "incomplete"
    MATCHED = "matched"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class SubmitResult:
    status: ChallengeStatus
    selected: tuple[str, ...]

    @property
    def matched(self) -> bool:
        return self.status is ChallengeStatus.MATCHED


class VerificationChallenge:
    """
    Shuffle-and-reorder check over a mnemonic's words.

    Usage:
        challenge = VerificationChallenge(phrase)
        pool = challenge.start()
        result = challenge.submit(pool[3], 3)
    """

    def __init__(self, mnemonic: str, rng: Optional[random.Random] = None):
        self._expected = tuple(split_words(mnemonic))
        if not self._expected:
            raise InvalidSelection("Cannot build a challenge from an empty phrase")
        self._rng = rng or random.SystemRandom()
        self._pool: list[str] = []
        self._selected: list[str] = []
        self._layout: tuple[str, ...] = ()
        self._attempts = 0
        self._spent = False
        self._started = False

    # ---- views ----

    @property
    def pool(self) -> list[str]:
        return list(self._pool)

    @property
    def selected(self) -> list[str]:
        return list(self._selected)

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def is_complete(self) -> bool:
        return self._spent

    @property
    def word_count(self) -> int:
        return len(self._expected)

    # ---- lifecycle ----

    def start(self) -> list[str]:
        """Return the initial shuffled pool (idempotent until the first pick)."""
        self._check_live()
        if not self._started:
            self._shuffle()
            self._started = True
        return self.pool

    def submit(self, word: str, position: int) -> SubmitResult:
        """
        Pick pool[position] as the next word.

        Raises:
            InvalidSelection: Position out of range, or word does not match it
            ChallengeSpent: Challenge already matched
        """
        self._check_live()
        if not self._started:
            self.start()

        if isinstance(position, bool) or not isinstance(position, int) \
                or not 0 <= position < len(self._pool):
            raise InvalidSelection(f"Position out of range: {position!r}")
        if self._pool[position] != word:
            raise InvalidSelection("Selected word does not match the pool position")

        self._selected.append(self._pool.pop(position))

        if len(self._selected) < len(self._expected):
            return SubmitResult(ChallengeStatus.INCOMPLETE, tuple(self._selected))

        if tuple(self._selected) == self._expected:
            self._spent = True
            logger.info(f"Backup verified after {self._attempts + 1} attempt(s)")
            return SubmitResult(ChallengeStatus.MATCHED, tuple(self._selected))

        attempted = tuple(self._selected)
        self._attempts += 1
        logger.info(f"Backup verification mismatch (attempt {self._attempts})")
        self._selected = []
        self._shuffle()
        return SubmitResult(ChallengeStatus.MISMATCH, attempted)

    def reset(self) -> list[str]:
        """Clear the selection and reshuffle."""
        self._check_live()
        self._selected = []
        self._shuffle()
        self._started = True
        return self.pool

    def _check_live(self) -> None:
        if self._spent:
            raise ChallengeSpent("Verification challenge already completed")

    def _shuffle(self) -> None:
        """New permutation, never the original order, and not the previous layout when avoidable."""
        words = list(self._expected)
        distinct = len(set(words)) > 1
        previous = self._layout

        candidate = list(words)
        for _ in range(MAX_RESHUFFLES):
            self._rng.shuffle(candidate)
            layout = tuple(candidate)
            if not distinct:
                break
            if layout == self._expected:
                continue
            if previous and layout == previous and self._has_alternative(previous):
                continue
            break
        else:
            # Bad luck on every draw; fall back to a rotation
            candidate = self._fallback_layout(previous)

        self._pool = list(candidate)
        self._layout = tuple(candidate)

    def _has_alternative(self, previous: tuple[str, ...]) -> bool:
        """Whether a layout other than both the original and previous exists."""
        words = self._expected
        arrangements = factorial(len(words))
        for count in Counter(words).values():
            arrangements //= factorial(count)
        excluded = 1 if previous == words else 2
        return arrangements > excluded

    def _fallback_layout(self, previous: tuple[str, ...]) -> list[str]:
        words = list(self._expected)
        for shift in range(1, len(words)):
            layout = words[shift:] + words[:shift]
            if tuple(layout) != self._expected and tuple(layout) != previous:
                return layout
        for shift in range(1, len(words)):
            layout = words[shift:] + words[:shift]
            if tuple(layout) != self._expected:
                return layout
        return words
