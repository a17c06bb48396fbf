"""
Password Policy - Strength scoring for the vault password.

Score is built from five 25-point criteria and capped at 100. A password is
accepted for a new vault only when it is "strong": score >= 75 and at least
8 characters long.
"""

import string

from .errors import PasswordPolicyError

MIN_LENGTH = 8
LONG_LENGTH = 12
STRONG_SCORE = 75
MAX_SCORE = 100

ASCII_ALNUM = frozenset(string.ascii_letters + string.digits)


def password_strength(password: str) -> int:
    """Score a password from 0 to 100."""
    if not password:
        return 0
    score = 0
    if len(password) >= MIN_LENGTH:
        score += 25
    if len(password) >= LONG_LENGTH:
        score += 25
    if any(c in string.ascii_uppercase for c in password):
        score += 25
    if any(c in string.digits for c in password):
        score += 25
    if any(c not in ASCII_ALNUM for c in password):
        score += 25
    return min(score, MAX_SCORE)


def strength_label(score: int) -> str:
    if score < 25:
        return "weak"
    if score < 50:
        return "fair"
    if score < 75:
        return "good"
    return "strong"


def is_strong(password: str) -> bool:
    return len(password or "") >= MIN_LENGTH and password_strength(password) >= STRONG_SCORE


def check_password(password: str, confirmation: str) -> None:
    """
    Enforce the policy for a new vault password.

    Raises:
        PasswordPolicyError: Too weak, or confirmation does not match
    """
    if not isinstance(password, str) or not password:
        raise PasswordPolicyError("Password cannot be empty")
    if len(password) < MIN_LENGTH:
        raise PasswordPolicyError(f"Password must be at least {MIN_LENGTH} characters")
    if not is_strong(password):
        label = strength_label(password_strength(password))
        raise PasswordPolicyError(f"Password is too weak ({label})")
    if password != confirmation:
        raise PasswordPolicyError("Passwords do not match")
