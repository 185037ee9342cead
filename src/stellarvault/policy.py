"""Per-account transfer policy: spend limit, blacklist, whitelist."""

from __future__ import annotations

from typing import Optional

from .accounts import Account
from .errors import (
    BlacklistedError,
    NotWhitelistedError,
    PolicyViolationError,
    SpendLimitExceededError,
)


def evaluate_transfer(account: Account, amount: int, destination: str) -> Optional[PolicyViolationError]:
    """
    Return the first violated rule for this transfer, or None.

    Order is fixed: spend limit, then blacklist, then whitelist. A zero limit
    is unlimited; the blacklist applies even when the whitelist is empty.
    """
    limit = account.tx_spend_limit
    if limit > 0 and amount > limit:
        return SpendLimitExceededError(limit=limit, amount=amount)
    if destination in account.blacklist:
        return BlacklistedError(destination)
    if account.whitelist and destination not in account.whitelist:
        return NotWhitelistedError(destination)
    return None


def validate_transfer(account: Account, amount: int, destination: str) -> None:
    """Raise the first policy violation for this transfer, if any."""
    violation = evaluate_transfer(account, amount, destination)
    if violation is not None:
        raise violation
