"""Amount parsing with arbitrary-precision non-negative integers."""

from __future__ import annotations

import re
from typing import Union

from .errors import InvalidAmountError


STROOPS_PER_LUMEN = 10_000_000
# Ledger amounts are signed 64-bit stroop counts.
MAX_LEDGER_STROOPS = 2**63 - 1
MAX_LEDGER_AMOUNT = MAX_LEDGER_STROOPS // STROOPS_PER_LUMEN

_DIGITS_RE = re.compile(r"^[0-9]+$")


def parse_amount(value: Union[str, int, None], field: str = "amount") -> int:
    """Parse a non-negative integer amount, rejecting anything else."""
    if isinstance(value, bool):
        raise InvalidAmountError(field, value)
    if isinstance(value, int):
        if value < 0:
            raise InvalidAmountError(field, value)
        return value
    if not isinstance(value, str):
        raise InvalidAmountError(field, value)
    raw = value.strip()
    if not _DIGITS_RE.match(raw):
        raise InvalidAmountError(field, value)
    return int(raw)


def parse_spend_limit(value: Union[str, int, None]) -> int:
    """Parse a spend limit; empty means unlimited (0)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return parse_amount(value, field="tx_spend_limit")


def fits_ledger(amount: int) -> bool:
    """Whether a whole-lumen amount is representable as int64 stroops."""
    return 0 <= amount * STROOPS_PER_LUMEN <= MAX_LEDGER_STROOPS
