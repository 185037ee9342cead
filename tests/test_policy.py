"""Tests for per-account transfer policy."""

import pytest

from stellarvault.accounts import Account
from stellarvault.errors import BlacklistedError, NotWhitelistedError, SpendLimitExceededError
from stellarvault.policy import evaluate_transfer, validate_transfer

DEST = "GDEST"
OTHER = "GOTHER"


def _account(limit=0, whitelist=(), blacklist=()):
    return Account(
        address="GSRC",
        account_id="GSRC",
        tx_spend_limit=limit,
        whitelist=list(whitelist),
        blacklist=list(blacklist),
    )


class TestSpendLimit:
    def test_zero_limit_is_unlimited(self):
        assert evaluate_transfer(_account(limit=0), 10**30, DEST) is None

    def test_amount_equal_to_limit_allowed(self):
        assert evaluate_transfer(_account(limit=100), 100, DEST) is None

    def test_amount_over_limit_denied(self):
        violation = evaluate_transfer(_account(limit=100), 101, DEST)
        assert isinstance(violation, SpendLimitExceededError)
        assert str(violation) == "transaction amount (101) is larger than the transactional limit (100)"
        assert violation.to_dict()["reason"] == "spend_limit_exceeded"
        assert violation.to_dict()["limit"] == "100"


class TestLists:
    def test_blacklist_applies_with_empty_whitelist(self):
        violation = evaluate_transfer(_account(blacklist=[DEST]), 1, DEST)
        assert isinstance(violation, BlacklistedError)
        assert str(violation) == f"{DEST} is blacklisted"

    def test_whitelist_membership(self):
        account = _account(whitelist=[DEST])
        assert evaluate_transfer(account, 1, DEST) is None
        violation = evaluate_transfer(account, 1, OTHER)
        assert isinstance(violation, NotWhitelistedError)
        assert str(violation) == f"{OTHER} is not in the whitelist"

    def test_empty_whitelist_allows_everyone(self):
        assert evaluate_transfer(_account(), 1, OTHER) is None


class TestOrdering:
    def test_limit_checked_before_lists(self):
        account = _account(limit=5, whitelist=[OTHER], blacklist=[DEST])
        assert isinstance(evaluate_transfer(account, 6, DEST), SpendLimitExceededError)

    def test_blacklist_checked_before_whitelist(self):
        account = _account(whitelist=[OTHER], blacklist=[DEST])
        assert isinstance(evaluate_transfer(account, 1, DEST), BlacklistedError)

    def test_address_on_both_lists_is_denied(self):
        account = _account(whitelist=[DEST], blacklist=[DEST])
        assert isinstance(evaluate_transfer(account, 1, DEST), BlacklistedError)


def test_validate_transfer_raises():
    with pytest.raises(BlacklistedError):
        validate_transfer(_account(blacklist=[DEST]), 1, DEST)
    validate_transfer(_account(), 1, DEST)
