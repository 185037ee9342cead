"""
Account issuance: keypair generation, persistence, best-effort funding.

Funding is decoupled from custody. The record is written first; a faucet
failure is then logged and reported on the result, and retrying the funding
is the caller's business.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from stellar_sdk import Keypair

from .accounts import Account, AccountStore, is_valid_name
from .amounts import parse_amount, parse_spend_limit
from .errors import FundingError, InvalidNameError
from .ledger import Faucet

logger = logging.getLogger(__name__)


@dataclass
class AccountCreated:
    """Public result of an issuance call. The seed is not part of it."""

    name: str
    account: Account
    funded: bool
    funding_error: Optional[str] = None

    def to_dict(self) -> dict:
        result = self.account.public_dict()
        result["created_at"] = self.account.created_at
        return result


class AccountIssuer:
    """Creates (or re-creates) named custodial accounts."""

    def __init__(self, accounts: AccountStore, faucet: Optional[Faucet] = None):
        self.accounts = accounts
        self.faucet = faucet

    def create_account(
        self,
        name: str,
        xlm_balance: Union[str, int, None] = None,
        tx_spend_limit: Union[str, int, None] = "0",
        whitelist: Iterable[str] = (),
        blacklist: Iterable[str] = (),
    ) -> AccountCreated:
        if not is_valid_name(name):
            raise InvalidNameError(name)
        limit = parse_spend_limit(tx_spend_limit)
        starting_balance = None
        if xlm_balance not in (None, ""):
            starting_balance = parse_amount(xlm_balance, field="xlm_balance")

        keypair = Keypair.random()
        address = keypair.public_key
        account = Account(
            address=address,
            account_id=address,
            tx_spend_limit=limit,
            whitelist=_clean(whitelist),
            blacklist=_clean(blacklist),
            created_at=time.time(),
            _seed=keypair.secret,
        )
        self.accounts.put(name, account)
        logger.info("Created account %s (%s, tx_spend_limit=%s)", name, address, limit)

        # The record is durable before the faucet is contacted.
        funded, funding_error = self._fund(address, starting_balance)
        return AccountCreated(name=name, account=account, funded=funded, funding_error=funding_error)

    def _fund(self, address: str, starting_balance: Optional[int]) -> tuple[bool, Optional[str]]:
        if self.faucet is None:
            return False, None
        try:
            self.faucet.fund(address)
        except FundingError as exc:
            logger.warning("Funding %s failed: %s", address, exc)
            return False, str(exc)
        except Exception as exc:
            logger.warning("Funding %s failed: %s: %s", address, type(exc).__name__, exc)
            return False, f"{type(exc).__name__}: {exc}"
        logger.info(
            "Funded %s via faucet (requested starting balance: %s)",
            address,
            starting_balance if starting_balance is not None else "default",
        )
        return True, None


def _clean(addresses: Iterable[str]) -> list[str]:
    return [a.strip() for a in addresses if a and a.strip()]
