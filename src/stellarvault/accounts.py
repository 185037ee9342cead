"""
Account records and the typed adapter over the secret store.

Records live at ``accounts/<name>`` as JSON. The seed is held on the Account
object only for the adapter's own use: read callers get ``public_dict()``,
and signing goes through a short-lived ``SigningKey`` capability.
"""

from __future__ import annotations

import json
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from stellar_sdk import Keypair, TransactionEnvelope

from .errors import (
    AccountNotFoundError,
    InvalidNameError,
    SigningFailureError,
    StellarVaultError,
    StoreError,
)
from .storage import KeyValueStore

logger = logging.getLogger(__name__)


ACCOUNTS_PREFIX = "accounts/"
# ASCII only; store path segments reject anything else.
_NAME_RE = re.compile(r"\w([\w.-]*\w)?", re.ASCII)


def is_valid_name(name: str) -> bool:
    return bool(name) and bool(_NAME_RE.fullmatch(name))


def account_path(name: str) -> str:
    return ACCOUNTS_PREFIX + name


@dataclass
class Account:
    """A custodial keypair plus its transfer policy."""

    address: str
    account_id: str
    tx_spend_limit: int = 0
    whitelist: list[str] = field(default_factory=list)
    blacklist: list[str] = field(default_factory=list)
    created_at: float = 0.0
    _seed: Optional[str] = field(default=None, repr=False)

    def public_dict(self) -> dict:
        return {
            "address": self.address,
            "stellarAccountId": self.account_id,
            "txSpendLimit": str(self.tx_spend_limit),
            "whitelist": list(self.whitelist),
            "blacklist": list(self.blacklist),
        }

    def to_record(self) -> dict:
        # Limits are stored as strings so they survive any JSON consumer.
        return {
            "address": self.address,
            "seed": self._seed,
            "account_id": self.account_id,
            "tx_spend_limit": str(self.tx_spend_limit),
            "whitelist": list(self.whitelist),
            "blacklist": list(self.blacklist),
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, raw: dict) -> "Account":
        return cls(
            address=raw["address"],
            account_id=raw.get("account_id") or raw["address"],
            tx_spend_limit=int(raw.get("tx_spend_limit") or "0"),
            whitelist=list(raw.get("whitelist") or []),
            blacklist=list(raw.get("blacklist") or []),
            created_at=float(raw.get("created_at") or 0.0),
            _seed=raw.get("seed"),
        )


class SigningKey:
    """
    Scoped signing capability for one account.

    Holds the decoded keypair only until ``destroy()``; use it as a context
    manager so the key is dropped as soon as the signature is attached.
    """

    def __init__(self, account: Account):
        if not account._seed:
            raise SigningFailureError(f"No key material stored for {account.address}")
        try:
            keypair = Keypair.from_secret(account._seed)
        except ValueError as exc:
            raise SigningFailureError(f"Stored key for {account.address} is unreadable") from exc
        if keypair.public_key != account.address:
            raise SigningFailureError(f"Stored key does not match address {account.address}")
        self._keypair: Optional[Keypair] = keypair

    @property
    def address(self) -> str:
        if self._keypair is None:
            raise SigningFailureError("Signing key has been destroyed")
        return self._keypair.public_key

    def sign(self, envelope: TransactionEnvelope) -> None:
        if self._keypair is None:
            raise SigningFailureError("Signing key has been destroyed")
        try:
            envelope.sign(self._keypair)
        except ValueError as exc:
            raise SigningFailureError(f"Failed to sign with {self._keypair.public_key}: {exc}") from exc

    def destroy(self) -> None:
        self._keypair = None

    def __enter__(self) -> "SigningKey":
        return self

    def __exit__(self, *exc_info) -> None:
        self.destroy()

    def __repr__(self) -> str:
        state = "destroyed" if self._keypair is None else self._keypair.public_key
        return f"SigningKey({state})"


class AccountStore:
    """Typed read/write of Account records over a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get(self, name: str) -> Optional[Account]:
        if not is_valid_name(name):
            return None
        path = account_path(name)
        logger.debug("Reading account from path: %s", path)
        try:
            raw = self.store.get(path)
        except StellarVaultError:
            raise
        except Exception as exc:
            raise StoreError(f"failed to read account at {path}: {exc}") from exc
        if not raw:
            return None
        try:
            return Account.from_record(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            raise StoreError(f"failed to deserialize account at {path}") from exc

    def require(self, name: str, role: str = "account") -> Account:
        account = self.get(name)
        if account is None:
            raise AccountNotFoundError(name, role=role)
        return account

    def put(self, name: str, account: Account) -> None:
        if not is_valid_name(name):
            raise InvalidNameError(name)
        payload = json.dumps(account.to_record(), sort_keys=True).encode()
        try:
            self.store.put(account_path(name), payload)
        except StellarVaultError:
            raise
        except Exception as exc:
            raise StoreError(f"failed to write account {name}: {exc}") from exc

    def list_names(self) -> list[str]:
        try:
            return self.store.list(ACCOUNTS_PREFIX)
        except StellarVaultError:
            raise
        except Exception as exc:
            raise StoreError(f"failed to list accounts: {exc}") from exc

    @contextmanager
    def signing_key(self, account: Account) -> Iterator[SigningKey]:
        key = SigningKey(account)
        try:
            yield key
        finally:
            key.destroy()
