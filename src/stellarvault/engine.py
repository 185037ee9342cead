"""
Request surface of the secrets engine.

Each operation has a request type with a validating constructor; the
``Backend`` dispatches on an explicit ``Operation`` and converts typed errors
into structured responses, the way callers of a secret-engine path expect:

    accounts/<name>   create / update / read
    accounts/         list
    payments          create
    transactions      submit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from .accounts import AccountStore
from .audit import AuditTrail, EventType
from .config import LedgerConfig
from .errors import (
    DependencyError,
    MissingFieldError,
    PolicyViolationError,
    StellarVaultError,
    UnknownFieldError,
)
from .issuance import AccountCreated, AccountIssuer
from .ledger import Faucet, FriendbotFaucet, HorizonClient, LedgerClient
from .storage import KeyValueStore
from .transactions import PaymentRequest, TransactionAssembler, parse_name_list

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE_ACCOUNT = "create_account"
    UPDATE_ACCOUNT = "update_account"
    READ_ACCOUNT = "read_account"
    LIST_ACCOUNTS = "list_accounts"
    CREATE_PAYMENT = "create_payment"
    SUBMIT_TRANSACTION = "submit_transaction"


def _reject_unknown(data: Mapping[str, Any], allowed: frozenset) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise UnknownFieldError(unknown)


@dataclass
class CreateAccountRequest:
    name: str
    xlm_balance: Optional[str] = None
    tx_spend_limit: str = "0"
    whitelist: list[str] = field(default_factory=list)
    blacklist: list[str] = field(default_factory=list)

    FIELDS = frozenset({"xlm_balance", "tx_spend_limit", "whitelist", "blacklist"})
    # Accepted for compatibility with older clients; has no effect.
    IGNORED_FIELDS = frozenset({"source_account_name"})

    @classmethod
    def from_fields(cls, name: Optional[str], data: Mapping[str, Any]) -> "CreateAccountRequest":
        _reject_unknown(data, cls.FIELDS | cls.IGNORED_FIELDS)
        if not name:
            raise MissingFieldError("name")
        for ignored in sorted(cls.IGNORED_FIELDS & set(data)):
            logger.debug("Ignoring field %s on account %s", ignored, name)
        limit = data.get("tx_spend_limit")
        balance = data.get("xlm_balance")
        return cls(
            name=name,
            xlm_balance=None if balance in (None, "") else str(balance),
            tx_spend_limit="0" if limit in (None, "") else str(limit),
            whitelist=parse_name_list(data.get("whitelist")),
            blacklist=parse_name_list(data.get("blacklist")),
        )


@dataclass
class SubmitTransactionRequest:
    signed_transaction: str

    FIELDS = frozenset({"signed_transaction"})

    @classmethod
    def from_fields(cls, data: Mapping[str, Any]) -> "SubmitTransactionRequest":
        _reject_unknown(data, cls.FIELDS)
        envelope = data.get("signed_transaction")
        if not envelope:
            raise MissingFieldError("signed_transaction")
        return cls(signed_transaction=str(envelope))


@dataclass
class Response:
    """Result of a request: data on success, a structured error otherwise."""

    data: Optional[dict] = None
    error: Optional[dict] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {"error": self.error}
        return {"data": self.data}


class Backend:
    """Dispatches engine operations against a store and ledger collaborators."""

    def __init__(
        self,
        store: KeyValueStore,
        ledger: LedgerClient,
        faucet: Optional[Faucet] = None,
        config: Optional[LedgerConfig] = None,
        audit: Optional[AuditTrail] = None,
    ):
        self.config = config or LedgerConfig()
        self.accounts = AccountStore(store)
        self.ledger = ledger
        self.issuer = AccountIssuer(self.accounts, faucet=faucet)
        self.assembler = TransactionAssembler(self.accounts, ledger, config=self.config)
        self.audit = audit
        self._handlers: dict[Operation, Callable[[Optional[str], Mapping[str, Any]], Optional[Response]]] = {
            Operation.CREATE_ACCOUNT: self._create_account,
            Operation.UPDATE_ACCOUNT: self._create_account,
            Operation.READ_ACCOUNT: self._read_account,
            Operation.LIST_ACCOUNTS: self._list_accounts,
            Operation.CREATE_PAYMENT: self._create_payment,
            Operation.SUBMIT_TRANSACTION: self._submit_transaction,
        }

    @classmethod
    def from_config(
        cls,
        store: KeyValueStore,
        config: Optional[LedgerConfig] = None,
        audit: Optional[AuditTrail] = None,
    ) -> "Backend":
        config = config or LedgerConfig.from_env()
        return cls(
            store=store,
            ledger=HorizonClient(config),
            faucet=FriendbotFaucet.from_config(config),
            config=config,
            audit=audit,
        )

    def handle_request(
        self,
        operation: Operation,
        data: Optional[Mapping[str, Any]] = None,
        name: Optional[str] = None,
    ) -> Optional[Response]:
        """Run one operation. Returns None when a read finds nothing."""
        handler = self._handlers[Operation(operation)]
        try:
            return handler(name, data or {})
        except PolicyViolationError as exc:
            logger.warning("Payment denied by policy: %s", exc)
            return Response(error=exc.to_dict())
        except DependencyError as exc:
            logger.error("%s failed: %s", Operation(operation).value, exc)
            return Response(error=exc.to_dict())
        except StellarVaultError as exc:
            logger.debug("Rejected %s request: %s", Operation(operation).value, exc)
            return Response(error=exc.to_dict())

    def _create_account(self, name: Optional[str], data: Mapping[str, Any]) -> Response:
        request = CreateAccountRequest.from_fields(name, data)
        created = self.issuer.create_account(
            request.name,
            xlm_balance=request.xlm_balance,
            tx_spend_limit=request.tx_spend_limit,
            whitelist=request.whitelist,
            blacklist=request.blacklist,
        )
        self._audit_created(created)
        return Response(data=created.to_dict())

    def _read_account(self, name: Optional[str], data: Mapping[str, Any]) -> Optional[Response]:
        _reject_unknown(data, frozenset())
        if not name:
            raise MissingFieldError("name")
        account = self.accounts.get(name)
        if account is None:
            return None
        return Response(data=account.public_dict())

    def _list_accounts(self, name: Optional[str], data: Mapping[str, Any]) -> Response:
        _reject_unknown(data, frozenset())
        return Response(data={"keys": self.accounts.list_names()})

    def _create_payment(self, name: Optional[str], data: Mapping[str, Any]) -> Response:
        request = PaymentRequest.from_fields(data)
        try:
            signed = self.assembler.build_signed_transfer(request)
        except StellarVaultError as exc:
            self._log(
                EventType.PAYMENT_DENIED,
                account=request.source,
                destination=request.destination,
                amount=request.amount,
                success=False,
                reason=str(exc),
                details={"code": exc.code},
            )
            raise
        self._log(
            EventType.PAYMENT_AUTHORIZED,
            account=request.source,
            address=signed.source_address,
            destination=request.destination,
            amount=request.amount,
            details={
                "asset_code": request.asset_code,
                "transaction_hash": signed.transaction_hash,
                "account_sequence": signed.account_sequence,
                "signers": signed.signers,
                "payment_channel": request.payment_channel,
            },
        )
        return Response(data=signed.to_dict())

    def _submit_transaction(self, name: Optional[str], data: Mapping[str, Any]) -> Response:
        request = SubmitTransactionRequest.from_fields(data)
        try:
            result = self.ledger.submit_transaction(request.signed_transaction)
        except StellarVaultError as exc:
            self._log(EventType.SUBMISSION_FAILED, success=False, reason=str(exc))
            raise
        self._log(EventType.TRANSACTION_SUBMITTED, details=result.to_dict())
        return Response(data=result.to_dict())

    def _audit_created(self, created: AccountCreated) -> None:
        self._log(
            EventType.ACCOUNT_CREATED,
            account=created.name,
            address=created.account.address,
            details={"tx_spend_limit": str(created.account.tx_spend_limit)},
        )
        if created.funded:
            self._log(EventType.ACCOUNT_FUNDED, account=created.name, address=created.account.address)
        elif created.funding_error:
            self._log(
                EventType.FUNDING_FAILED,
                account=created.name,
                address=created.account.address,
                success=False,
                reason=created.funding_error,
            )

    def _log(self, event_type: EventType, **kwargs: Any) -> None:
        if self.audit is not None:
            self.audit.log(event_type, **kwargs)
