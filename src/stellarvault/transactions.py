"""
Signed payment transaction construction.

Flow:
1. Validate request shape (strict schema, required fields)
2. Parse the amount as a non-negative big integer
3. Resolve source, destination, payment channel and additional signers
4. Enforce the source account's transfer policy
5. Build the payment operation (native or credit asset)
6. Wrap it in an envelope anchored on the fee source's next sequence number
7. Sign with the signer set, source first
8. Hash and base64-encode the signed envelope

Nothing is written to the store on this path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from stellar_sdk import Account as LedgerAccount
from stellar_sdk import Asset, StrKey, TransactionBuilder, TransactionEnvelope

from .accounts import Account, AccountStore
from .amounts import fits_ledger, parse_amount
from .config import LedgerConfig
from .errors import (
    EncodingFailureError,
    InvalidAssetError,
    InvalidIssuerAddressError,
    InvalidMemoError,
    MissingFieldError,
    UnknownFieldError,
)
from .ledger import LedgerClient
from .policy import validate_transfer
from .signers import SignerSet, resolve_signers

logger = logging.getLogger(__name__)


NATIVE_ASSET_CODE = "native"
MAX_MEMO_BYTES = 28

PAYMENT_FIELDS = frozenset({
    "source",
    "destination",
    "paymentChannel",
    "additionalSigners",
    "amount",
    "assetCode",
    "assetIssuer",
    "memo",
})


@dataclass
class PaymentRequest:
    """A validated request to build a signed payment."""

    source: str
    destination: str
    amount: int
    asset_code: str
    asset_issuer: Optional[str] = None
    payment_channel: Optional[str] = None
    additional_signers: list[str] = field(default_factory=list)
    memo: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.asset_code.lower() == NATIVE_ASSET_CODE

    @classmethod
    def from_fields(cls, data: Mapping[str, Any]) -> "PaymentRequest":
        """Validate raw request fields. Runs before any account lookup."""
        unknown = set(data) - PAYMENT_FIELDS
        if unknown:
            raise UnknownFieldError(unknown)

        source = _text(data, "source")
        if not source:
            raise MissingFieldError("source")
        destination = _text(data, "destination")
        if not destination:
            raise MissingFieldError("destination")
        raw_amount = data.get("amount")
        if raw_amount is None or raw_amount == "":
            raise MissingFieldError("amount")
        asset_code = _text(data, "assetCode")
        if not asset_code:
            raise MissingFieldError("assetCode")
        asset_issuer = _text(data, "assetIssuer")
        if not asset_issuer and asset_code.lower() != NATIVE_ASSET_CODE:
            raise MissingFieldError("assetIssuer")

        memo = _text(data, "memo")
        if len(memo.encode("utf-8")) > MAX_MEMO_BYTES:
            raise InvalidMemoError(f"memo must be at most {MAX_MEMO_BYTES} bytes")

        return cls(
            source=source,
            destination=destination,
            amount=parse_amount(raw_amount),
            asset_code=asset_code,
            asset_issuer=asset_issuer or None,
            payment_channel=_text(data, "paymentChannel") or None,
            additional_signers=parse_name_list(data.get("additionalSigners")),
            memo=memo or None,
        )


@dataclass
class SignedTransaction:
    """A signed envelope ready for submission. Carries no secret material."""

    source_address: str
    account_sequence: int
    fee: int
    transaction_hash: str
    signed_transaction: str
    signers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "source_address": self.source_address,
            "account_sequence": self.account_sequence,
            "fee": self.fee,
            "transaction_hash": self.transaction_hash,
            "signed_transaction": self.signed_transaction,
            "signers": list(self.signers),
        }


class TransactionAssembler:
    """Builds policy-checked, signed payment transactions."""

    def __init__(
        self,
        accounts: AccountStore,
        ledger: LedgerClient,
        config: Optional[LedgerConfig] = None,
    ):
        self.accounts = accounts
        self.ledger = ledger
        self.config = config or LedgerConfig()

    def build_signed_transfer(
        self,
        request: Union[PaymentRequest, Mapping[str, Any]],
    ) -> SignedTransaction:
        if not isinstance(request, PaymentRequest):
            request = PaymentRequest.from_fields(request)

        source = self.accounts.require(request.source, role="source account")
        destination = self.accounts.require(request.destination, role="destination account")
        signer_set = resolve_signers(
            self.accounts,
            source,
            payment_channel=request.payment_channel,
            additional_signers=request.additional_signers,
        )

        validate_transfer(source, request.amount, destination.address)

        asset = self._asset(request)
        if not fits_ledger(request.amount):
            raise EncodingFailureError(
                f"amount {request.amount} exceeds the ledger's maximum transferable amount"
            )

        sequence = self.ledger.load_sequence(signer_set.fee_source_address)
        envelope = self._build_envelope(request, source, destination, asset, signer_set, sequence)
        try:
            tx_hash = envelope.hash_hex()
        except Exception as exc:
            raise EncodingFailureError(f"failed to encode transaction: {exc}") from exc

        for account in signer_set.signers:
            with self.accounts.signing_key(account) as key:
                key.sign(envelope)

        try:
            signed_xdr = envelope.to_xdr()
        except Exception as exc:
            raise EncodingFailureError(f"failed to encode signed transaction: {exc}") from exc

        logger.info(
            "Payment authorized: %s -> %s amount=%s asset=%s fee_source=%s signers=%d",
            request.source,
            request.destination,
            request.amount,
            request.asset_code,
            signer_set.fee_source_address,
            len(signer_set.signers),
        )
        return SignedTransaction(
            source_address=signer_set.fee_source_address,
            account_sequence=envelope.transaction.sequence,
            fee=envelope.transaction.fee,
            transaction_hash=tx_hash,
            signed_transaction=signed_xdr,
            signers=signer_set.addresses,
        )

    def _asset(self, request: PaymentRequest) -> Asset:
        if request.is_native:
            return Asset.native()
        issuer = request.asset_issuer or ""
        if not StrKey.is_valid_ed25519_public_key(issuer):
            raise InvalidIssuerAddressError(issuer)
        try:
            return Asset(request.asset_code, issuer)
        except ValueError as exc:
            raise InvalidAssetError(request.asset_code, str(exc)) from exc

    def _build_envelope(
        self,
        request: PaymentRequest,
        source: Account,
        destination: Account,
        asset: Asset,
        signer_set: SignerSet,
        sequence: int,
    ) -> TransactionEnvelope:
        try:
            builder = TransactionBuilder(
                source_account=LedgerAccount(signer_set.fee_source_address, sequence),
                network_passphrase=self.config.network_passphrase,
                base_fee=self.config.base_fee,
            )
            builder.append_payment_op(
                destination=destination.address,
                asset=asset,
                amount=str(request.amount),
                source=source.address,
            )
            if request.memo:
                builder.add_text_memo(request.memo)
            if self.config.tx_timeout_seconds:
                builder.set_timeout(self.config.tx_timeout_seconds)
            else:
                builder.add_time_bounds(0, 0)
            return builder.build()
        except ValueError as exc:
            raise EncodingFailureError(f"failed to build payment object: {exc}") from exc


def parse_name_list(value: Any) -> list[str]:
    """Accept a comma-separated string or a sequence of names."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(item).strip() for item in items if str(item).strip()]


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)
