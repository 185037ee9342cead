"""
stellarvault error types.

Specific exceptions for different failure modes, enabling callers
to handle each case appropriately (fix the request, retry, alert, etc.).
Every error carries a stable ``code`` and renders to a structured dict.
"""

from __future__ import annotations

from typing import Any, Iterable


class StellarVaultError(Exception):
    """Base error for all stellarvault operations."""

    code = "error"
    retryable = False

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "retryable": self.retryable,
            **self.details(),
        }


# Request errors
class UserError(StellarVaultError):
    """Base error for malformed requests. Never a fault of the engine."""

    code = "user_error"


class MissingFieldError(UserError):
    code = "missing_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field '{field}'")

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class UnknownFieldError(UserError):
    code = "unknown_field"

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(f"unknown fields: {self.fields!r}")

    def details(self) -> dict[str, Any]:
        return {"fields": self.fields}


class InvalidAmountError(UserError):
    code = "invalid_amount"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"{field} is either not a number or is negative: {value!r}")

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidIssuerAddressError(UserError):
    code = "invalid_issuer_address"

    def __init__(self, issuer: str):
        self.issuer = issuer
        super().__init__(f"invalid address for assetIssuer: {issuer}")

    def details(self) -> dict[str, Any]:
        return {"issuer": self.issuer}


class InvalidAssetError(UserError):
    code = "invalid_asset"

    def __init__(self, asset_code: str, reason: str):
        self.asset_code = asset_code
        super().__init__(f"invalid assetCode '{asset_code}': {reason}")

    def details(self) -> dict[str, Any]:
        return {"asset_code": self.asset_code}


class InvalidMemoError(UserError):
    code = "invalid_memo"


class InvalidNameError(UserError):
    code = "invalid_name"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"invalid account name: {name!r}")

    def details(self) -> dict[str, Any]:
        return {"name": self.name}


# Lookup errors
class AccountNotFoundError(StellarVaultError):
    """A named account does not exist in the store."""

    code = "account_not_found"

    def __init__(self, name: str, role: str = "account"):
        self.name = name
        self.role = role
        super().__init__(f"{role} not found: {name}")

    def details(self) -> dict[str, Any]:
        return {"name": self.name, "role": self.role}


# Policy errors
class PolicyViolationError(StellarVaultError):
    """Base error for transfers rejected by account policy."""

    code = "policy_violation"
    reason = "policy"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["reason"] = self.reason
        return result


class SpendLimitExceededError(PolicyViolationError):
    reason = "spend_limit_exceeded"

    def __init__(self, limit: int, amount: int):
        self.limit = limit
        self.amount = amount
        super().__init__(
            f"transaction amount ({amount}) is larger than the transactional limit ({limit})"
        )

    def details(self) -> dict[str, Any]:
        return {"limit": str(self.limit), "amount": str(self.amount)}


class BlacklistedError(PolicyViolationError):
    reason = "blacklisted"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"{address} is blacklisted")

    def details(self) -> dict[str, Any]:
        return {"address": self.address}


class NotWhitelistedError(PolicyViolationError):
    reason = "not_whitelisted"

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"{address} is not in the whitelist")

    def details(self) -> dict[str, Any]:
        return {"address": self.address}


# Dependency errors
class DependencyError(StellarVaultError):
    """A collaborator (store, signer, ledger) failed. May succeed on retry."""

    code = "dependency_error"
    retryable = True


class StoreError(DependencyError):
    code = "store_error"


class SigningFailureError(DependencyError):
    code = "signing_failure"


class EncodingFailureError(DependencyError):
    """The transaction could not be encoded for the ledger."""

    code = "encoding_failure"
    retryable = False


class LedgerError(DependencyError):
    """Ledger network lookup or submission failed."""

    code = "ledger_error"

    def __init__(self, message: str, status_code: int | None = None, result_codes: Any = None):
        self.status_code = status_code
        self.result_codes = result_codes
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.result_codes is not None:
            result["result_codes"] = self.result_codes
        return result


class FundingError(DependencyError):
    """Faucet funding failed. Downgraded to a warning by the issuer."""

    code = "funding_error"
