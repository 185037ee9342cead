"""
Ledger network collaborators: Horizon client and Friendbot faucet.

The engine only needs two things from the network: the current sequence
number of the fee-paying account, and a place to submit signed envelopes.
Funding new test accounts is a separate, best-effort concern.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from .config import LedgerConfig
from .errors import FundingError, LedgerError

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    transaction_hash: str
    ledger: int
    raw_response: Optional[dict] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {"transaction_hash": self.transaction_hash, "ledger": self.ledger}


class LedgerClient(Protocol):
    def load_sequence(self, address: str) -> int: ...

    def submit_transaction(self, envelope_xdr: str) -> SubmissionResult: ...


class Faucet(Protocol):
    def fund(self, address: str) -> None: ...


class HorizonClient:
    """Minimal Horizon REST client for sequence lookup and submission."""

    def __init__(self, config: Optional[LedgerConfig] = None, http: Optional[httpx.Client] = None):
        self.config = config or LedgerConfig()
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=self.config.http_timeout_seconds)
        self.base_url = (self.config.horizon_url or "").rstrip("/")

    def load_sequence(self, address: str) -> int:
        url = f"{self.base_url}/accounts/{address}"
        try:
            response = self._http.get(url)
        except httpx.HTTPError as exc:
            raise LedgerError(f"Horizon request failed: {type(exc).__name__}: {exc}") from exc

        if response.status_code == 404:
            raise LedgerError(f"Account {address} does not exist on the ledger", status_code=404)
        if response.status_code != 200:
            raise LedgerError(_problem_message(response), status_code=response.status_code)
        try:
            return int(response.json()["sequence"])
        except (ValueError, KeyError, TypeError) as exc:
            raise LedgerError(f"Malformed account response for {address}") from exc

    def submit_transaction(self, envelope_xdr: str) -> SubmissionResult:
        url = f"{self.base_url}/transactions"
        try:
            response = self._http.post(url, data={"tx": envelope_xdr})
        except httpx.HTTPError as exc:
            raise LedgerError(f"Horizon request failed: {type(exc).__name__}: {exc}") from exc

        body = _json_or_none(response)
        if response.status_code != 200 or body is None:
            result_codes = None
            if body:
                result_codes = (body.get("extras") or {}).get("result_codes")
            raise LedgerError(
                _problem_message(response),
                status_code=response.status_code,
                result_codes=result_codes,
            )
        logger.info("Transaction %s included in ledger %s", body.get("hash"), body.get("ledger"))
        return SubmissionResult(
            transaction_hash=body.get("hash", ""),
            ledger=int(body.get("ledger", 0)),
            raw_response=body,
        )

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "HorizonClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FriendbotFaucet:
    """Funds new accounts on the test network via Friendbot."""

    def __init__(self, url: str, http: Optional[httpx.Client] = None, timeout_seconds: float = 30.0):
        self.url = url
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_config(cls, config: LedgerConfig, http: Optional[httpx.Client] = None) -> Optional["FriendbotFaucet"]:
        if not config.fund_new_accounts or not config.friendbot_url:
            return None
        return cls(config.friendbot_url, http=http, timeout_seconds=config.http_timeout_seconds)

    def fund(self, address: str) -> None:
        try:
            response = self._http.get(self.url, params={"addr": address})
        except httpx.HTTPError as exc:
            raise FundingError(f"Faucet request failed: {type(exc).__name__}: {exc}") from exc
        if response.status_code >= 400:
            raise FundingError(f"Faucet rejected {address}: {_problem_message(response)}")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()


def _json_or_none(response: httpx.Response) -> Optional[dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _problem_message(response: httpx.Response) -> str:
    body = _json_or_none(response)
    if body and body.get("title"):
        message = f"{response.status_code}: {body['title']}"
        result_codes = (body.get("extras") or {}).get("result_codes")
        if result_codes:
            message += f" ({result_codes})"
        return message
    return f"Unexpected status {response.status_code}: {response.text[:200]}"
