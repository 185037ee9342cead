"""Shared fixtures: in-memory store, fake ledger and faucet collaborators."""

from typing import Optional

import pytest
from stellar_sdk import Keypair, TransactionEnvelope

from stellarvault.accounts import AccountStore
from stellarvault.config import LedgerConfig
from stellarvault.engine import Backend
from stellarvault.errors import FundingError, LedgerError
from stellarvault.issuance import AccountIssuer
from stellarvault.ledger import SubmissionResult
from stellarvault.storage import InMemoryStore
from stellarvault.transactions import TransactionAssembler


class FakeLedger:
    """Stands in for Horizon: fixed sequence numbers, recorded submissions."""

    def __init__(self, sequence: int = 1_000, fail_submit: bool = False):
        self.sequence = sequence
        self.fail_submit = fail_submit
        self.lookups: list[str] = []
        self.submitted: list[str] = []

    def load_sequence(self, address: str) -> int:
        self.lookups.append(address)
        return self.sequence

    def submit_transaction(self, envelope_xdr: str) -> SubmissionResult:
        if self.fail_submit:
            raise LedgerError("400: Transaction Failed", status_code=400,
                              result_codes={"transaction": "tx_bad_seq"})
        self.submitted.append(envelope_xdr)
        return SubmissionResult(transaction_hash="ab" * 32, ledger=4242)


class FakeFaucet:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.funded: list[str] = []

    def fund(self, address: str) -> None:
        if self.fail:
            raise FundingError(f"Faucet rejected {address}")
        self.funded.append(address)


class CountingStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.reads: list[str] = []
        self.writes: list[str] = []

    def get(self, path: str) -> Optional[bytes]:
        self.reads.append(path)
        return super().get(path)

    def put(self, path: str, value: bytes) -> None:
        self.writes.append(path)
        super().put(path, value)


@pytest.fixture
def config():
    return LedgerConfig(fund_new_accounts=False)


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def accounts(store):
    return AccountStore(store)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def faucet():
    return FakeFaucet()


@pytest.fixture
def issuer(accounts):
    return AccountIssuer(accounts)


@pytest.fixture
def assembler(accounts, ledger, config):
    return TransactionAssembler(accounts, ledger, config=config)


@pytest.fixture
def backend(store, ledger, config):
    return Backend(store=store, ledger=ledger, config=config)


def decode(signed_xdr: str, config: LedgerConfig) -> TransactionEnvelope:
    return TransactionEnvelope.from_xdr(signed_xdr, config.network_passphrase)


def signer_hints(envelope: TransactionEnvelope) -> list[bytes]:
    return [bytes(sig.signature_hint) for sig in envelope.signatures]


def hints_for(*addresses: str) -> list[bytes]:
    return [bytes(Keypair.from_public_key(a).signature_hint()) for a in addresses]
