"""
stellarvault: Custodial Stellar accounts with policy-checked payments.

Keys are issued and held by the store; every outbound transfer is checked
against the source account's spend limit and allow/deny lists before a
signature is produced.
"""

__version__ = "0.1.0"

from .accounts import Account, AccountStore, SigningKey
from .audit import AuditTrail, EventType
from .config import LedgerConfig, Network
from .engine import Backend, Operation, Response
from .issuance import AccountCreated, AccountIssuer
from .ledger import FriendbotFaucet, HorizonClient, SubmissionResult
from .policy import evaluate_transfer, validate_transfer
from .signers import SignerSet, resolve_signers
from .storage import FileStore, InMemoryStore, KeyValueStore
from .transactions import PaymentRequest, SignedTransaction, TransactionAssembler

__all__ = [
    "Account", "AccountStore", "SigningKey",
    "AuditTrail", "EventType",
    "LedgerConfig", "Network",
    "Backend", "Operation", "Response",
    "AccountCreated", "AccountIssuer",
    "FriendbotFaucet", "HorizonClient", "SubmissionResult",
    "evaluate_transfer", "validate_transfer",
    "SignerSet", "resolve_signers",
    "FileStore", "InMemoryStore", "KeyValueStore",
    "PaymentRequest", "SignedTransaction", "TransactionAssembler",
]
