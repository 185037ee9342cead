"""
Audit trail for issuance, payment authorization and submission.

Each event is one JSONL line chained to its predecessor with an HMAC, so an
edited, dropped or reordered line is detected on the next read. Events
never carry key material: account names, addresses and amounts only.
"""

from __future__ import annotations

import fcntl
import hashlib
import hmac
import json
import os
import secrets
import threading
import time
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import home_dir
from .storage import ensure_private_dir, ensure_private_file


AUDIT_KEY_ENV = "STELLARVAULT_AUDIT_HMAC_KEY"
_CHAIN_FIELDS = frozenset({"prev_hash", "event_hash"})


class EventType(str, Enum):
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_FUNDED = "account_funded"
    FUNDING_FAILED = "funding_failed"
    PAYMENT_AUTHORIZED = "payment_authorized"
    PAYMENT_DENIED = "payment_denied"
    TRANSACTION_SUBMITTED = "transaction_submitted"
    SUBMISSION_FAILED = "submission_failed"


@dataclass
class AuditEvent:
    event_type: str
    timestamp: float
    account: Optional[str] = None
    address: Optional[str] = None
    destination: Optional[str] = None
    amount: Optional[str] = None
    success: bool = True
    reason: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    prev_hash: Optional[str] = None
    event_hash: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: dict) -> "AuditEvent":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in known})

    def to_json(self) -> str:
        return json.dumps({k: v for k, v in asdict(self).items() if v is not None},
                          separators=(",", ":"))


class AuditTrail:
    """Tamper-evident append-only audit log, safe to share between threads."""

    def __init__(self, path: Optional[Path] = None, key_path: Optional[Path] = None):
        self.path = path or home_dir() / "audit.jsonl"
        self.key_path = key_path or self.path.parent / ".stellarvault-secrets" / "audit_hmac.key"
        for directory in {self.path.parent, self.key_path.parent}:
            ensure_private_dir(directory)
        ensure_private_file(self.path)

        self._key = self._load_key()
        self._mutex = threading.Lock()

    def _load_key(self) -> bytes:
        from_env = os.getenv(AUDIT_KEY_ENV)
        if from_env:
            return from_env.encode()
        if self.key_path.exists() and self.key_path.stat().st_size > 0:
            return self.key_path.read_bytes().strip()
        key = secrets.token_hex(32).encode()
        self.key_path.write_bytes(key)
        ensure_private_file(self.key_path)
        return key

    def _chain_hash(self, payload: dict, prev_hash: str) -> str:
        body = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hmac.new(self._key, f"{prev_hash}|{body}".encode(), hashlib.sha256).hexdigest()

    def _verified(self) -> Iterator[dict]:
        """Yield raw records in order, raising on the first broken link."""
        expected_prev = ""
        with open(self.path, "r") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                raw = json.loads(line)
                prev_hash = raw.get("prev_hash") or ""
                if prev_hash != expected_prev:
                    raise RuntimeError(f"Audit chain broken: previous hash mismatch at line {lineno}")
                payload = {k: v for k, v in raw.items() if k not in _CHAIN_FIELDS}
                event_hash = raw.get("event_hash") or ""
                if not hmac.compare_digest(self._chain_hash(payload, prev_hash), event_hash):
                    raise RuntimeError(f"Audit chain broken: event hash mismatch at line {lineno}")
                expected_prev = event_hash
                yield raw

    def _tail_hash(self) -> str:
        last = ""
        with open(self.path, "r") as f:
            for line in f:
                if line.strip():
                    last = json.loads(line).get("event_hash", "")
        return last

    def log(
        self,
        event_type: EventType,
        account: Optional[str] = None,
        address: Optional[str] = None,
        destination: Optional[str] = None,
        amount: Optional[int] = None,
        success: bool = True,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        payload = {
            "event_type": event_type.value,
            "timestamp": time.time(),
            "account": account,
            "address": address,
            "destination": destination,
            # Decimal string; amounts are unbounded integers.
            "amount": None if amount is None else str(amount),
            "success": success,
            "reason": reason,
            "details": details,
        }
        payload = {k: v for k, v in payload.items() if v is not None}

        with self._mutex, open(self.path, "a+") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                prev_hash = self._tail_hash()
                event = AuditEvent(
                    **payload,
                    prev_hash=prev_hash or None,
                    event_hash=self._chain_hash(payload, prev_hash),
                )
                f.write(event.to_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        return event

    def verify(self) -> int:
        """Check the whole chain; return the number of events."""
        return sum(1 for _ in self._verified())

    def read_events(
        self,
        account: Optional[str] = None,
        event_type: Optional[EventType] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        selected = [
            AuditEvent.from_raw(raw)
            for raw in self._verified()
            if (not account or raw.get("account") == account)
            and (not event_type or raw.get("event_type") == event_type.value)
        ]
        return selected[-limit:] if limit else selected

    def summary(self, account: Optional[str] = None) -> dict:
        events = self.read_events(account=account, limit=0)
        by_type: dict[str, int] = {}
        for event in events:
            by_type[event.event_type] = by_type.get(event.event_type, 0) + 1
        return {
            "total_events": len(events),
            "by_type": by_type,
            "failures": sum(1 for e in events if not e.success),
            "denied_payments": by_type.get(EventType.PAYMENT_DENIED.value, 0),
            "last_event": events[-1].to_json() if events else None,
        }
