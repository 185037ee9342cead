"""
Signer resolution for payment transactions.

Decides which stored accounts sign a transfer and which account pays the fee
and supplies the sequence number:

    no channel:   fee source = source,  signers = [source]
    channel:      fee source = channel, signers = [source, channel]

Additional signers are looked up so a typo still fails the request, but their
keys are never attached. The ledger rejects envelopes carrying more
signatures than the account thresholds expect, so attaching them needs
explicit per-account signer-weight configuration first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .accounts import Account, AccountStore

logger = logging.getLogger(__name__)


@dataclass
class SignerSet:
    """Accounts whose keys sign, in signing order, plus the fee source."""

    fee_source: Account
    signers: list[Account]
    excluded: list[Account] = field(default_factory=list)

    @property
    def fee_source_address(self) -> str:
        return self.fee_source.address

    @property
    def addresses(self) -> list[str]:
        return [account.address for account in self.signers]


def resolve_signers(
    accounts: AccountStore,
    source: Account,
    payment_channel: Optional[str] = None,
    additional_signers: Iterable[str] = (),
) -> SignerSet:
    """Resolve the signer set for a transfer from ``source``.

    Raises AccountNotFoundError for any name that is not stored, before
    anything is signed.
    """
    channel: Optional[Account] = None
    if payment_channel:
        channel = accounts.require(payment_channel, role="payment channel account")

    excluded = [
        accounts.require(name, role="additional signer account")
        for name in additional_signers
    ]
    if excluded:
        logger.info(
            "Ignoring %d additional signer(s); extra signatures are disabled by policy",
            len(excluded),
        )

    signers = [source]
    if channel is not None and channel.address != source.address:
        signers.append(channel)

    return SignerSet(
        fee_source=channel if channel is not None else source,
        signers=signers,
        excluded=excluded,
    )
