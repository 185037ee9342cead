"""
End-to-end run: real accounts and payments on the Stellar test network.

Funds three fresh accounts through Friendbot, pays between two of them with
the third acting as payment channel, and submits the result to Horizon.
Run by hand; it needs network access.
"""

import sys
import tempfile
import time
from pathlib import Path

from stellarvault import Backend, FileStore, LedgerConfig, Operation


def main():
    print("🚀 stellarvault E2E: payment-channel transfer on testnet")
    print("=" * 55)
    print()

    workdir = Path(tempfile.mkdtemp(prefix="stellarvault-e2e-"))
    config = LedgerConfig()
    backend = Backend.from_config(FileStore(workdir / "store"), config=config)

    # 1. Create and fund accounts
    print("1️⃣  Creating accounts via Friendbot...")
    for name, limit in (("alice", "50"), ("bob", "0"), ("channel", "0")):
        response = backend.handle_request(
            Operation.CREATE_ACCOUNT, {"tx_spend_limit": limit}, name=name,
        )
        if response.is_error:
            print(f"   ❌ {name}: {response.error['message']}")
            sys.exit(1)
        print(f"   ✅ {name}: {response.data['address']}")
    # Give the ledger a moment to close the funding transactions.
    time.sleep(6)
    print()

    # 2. A payment over the limit must be denied
    print("2️⃣  Checking the spend limit...")
    denied = backend.handle_request(Operation.CREATE_PAYMENT, {
        "source": "alice", "destination": "bob", "amount": "75", "assetCode": "native",
    })
    if not denied.is_error:
        print("   ❌ Over-limit payment was signed")
        sys.exit(1)
    print(f"   ✅ Denied: {denied.error['message']}")
    print()

    # 3. Sign with a payment channel
    print("3️⃣  Signing 10 XLM alice -> bob through the channel...")
    signed = backend.handle_request(Operation.CREATE_PAYMENT, {
        "source": "alice",
        "destination": "bob",
        "amount": "10",
        "assetCode": "native",
        "paymentChannel": "channel",
        "memo": "stellarvault e2e",
    })
    if signed.is_error:
        print(f"   ❌ {signed.error['message']}")
        sys.exit(1)
    print(f"   Fee source: {signed.data['source_address']}")
    print(f"   Sequence: {signed.data['account_sequence']}")
    print(f"   Hash: {signed.data['transaction_hash']}")
    print()

    # 4. Submit
    print("4️⃣  Submitting to Horizon...")
    result = backend.handle_request(
        Operation.SUBMIT_TRANSACTION, {"signed_transaction": signed.data["signed_transaction"]},
    )
    if result.is_error:
        print(f"   ❌ {result.error['message']}")
        sys.exit(1)
    print(f"   🎉 Included in ledger {result.data['ledger']}")
    print(f"   Explorer: https://stellar.expert/explorer/testnet/tx/{result.data['transaction_hash']}")

    backend.ledger.close()


if __name__ == "__main__":
    main()
